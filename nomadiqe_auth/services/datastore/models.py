"""SQLAlchemy models for the account database."""

from datetime import datetime
import uuid

from pytz import UTC
from sqlalchemy import Column, DateTime, ForeignKey, Integer, JSON, String, \
    Text, UniqueConstraint
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.types import TypeDecorator

Base = declarative_base()


class UTCDateTime(TypeDecorator):
    """Stores naive UTC, hands back timezone-aware UTC datetimes."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):  # type: ignore
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(UTC).replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):  # type: ignore
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value


def _now() -> datetime:
    return datetime.now(tz=UTC)


def _new_id() -> str:
    return uuid.uuid4().hex


class DBAccount(Base):  # type: ignore
    """Persistence for :class:`domain.Account`."""

    __tablename__ = 'accounts'

    account_id = Column(String(32), primary_key=True, default=_new_id)
    email = Column(String(320), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=True)
    password_hash = Column(String(255), nullable=True)
    """Absent when the account has no local credential."""

    role = Column(String(16), nullable=False)
    onboarding_status = Column(String(16), nullable=False)
    onboarding_step = Column(String(64), nullable=True)
    email_verified = Column(UTCDateTime, nullable=True)
    created = Column(UTCDateTime, default=_now)
    updated = Column(UTCDateTime, default=_now, onupdate=_now)

    links = relationship('DBIdentityLink', back_populates='account',
                         cascade='all, delete-orphan')
    progress = relationship('DBOnboardingProgress', uselist=False,
                            back_populates='account',
                            cascade='all, delete-orphan')
    profile = relationship('DBUserProfile', uselist=False,
                           cascade='all, delete-orphan')
    traveler_preferences = relationship('DBTravelerPreferences',
                                        uselist=False,
                                        cascade='all, delete-orphan')
    host_profile = relationship('DBHostProfile', uselist=False,
                                cascade='all, delete-orphan')
    influencer_profile = relationship('DBInfluencerProfile', uselist=False,
                                      cascade='all, delete-orphan')
    identity_verifications = relationship('DBIdentityVerification',
                                          cascade='all, delete-orphan')
    points = relationship('DBPointsEntry', cascade='all, delete-orphan')


class DBIdentityLink(Base):  # type: ignore
    """Persistence for :class:`domain.IdentityLink`."""

    __tablename__ = 'identity_links'
    __table_args__ = (
        UniqueConstraint('provider', 'provider_account_id'),
        UniqueConstraint('account_id', 'provider'),
    )

    link_id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(ForeignKey('accounts.account_id', ondelete='CASCADE'),
                        nullable=False, index=True)
    provider = Column(String(32), nullable=False)
    provider_account_id = Column(String(255), nullable=False)
    created = Column(UTCDateTime, default=_now)

    account = relationship('DBAccount', back_populates='links')


class DBVerificationToken(Base):  # type: ignore
    """
    Persistence for :class:`domain.VerificationToken`.

    Rows are never updated in place: they are inserted on issue and deleted
    on consumption or failed expiry check.
    """

    __tablename__ = 'verification_tokens'

    identifier = Column(String(400), primary_key=True)
    token = Column(String(64), primary_key=True)
    expires = Column(UTCDateTime, nullable=False)


class DBOnboardingProgress(Base):  # type: ignore
    """Persistence for :class:`domain.OnboardingProgress`."""

    __tablename__ = 'onboarding_progress'

    account_id = Column(ForeignKey('accounts.account_id', ondelete='CASCADE'),
                        primary_key=True)
    current_step = Column(String(64), nullable=True)
    completed_steps = Column(JSON, nullable=False, default=list)
    started_at = Column(UTCDateTime, default=_now)
    completed_at = Column(UTCDateTime, nullable=True)

    account = relationship('DBAccount', back_populates='progress')


class DBUserProfile(Base):  # type: ignore
    """Public profile details collected during profile setup."""

    __tablename__ = 'user_profiles'

    account_id = Column(ForeignKey('accounts.account_id', ondelete='CASCADE'),
                        primary_key=True)
    full_name = Column(String(100), nullable=False)
    username = Column(String(30), nullable=False, unique=True, index=True)
    bio = Column(Text, nullable=True)
    profile_picture = Column(String(1024), nullable=True)


class DBTravelerPreferences(Base):  # type: ignore
    """Role profile for travelers."""

    __tablename__ = 'traveler_preferences'

    account_id = Column(ForeignKey('accounts.account_id', ondelete='CASCADE'),
                        primary_key=True)
    travel_interests = Column(JSON, nullable=False, default=list)
    travel_style = Column(JSON, nullable=False, default=list)


class DBHostProfile(Base):  # type: ignore
    """Role profile for hosts."""

    __tablename__ = 'host_profiles'

    account_id = Column(ForeignKey('accounts.account_id', ondelete='CASCADE'),
                        primary_key=True)
    referral_code = Column(String(32), nullable=False, unique=True)
    preferred_niches = Column(JSON, nullable=False, default=list)


class DBInfluencerProfile(Base):  # type: ignore
    """Role profile for influencers."""

    __tablename__ = 'influencer_profiles'

    account_id = Column(ForeignKey('accounts.account_id', ondelete='CASCADE'),
                        primary_key=True)
    content_niches = Column(JSON, nullable=False, default=list)


class DBIdentityVerification(Base):  # type: ignore
    """An identity document submitted for review."""

    __tablename__ = 'identity_verifications'

    verification_id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(ForeignKey('accounts.account_id', ondelete='CASCADE'),
                        nullable=False, index=True)
    document_type = Column(String(32), nullable=False)
    document_url = Column(String(1024), nullable=False)
    status = Column(String(16), nullable=False, default='PENDING')
    created = Column(UTCDateTime, default=_now)


class DBPointsEntry(Base):  # type: ignore
    """Ledger of reward points. Each action is awarded at most once."""

    __tablename__ = 'points_ledger'
    __table_args__ = (UniqueConstraint('account_id', 'action'),)

    entry_id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(ForeignKey('accounts.account_id', ondelete='CASCADE'),
                        nullable=False, index=True)
    action = Column(String(64), nullable=False)
    points = Column(Integer, nullable=False)
    description = Column(String(255), nullable=True)
    created = Column(UTCDateTime, default=_now)
