"""Role profiles, public user profiles, and identity documents."""

from typing import List, Optional
import logging
import secrets
import string

from sqlalchemy.exc import IntegrityError

from ..domain import Role, UserProfile
from .datastore import Datastore
from .datastore.models import DBHostProfile, DBIdentityVerification, \
    DBInfluencerProfile, DBTravelerPreferences, DBUserProfile
from .exceptions import DuplicateUsername

logger = logging.getLogger(__name__)

DOCUMENT_TYPES = ('passport', 'drivers_license', 'national_id')

_REFERRAL_ALPHABET = string.ascii_uppercase + string.digits


def referral_code() -> str:
    """Generate a host referral code, e.g. ``HOST_7K2M9QX1AB``."""
    suffix = ''.join(secrets.choice(_REFERRAL_ALPHABET) for _ in range(10))
    return f'HOST_{suffix}'


def to_profile(db_profile: DBUserProfile) -> UserProfile:
    return UserProfile(
        account_id=db_profile.account_id,
        full_name=db_profile.full_name,
        username=db_profile.username,
        bio=db_profile.bio,
        profile_picture=db_profile.profile_picture
    )


class ProfileStore:
    """Reads and writes per-account profile records."""

    def __init__(self, datastore: Datastore) -> None:
        self._datastore = datastore

    def ensure_role_profile(self, account_id: str, role: Role) -> bool:
        """
        Create the profile record for ``role`` if it does not exist.

        An existing record is left untouched. If a concurrent request
        creates the record first, that counts as success.

        Returns
        -------
        bool
            Whether a record was created by this call.

        """
        model = {
            Role.TRAVELER: DBTravelerPreferences,
            Role.HOST: DBHostProfile,
            Role.INFLUENCER: DBInfluencerProfile,
        }.get(role)
        if model is None:
            return False
        try:
            with self._datastore.transaction() as session:
                if session.get(model, account_id) is not None:
                    return False
                if role is Role.HOST:
                    session.add(DBHostProfile(account_id=account_id,
                                              referral_code=referral_code(),
                                              preferred_niches=[]))
                elif role is Role.INFLUENCER:
                    session.add(DBInfluencerProfile(account_id=account_id,
                                                    content_niches=[]))
                else:
                    session.add(DBTravelerPreferences(account_id=account_id,
                                                      travel_interests=[],
                                                      travel_style=[]))
        except IntegrityError:
            logger.debug('%s profile for %s already exists', role.value,
                         account_id)
            return False
        logger.debug('Created %s profile for %s', role.value, account_id)
        return True

    def get_referral_code(self, account_id: str) -> Optional[str]:
        with self._datastore.transaction() as session:
            db_host = session.get(DBHostProfile, account_id)
            return db_host.referral_code if db_host else None

    def save_user_profile(self, profile: UserProfile) -> UserProfile:
        """
        Create or replace the public profile of an account.

        Raises
        ------
        :class:`.DuplicateUsername`
            If another account already uses the username.

        """
        try:
            with self._datastore.transaction() as session:
                taken = session.query(DBUserProfile) \
                    .filter(DBUserProfile.username == profile.username) \
                    .filter(DBUserProfile.account_id != profile.account_id) \
                    .first()
                if taken is not None:
                    raise DuplicateUsername('Username is already taken')
                db_profile = session.get(DBUserProfile, profile.account_id)
                if db_profile is None:
                    db_profile = DBUserProfile(account_id=profile.account_id)
                    session.add(db_profile)
                db_profile.full_name = profile.full_name
                db_profile.username = profile.username
                db_profile.bio = profile.bio
                db_profile.profile_picture = profile.profile_picture
        except IntegrityError as e:
            raise DuplicateUsername('Username is already taken') from e
        return profile

    def get_user_profile(self, account_id: str) -> Optional[UserProfile]:
        with self._datastore.transaction() as session:
            db_profile = session.get(DBUserProfile, account_id)
            return to_profile(db_profile) if db_profile else None

    def set_travel_interests(self, account_id: str,
                             interests: List[str]) -> List[str]:
        """Replace a traveler's interests, creating preferences if needed."""
        with self._datastore.transaction() as session:
            db_prefs = session.get(DBTravelerPreferences, account_id)
            if db_prefs is None:
                db_prefs = DBTravelerPreferences(account_id=account_id,
                                                 travel_style=[])
                session.add(db_prefs)
            db_prefs.travel_interests = list(interests)
        return list(interests)

    def get_travel_interests(self, account_id: str) -> List[str]:
        with self._datastore.transaction() as session:
            db_prefs = session.get(DBTravelerPreferences, account_id)
            return list(db_prefs.travel_interests) if db_prefs else []

    def record_identity_document(self, account_id: str, document_type: str,
                                 document_url: str) -> int:
        """Store an identity document for review; returns its id."""
        with self._datastore.transaction() as session:
            db_verification = DBIdentityVerification(
                account_id=account_id,
                document_type=document_type,
                document_url=document_url,
                status='PENDING'
            )
            session.add(db_verification)
            session.flush()
            verification_id: int = db_verification.verification_id
        logger.info('Identity document %i submitted by %s', verification_id,
                    account_id)
        return verification_id
