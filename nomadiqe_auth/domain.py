"""Defines identity and onboarding concepts for use in the accounts service."""

from typing import List, NamedTuple, Optional
from datetime import datetime
from enum import Enum

from pytz import UTC

from .services.exceptions import ErrorKind


class Role(str, Enum):
    """The part a user plays on the platform."""

    TRAVELER = 'TRAVELER'
    HOST = 'HOST'
    INFLUENCER = 'INFLUENCER'
    ADMIN = 'ADMIN'


DEFAULT_ROLE = Role.TRAVELER
"""Role assigned to every new account until the user picks one."""

SELECTABLE_ROLES = (Role.TRAVELER, Role.HOST, Role.INFLUENCER)
"""Roles that a user may choose for themselves during onboarding."""


class OnboardingStatus(str, Enum):
    """Coarse onboarding state of an account."""

    PENDING = 'PENDING'
    IN_PROGRESS = 'IN_PROGRESS'
    COMPLETED = 'COMPLETED'


class TokenPurpose(str, Enum):
    """What a verification token authorizes."""

    EMAIL_VERIFICATION = 'email-verification'
    PASSWORD_RESET = 'password-reset'
    ADD_PASSWORD = 'add-password'


def normalize_email(email: str) -> str:
    """Trim and lowercase an e-mail address."""
    return email.strip().lower()


class Account(NamedTuple):
    """The durable identity record of a user."""

    account_id: str
    """Stable opaque identifier. Never reassigned."""

    email: str
    """Normalized (lowercase) e-mail address. Unique."""

    role: Role
    """Mutable until onboarding is completed."""

    onboarding_status: OnboardingStatus

    onboarding_step: Optional[str]
    """
    Current onboarding step key. ``None`` once onboarding is done, and on
    accounts created by a provider callback until their first session.
    """

    has_password: bool = False
    """Whether a local password credential exists for this account."""

    name: Optional[str] = None
    """Display name, if known."""

    email_verified: Optional[datetime] = None
    """When the e-mail address was verified, if ever."""

    created: Optional[datetime] = None

    @property
    def is_oauth_only(self) -> bool:
        """An account without a password can only sign in via a provider."""
        return not self.has_password

    def public(self) -> dict:
        """Minimal view of the account that is safe to return to clients."""
        return {
            'id': self.account_id,
            'name': self.name,
            'email': self.email,
            'role': self.role.value
        }


class IdentityLink(NamedTuple):
    """Association between an account and an external provider identity."""

    provider: str
    """Name of the identity provider, e.g. ``google``."""

    provider_account_id: str
    """The account identifier issued by the provider."""

    account_id: str
    """The :class:`.Account` that owns this link."""

    created: Optional[datetime] = None


class VerificationToken(NamedTuple):
    """A purpose-scoped, single-use, time-limited secret."""

    identifier: str
    """Purpose-scoped key, ``<purpose>:<normalized-email>``."""

    token: str
    """The secret itself."""

    expires: datetime

    def is_expired(self, now: datetime) -> bool:
        """Determine whether the token is past its expiry at ``now``."""
        return self.expires < now


class TokenValidation(NamedTuple):
    """Outcome of validating a :class:`.VerificationToken`."""

    valid: bool
    reason: Optional[ErrorKind] = None
    """Either :attr:`ErrorKind.NOT_FOUND` or :attr:`ErrorKind.EXPIRED`."""


class UserProfile(NamedTuple):
    """Public profile details collected during profile setup."""

    account_id: str
    full_name: str
    username: str
    """Unique. Letters, digits and underscores, 3 to 30 characters."""

    bio: Optional[str] = None
    profile_picture: Optional[str] = None
    """URL of an uploaded picture."""


class OnboardingProgress(NamedTuple):
    """Per-account record of onboarding steps."""

    account_id: str
    current_step: Optional[str]
    completed_steps: List[str]
    """Ordered and append-only. Contains no duplicates."""

    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    """Set exactly once, when the terminal step is completed."""


class SessionArtifact(NamedTuple):
    """
    Signed, stateless snapshot handed to a client after authentication.

    This is a cache of durable state and is never authoritative; see
    :class:`.services.sessions.SessionIssuer`.
    """

    account_id: str
    email: str
    role: Role
    onboarding_status: OnboardingStatus
    onboarding_step: Optional[str]
    issued_at: datetime
    expires_at: datetime
    name: Optional[str] = None

    @property
    def expired(self) -> bool:
        """Expired if the current time is later than :attr:`.expires_at`."""
        return datetime.now(tz=UTC) >= self.expires_at

    @property
    def expires(self) -> int:
        """
        Number of seconds until the session expires.

        If the session is already expired, returns 0.
        """
        duration = (self.expires_at - datetime.now(tz=UTC)).total_seconds()
        return max(int(duration), 0)

    @property
    def onboarding_complete(self) -> bool:
        return self.onboarding_status is OnboardingStatus.COMPLETED

    def snapshot(self) -> tuple:
        """The cached part of durable state carried by this artifact."""
        return (self.role, self.onboarding_status, self.onboarding_step)

    def to_claims(self) -> dict:
        """Generate the JWT claims for this artifact."""
        return {
            'sub': self.account_id,
            'email': self.email,
            'name': self.name,
            'role': self.role.value,
            'onboarding_status': self.onboarding_status.value,
            'onboarding_step': self.onboarding_step,
            'iat': int(self.issued_at.timestamp()),
            'exp': int(self.expires_at.timestamp())
        }

    @classmethod
    def from_claims(cls, claims: dict) -> 'SessionArtifact':
        """Rebuild an artifact from decoded JWT claims."""
        return cls(
            account_id=claims['sub'],
            email=claims['email'],
            name=claims.get('name'),
            role=Role(claims['role']),
            onboarding_status=OnboardingStatus(claims['onboarding_status']),
            onboarding_step=claims.get('onboarding_step'),
            issued_at=datetime.fromtimestamp(claims['iat'], tz=UTC),
            expires_at=datetime.fromtimestamp(claims['exp'], tz=UTC)
        )
