"""
Signed session tokens.

The session token carries a snapshot of the account's role and onboarding
state so that clients and request gates can route users without a database
read. That snapshot is a cache. Every mint and every refresh re-reads the
account, and the stored values always win over whatever the old token said.
"""

from typing import Callable, Tuple
from datetime import datetime, timedelta
import logging
import time

import jwt
from pytz import UTC

from ..domain import Account, DEFAULT_ROLE, OnboardingStatus, \
    SessionArtifact
from . import steps
from .credentials import CredentialStore
from .exceptions import InvalidSession, NoSuchAccount
from .polling import Polled, poll

logger = logging.getLogger(__name__)

ALGORITHM = 'HS256'


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def encode(artifact: SessionArtifact, secret: str) -> str:
    """Sign a session artifact as a JWT."""
    return jwt.encode(artifact.to_claims(), secret, algorithm=ALGORITHM)


def decode(token: str, secret: str) -> SessionArtifact:
    """
    Verify and decode a session JWT.

    Raises
    ------
    :class:`.InvalidSession`
        If the token is malformed, forged or expired.

    """
    try:
        claims = jwt.decode(token, secret, algorithms=[ALGORITHM])
        return SessionArtifact.from_claims(claims)
    except jwt.ExpiredSignatureError as e:
        raise InvalidSession('Session has expired') from e
    except (jwt.InvalidTokenError, KeyError, ValueError) as e:
        raise InvalidSession('Session token is not valid') from e


def is_freshly_linked(account: Account) -> bool:
    """
    Whether ``account`` looks like it was just created by a provider login.

    Such an account has no onboarding step, is still PENDING, and still has
    the default role. Nothing else produces that combination.
    """
    return (account.onboarding_step is None
            and account.onboarding_status is OnboardingStatus.PENDING
            and account.role is DEFAULT_ROLE)


class SessionIssuer:
    """Mints and refreshes session tokens from durable account state."""

    def __init__(self, credentials: CredentialStore, secret: str,
                 duration: int = 30 * 24 * 3600,
                 poll_attempts: int = 4, poll_delay: float = 0.1,
                 poll_backoff: float = 2.0,
                 now: Callable[[], datetime] = _utcnow,
                 sleep: Callable[[float], None] = time.sleep) -> None:
        self._credentials = credentials
        self._secret = secret
        self.duration = timedelta(seconds=duration)
        self.poll_attempts = poll_attempts
        self.poll_delay = poll_delay
        self.poll_backoff = poll_backoff
        self._now = now
        self._sleep = sleep

    def mint(self, account_id: str) -> Tuple[SessionArtifact, str]:
        """
        Create a session for an account from its current stored state.

        An account freshly created by a provider callback is initialized
        first: default role, first provider step, e-mail marked verified.

        Returns
        -------
        :class:`.SessionArtifact`
        str
            The signed token.

        Raises
        ------
        :class:`.NoSuchAccount`

        """
        account = self._credentials.get_account(account_id)
        if is_freshly_linked(account):
            account = self._initialize(account)
        return self._issue(account)

    def refresh(self, token: str) -> Tuple[SessionArtifact, str]:
        """
        Re-issue a session, replacing its snapshot with stored state.

        Raises
        ------
        :class:`.InvalidSession`
            If the token is not valid, or the account no longer exists.

        """
        cached = self.decode(token)
        try:
            account = self._credentials.get_account(cached.account_id)
        except NoSuchAccount as e:
            raise InvalidSession('Account no longer exists') from e
        if is_freshly_linked(account):
            account = self._initialize(account)
        artifact, new_token = self._issue(account)
        if artifact.snapshot() != cached.snapshot():
            logger.debug('Session for %s drifted from storage, updated',
                         cached.account_id)
        return artifact, new_token

    def refresh_until(self, token: str,
                      accept: Callable[[SessionArtifact], bool]) -> Polled:
        """
        Refresh repeatedly until the snapshot satisfies ``accept``.

        Covers the window after a transition is written by one request and
        before it is visible to the next. The number of attempts is bounded;
        the value carried by the result is always the latest refresh, and
        the caller should use it even on :class:`.TimedOut`.

        Returns
        -------
        :class:`.Ok` or :class:`.TimedOut`
            ``value`` is a ``(SessionArtifact, token)`` tuple.

        """
        return poll(lambda: self.refresh(token),
                    accept=lambda issued: accept(issued[0]),
                    attempts=self.poll_attempts, delay=self.poll_delay,
                    backoff=self.poll_backoff, sleep=self._sleep)

    def decode(self, token: str) -> SessionArtifact:
        return decode(token, self._secret)

    def _issue(self, account: Account) -> Tuple[SessionArtifact, str]:
        issued_at = self._now()
        artifact = SessionArtifact(
            account_id=account.account_id,
            email=account.email,
            name=account.name,
            role=account.role,
            onboarding_status=account.onboarding_status,
            onboarding_step=account.onboarding_step,
            issued_at=issued_at,
            expires_at=issued_at + self.duration
        )
        return artifact, encode(artifact, self._secret)

    def _initialize(self, account: Account) -> Account:
        logger.info('Initializing provider-created account %s',
                    account.account_id)
        self._credentials.mark_email_verified(account.account_id,
                                              self._now())
        return self._credentials.update_onboarding(
            account.account_id,
            status=OnboardingStatus.PENDING,
            step=steps.PROVIDER_FIRST_STEP,
            role=DEFAULT_ROLE
        )
