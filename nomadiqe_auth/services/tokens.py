"""
Short-lived, single-use, purpose-scoped verification tokens.

Tokens are keyed by an identifier of the form ``<purpose>:<email>``. At most
one live token exists per identifier: issuing a new one removes the others.
A token is deleted the first time it is validated, whether or not it turned
out to be expired, so no token can be validated successfully twice.

Two policies share the vault. E-mail verification uses a 6-digit numeric code
that a person can type; its low entropy is offset by a ten minute lifetime
and single use. Password reset and add-password use a 256-bit random secret
that only ever travels inside a link.
"""

from typing import Callable, Dict, NamedTuple, Optional
from datetime import datetime, timedelta
import logging
import re
import secrets

from pytz import UTC
from retry import retry

from ..domain import TokenPurpose, TokenValidation, VerificationToken, \
    normalize_email
from .datastore import Datastore
from .datastore.models import DBVerificationToken
from .exceptions import ErrorKind, TokenExpired, TokenNotFound, Unavailable

logger = logging.getLogger(__name__)


def numeric_code() -> str:
    """Generate a 6-digit numeric code."""
    return f'{secrets.randbelow(10 ** 6):06d}'


def random_secret() -> str:
    """Generate a 256-bit secret as 64 hex characters."""
    return secrets.token_hex(32)


class TokenPolicy(NamedTuple):
    """How tokens for one purpose are generated, and for how long they live."""

    ttl: timedelta
    generate: Callable[[], str]
    shape: str
    """Regular expression that every well-formed token of this kind matches."""

    def well_formed(self, token: str) -> bool:
        return bool(re.fullmatch(self.shape, token or ''))


CODE_POLICY = TokenPolicy(ttl=timedelta(minutes=10), generate=numeric_code,
                          shape=r'[0-9]{6}')
SECRET_POLICY = TokenPolicy(ttl=timedelta(hours=1), generate=random_secret,
                            shape=r'[0-9a-f]{64}')


def default_policies(email_verification_ttl: int = 600,
                     password_reset_ttl: int = 3600,
                     add_password_ttl: int = 86400) \
        -> Dict[TokenPurpose, TokenPolicy]:
    """Build the policy table, with lifetimes in seconds."""
    return {
        TokenPurpose.EMAIL_VERIFICATION: CODE_POLICY._replace(
            ttl=timedelta(seconds=email_verification_ttl)),
        TokenPurpose.PASSWORD_RESET: SECRET_POLICY._replace(
            ttl=timedelta(seconds=password_reset_ttl)),
        TokenPurpose.ADD_PASSWORD: SECRET_POLICY._replace(
            ttl=timedelta(seconds=add_password_ttl)),
    }


def identifier_for(purpose: TokenPurpose, email: str) -> str:
    """Purpose-scoped key for tokens issued to ``email``."""
    return f'{purpose.value}:{normalize_email(email)}'


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class TokenVault:
    """Issues, validates and consumes verification tokens."""

    def __init__(self, datastore: Datastore,
                 policies: Optional[Dict[TokenPurpose, TokenPolicy]] = None,
                 now: Callable[[], datetime] = _utcnow) -> None:
        self._datastore = datastore
        self._policies = policies or default_policies()
        self._now = now

    def policy(self, purpose: TokenPurpose) -> TokenPolicy:
        return self._policies[purpose]

    @retry(Unavailable, tries=3, delay=0.5, backoff=2)
    def issue(self, purpose: TokenPurpose, email: str,
              ttl: Optional[timedelta] = None) -> VerificationToken:
        """
        Issue a new token, invalidating any live token for the same key.

        Parameters
        ----------
        purpose : :class:`.TokenPurpose`
        email : str
            Normalized before use.
        ttl : :class:`timedelta` or None
            Overrides the lifetime set by the purpose's policy.

        Returns
        -------
        :class:`.VerificationToken`

        """
        policy = self.policy(purpose)
        identifier = identifier_for(purpose, email)
        token = VerificationToken(
            identifier=identifier,
            token=policy.generate(),
            expires=self._now() + (ttl if ttl is not None else policy.ttl)
        )
        with self._datastore.transaction() as session:
            replaced = session.query(DBVerificationToken) \
                .filter(DBVerificationToken.identifier == identifier) \
                .delete(synchronize_session=False)
            session.add(DBVerificationToken(identifier=token.identifier,
                                            token=token.token,
                                            expires=token.expires))
        logger.debug('Issued %s token, replaced %i', purpose.value, replaced)
        return token

    @retry(Unavailable, tries=3, delay=0.5, backoff=2)
    def validate(self, purpose: TokenPurpose, email: str,
                 token: str) -> TokenValidation:
        """
        Validate and consume a token.

        The row is deleted whether the token is live or expired. Deletion is
        conditional on the composite key, so when two callers race for the
        same token only the one whose delete removes the row succeeds; the
        other is told the token was not found.

        Returns
        -------
        :class:`.TokenValidation`
            ``reason`` is :attr:`.ErrorKind.NOT_FOUND` or
            :attr:`.ErrorKind.EXPIRED` when ``valid`` is false.

        """
        identifier = identifier_for(purpose, email)
        with self._datastore.transaction() as session:
            row = session.get(DBVerificationToken, (identifier, token))
            if row is None:
                logger.debug('No %s token for identifier', purpose.value)
                return TokenValidation(False, ErrorKind.NOT_FOUND)
            found = VerificationToken(identifier=identifier, token=token,
                                      expires=row.expires)
            deleted = session.query(DBVerificationToken) \
                .filter(DBVerificationToken.identifier == identifier) \
                .filter(DBVerificationToken.token == token) \
                .delete(synchronize_session=False)
            if deleted != 1:
                logger.debug('Lost race to consume %s token', purpose.value)
                return TokenValidation(False, ErrorKind.NOT_FOUND)
        if found.is_expired(self._now()):
            logger.debug('Consumed expired %s token', purpose.value)
            return TokenValidation(False, ErrorKind.EXPIRED)
        return TokenValidation(True)

    def consume(self, purpose: TokenPurpose, email: str, token: str) -> None:
        """
        Validate and consume a token, raising on failure.

        Raises
        ------
        :class:`.TokenNotFound`
        :class:`.TokenExpired`

        """
        result = self.validate(purpose, email, token)
        if result.valid:
            return
        if result.reason is ErrorKind.EXPIRED:
            raise TokenExpired('Token has expired')
        raise TokenNotFound('No such token')

    def purge_expired(self) -> int:
        """Delete every expired token. Returns the number removed."""
        with self._datastore.transaction() as session:
            removed: int = session.query(DBVerificationToken) \
                .filter(DBVerificationToken.expires < self._now()) \
                .delete(synchronize_session=False)
        logger.info('Purged %i expired tokens', removed)
        return removed
