"""Password hashing and checking."""

from functools import lru_cache
import logging

import bcrypt

from .exceptions import InvalidInput

logger = logging.getLogger(__name__)

MAX_PASSWORD_BYTES = 72
"""bcrypt only considers this many bytes of input."""


def hash_password(password: str, rounds: int = 12) -> str:
    """
    Hash a plaintext password with a fresh salt.

    Raises
    ------
    :class:`.InvalidInput`
        If the password is too long to be hashed faithfully.

    """
    encoded = password.encode('utf-8')
    if len(encoded) > MAX_PASSWORD_BYTES:
        raise InvalidInput('Password is too long')
    return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds)).decode('utf-8')


def check_password(password: str, hashed: str) -> bool:
    """Compare a plaintext password to a hash in constant time."""
    encoded = password.encode('utf-8')
    if len(encoded) > MAX_PASSWORD_BYTES:
        return False
    try:
        return bcrypt.checkpw(encoded, hashed.encode('utf-8'))
    except ValueError:
        logger.error('Stored password hash is malformed')
        return False


@lru_cache(maxsize=4)
def _dummy_hash(rounds: int) -> str:
    return hash_password('not-a-real-password', rounds)


def burn_check(password: str, rounds: int = 12) -> None:
    """Spend about as long as a real check, when there is nothing to check."""
    check_password(password, _dummy_hash(rounds))
