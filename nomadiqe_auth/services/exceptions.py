"""
Exceptions raised by the identity and onboarding services.

Every exception carries an :class:`ErrorKind`. Callers at the HTTP boundary
match on the kind, never on the message.
"""

from enum import Enum


class ErrorKind(Enum):
    """Closed set of failure categories."""

    VALIDATION = 'VALIDATION'
    """Malformed input, rejected before touching storage."""

    NOT_FOUND = 'NOT_FOUND'
    """Account or token absent."""

    EXPIRED = 'EXPIRED'
    """Token past its TTL."""

    CONFLICT = 'CONFLICT'
    """Duplicate e-mail, password already set, illegal transition."""

    UNAUTHORIZED = 'UNAUTHORIZED'
    """Wrong password, no password set, missing/invalid session."""

    TRANSIENT = 'TRANSIENT'
    """Storage or notification I/O failure."""


class AccountsError(RuntimeError):
    """Base class for identity and onboarding errors."""

    kind = ErrorKind.TRANSIENT


class InvalidInput(AccountsError):
    """Input failed validation."""

    kind = ErrorKind.VALIDATION


class NoSuchAccount(AccountsError):
    """No account exists with the requested key."""

    kind = ErrorKind.NOT_FOUND


class TokenNotFound(AccountsError):
    """No live token matches the identifier and secret."""

    kind = ErrorKind.NOT_FOUND


class TokenExpired(AccountsError):
    """The token exists but is past its expiry."""

    kind = ErrorKind.EXPIRED


class DuplicateEmail(AccountsError):
    """An account already exists with this e-mail address."""

    kind = ErrorKind.CONFLICT


class DuplicateUsername(AccountsError):
    """Another account already uses this username."""

    kind = ErrorKind.CONFLICT


class AlreadyHasPassword(AccountsError):
    """The account already has a password; use reset instead."""

    kind = ErrorKind.CONFLICT


class InvalidTransition(AccountsError):
    """The requested onboarding transition is not allowed."""

    kind = ErrorKind.CONFLICT


class NoPasswordSet(AccountsError):
    """The account has no local credential (provider sign-in only)."""

    kind = ErrorKind.UNAUTHORIZED


class WrongPassword(AccountsError):
    """The password does not match."""

    kind = ErrorKind.UNAUTHORIZED


class InvalidSession(AccountsError):
    """The session token is missing, malformed, or expired."""

    kind = ErrorKind.UNAUTHORIZED


class Unavailable(AccountsError):
    """The persistence layer could not be reached."""

    kind = ErrorKind.TRANSIENT


class DeliveryFailed(AccountsError):
    """An outbound notification could not be delivered."""

    kind = ErrorKind.TRANSIENT


class AlreadyLinked(AccountsError):
    """The account is already linked to another identity at this provider."""

    kind = ErrorKind.CONFLICT
