"""Helpers for :mod:`nomadiqe_auth.controllers`."""

from typing import Any, Dict, List, Optional, Tuple
from http import HTTPStatus
import logging

from wtforms import Field, Form

from ..domain import SessionArtifact
from ..services.exceptions import AccountsError, ErrorKind

logger = logging.getLogger(__name__)

ResponseData = Tuple[dict, int, dict]

STATUS_FOR_KIND: Dict[ErrorKind, HTTPStatus] = {
    ErrorKind.VALIDATION: HTTPStatus.BAD_REQUEST,
    ErrorKind.NOT_FOUND: HTTPStatus.NOT_FOUND,
    ErrorKind.EXPIRED: HTTPStatus.BAD_REQUEST,
    ErrorKind.CONFLICT: HTTPStatus.CONFLICT,
    ErrorKind.UNAUTHORIZED: HTTPStatus.UNAUTHORIZED,
    ErrorKind.TRANSIENT: HTTPStatus.SERVICE_UNAVAILABLE,
}
assert set(STATUS_FOR_KIND) == set(ErrorKind), 'Every error kind needs a status'

INVALID_OR_EXPIRED = 'Invalid or expired token'
GENERIC_SUCCESS = ('If an account exists with this email, '
                   'you will receive a message shortly')
TRY_AGAIN = 'Service temporarily unavailable, please try again'


def success(message: Optional[str] = None,
            code: HTTPStatus = HTTPStatus.OK, **data: Any) -> ResponseData:
    """Build a success envelope."""
    body: Dict[str, Any] = {'success': True}
    if message is not None:
        body['message'] = message
    body.update(data)
    return body, code, {}


def failure(kind: ErrorKind, message: str, **data: Any) -> ResponseData:
    """Build an error envelope for ``kind``."""
    body: Dict[str, Any] = {'success': False, 'error': message,
                            'code': kind.name}
    if kind is ErrorKind.TRANSIENT:
        body['retryable'] = True
    body.update(data)
    return body, STATUS_FOR_KIND[kind], {}


def from_error(error: AccountsError) -> ResponseData:
    """Build an error envelope that reports ``error`` as it is."""
    if error.kind is ErrorKind.TRANSIENT:
        return failure(error.kind, TRY_AGAIN)
    return failure(error.kind, str(error))


def invalid_form(form: Form) -> ResponseData:
    """Report the validation errors of ``form``."""
    fields = {name: list(errors) for name, errors in form.errors.items()}
    first = next(iter(fields.values()), ['Invalid input'])
    logger.debug('Form data is not valid: %s', list(fields))
    return failure(ErrorKind.VALIDATION, first[0], fields=fields)


def token_failure() -> ResponseData:
    """The single response for every token that cannot be used."""
    return failure(ErrorKind.VALIDATION, INVALID_OR_EXPIRED)


def with_session(data: ResponseData, artifact: SessionArtifact,
                 token: str) -> ResponseData:
    """Add a session cookie and the session claims to a response."""
    body, code, headers = data
    body['session'] = session_view(artifact)
    body['cookies'] = {'auth_session_cookie': (token, artifact.expires)}
    return body, code, headers


def clear_session(data: ResponseData) -> ResponseData:
    body, code, headers = data
    body['cookies'] = {'auth_session_cookie': ('', 0)}
    return body, code, headers


def session_view(artifact: SessionArtifact) -> dict:
    """What clients get to see of a session."""
    return {
        'id': artifact.account_id,
        'email': artifact.email,
        'name': artifact.name,
        'role': artifact.role.value,
        'onboardingStatus': artifact.onboarding_status.value,
        'onboardingStep': artifact.onboarding_step,
        'expires': artifact.expires_at.isoformat()
    }


class StringListField(Field):
    """A field holding every value submitted under its name."""

    def process_formdata(self, valuelist: List[str]) -> None:
        self.data = [value.strip() for value in valuelist if value.strip()]

    def _value(self) -> str:
        return ','.join(self.data or [])
