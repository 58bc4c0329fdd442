"""
Controllers for creating accounts and verifying e-mail addresses.

Sign-up tells the user when an e-mail address is taken; that is the one
place where revealing that an account exists is accepted, since the user
cannot proceed otherwise.
"""

from typing import Any, Dict
from http import HTTPStatus
import logging

from sqlalchemy.exc import SQLAlchemyError
from werkzeug.datastructures import MultiDict

from ..domain import Role, TokenPurpose
from ..services import points
from ..services.components import current_components
from ..services.exceptions import DuplicateEmail, ErrorKind, InvalidInput, \
    Unavailable
from ..services.notifications import TemplateKind
from .forms import EmailForm, SignUpForm, VerifyCodeForm
from .util import ResponseData, failure, from_error, invalid_form, success, \
    token_failure

logger = logging.getLogger(__name__)

EMAIL_TAKEN = 'A user with this email already exists'


def sign_up(form_data: MultiDict) -> ResponseData:
    """
    Create an account with an e-mail address and password.

    Parameters
    ----------
    form_data : MultiDict
        Should include ``email`` and ``password``, and may include ``name``.

    Returns
    -------
    dict
        Response data, including the public view of the new account.
    int
        Status code. 201 if the account was created.
    dict
        Headers to add to the response.

    """
    form = SignUpForm(form_data)
    if not form.validate():
        return invalid_form(form)

    components = current_components()
    try:
        password_hash = components.credentials.hash_password(
            form.password.data)
        account = components.credentials.create_account(
            form.email.data,
            password_hash=password_hash,
            name=form.name.data or None
        )
    except InvalidInput as e:
        return from_error(e)
    except DuplicateEmail:
        logger.debug('Sign-up with an e-mail address that is taken')
        return failure(ErrorKind.CONFLICT, EMAIL_TAKEN)

    # Neither of these may fail the sign-up.
    try:
        components.profiles.ensure_role_profile(account.account_id,
                                                Role.TRAVELER)
    except (Unavailable, SQLAlchemyError):
        logger.exception('Could not create traveler profile for %s',
                         account.account_id)
    components.points.award(account.account_id, points.SIGNUP)

    return success('User created successfully', HTTPStatus.CREATED,
                   user=account.public())


def send_verification_code(form_data: MultiDict) -> ResponseData:
    """
    E-mail a 6-digit code to an address that is about to sign up.

    The code stays valid even if delivery fails, and the response does not
    say whether delivery worked.
    """
    form = EmailForm(form_data)
    if not form.validate():
        return invalid_form(form)

    components = current_components()
    email = form.email.data
    if components.credentials.find_by_email(email) is not None:
        return failure(ErrorKind.CONFLICT, EMAIL_TAKEN)

    token = components.tokens.issue(TokenPurpose.EMAIL_VERIFICATION, email)
    ttl = components.tokens.policy(TokenPurpose.EMAIL_VERIFICATION).ttl
    data: Dict[str, Any] = {'code': token.token,
                            'minutes': int(ttl.total_seconds() // 60)}
    if not components.notifier.send(email, TemplateKind.VERIFICATION_CODE,
                                    data):
        logger.warning('Verification code was issued but not delivered')
    return success('Verification code sent',
                   expiresIn=int(ttl.total_seconds()))


def verify_code(form_data: MultiDict) -> ResponseData:
    """
    Check a verification code.

    If an account exists for the address, it is marked as verified.
    """
    form = VerifyCodeForm(form_data)
    if not form.validate():
        return invalid_form(form)

    components = current_components()
    email = form.email.data
    result = components.tokens.validate(TokenPurpose.EMAIL_VERIFICATION,
                                        email, form.code.data)
    if not result.valid:
        logger.debug('Verification code rejected: %s', result.reason)
        return token_failure()

    account = components.credentials.find_by_email(email)
    if account is not None:
        components.credentials.mark_email_verified(account.account_id)
    return success('Email verified', verified=True)
