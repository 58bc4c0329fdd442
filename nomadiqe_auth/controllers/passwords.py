"""
Controllers for resetting and adding passwords.

Requests that start a flow by e-mail address (forgot password, request
add-password) always give the same answer, whether or not an account exists
and whether or not the e-mail could be sent. Flows that finish with a token
give one answer for every token that cannot be used.
"""

from typing import Optional
from urllib.parse import urlencode
import logging

from flask import current_app
from werkzeug.datastructures import MultiDict

from ..domain import Account, SessionArtifact, TokenPurpose
from ..services.components import current_components
from ..services.exceptions import AlreadyHasPassword, ErrorKind, \
    InvalidInput, NoSuchAccount
from ..services.notifications import TemplateKind
from .forms import AddPasswordForm, EmailForm, TokenPasswordForm
from .util import GENERIC_SUCCESS, ResponseData, failure, from_error, \
    invalid_form, success, token_failure, with_session

logger = logging.getLogger(__name__)

HAS_PASSWORD = 'This account already has a password. Use password reset ' \
    'to change it.'


def _link(path: str, token: str, email: str) -> str:
    base_url = current_app.config['BASE_URL'].rstrip('/')
    return f'{base_url}{path}?{urlencode({"token": token, "email": email})}'


def _provider_of(account: Account) -> Optional[str]:
    links = current_components().links.links_for(account.account_id)
    return links[0].provider if links else None


def _send_add_password(account: Account) -> None:
    components = current_components()
    token = components.tokens.issue(TokenPurpose.ADD_PASSWORD, account.email)
    url = _link('/auth/add-password', token.token, account.email)
    delivered = components.notifier.send(
        account.email, TemplateKind.ADD_PASSWORD,
        {'url': url, 'provider': _provider_of(account)}
    )
    if not delivered:
        logger.warning('Add-password token issued for %s but not delivered',
                       account.account_id)


def _send_reset(account: Account) -> None:
    components = current_components()
    token = components.tokens.issue(TokenPurpose.PASSWORD_RESET,
                                    account.email)
    url = _link('/auth/reset-password', token.token, account.email)
    if not components.notifier.send(account.email,
                                    TemplateKind.PASSWORD_RESET,
                                    {'url': url}):
        logger.warning('Reset token issued for %s but not delivered',
                       account.account_id)


def forgot_password(form_data: MultiDict) -> ResponseData:
    """
    Start a password reset.

    If there is no account, nothing is sent but the answer is the same. If
    the account has no password (it signs in through a provider), an
    add-password link is sent instead of a reset link, and the response
    carries ``isOAuthOnly``.
    """
    form = EmailForm(form_data)
    if not form.validate():
        return invalid_form(form)

    account = current_components().credentials.find_by_email(form.email.data)
    if account is None:
        logger.debug('Password reset requested for unknown address')
        return success(GENERIC_SUCCESS)
    if account.is_oauth_only:
        logger.debug('Reset requested for provider-only account %s',
                     account.account_id)
        _send_add_password(account)
        return success(GENERIC_SUCCESS, isOAuthOnly=True)
    _send_reset(account)
    return success(GENERIC_SUCCESS)


def reset_password(form_data: MultiDict) -> ResponseData:
    """Set a new password with a reset token, and sign the user in."""
    form = TokenPasswordForm(form_data)
    if not form.validate():
        return invalid_form(form)

    components = current_components()
    email = form.email.data
    # Anything that can reject the password happens before the token is used.
    try:
        password_hash = components.credentials.hash_password(
            form.password.data)
    except InvalidInput as e:
        return from_error(e)
    result = components.tokens.validate(TokenPurpose.PASSWORD_RESET, email,
                                        form.token.data)
    if not result.valid:
        logger.debug('Reset token rejected: %s', result.reason)
        return token_failure()
    try:
        account = components.credentials.get_by_email(email)
    except NoSuchAccount:
        # The account was removed after the token was issued.
        return token_failure()
    components.credentials.set_password(account.account_id, password_hash)
    artifact, token = components.sessions.mint(account.account_id)
    return with_session(success('Password has been reset'), artifact, token)


def request_add_password(form_data: MultiDict) -> ResponseData:
    """
    E-mail an add-password link to an account that has no password.

    The answer is the same whatever the state of the account.
    """
    form = EmailForm(form_data)
    if not form.validate():
        return invalid_form(form)

    account = current_components().credentials.find_by_email(form.email.data)
    if account is not None and account.is_oauth_only:
        _send_add_password(account)
    else:
        logger.debug('Add-password requested for an account that cannot '
                     'use it')
    return success(GENERIC_SUCCESS)


def add_password_via_token(form_data: MultiDict) -> ResponseData:
    """Give a provider-only account a password, using an e-mailed token."""
    form = TokenPasswordForm(form_data)
    if not form.validate():
        return invalid_form(form)

    components = current_components()
    email = form.email.data
    try:
        password_hash = components.credentials.hash_password(
            form.password.data)
    except InvalidInput as e:
        return from_error(e)
    result = components.tokens.validate(TokenPurpose.ADD_PASSWORD, email,
                                        form.token.data)
    if not result.valid:
        logger.debug('Add-password token rejected: %s', result.reason)
        return token_failure()
    try:
        account = components.credentials.get_by_email(email)
        components.credentials.attach_password(account.account_id,
                                               password_hash)
    except NoSuchAccount:
        return token_failure()
    except AlreadyHasPassword:
        return failure(ErrorKind.CONFLICT, HAS_PASSWORD)
    artifact, token = components.sessions.mint(account.account_id)
    return with_session(success('Password added successfully'),
                        artifact, token)


def add_password(session: SessionArtifact,
                 form_data: MultiDict) -> ResponseData:
    """Give the signed-in account a password."""
    form = AddPasswordForm(form_data)
    if not form.validate():
        return invalid_form(form)

    credentials = current_components().credentials
    try:
        credentials.attach_password(
            session.account_id,
            credentials.hash_password(form.password.data)
        )
    except AlreadyHasPassword:
        return failure(ErrorKind.CONFLICT, HAS_PASSWORD)
    except InvalidInput as e:
        return from_error(e)
    return success('Password added successfully')
