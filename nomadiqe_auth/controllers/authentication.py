"""
Controllers for signing in and out.

A successful sign-in mints a session token from the stored account (see
:class:`.SessionIssuer`). The route sets it as an HTTP-only cookie; the
claims are also returned in the response body for the client's convenience.

Failed credential sign-ins get one generic answer, except when the account
exists but has no password. That user already knows the account is theirs
and needs to be told how to get in: with the provider they used before, or
by adding a password.
"""

from typing import List, Mapping, Optional
import logging

from flask import current_app
from retry import retry
from werkzeug.datastructures import MultiDict

from ..domain import Account, OnboardingStatus, SessionArtifact
from ..services.components import current_components
from ..services.exceptions import ErrorKind, NoPasswordSet, NoSuchAccount, \
    Unavailable, WrongPassword
from ..services.polling import TimedOut
from .forms import ProviderCallbackForm, SignInForm
from .util import ResponseData, clear_session, failure, invalid_form, \
    success, with_session

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = 'Invalid email or password'

PROVIDER_CREDENTIALS = {
    'google': ('GOOGLE_CLIENT_ID', 'GOOGLE_CLIENT_SECRET'),
    'facebook': ('FACEBOOK_CLIENT_ID', 'FACEBOOK_CLIENT_SECRET'),
    'apple': ('APPLE_ID', 'APPLE_SECRET'),
}


def sign_in(form_data: MultiDict) -> ResponseData:
    """
    Sign in with e-mail and password.

    Parameters
    ----------
    form_data : MultiDict
        Should include ``email`` and ``password``.

    Returns
    -------
    dict
        Response data. On success includes the session and a cookie.
    int
        Status code. 200 if all goes well.
    dict
        Headers to add to the response.

    """
    form = SignInForm(form_data)
    if not form.validate():
        return invalid_form(form)

    try:    # Attempt to authenticate the user with the credentials provided.
        account = _do_authn(form.email.data, form.password.data)
    except NoPasswordSet:
        return _no_password(form.email.data)
    except (NoSuchAccount, WrongPassword) as e:
        logger.debug('Authentication failed: %s', type(e).__name__)
        return failure(ErrorKind.UNAUTHORIZED, INVALID_CREDENTIALS)

    artifact, token = current_components().sessions.mint(account.account_id)
    logger.debug('Signed in %s', account.account_id)
    return with_session(success('Signed in'), artifact, token)


def provider_sign_in(form_data: MultiDict) -> ResponseData:
    """
    Complete a sign-in asserted by an external identity provider.

    The provider exchange itself has already happened. The asserted identity
    is linked to an account (see
    :meth:`.IdentityLinkRegistry.link_or_create`), the account is read back
    with a short bounded retry, and a session is minted.
    """
    form = ProviderCallbackForm(form_data)
    if not form.validate():
        return invalid_form(form)

    components = current_components()
    provider = form.provider.data
    if provider not in configured_providers(current_app.config):
        return failure(ErrorKind.VALIDATION, 'Provider is not available')
    linked = components.links.link_or_create(
        provider, form.provider_account_id.data, form.email.data,
        name=form.name.data or None
    )
    account = components.links.await_account(provider,
                                             form.provider_account_id.data)
    is_new = account.onboarding_step is None
    artifact, token = components.sessions.mint(account.account_id)
    logger.debug('Provider sign-in for %s via %s', linked.account_id,
                 provider)
    return with_session(success('Signed in', isNewUser=is_new),
                        artifact, token)


def session(token: Optional[str], wait_for: Optional[str] = None) \
        -> ResponseData:
    """
    Refresh the current session from stored account state.

    Parameters
    ----------
    token : str or None
        The raw session token from the request.
    wait_for : str or None
        If ``'onboarding-complete'``, re-read a few times until storage
        shows onboarding as complete. The latest state is returned either
        way, flagged with ``stale`` if it never got there.

    """
    if not token:
        return failure(ErrorKind.UNAUTHORIZED, 'Authentication required')
    sessions = current_components().sessions
    stale = False
    if wait_for == 'onboarding-complete':
        result = sessions.refresh_until(token, _onboarding_complete)
        artifact, new_token = result.value
        stale = isinstance(result, TimedOut)
    else:
        artifact, new_token = sessions.refresh(token)
    return with_session(success(stale=stale), artifact, new_token)


def sign_out() -> ResponseData:
    """Sign out. Session tokens are stateless; the cookie is cleared."""
    return clear_session(success('Signed out'))


def providers(config: Mapping) -> ResponseData:
    """List the sign-in methods that are available."""
    return success(providers=configured_providers(config) + ['credentials'])


def configured_providers(config: Mapping) -> List[str]:
    """Providers with both a client id and a secret configured."""
    return [name for name, (id_key, secret_key)
            in PROVIDER_CREDENTIALS.items()
            if config.get(id_key) and config.get(secret_key)]


# These are broken out to add retry logic.
@retry(Unavailable, tries=3, delay=0.5, backoff=2)
def _do_authn(email: str, password: str) -> Account:
    return current_components().credentials.verify_password(email, password)


def _no_password(email: str) -> ResponseData:
    components = current_components()
    account = components.credentials.find_by_email(email)
    linked = []
    if account is not None:
        linked = [link.provider
                  for link in components.links.links_for(account.account_id)]
    logger.debug('Credential sign-in for an account without a password')
    if linked:
        message = (f'This account uses {", ".join(linked)} sign-in. Sign in '
                   'with that provider, or add a password to your account.')
    else:
        message = ('This account has no password. Sign in with the provider '
                   'you used to sign up, or add a password to your account.')
    return failure(ErrorKind.UNAUTHORIZED, message, reason='NO_PASSWORD_SET',
                   providers=linked)


def _onboarding_complete(artifact: SessionArtifact) -> bool:
    return artifact.onboarding_status is OnboardingStatus.COMPLETED
