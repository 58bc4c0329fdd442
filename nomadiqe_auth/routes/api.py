"""Provides the JSON API for identity and onboarding."""

from typing import Any, Callable
from datetime import timedelta
from http import HTTPStatus
import logging
import re

from flask import Blueprint, Response, current_app, jsonify, request
from werkzeug.datastructures import MultiDict
from werkzeug.exceptions import HTTPException

from ..auth import get_token
from ..auth.decorators import OnboardingRequired, authenticated, \
    onboarding_required, scoped
from ..controllers import authentication, onboarding, passwords, \
    registration
from ..controllers.util import ResponseData, from_error
from ..domain import Role
from ..services.components import current_components
from ..services.exceptions import AccountsError, ErrorKind

logger = logging.getLogger(__name__)
blueprint = Blueprint('api', __name__, url_prefix='/api')

_CAMEL = re.compile(r'(?<!^)(?=[A-Z])')


def snake_case(key: str) -> str:
    """``providerAccountId`` -> ``provider_account_id``."""
    return _CAMEL.sub('_', key).lower()


def payload() -> MultiDict:
    """
    Get the request payload as form data for the controllers.

    JSON bodies are accepted with camelCase or snake_case keys. List values
    become repeated values under the same key.
    """
    if not request.is_json:
        return request.form
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return MultiDict()
    items = []
    for key, value in data.items():
        values = value if isinstance(value, list) else [value]
        for item in values:
            if item is None:
                continue
            items.append((snake_case(key), str(item)))
    return MultiDict(items)


def set_cookies(response: Response, data: dict) -> None:
    """
    Update a :class:`.Response` with cookies in controller data.

    Controllers seeking to update cookies must include a 'cookies' key
    in their response data.
    """
    cookies = data.pop('cookies', None)
    if cookies is None:
        return None
    for cookie_key, (cookie_value, expires) in cookies.items():
        cookie_name = current_app.config[f'{cookie_key.upper()}_NAME']
        max_age = timedelta(seconds=expires)
        domain = current_app.config['AUTH_SESSION_COOKIE_DOMAIN']
        params = dict(httponly=True, domain=domain)
        if current_app.config['AUTH_SESSION_COOKIE_SECURE']:
            # Setting samesite to lax, to allow reasonable links to
            # authenticated views using GET requests.
            params.update({'secure': True, 'samesite': 'lax'})
        response.set_cookie(cookie_name, cookie_value, max_age=max_age,
                            **params)


def respond(controller: Callable[..., ResponseData], *args: Any) -> Response:
    """Call a controller and turn its response data into a JSON response."""
    data, code, headers = controller(*args)
    # Flask puts cookie-setting methods on the response, so we do that here
    # instead of in the controller.
    cookies = {'cookies': data.pop('cookies', None)}
    response: Response = jsonify(data)
    response.status_code = code
    response.headers.extend(headers)
    set_cookies(response, cookies)
    return response


@blueprint.after_request
def apply_response_headers(response: Response) -> Response:
    """Apply response headers to all responses."""
    # Prevent UI redress attacks.
    response.headers['Content-Security-Policy'] = "frame-ancestors 'none'"
    response.headers['X-Frame-Options'] = 'DENY'
    response.headers['X-Content-Type-Options'] = 'nosniff'
    response.headers['Referrer-Policy'] = 'origin-when-cross-origin'
    return response


@blueprint.errorhandler(AccountsError)
def handle_accounts_error(error: AccountsError) -> Response:
    """Errors that escape the controllers get the usual envelope."""
    if error.kind is ErrorKind.TRANSIENT:
        logger.error('Request failed: %s', error)
    return respond(from_error, error)


@blueprint.errorhandler(HTTPException)
def handle_http_exception(error: HTTPException) -> Response:
    body = {'success': False, 'error': error.description,
            'code': error.name.upper().replace(' ', '_')}
    if isinstance(error, OnboardingRequired):
        body['redirect'] = error.redirect_to
    response: Response = jsonify(body)
    response.status_code = error.code or HTTPStatus.INTERNAL_SERVER_ERROR
    return response


# Accounts and sign-in.

@blueprint.route('/auth/signup', methods=['POST'])
def sign_up() -> Response:
    """Create an account with e-mail and password."""
    return respond(registration.sign_up, payload())


@blueprint.route('/auth/signin', methods=['POST'])
def sign_in() -> Response:
    """Sign in with e-mail and password."""
    return respond(authentication.sign_in, payload())


@blueprint.route('/auth/provider-callback', methods=['POST'])
def provider_callback() -> Response:
    """Complete a sign-in asserted by an identity provider."""
    return respond(authentication.provider_sign_in, payload())


@blueprint.route('/auth/session', methods=['GET'])
def session() -> Response:
    """Refresh the session from stored state."""
    return respond(authentication.session, get_token(),
                   request.args.get('await'))


@blueprint.route('/auth/logout', methods=['POST'])
def logout() -> Response:
    return respond(authentication.sign_out)


@blueprint.route('/auth/providers', methods=['GET'])
def providers() -> Response:
    return respond(authentication.providers, current_app.config)


@blueprint.route('/auth/verify-email/send-code', methods=['POST'])
def send_verification_code() -> Response:
    return respond(registration.send_verification_code, payload())


@blueprint.route('/auth/verify-email/verify-code', methods=['POST'])
def verify_code() -> Response:
    return respond(registration.verify_code, payload())


# Passwords.

@blueprint.route('/auth/password/forgot', methods=['POST'])
def forgot_password() -> Response:
    return respond(passwords.forgot_password, payload())


@blueprint.route('/auth/password/reset', methods=['POST'])
def reset_password() -> Response:
    return respond(passwords.reset_password, payload())


@blueprint.route('/auth/password/request-add-password', methods=['POST'])
def request_add_password() -> Response:
    return respond(passwords.request_add_password, payload())


@blueprint.route('/auth/password/add-password-via-token', methods=['POST'])
def add_password_via_token() -> Response:
    return respond(passwords.add_password_via_token, payload())


@blueprint.route('/auth/password/add-password', methods=['POST'])
@authenticated
def add_password() -> Response:
    """Add a password to the signed-in, provider-only account."""
    return respond(passwords.add_password, request.auth, payload())


# Onboarding.

@blueprint.route('/onboarding/status', methods=['GET'])
@authenticated
def onboarding_status() -> Response:
    return respond(onboarding.status, request.auth)


@blueprint.route('/onboarding/role', methods=['POST'])
@authenticated
def select_role() -> Response:
    return respond(onboarding.select_role, request.auth, payload())


@blueprint.route('/onboarding/profile', methods=['POST'])
@authenticated
def profile_setup() -> Response:
    return respond(onboarding.profile_setup, request.auth, payload())


@blueprint.route('/onboarding/interests', methods=['POST'])
@authenticated
def interests() -> Response:
    return respond(onboarding.interests, request.auth, payload())


@blueprint.route('/onboarding/verify-identity', methods=['POST'])
@authenticated
def verify_identity() -> Response:
    return respond(onboarding.verify_identity, request.auth, payload())


@blueprint.route('/onboarding/verify-identity/skip', methods=['POST'])
@authenticated
def skip_identity() -> Response:
    return respond(onboarding.skip_identity, request.auth)


@blueprint.route('/onboarding/complete-step', methods=['POST'])
@authenticated
def complete_step() -> Response:
    return respond(onboarding.complete_step, request.auth, payload())


@blueprint.route('/admin/accounts/<account_id>/onboarding/reset',
                 methods=['POST'])
@scoped(Role.ADMIN)
def reset_onboarding(account_id: str) -> Response:
    """Reopen onboarding for any account."""
    return respond(onboarding.reset, account_id)


# Gated resources.

@blueprint.route('/points', methods=['GET'])
@onboarding_required
def points() -> Response:
    """Points balance of the signed-in account."""
    balance = current_components().points.balance(request.auth.account_id)
    return jsonify({'success': True, 'points': balance})


@blueprint.route('/host/referral-code', methods=['GET'])
@scoped(Role.HOST)
@onboarding_required
def referral_code() -> Response:
    code = current_components().profiles \
        .get_referral_code(request.auth.account_id)
    return jsonify({'success': True, 'referralCode': code})


@blueprint.route('/status', methods=['GET'])
def service_status() -> Response:
    """Get if the app is running."""
    return jsonify({'success': True, 'version': current_app.config['VERSION']})
