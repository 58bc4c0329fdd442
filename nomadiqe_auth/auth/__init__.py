"""Attaches the authenticated session to each request."""

from typing import Optional
import logging

from flask import Flask, current_app, request

from ..domain import SessionArtifact
from ..services.components import current_components
from ..services.exceptions import InvalidSession
from . import decorators

logger = logging.getLogger(__name__)


class Auth(object):
    """
    Loads the session token of each request into ``request.auth``.

    Intended for use in a Flask application factory, after the service
    components have been initialized:

    .. code-block:: python

       app = Flask('nomadiqe_auth')
       components.init_app(app)
       Auth(app)

    """

    def __init__(self, app: Optional[Flask] = None) -> None:
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        """Attach :meth:`.load_session` to the Flask app."""
        self.app = app
        app.config.setdefault('AUTH_SESSION_COOKIE_NAME', 'nomadiqe_session')
        app.before_request(self.load_session)

    def load_session(self) -> None:
        """
        Look for a valid session token, and attach it to the request.

        The token is read from the session cookie, or failing that from a
        bearer ``Authorization`` header. Missing or invalid tokens leave
        ``request.auth`` set to ``None``.
        """
        request.auth = self._get_session()

    def _get_session(self) -> Optional[SessionArtifact]:
        token = self.get_token()
        if not token:
            return None
        try:
            return current_components().sessions.decode(token)
        except InvalidSession as e:
            logger.debug('Ignoring session token: %s', e)
            return None

    def get_token(self) -> Optional[str]:
        """Get the raw session token from the request, if any."""
        return get_token()


def get_token() -> Optional[str]:
    """
    Get the raw session token of the current request.

    The session cookie wins over a bearer ``Authorization`` header.
    """
    cookie_name = current_app.config['AUTH_SESSION_COOKIE_NAME']
    token = request.cookies.get(cookie_name)
    if token:
        return token
    header = request.headers.get('Authorization', '')
    if header.startswith('Bearer '):
        return header[len('Bearer '):].strip() or None
    return None


__all__ = ('Auth', 'decorators', 'get_token')
