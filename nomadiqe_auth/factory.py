"""Application factory for the identity and onboarding service."""

from typing import Any, Mapping, Optional

from flask import Flask

from . import auth
from .app_logging import setup_logger
from .routes import api
from .services import components


def create_web_app(config: Optional[Mapping[str, Any]] = None) -> Flask:
    """
    Initialize and configure the application.

    Parameters
    ----------
    config : mapping
        Values that override :mod:`nomadiqe_auth.config`. Mostly for tests.

    """
    app = Flask('nomadiqe_auth')
    app.config.from_object('nomadiqe_auth.config')
    if config:
        app.config.update(config)

    # Don't set SERVER_NAME, it switches flask blueprints to be
    # subdomain aware.
    app.config['SERVER_NAME'] = None

    setup_logger(app.config['LOGLEVEL'])

    comps = components.init_app(app)
    auth.Auth(app)  # Handles sessions and authn/z.
    app.register_blueprint(api.blueprint)

    if app.config['CREATE_DB']:
        comps.datastore.create_all()

    return app
