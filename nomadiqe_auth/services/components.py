"""
Construction of the service components and their Flask integration.

All components share one :class:`.Datastore`, built once per application and
disposed at interpreter exit. Controllers get at the components with
:func:`current_components`.
"""

from typing import Mapping, NamedTuple
import atexit
import logging

from flask import Flask, current_app

from .credentials import CredentialStore
from .datastore import Datastore
from .identity_links import IdentityLinkRegistry
from .notifications import BackgroundNotifier, LogNotifier, Notifier, \
    SMTPNotifier
from .onboarding import OnboardingMachine
from .points import ONBOARDING_COMPLETE, SIGNUP, PointsLedger
from .profiles import ProfileStore
from .sessions import SessionIssuer
from .tokens import TokenVault, default_policies

logger = logging.getLogger(__name__)

EXTENSION = 'nomadiqe_auth'


class Components(NamedTuple):
    """Everything the controllers need, wired together."""

    datastore: Datastore
    credentials: CredentialStore
    tokens: TokenVault
    links: IdentityLinkRegistry
    sessions: SessionIssuer
    profiles: ProfileStore
    points: PointsLedger
    onboarding: OnboardingMachine
    notifier: Notifier


def build(config: Mapping) -> Components:
    """Construct the components from configuration values."""
    datastore = Datastore(config['DATABASE_URI'])
    credentials = CredentialStore(datastore,
                                  bcrypt_rounds=int(config['BCRYPT_ROUNDS']))
    tokens = TokenVault(datastore, default_policies(
        email_verification_ttl=int(config['EMAIL_VERIFICATION_TTL']),
        password_reset_ttl=int(config['PASSWORD_RESET_TTL']),
        add_password_ttl=int(config['ADD_PASSWORD_TTL'])
    ))
    links = IdentityLinkRegistry(
        datastore, credentials,
        attempts=int(config['PROVIDER_LOOKUP_ATTEMPTS']),
        delay=float(config['PROVIDER_LOOKUP_DELAY'])
    )
    sessions = SessionIssuer(
        credentials, config['JWT_SECRET'],
        duration=int(config['SESSION_DURATION']),
        poll_attempts=int(config['SESSION_POLL_ATTEMPTS']),
        poll_delay=float(config['SESSION_POLL_DELAY']),
        poll_backoff=float(config['SESSION_POLL_BACKOFF'])
    )
    profiles = ProfileStore(datastore)
    points = PointsLedger(datastore, {
        SIGNUP: int(config['POINTS_SIGNUP']),
        ONBOARDING_COMPLETE: int(config['POINTS_ONBOARDING_COMPLETE']),
    })
    onboarding = OnboardingMachine(credentials, profiles, points)
    notifier: Notifier
    if config['EMAIL_ENABLED']:
        notifier = SMTPNotifier(
            config['EMAIL_FROM'],
            host=config['SMTP_HOSTNAME'],
            port=int(config['SMTP_PORT']),
            username=config['SMTP_USERNAME'],
            password=config['SMTP_PASSWORD'],
            use_ssl=bool(config['SMTP_SSL'])
        )
    else:
        notifier = LogNotifier()
    if config.get('EMAIL_BACKGROUND'):
        notifier = BackgroundNotifier(notifier)
    return Components(datastore=datastore, credentials=credentials,
                      tokens=tokens, links=links, sessions=sessions,
                      profiles=profiles, points=points,
                      onboarding=onboarding, notifier=notifier)


def init_app(app: Flask) -> Components:
    """Build the components for ``app`` and attach them to it."""
    components = build(app.config)
    app.extensions[EXTENSION] = components
    atexit.register(components.datastore.close)
    if isinstance(components.notifier, BackgroundNotifier):
        atexit.register(components.notifier.shutdown)
    logger.debug('Initialized components for %s', app.name)
    return components


def current_components() -> Components:
    """Get the components of the current application."""
    components: Components = current_app.extensions[EXTENSION]
    return components
