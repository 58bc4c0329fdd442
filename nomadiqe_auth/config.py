"""Flask configuration."""
import secrets
import os

#################### General config for app ####################
BASE_SERVER = os.environ.get('BASE_SERVER', 'nomadiqe.com')
"""Sets base server for use when domain name is needed.

The defaults for `BASE_URL` and `EMAIL_FROM` use this. They can be
independently configured if needed.
"""

BASE_URL = os.environ.get('BASE_URL', f'https://{BASE_SERVER}')
"""Public URL of the web client, used to build links in e-mails."""

ONBOARDING_URL = os.environ.get('ONBOARDING_URL', '/onboarding')
"""Where incomplete users are sent by onboarding-gated endpoints."""

LOGLEVEL = int(os.environ.get('LOGLEVEL', 20))
"""Level for the root logger. See :mod:`nomadiqe_auth.app_logging`."""


#################### Database ####################
DATABASE_URI = os.environ.get('DATABASE_URI', 'sqlite:///nomadiqe.db')
"""SQLAlchemy URI for the account database."""

CREATE_DB = bool(int(os.environ.get('CREATE_DB', 0)))
"""Create tables at application start. Useful for dev and tests."""


#################### Sessions ####################
JWT_SECRET = os.environ.get('JWT_SECRET', secrets.token_urlsafe(16))
"""Secret used to sign session tokens."""

SESSION_DURATION = int(os.environ.get('SESSION_DURATION', 30 * 24 * 3600))
"""Validity window of a session token, in seconds."""

AUTH_SESSION_COOKIE_NAME = os.environ.get('AUTH_SESSION_COOKIE_NAME',
                                          'nomadiqe_session')
AUTH_SESSION_COOKIE_DOMAIN = os.environ.get('AUTH_SESSION_COOKIE_DOMAIN', None)
AUTH_SESSION_COOKIE_SECURE = bool(int(os.environ.get('AUTH_SESSION_COOKIE_SECURE', '1')))

SESSION_POLL_ATTEMPTS = int(os.environ.get('SESSION_POLL_ATTEMPTS', 4))
"""How many times to re-read storage while waiting for fresh onboarding state."""

SESSION_POLL_DELAY = float(os.environ.get('SESSION_POLL_DELAY', 0.1))
"""Initial delay between session re-reads, in seconds."""

SESSION_POLL_BACKOFF = float(os.environ.get('SESSION_POLL_BACKOFF', 2))
"""Multiplier applied to the delay after each session re-read."""


#################### Identity providers ####################
PROVIDER_LOOKUP_ATTEMPTS = int(os.environ.get('PROVIDER_LOOKUP_ATTEMPTS', 3))
"""Reads of a just-linked account before giving up."""

PROVIDER_LOOKUP_DELAY = float(os.environ.get('PROVIDER_LOOKUP_DELAY', 0.2))
"""Fixed delay between reads of a just-linked account, in seconds."""

GOOGLE_CLIENT_ID = os.environ.get('GOOGLE_CLIENT_ID')
GOOGLE_CLIENT_SECRET = os.environ.get('GOOGLE_CLIENT_SECRET')
FACEBOOK_CLIENT_ID = os.environ.get('FACEBOOK_CLIENT_ID')
FACEBOOK_CLIENT_SECRET = os.environ.get('FACEBOOK_CLIENT_SECRET')
APPLE_ID = os.environ.get('APPLE_ID')
APPLE_SECRET = os.environ.get('APPLE_SECRET')
"""A provider is offered only when both its id and secret are set."""


#################### Tokens and passwords ####################
EMAIL_VERIFICATION_TTL = int(os.environ.get('EMAIL_VERIFICATION_TTL', 600))
"""Lifetime of an e-mail verification code, in seconds."""

PASSWORD_RESET_TTL = int(os.environ.get('PASSWORD_RESET_TTL', 3600))
"""Lifetime of a password reset token, in seconds."""

ADD_PASSWORD_TTL = int(os.environ.get('ADD_PASSWORD_TTL', 86400))
"""Lifetime of an add-password token, in seconds."""

PASSWORD_MIN_LENGTH = int(os.environ.get('PASSWORD_MIN_LENGTH', 6))

BCRYPT_ROUNDS = int(os.environ.get('BCRYPT_ROUNDS', 12))
"""Work factor for password hashes. Lower it in tests only."""


#################### E-mail ####################
EMAIL_ENABLED = bool(int(os.environ.get('EMAIL_ENABLED', '0')))
"""When disabled, outbound messages are logged instead of sent."""

EMAIL_BACKGROUND = bool(int(os.environ.get('EMAIL_BACKGROUND', '1')))
"""Send e-mail on a worker thread, so responses do not wait for delivery."""

EMAIL_FROM = os.environ.get('EMAIL_FROM', f'Nomadiqe <noreply@{BASE_SERVER}>')
SMTP_HOSTNAME = os.environ.get('SMTP_HOSTNAME', 'localhost')
SMTP_PORT = int(os.environ.get('SMTP_PORT', 0))
SMTP_USERNAME = os.environ.get('SMTP_USERNAME', '')
SMTP_PASSWORD = os.environ.get('SMTP_PASSWORD', '')
SMTP_SSL = bool(int(os.environ.get('SMTP_SSL', '0')))


#################### Points ####################
POINTS_SIGNUP = int(os.environ.get('POINTS_SIGNUP', 100))
POINTS_ONBOARDING_COMPLETE = int(os.environ.get('POINTS_ONBOARDING_COMPLETE', 250))


#################### Minor configs ##############################
SECRET_KEY = os.environ.get('SECRET_KEY', secrets.token_urlsafe(16))
"""Sets the `Flask` secret key. Not directly used by this service."""

VERSION = '0.1'
"""The application version."""
