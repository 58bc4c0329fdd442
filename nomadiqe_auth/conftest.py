import pytest

from .factory import create_web_app

TEST_CONFIG = {
    'TESTING': True,
    'DATABASE_URI': 'sqlite://',
    'CREATE_DB': True,
    'JWT_SECRET': 'foosecret',
    'BCRYPT_ROUNDS': 4,
    'EMAIL_BACKGROUND': False,
    'AUTH_SESSION_COOKIE_SECURE': False,
    'SESSION_POLL_DELAY': 0,
    'PROVIDER_LOOKUP_DELAY': 0,
    'GOOGLE_CLIENT_ID': 'google-id',
    'GOOGLE_CLIENT_SECRET': 'google-secret',
}


@pytest.fixture()
def app():
    return create_web_app(TEST_CONFIG)


@pytest.fixture()
def client(app):
    return app.test_client()
