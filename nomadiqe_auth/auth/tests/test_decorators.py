"""Tests for :mod:`nomadiqe_auth.auth`."""

from unittest import TestCase, mock

from flask import request
from mimesis import Person
from werkzeug.exceptions import Forbidden, Unauthorized

from ...conftest import TEST_CONFIG
from ...domain import OnboardingStatus, Role
from ...factory import create_web_app
from ...services.components import current_components
from .. import decorators, get_token


class DecoratorsTestCase(TestCase):
    def setUp(self):
        self.app = create_web_app(TEST_CONFIG)
        with self.app.app_context():
            self.components = current_components()
        credentials = self.components.credentials
        self.account = credentials.create_account(
            Person().email(), password_hash=credentials.hash_password('foo'))

    def session(self):
        artifact, _ = self.components.sessions.mint(self.account.account_id)
        return artifact


class TestScoped(DecoratorsTestCase):
    def test_no_session(self):
        """Without a session, the route is not called."""
        inner = mock.MagicMock()
        with self.app.test_request_context():
            request.auth = None
            with self.assertRaises(Unauthorized):
                decorators.authenticated(inner)()
        inner.assert_not_called()

    def test_session(self):
        inner = mock.MagicMock(return_value='ok')
        with self.app.test_request_context():
            request.auth = self.session()
            self.assertEqual(decorators.authenticated(inner)(), 'ok')

    def test_wrong_role(self):
        inner = mock.MagicMock()
        with self.app.test_request_context():
            request.auth = self.session()
            with self.assertRaises(Forbidden):
                decorators.scoped(Role.HOST)(inner)()
        inner.assert_not_called()

    def test_admin_passes(self):
        self.components.credentials.update_onboarding(
            self.account.account_id, role=Role.ADMIN)
        inner = mock.MagicMock(return_value='ok')
        with self.app.test_request_context():
            request.auth = self.session()
            self.assertEqual(decorators.scoped(Role.HOST)(inner)(), 'ok')

    def test_role_taken_away(self):
        """The stored role counts, not the one in the session."""
        self.components.credentials.update_onboarding(
            self.account.account_id, role=Role.HOST)
        inner = mock.MagicMock()
        with self.app.test_request_context():
            request.auth = self.session()
            self.components.credentials.update_onboarding(
                self.account.account_id, role=Role.TRAVELER)
            with self.assertRaises(Forbidden):
                decorators.scoped(Role.HOST)(inner)()
        inner.assert_not_called()

    def test_role_granted(self):
        inner = mock.MagicMock(return_value='ok')
        with self.app.test_request_context():
            request.auth = self.session()
            self.components.credentials.update_onboarding(
                self.account.account_id, role=Role.HOST)
            self.assertEqual(decorators.scoped(Role.HOST)(inner)(), 'ok')


class TestOnboardingRequired(DecoratorsTestCase):
    def test_not_complete(self):
        inner = mock.MagicMock()
        with self.app.test_request_context():
            request.auth = self.session()
            with self.assertRaises(decorators.OnboardingRequired) as ctx:
                decorators.onboarding_required(inner)()
        self.assertEqual(ctx.exception.redirect_to,
                         self.app.config['ONBOARDING_URL'])
        inner.assert_not_called()

    def test_stale_session(self):
        """Stored state counts, not the snapshot in the session."""
        inner = mock.MagicMock(return_value='ok')
        with self.app.test_request_context():
            request.auth = self.session()
            self.components.credentials.update_onboarding(
                self.account.account_id,
                status=OnboardingStatus.COMPLETED, step=None)
            self.assertEqual(decorators.onboarding_required(inner)(), 'ok')

    def test_account_gone(self):
        inner = mock.MagicMock()
        with self.app.test_request_context():
            request.auth = self.session()
            self.components.credentials.delete_account(
                self.account.account_id)
            with self.assertRaises(Unauthorized):
                decorators.onboarding_required(inner)()


class TestGetToken(TestCase):
    def setUp(self):
        self.app = create_web_app(TEST_CONFIG)

    def test_cookie(self):
        with self.app.test_request_context(headers={
            'Cookie': 'nomadiqe_session=foo',
            'Authorization': 'Bearer bar'
        }):
            self.assertEqual(get_token(), 'foo')

    def test_bearer(self):
        with self.app.test_request_context(headers={
            'Authorization': 'Bearer bar'
        }):
            self.assertEqual(get_token(), 'bar')

    def test_other_scheme(self):
        with self.app.test_request_context(headers={
            'Authorization': 'Basic Zm9vOmJhcg=='
        }):
            self.assertIsNone(get_token())

    def test_nothing(self):
        with self.app.test_request_context():
            self.assertIsNone(get_token())
