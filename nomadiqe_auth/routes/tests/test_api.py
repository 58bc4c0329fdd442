"""Tests for :mod:`nomadiqe_auth.routes.api`."""

from unittest import TestCase
from http import HTTPStatus

from mimesis import Person
from werkzeug.datastructures import MultiDict

from ...conftest import TEST_CONFIG
from ...domain import Role
from ...factory import create_web_app
from ...services import steps
from ...services.components import current_components
from .. import api


class TestPayload(TestCase):
    def setUp(self):
        self.app = create_web_app(TEST_CONFIG)

    def test_snake_case(self):
        self.assertEqual(api.snake_case('providerAccountId'),
                         'provider_account_id')
        self.assertEqual(api.snake_case('email'), 'email')
        self.assertEqual(api.snake_case('full_name'), 'full_name')

    def test_json(self):
        with self.app.test_request_context(
                '/', method='POST',
                json={'fullName': 'Foo', 'interests': ['a', 'b'],
                      'bio': None}):
            data = api.payload()
        self.assertEqual(data['full_name'], 'Foo')
        self.assertEqual(data.getlist('interests'), ['a', 'b'])
        self.assertNotIn('bio', data)

    def test_form(self):
        with self.app.test_request_context(
                '/', method='POST', data={'email': 'foo@bar.com'}):
            data = api.payload()
        self.assertEqual(data['email'], 'foo@bar.com')

    def test_not_an_object(self):
        with self.app.test_request_context('/', method='POST',
                                           json=['foo']):
            self.assertIsInstance(api.payload(), MultiDict)
            self.assertEqual(len(api.payload()), 0)


class APITestCase(TestCase):
    def setUp(self):
        self.app = create_web_app(TEST_CONFIG)
        self.client = self.app.test_client()
        with self.app.app_context():
            self.components = current_components()
        self.email = Person().email()
        self.password = 'foopass123'

    def sign_up_and_in(self):
        response = self.client.post('/api/auth/signup', json={
            'email': self.email, 'password': self.password, 'name': 'Foo Bar'
        })
        self.assertEqual(response.status_code, HTTPStatus.CREATED)
        response = self.client.post('/api/auth/signin', json={
            'email': self.email, 'password': self.password
        })
        self.assertEqual(response.status_code, HTTPStatus.OK)
        return response


class TestAuthRoutes(APITestCase):
    def test_sign_in_sets_cookie(self):
        response = self.sign_up_and_in()
        cookies = response.headers.getlist('Set-Cookie')
        self.assertEqual(len(cookies), 1)
        self.assertTrue(cookies[0].startswith('nomadiqe_session='))
        self.assertIn('HttpOnly', cookies[0])
        self.assertNotIn('cookies', response.get_json())

    def test_security_headers(self):
        response = self.client.get('/api/status')
        self.assertEqual(response.status_code, HTTPStatus.OK)
        self.assertEqual(response.headers['X-Frame-Options'], 'DENY')
        self.assertEqual(response.headers['X-Content-Type-Options'],
                         'nosniff')
        self.assertEqual(response.headers['Content-Security-Policy'],
                         "frame-ancestors 'none'")
        self.assertEqual(response.get_json()['version'],
                         self.app.config['VERSION'])

    def test_providers(self):
        response = self.client.get('/api/auth/providers')
        self.assertEqual(response.get_json()['providers'],
                         ['google', 'credentials'])

    def test_session(self):
        self.sign_up_and_in()
        response = self.client.get('/api/auth/session')
        self.assertEqual(response.status_code, HTTPStatus.OK)
        data = response.get_json()
        self.assertEqual(data['session']['email'], self.email.lower())
        self.assertEqual(data['session']['onboardingStep'], steps.WELCOME)

    def test_session_await(self):
        self.sign_up_and_in()
        response = self.client.get(
            '/api/auth/session?await=onboarding-complete')
        self.assertEqual(response.status_code, HTTPStatus.OK)
        self.assertTrue(response.get_json()['stale'])

    def test_session_without_token(self):
        response = self.client.get('/api/auth/session')
        self.assertEqual(response.status_code, HTTPStatus.UNAUTHORIZED)
        self.assertFalse(response.get_json()['success'])

    def test_session_with_bad_token(self):
        """Errors that escape a controller get the same envelope."""
        response = self.client.get('/api/auth/session', headers={
            'Authorization': 'Bearer not-a-token'
        })
        self.assertEqual(response.status_code, HTTPStatus.UNAUTHORIZED)
        self.assertEqual(response.get_json()['code'], 'UNAUTHORIZED')

    def test_logout(self):
        self.sign_up_and_in()
        response = self.client.post('/api/auth/logout')
        self.assertEqual(response.status_code, HTTPStatus.OK)
        response = self.client.get('/api/onboarding/status')
        self.assertEqual(response.status_code, HTTPStatus.UNAUTHORIZED)

    def test_validation_error(self):
        response = self.client.post('/api/auth/signup', json={
            'email': self.email, 'password': 'abc'
        })
        self.assertEqual(response.status_code, HTTPStatus.BAD_REQUEST)
        data = response.get_json()
        self.assertEqual(data['code'], 'VALIDATION')
        self.assertIn('password', data['fields'])


class TestAccessControl(APITestCase):
    def test_not_signed_in(self):
        response = self.client.get('/api/onboarding/status')
        self.assertEqual(response.status_code, HTTPStatus.UNAUTHORIZED)
        data = response.get_json()
        self.assertFalse(data['success'])
        self.assertEqual(data['code'], 'UNAUTHORIZED')

    def test_bearer_token(self):
        account = self.components.credentials.create_account(
            self.email,
            password_hash=self.components.credentials.hash_password('foo'))
        _, token = self.components.sessions.mint(account.account_id)
        client = self.app.test_client()
        response = client.get('/api/onboarding/status', headers={
            'Authorization': f'Bearer {token}'
        })
        self.assertEqual(response.status_code, HTTPStatus.OK)
        self.assertEqual(response.get_json()['onboardingStep'],
                         steps.WELCOME)

    def test_onboarding_required(self):
        """Gated resources redirect to onboarding until it is done."""
        self.sign_up_and_in()
        response = self.client.get('/api/points')
        self.assertEqual(response.status_code, HTTPStatus.FORBIDDEN)
        data = response.get_json()
        self.assertEqual(data['redirect'], '/onboarding')
        self.assertEqual(data['error'], 'Please complete onboarding first')

    def test_admin_only(self):
        self.sign_up_and_in()
        account = self.components.credentials.get_by_email(self.email)
        response = self.client.post(
            f'/api/admin/accounts/{account.account_id}/onboarding/reset')
        self.assertEqual(response.status_code, HTTPStatus.FORBIDDEN)

    def test_admin_reset(self):
        traveler = self.components.credentials.create_account(
            Person().email(),
            password_hash=self.components.credentials.hash_password('foo'))
        admin = self.components.credentials.create_account(
            self.email,
            password_hash=self.components.credentials.hash_password('foo'))
        self.components.credentials.update_onboarding(admin.account_id,
                                                      role=Role.ADMIN)
        _, token = self.components.sessions.mint(admin.account_id)
        response = self.client.post(
            f'/api/admin/accounts/{traveler.account_id}/onboarding/reset',
            headers={'Authorization': f'Bearer {token}'}
        )
        self.assertEqual(response.status_code, HTTPStatus.OK)
        self.assertEqual(response.get_json()['onboardingStep'],
                         steps.PROFILE_SETUP)

    def test_host_only(self):
        self.sign_up_and_in()
        response = self.client.get('/api/host/referral-code')
        self.assertEqual(response.status_code, HTTPStatus.FORBIDDEN)
        self.assertNotIn('redirect', response.get_json())

    def test_role_changed_since_sign_in(self):
        """A session minted as a host stops working once the role changes."""
        account = self.components.credentials.create_account(
            self.email,
            password_hash=self.components.credentials.hash_password('foo'))
        onboarding = self.components.onboarding
        onboarding.select_role(account.account_id, Role.HOST)
        _, token = self.components.sessions.mint(account.account_id)

        onboarding.select_role(account.account_id, Role.TRAVELER)
        onboarding.complete_step(account.account_id, steps.PROFILE_SETUP)
        onboarding.complete_step(account.account_id,
                                 steps.INTEREST_SELECTION)

        client = self.app.test_client()
        response = client.get('/api/host/referral-code', headers={
            'Authorization': f'Bearer {token}'
        })
        self.assertEqual(response.status_code, HTTPStatus.FORBIDDEN)
        self.assertNotIn('referralCode', response.get_json())


class TestOnboardingRoutes(APITestCase):
    def test_host(self):
        self.sign_up_and_in()
        response = self.client.post('/api/onboarding/role',
                                    json={'role': 'HOST'})
        self.assertEqual(response.status_code, HTTPStatus.OK)
        self.assertIn('nomadiqe_session=',
                      response.headers.get('Set-Cookie', ''))

        response = self.client.post('/api/onboarding/profile', json={
            'fullName': 'Foo Bar', 'username': 'foo_host'
        })
        self.assertEqual(response.status_code, HTTPStatus.OK)
        response = self.client.post('/api/onboarding/verify-identity/skip')
        self.assertEqual(response.get_json()['nextStep'],
                         steps.LISTING_CREATION)

        for step in (steps.LISTING_CREATION, steps.COLLABORATION_SETUP):
            response = self.client.post('/api/onboarding/complete-step',
                                        json={'step': step})
            self.assertEqual(response.status_code, HTTPStatus.OK)
        self.assertEqual(response.get_json()['onboardingStatus'],
                         'COMPLETED')

        # The new session carries the new role.
        response = self.client.get('/api/host/referral-code')
        self.assertEqual(response.status_code, HTTPStatus.OK)
        self.assertTrue(
            response.get_json()['referralCode'].startswith('HOST_'))

        response = self.client.get('/api/points')
        self.assertEqual(response.get_json()['points'], 350)

    def test_interests_as_json_list(self):
        self.sign_up_and_in()
        self.client.post('/api/onboarding/role', json={'role': 'TRAVELER'})
        self.client.post('/api/onboarding/profile', json={
            'fullName': 'Foo Bar', 'username': 'foo_traveler'
        })
        response = self.client.post('/api/onboarding/interests', json={
            'interests': ['hiking', 'food']
        })
        self.assertEqual(response.status_code, HTTPStatus.OK)
        self.assertEqual(response.get_json()['interests'], ['hiking', 'food'])
