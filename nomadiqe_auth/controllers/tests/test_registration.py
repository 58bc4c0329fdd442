"""Tests for :mod:`nomadiqe_auth.controllers.registration`."""

from unittest import TestCase, mock
from http import HTTPStatus

from mimesis import Person
from werkzeug.datastructures import MultiDict

from ...conftest import TEST_CONFIG
from ...factory import create_web_app
from ...services.components import current_components
from ...services.datastore.models import DBTravelerPreferences
from ...services.notifications import TemplateKind
from ..registration import send_verification_code, sign_up, verify_code


class RegistrationTestCase(TestCase):
    def setUp(self):
        self.app = create_web_app(TEST_CONFIG)
        person = Person()
        self.email = person.email()
        self.name = person.full_name()
        self.password = person.password(length=12)

    def sign_up(self):
        return sign_up(MultiDict({'email': self.email,
                                  'password': self.password,
                                  'name': self.name}))


class TestSignUp(RegistrationTestCase):
    """Tests for :func:`.sign_up`."""

    def test_sign_up(self):
        """A new account is created, with a profile and signup points."""
        with self.app.app_context():
            data, code, headers = self.sign_up()
            self.assertEqual(code, HTTPStatus.CREATED)
            self.assertTrue(data['success'])
            user = data['user']
            self.assertEqual(user['email'], self.email.lower())
            self.assertEqual(user['name'], self.name)
            self.assertEqual(user['role'], 'TRAVELER')
            self.assertNotIn('password', user)

            components = current_components()
            self.assertEqual(components.points.balance(user['id']), 100)
            with components.datastore.transaction() as session:
                self.assertIsNotNone(
                    session.get(DBTravelerPreferences, user['id']))

    def test_email_taken(self):
        with self.app.app_context():
            self.sign_up()
            data, code, headers = self.sign_up()
        self.assertEqual(code, HTTPStatus.CONFLICT)
        self.assertFalse(data['success'])
        self.assertEqual(data['code'], 'CONFLICT')
        self.assertEqual(data['error'],
                         'A user with this email already exists')

    def test_short_password(self):
        with self.app.app_context():
            data, code, headers = sign_up(MultiDict({'email': self.email,
                                                     'password': 'abc'}))
        self.assertEqual(code, HTTPStatus.BAD_REQUEST)
        self.assertEqual(data['code'], 'VALIDATION')
        self.assertIn('password', data['fields'])

    def test_bad_email(self):
        with self.app.app_context():
            data, code, headers = sign_up(MultiDict({'email': 'not-an-email',
                                                     'password': 'foopass'}))
        self.assertEqual(code, HTTPStatus.BAD_REQUEST)
        self.assertIn('email', data['fields'])

    def test_points_failure_does_not_fail_sign_up(self):
        with self.app.app_context():
            components = current_components()
            with mock.patch.object(components.points, 'award',
                                   return_value=False):
                data, code, headers = self.sign_up()
        self.assertEqual(code, HTTPStatus.CREATED)


class TestVerificationCode(RegistrationTestCase):
    """Tests for :func:`.send_verification_code` and :func:`.verify_code`."""

    def send(self):
        components = current_components()
        with mock.patch.object(components.notifier, 'send',
                               return_value=True) as mock_send:
            response = send_verification_code(MultiDict({'email': self.email}))
        return response, mock_send

    def test_send_and_verify(self):
        with self.app.app_context():
            (data, code, headers), mock_send = self.send()
            self.assertEqual(code, HTTPStatus.OK)
            self.assertEqual(data['expiresIn'], 600)
            self.assertNotIn('code', data)

            recipient, kind, context = mock_send.call_args[0]
            self.assertEqual(recipient, self.email)
            self.assertEqual(kind, TemplateKind.VERIFICATION_CODE)
            self.assertEqual(context['minutes'], 10)

            data, code, headers = verify_code(MultiDict({
                'email': self.email, 'code': context['code']
            }))
            self.assertEqual(code, HTTPStatus.OK)
            self.assertTrue(data['verified'])

            # Codes are single-use.
            data, code, headers = verify_code(MultiDict({
                'email': self.email, 'code': context['code']
            }))
            self.assertEqual(code, HTTPStatus.BAD_REQUEST)
            self.assertEqual(data['error'], 'Invalid or expired token')

    def test_resend_replaces_code(self):
        with self.app.app_context():
            _, first = self.send()
            _, second = self.send()
            old_code = first.call_args[0][2]['code']
            new_code = second.call_args[0][2]['code']
            if old_code != new_code:
                data, code, _ = verify_code(MultiDict({'email': self.email,
                                                       'code': old_code}))
                self.assertEqual(code, HTTPStatus.BAD_REQUEST)
            data, code, _ = verify_code(MultiDict({'email': self.email,
                                                   'code': new_code}))
            self.assertEqual(code, HTTPStatus.OK)

    def test_account_exists(self):
        with self.app.app_context():
            self.sign_up()
            (data, code, headers), mock_send = self.send()
        self.assertEqual(code, HTTPStatus.CONFLICT)
        mock_send.assert_not_called()

    def test_delivery_failure_is_not_reported(self):
        """The response does not say whether the e-mail went out."""
        with self.app.app_context():
            components = current_components()
            with mock.patch.object(components.notifier, 'send',
                                   return_value=False):
                data, code, headers = send_verification_code(
                    MultiDict({'email': self.email}))
        self.assertEqual(code, HTTPStatus.OK)

    def test_malformed_code(self):
        with self.app.app_context():
            data, code, headers = verify_code(MultiDict({
                'email': self.email, 'code': '12ab'
            }))
        self.assertEqual(code, HTTPStatus.BAD_REQUEST)
        self.assertIn('code', data['fields'])
