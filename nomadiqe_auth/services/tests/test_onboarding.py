"""Tests for :mod:`nomadiqe_auth.services.onboarding`."""

from unittest import TestCase, mock

from mimesis import Person
from sqlalchemy.exc import OperationalError

from ...domain import OnboardingStatus, Role
from .. import points, steps
from ..credentials import CredentialStore
from ..datastore import Datastore
from ..exceptions import InvalidInput, InvalidTransition
from ..onboarding import OnboardingMachine
from ..points import PointsLedger
from ..profiles import ProfileStore


class OnboardingTestCase(TestCase):
    def setUp(self):
        self.datastore = Datastore('sqlite://')
        self.datastore.create_all()
        self.credentials = CredentialStore(self.datastore, bcrypt_rounds=4)
        self.profiles = ProfileStore(self.datastore)
        self.points = PointsLedger(self.datastore, {
            points.SIGNUP: 100, points.ONBOARDING_COMPLETE: 250
        })
        self.machine = OnboardingMachine(self.credentials, self.profiles,
                                         self.points)
        self.account = self.credentials.create_account(
            Person().email(),
            password_hash=self.credentials.hash_password('foopass')
        )
        self.account_id = self.account.account_id

    def tearDown(self):
        self.datastore.close()


class TestTravelerPath(OnboardingTestCase):
    def test_traveler(self):
        """A traveler finishes after choosing interests."""
        account = self.machine.select_role(self.account_id, Role.TRAVELER)
        self.assertEqual(account.onboarding_status,
                         OnboardingStatus.IN_PROGRESS)
        self.assertEqual(account.onboarding_step, steps.PROFILE_SETUP)

        account = self.machine.complete_step(self.account_id,
                                             steps.PROFILE_SETUP)
        self.assertEqual(account.onboarding_step, steps.INTEREST_SELECTION)

        account = self.machine.complete_step(self.account_id,
                                             steps.INTEREST_SELECTION)
        self.assertEqual(account.onboarding_status, OnboardingStatus.COMPLETED)
        self.assertIsNone(account.onboarding_step)

        _, progress = self.machine.status(self.account_id)
        self.assertEqual(progress.completed_steps, [
            steps.WELCOME, steps.ROLE_SELECTION, steps.PROFILE_SETUP,
            steps.INTEREST_SELECTION
        ])
        self.assertIsNone(progress.current_step)
        self.assertIsNotNone(progress.completed_at)
        self.assertEqual(self.points.balance(self.account_id), 250)

    def test_completion_is_idempotent(self):
        """Completing a step twice changes nothing."""
        self.machine.select_role(self.account_id, Role.TRAVELER)
        self.machine.complete_step(self.account_id, steps.PROFILE_SETUP)
        done = self.machine.complete_step(self.account_id,
                                          steps.INTEREST_SELECTION)
        _, before = self.machine.status(self.account_id)

        again = self.machine.complete_step(self.account_id,
                                           steps.INTEREST_SELECTION)
        _, after = self.machine.status(self.account_id)
        self.assertEqual(done, again)
        self.assertEqual(before, after)
        self.assertEqual(self.points.balance(self.account_id), 250)

    def test_backward(self):
        """Steps behind the current one are rejected."""
        account = self.machine.complete_step(self.account_id,
                                             steps.PROFILE_SETUP)
        self.assertEqual(account.onboarding_step, steps.INTEREST_SELECTION)
        with self.assertRaises(InvalidTransition):
            self.machine.complete_step(self.account_id, steps.WELCOME)

    def test_completed_cannot_change_role(self):
        self.machine.select_role(self.account_id, Role.TRAVELER)
        self.machine.complete_step(self.account_id, steps.PROFILE_SETUP)
        self.machine.complete_step(self.account_id, steps.INTEREST_SELECTION)
        with self.assertRaises(InvalidTransition):
            self.machine.select_role(self.account_id, Role.HOST)


class TestHostPath(OnboardingTestCase):
    def setUp(self):
        super(TestHostPath, self).setUp()
        self.machine.select_role(self.account_id, Role.HOST)
        self.machine.complete_step(self.account_id, steps.PROFILE_SETUP)

    def test_host(self):
        """A host must set up a listing and collaborations."""
        account, _ = self.machine.status(self.account_id)
        self.assertEqual(account.role, Role.HOST)
        self.assertEqual(account.onboarding_step, steps.LISTING_CREATION)
        self.assertIsNotNone(self.profiles.get_referral_code(self.account_id))

        self.machine.complete_step(self.account_id, steps.LISTING_CREATION)
        account = self.machine.complete_step(self.account_id,
                                             steps.COLLABORATION_SETUP)
        self.assertEqual(account.onboarding_status, OnboardingStatus.COMPLETED)

    def test_identity_verification_is_optional(self):
        """Verifying identity is recorded but does not move the account."""
        account = self.machine.complete_step(self.account_id,
                                             steps.IDENTITY_VERIFICATION)
        self.assertEqual(account.onboarding_step, steps.LISTING_CREATION)
        _, progress = self.machine.status(self.account_id)
        self.assertIn(steps.IDENTITY_VERIFICATION, progress.completed_steps)

    def test_other_role_step(self):
        with self.assertRaises(InvalidTransition):
            self.machine.complete_step(self.account_id, steps.SOCIAL_CONNECT)

    def test_unknown_step(self):
        with self.assertRaises(InvalidInput):
            self.machine.complete_step(self.account_id, 'take-a-nap')

    def test_forward_skip(self):
        """Completing a later step moves the account past it."""
        account = self.machine.complete_step(self.account_id,
                                             steps.COLLABORATION_SETUP)
        self.assertEqual(account.onboarding_status, OnboardingStatus.COMPLETED)


class TestSelectRole(OnboardingTestCase):
    def test_admin_not_selectable(self):
        with self.assertRaises(InvalidInput):
            self.machine.select_role(self.account_id, Role.ADMIN)

    def test_change_role(self):
        """The role can change until onboarding is complete."""
        self.machine.select_role(self.account_id, Role.HOST)
        account = self.machine.select_role(self.account_id, Role.INFLUENCER)
        self.assertEqual(account.role, Role.INFLUENCER)
        self.assertEqual(account.onboarding_step, steps.PROFILE_SETUP)

    def test_profile_failure_does_not_block(self):
        """Creating the role profile is best-effort."""
        with mock.patch.object(self.profiles, 'ensure_role_profile',
                               side_effect=OperationalError('x', {}, None)):
            account = self.machine.select_role(self.account_id, Role.HOST)
        self.assertEqual(account.role, Role.HOST)


class TestCheckStep(OnboardingTestCase):
    def setUp(self):
        super(TestCheckStep, self).setUp()
        self.machine.select_role(self.account_id, Role.TRAVELER)

    def test_allowed(self):
        """Checking a step writes nothing."""
        self.machine.check_step(self.account_id, steps.PROFILE_SETUP)
        account, progress = self.machine.status(self.account_id)
        self.assertEqual(account.onboarding_step, steps.PROFILE_SETUP)
        self.assertNotIn(steps.PROFILE_SETUP, progress.completed_steps)

    def test_completed(self):
        self.machine.complete_step(self.account_id, steps.INTEREST_SELECTION)
        with self.assertRaises(InvalidTransition):
            self.machine.check_step(self.account_id, steps.PROFILE_SETUP)

    def test_rejected(self):
        with self.assertRaises(InvalidTransition):
            self.machine.check_step(self.account_id, steps.LISTING_CREATION)
        with self.assertRaises(InvalidInput):
            self.machine.check_step(self.account_id, 'nowhere')


class TestReset(OnboardingTestCase):
    def test_reset(self):
        """An administrator can reopen a completed account."""
        self.machine.select_role(self.account_id, Role.TRAVELER)
        self.machine.complete_step(self.account_id, steps.PROFILE_SETUP)
        self.machine.complete_step(self.account_id, steps.INTEREST_SELECTION)

        account = self.machine.reset(self.account_id)
        self.assertEqual(account.onboarding_status,
                         OnboardingStatus.IN_PROGRESS)
        self.assertEqual(account.onboarding_step, steps.PROFILE_SETUP)
        _, progress = self.machine.status(self.account_id)
        self.assertIsNone(progress.completed_at)
