"""Tests for :mod:`nomadiqe_auth.services.steps`."""

from unittest import TestCase

from ...domain import Role
from .. import steps


class TestPaths(TestCase):
    def test_paths(self):
        self.assertEqual(steps.path_for(Role.TRAVELER), [
            'welcome', 'role-selection', 'profile-setup', 'interest-selection'
        ])
        self.assertEqual(steps.path_for(Role.HOST)[3:], [
            'listing-creation', 'collaboration-setup'
        ])
        self.assertEqual(steps.path_for(Role.INFLUENCER)[3:], [
            'social-connect', 'media-kit-setup'
        ])
        self.assertEqual(steps.path_for(Role.ADMIN), steps.COMMON_STEPS)

    def test_optional(self):
        """Identity verification is optional for hosts and influencers."""
        self.assertTrue(steps.is_optional(Role.HOST,
                                          steps.IDENTITY_VERIFICATION))
        self.assertTrue(steps.is_optional(Role.INFLUENCER,
                                          steps.IDENTITY_VERIFICATION))
        self.assertFalse(steps.is_optional(Role.TRAVELER,
                                           steps.IDENTITY_VERIFICATION))
        self.assertNotIn(steps.IDENTITY_VERIFICATION,
                         steps.path_for(Role.HOST))

    def test_known(self):
        self.assertTrue(steps.is_known(steps.MEDIA_KIT_SETUP))
        self.assertTrue(steps.is_known(steps.IDENTITY_VERIFICATION))
        self.assertFalse(steps.is_known('lunch'))

    def test_step_after(self):
        self.assertEqual(steps.step_after(Role.HOST, steps.PROFILE_SETUP),
                         steps.LISTING_CREATION)
        self.assertIsNone(steps.step_after(Role.TRAVELER,
                                           steps.INTEREST_SELECTION))

    def test_position(self):
        self.assertEqual(steps.position(Role.HOST, None), 0)
        self.assertEqual(steps.position(Role.HOST, steps.LISTING_CREATION), 3)

    def test_next_pending(self):
        done = [steps.WELCOME, steps.ROLE_SELECTION]
        self.assertEqual(steps.next_pending(Role.TRAVELER, done),
                         steps.PROFILE_SETUP)
        done.append(steps.PROFILE_SETUP)
        self.assertEqual(steps.next_pending(Role.HOST, done),
                         steps.LISTING_CREATION)
        self.assertIsNone(steps.next_pending(Role.ADMIN, done))
