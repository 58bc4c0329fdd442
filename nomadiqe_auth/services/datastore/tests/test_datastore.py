"""Tests for :mod:`nomadiqe_auth.services.datastore`."""

from unittest import TestCase, mock

from sqlalchemy.exc import OperationalError

from ...exceptions import Unavailable
from .. import Datastore, models


class TestTransaction(TestCase):
    def setUp(self):
        self.datastore = Datastore('sqlite://')
        self.datastore.create_all()

    def tearDown(self):
        self.datastore.drop_all()
        self.datastore.close()

    def count(self) -> int:
        with self.datastore.transaction() as session:
            return session.query(models.DBAccount).count()

    def test_commit(self):
        with self.datastore.transaction() as session:
            session.add(models.DBAccount(email='foo@bar.com', role='TRAVELER',
                                         onboarding_status='PENDING',
                                         onboarding_step='welcome'))
        self.assertEqual(self.count(), 1)

    def test_rollback(self):
        """Nothing is written if the block raises."""
        with self.assertRaises(KeyError):
            with self.datastore.transaction() as session:
                session.add(models.DBAccount(email='foo@bar.com',
                                             role='TRAVELER',
                                             onboarding_status='PENDING',
                                             onboarding_step='welcome'))
                session.flush()
                raise KeyError('nope')
        self.assertEqual(self.count(), 0)

    def test_unavailable(self):
        """Connectivity problems become :class:`.Unavailable`."""
        with self.assertRaises(Unavailable):
            with self.datastore.transaction():
                raise OperationalError('SELECT 1', {}, Exception('gone'))

    def test_timestamps_are_aware(self):
        with self.datastore.transaction() as session:
            session.add(models.DBAccount(email='foo@bar.com', role='TRAVELER',
                                         onboarding_status='PENDING',
                                         onboarding_step='welcome'))
        with self.datastore.transaction() as session:
            db_account = session.query(models.DBAccount).first()
            self.assertIsNotNone(db_account.created.tzinfo)
            self.assertEqual(len(db_account.account_id), 32)


class TestEngine(TestCase):
    @mock.patch(f'{Datastore.__module__}.create_engine')
    def test_file_database(self, mock_create_engine):
        Datastore('sqlite:///accounts.db')
        kwargs = mock_create_engine.call_args[1]
        self.assertEqual(kwargs['connect_args'], {'check_same_thread': False})
        self.assertNotIn('poolclass', kwargs)

    @mock.patch(f'{Datastore.__module__}.create_engine')
    def test_other_database(self, mock_create_engine):
        Datastore('postgresql://foo@localhost/accounts')
        self.assertNotIn('connect_args', mock_create_engine.call_args[1])
