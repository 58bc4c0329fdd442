"""Reward points. Awarding is best-effort and never blocks a user flow."""

from typing import Dict
import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .datastore import Datastore
from .datastore.models import DBPointsEntry
from .exceptions import AccountsError

logger = logging.getLogger(__name__)

SIGNUP = 'signup'
ONBOARDING_COMPLETE = 'onboarding_complete'

DESCRIPTIONS = {
    SIGNUP: 'Welcome to Nomadiqe! Signup bonus',
    ONBOARDING_COMPLETE: 'Onboarding completed',
}


class PointsLedger:
    """Awards one-off points for account milestones."""

    def __init__(self, datastore: Datastore,
                 amounts: Dict[str, int]) -> None:
        self._datastore = datastore
        self.amounts = amounts

    def award(self, account_id: str, action: str) -> bool:
        """
        Award the points for ``action``, at most once per account.

        Failures are logged and swallowed.

        Returns
        -------
        bool
            Whether points were recorded by this call.

        """
        points = self.amounts.get(action)
        if not points:
            return False
        try:
            with self._datastore.transaction() as session:
                session.add(DBPointsEntry(
                    account_id=account_id,
                    action=action,
                    points=points,
                    description=DESCRIPTIONS.get(action)
                ))
        except IntegrityError:
            logger.debug('Points for %s already awarded to %s', action,
                         account_id)
            return False
        except (AccountsError, SQLAlchemyError):
            logger.exception('Could not award %s points to %s', action,
                             account_id)
            return False
        logger.info('Awarded %i points to %s for %s', points, account_id,
                    action)
        return True

    def balance(self, account_id: str) -> int:
        with self._datastore.transaction() as session:
            total = session.query(func.sum(DBPointsEntry.points)) \
                .filter(DBPointsEntry.account_id == account_id) \
                .scalar()
        return int(total or 0)
