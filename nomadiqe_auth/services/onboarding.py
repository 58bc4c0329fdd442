"""
Onboarding state machine.

Transitions are computed here and written through
:meth:`.CredentialStore.update_onboarding`. The rules:

- A step may be completed only if it is on the path for the account's role
  and is not behind the current step. Completing an already-completed step
  does nothing.
- Completing the last step on the path completes onboarding: the status
  becomes COMPLETED and the current step is cleared. Nothing moves a
  completed account back except :meth:`OnboardingMachine.reset`.
- Choosing a role before onboarding is complete makes sure the role's
  profile record exists and moves the account to the next step for that
  role.
"""

from typing import Optional, Tuple
import logging

from sqlalchemy.exc import SQLAlchemyError

from ..domain import Account, OnboardingProgress, OnboardingStatus, Role, \
    SELECTABLE_ROLES
from . import steps
from .credentials import CredentialStore
from .exceptions import InvalidInput, InvalidTransition, Unavailable
from .points import ONBOARDING_COMPLETE, PointsLedger
from .profiles import ProfileStore

logger = logging.getLogger(__name__)


class OnboardingMachine:
    """Moves accounts through their onboarding steps."""

    def __init__(self, credentials: CredentialStore, profiles: ProfileStore,
                 points: Optional[PointsLedger] = None) -> None:
        self._credentials = credentials
        self._profiles = profiles
        self._points = points

    def status(self, account_id: str) \
            -> Tuple[Account, Optional[OnboardingProgress]]:
        """Current account state and progress record."""
        account = self._credentials.get_account(account_id)
        return account, self._credentials.get_progress(account_id)

    def select_role(self, account_id: str, role: Role) -> Account:
        """
        Choose (or change) the account's role.

        Raises
        ------
        :class:`.InvalidInput`
            If ``role`` may not be chosen by users.
        :class:`.InvalidTransition`
            If onboarding is already complete.

        """
        if role not in SELECTABLE_ROLES:
            raise InvalidInput('Invalid role selected')
        account, progress = self.status(account_id)
        if account.onboarding_status is OnboardingStatus.COMPLETED:
            raise InvalidTransition('Onboarding is already complete')

        self._ensure_profile(account_id, role)

        completed = list(progress.completed_steps) if progress else []
        for step in (steps.WELCOME, steps.ROLE_SELECTION):
            if step not in completed:
                completed.append(step)
        next_step = steps.next_pending(role, completed)
        if next_step is None:
            return self._complete(account_id, role=role,
                                  completed=completed)
        logger.debug('Account %s selected role %s', account_id, role.value)
        return self._credentials.update_onboarding(
            account_id,
            status=OnboardingStatus.IN_PROGRESS,
            step=next_step,
            role=role,
            completed=completed
        )

    def complete_step(self, account_id: str, step: str) -> Account:
        """
        Mark ``step`` as completed and advance.

        Raises
        ------
        :class:`.InvalidInput`
            If ``step`` is not a known step.
        :class:`.InvalidTransition`
            If ``step`` is not on the account's path, or is behind the
            current step.

        """
        account, progress = self.status(account_id)
        if self._is_done(account, progress, step):
            logger.debug('Step %s already completed by %s', step, account_id)
            return account
        if steps.is_optional(account.role, step):
            # Optional steps are recorded but do not move the account.
            return self._credentials.update_onboarding(
                account_id,
                status=OnboardingStatus.IN_PROGRESS,
                completed=[step]
            )

        next_step = steps.step_after(account.role, step)
        if next_step is None:
            return self._complete(account_id, completed=[step])
        return self._credentials.update_onboarding(
            account_id,
            status=OnboardingStatus.IN_PROGRESS,
            step=next_step,
            completed=[step]
        )

    def check_step(self, account_id: str, step: str) -> None:
        """
        Make sure that :meth:`complete_step` would accept ``step``.

        Nothing is written. Callers that store data along with a step check
        first, so that a rejected step leaves nothing behind.

        Raises
        ------
        :class:`.InvalidInput`
        :class:`.InvalidTransition`

        """
        account, progress = self.status(account_id)
        self._is_done(account, progress, step)

    def _is_done(self, account: Account,
                 progress: Optional[OnboardingProgress], step: str) -> bool:
        """Whether ``step`` is already done; raise if it may not be done."""
        if not steps.is_known(step):
            raise InvalidInput(f'Unknown onboarding step: {step}')
        if progress is not None and step in progress.completed_steps:
            return True
        if account.onboarding_status is OnboardingStatus.COMPLETED:
            raise InvalidTransition('Onboarding is already complete')
        if steps.is_optional(account.role, step):
            return False
        path = steps.path_for(account.role)
        if step not in path:
            raise InvalidTransition(f'{step} is not a step for '
                                    f'{account.role.value}')
        current = account.onboarding_step
        if current in path and path.index(step) < steps.position(
                account.role, current):
            raise InvalidTransition(f'{step} is behind the current step')
        return False

    def reset(self, account_id: str) -> Account:
        """Reopen onboarding at profile setup. Administrative use only."""
        logger.info('Resetting onboarding for %s', account_id)
        return self._credentials.update_onboarding(
            account_id,
            status=OnboardingStatus.IN_PROGRESS,
            step=steps.PROFILE_SETUP,
            override=True
        )

    def _complete(self, account_id: str, role: Optional[Role] = None,
                  completed: Optional[list] = None) -> Account:
        account = self._credentials.update_onboarding(
            account_id,
            status=OnboardingStatus.COMPLETED,
            step=None,
            role=role,
            completed=completed
        )
        logger.info('Account %s completed onboarding', account_id)
        if self._points is not None:
            self._points.award(account_id, ONBOARDING_COMPLETE)
        return account

    def _ensure_profile(self, account_id: str, role: Role) -> None:
        try:
            self._profiles.ensure_role_profile(account_id, role)
        except (Unavailable, SQLAlchemyError):
            logger.exception('Could not create %s profile for %s',
                             role.value, account_id)
