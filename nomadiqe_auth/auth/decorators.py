"""
Authorization of requests, based on the session loaded by :class:`.Auth`.

.. code-block:: python

   @blueprint.route('/onboarding/role', methods=['POST'])
   @authenticated
   def select_role() -> Response:
       ...

   @blueprint.route('/admin/accounts/<account_id>/onboarding/reset')
   @scoped(Role.ADMIN)
   def reset_onboarding(account_id: str) -> Response:
       ...

When the decorated route function is called...

- If no valid session was loaded, :class:`Unauthorized` is raised.
- If a role is required, the stored role of the account must match it,
  whatever the session says. Admins pass every role check. Otherwise
  :class:`Forbidden` is raised.
- :func:`onboarding_required` additionally checks *stored* onboarding state,
  since the session's snapshot may be stale, and raises
  :class:`OnboardingRequired` if the user has not finished.

"""

from typing import Any, Callable, Optional
from functools import wraps
import logging

from flask import current_app, request
from werkzeug.exceptions import Forbidden, Unauthorized

from ..domain import Account, OnboardingStatus, Role
from ..services.components import current_components
from ..services.exceptions import NoSuchAccount

logger = logging.getLogger(__name__)


class OnboardingRequired(Forbidden):
    """The user has to finish onboarding first."""

    description = 'Please complete onboarding first'

    def __init__(self, redirect_to: str) -> None:
        super(OnboardingRequired, self).__init__()
        self.redirect_to = redirect_to


def _stored_account(account_id: str) -> Account:
    try:
        return current_components().credentials.get_account(account_id)
    except NoSuchAccount as e:
        raise Unauthorized('Account no longer exists') from e


def scoped(required: Optional[Role] = None) -> Callable:
    """
    Generate a decorator that requires a session, and optionally a role.

    Parameters
    ----------
    required : :class:`.Role` or None
        Role that the account must currently hold, as stored rather than as
        recorded in the session. :attr:`.Role.ADMIN` satisfies any
        requirement.

    """
    def protector(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            session = getattr(request, 'auth', None)
            if session is None:
                logger.debug('No valid session; aborting')
                raise Unauthorized('Authentication required')
            if required is not None:
                # The role in the token is a snapshot; storage decides.
                role = _stored_account(session.account_id).role
                if role is not required and role is not Role.ADMIN:
                    logger.debug('Account role %s is not %s', role.value,
                                 required.value)
                    raise Forbidden('Not allowed for this role')
            return func(*args, **kwargs)
        return wrapper
    return protector


authenticated = scoped()
"""Require a valid session, with any role."""


def onboarding_required(func: Callable) -> Callable:
    """Require a session whose account has completed onboarding."""
    @wraps(func)
    @authenticated
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        account = _stored_account(request.auth.account_id)
        if account.onboarding_status is not OnboardingStatus.COMPLETED \
                and account.role is not Role.ADMIN:
            raise OnboardingRequired(current_app.config['ONBOARDING_URL'])
        return func(*args, **kwargs)
    return wrapper
