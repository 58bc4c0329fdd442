"""
Onboarding step keys and the legal path through them for each role.

Every role starts with the same three steps, then branches::

    welcome -> role-selection -> profile-setup -> <role steps> -> complete

Identity verification is offered to hosts and influencers but is never on
the path: skipping it does not hold anything up.
"""

from typing import Dict, List, Optional, Iterable, FrozenSet

from ..domain import Role

WELCOME = 'welcome'
ROLE_SELECTION = 'role-selection'
PROFILE_SETUP = 'profile-setup'
INTEREST_SELECTION = 'interest-selection'
LISTING_CREATION = 'listing-creation'
COLLABORATION_SETUP = 'collaboration-setup'
SOCIAL_CONNECT = 'social-connect'
MEDIA_KIT_SETUP = 'media-kit-setup'
IDENTITY_VERIFICATION = 'identity-verification'

COMMON_STEPS = [WELCOME, ROLE_SELECTION, PROFILE_SETUP]

ROLE_STEPS: Dict[Role, List[str]] = {
    Role.TRAVELER: [INTEREST_SELECTION],
    Role.HOST: [LISTING_CREATION, COLLABORATION_SETUP],
    Role.INFLUENCER: [SOCIAL_CONNECT, MEDIA_KIT_SETUP],
    Role.ADMIN: [],
}

OPTIONAL_STEPS: Dict[Role, FrozenSet[str]] = {
    Role.HOST: frozenset([IDENTITY_VERIFICATION]),
    Role.INFLUENCER: frozenset([IDENTITY_VERIFICATION]),
}

PROVIDER_FIRST_STEP = PROFILE_SETUP
"""Where accounts created by an identity provider callback begin."""


def path_for(role: Role) -> List[str]:
    """Get the ordered list of required steps for ``role``."""
    return COMMON_STEPS + ROLE_STEPS[role]


def first_step(role: Role) -> str:
    return path_for(role)[0]


def is_optional(role: Role, step: str) -> bool:
    return step in OPTIONAL_STEPS.get(role, frozenset())


def is_known(step: str) -> bool:
    """Whether ``step`` belongs to any role's path (or is optional)."""
    if step == IDENTITY_VERIFICATION:
        return True
    return any(step in path_for(role) for role in Role)


def position(role: Role, step: Optional[str]) -> int:
    """
    Index of ``step`` on the path for ``role``.

    A missing step is treated as the start of the path.

    Raises
    ------
    ValueError
        If ``step`` is not on the path for ``role``.

    """
    if step is None:
        return 0
    return path_for(role).index(step)


def step_after(role: Role, step: str) -> Optional[str]:
    """The step that follows ``step``, or ``None`` if ``step`` is terminal."""
    path = path_for(role)
    index = path.index(step)
    if index + 1 < len(path):
        return path[index + 1]
    return None


def next_pending(role: Role, completed: Iterable[str],
                 after: str = ROLE_SELECTION) -> Optional[str]:
    """
    First step on the path for ``role`` after ``after`` not yet completed.

    Returns ``None`` when every remaining step is already completed.
    """
    done = set(completed)
    path = path_for(role)
    for step in path[path.index(after) + 1:]:
        if step not in done:
            return step
    return None
