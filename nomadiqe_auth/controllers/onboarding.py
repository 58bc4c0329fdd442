"""
Controllers for the onboarding flow.

Each transition is written to storage first, then a new session token is
minted from the stored state and returned, so the client's snapshot moves
along with the account.
"""

from typing import Optional
import logging

from werkzeug.datastructures import MultiDict

from ..domain import Account, OnboardingProgress, Role, SessionArtifact, \
    UserProfile
from ..services import steps
from ..services.components import current_components
from ..services.exceptions import DuplicateUsername, ErrorKind, \
    InvalidInput, InvalidTransition
from .forms import IdentityForm, InterestsForm, ProfileForm, RoleForm, \
    StepForm
from .util import ResponseData, failure, from_error, invalid_form, success, \
    with_session

logger = logging.getLogger(__name__)

ROLE_STEPS = (steps.LISTING_CREATION, steps.COLLABORATION_SETUP,
              steps.SOCIAL_CONNECT, steps.MEDIA_KIT_SETUP)
"""Steps completed through :func:`complete_step`. Others have their own
controllers, which collect the data that goes with them."""


def _progress_view(account: Account,
                   progress: Optional[OnboardingProgress]) -> dict:
    return {
        'role': account.role.value,
        'onboardingStatus': account.onboarding_status.value,
        'onboardingStep': account.onboarding_step,
        'completedSteps': progress.completed_steps if progress else []
    }


def _advanced(account: Account, message: str, **data: object) \
        -> ResponseData:
    """Respond to a transition with the new state and a fresh session."""
    components = current_components()
    _, progress = components.onboarding.status(account.account_id)
    artifact, token = components.sessions.mint(account.account_id)
    return with_session(
        success(message, nextStep=account.onboarding_step,
                **_progress_view(account, progress), **data),
        artifact, token
    )


def status(session: SessionArtifact) -> ResponseData:
    """Get the stored onboarding state of the signed-in account."""
    account, progress = current_components().onboarding \
        .status(session.account_id)
    return success(**_progress_view(account, progress))


def select_role(session: SessionArtifact,
                form_data: MultiDict) -> ResponseData:
    """Choose or change role, while onboarding is not yet complete."""
    form = RoleForm(form_data)
    if not form.validate():
        return invalid_form(form)
    try:
        account = current_components().onboarding.select_role(
            session.account_id, Role(form.role.data))
    except (InvalidInput, InvalidTransition) as e:
        return from_error(e)
    return _advanced(account, 'Role selected')


def profile_setup(session: SessionArtifact,
                  form_data: MultiDict) -> ResponseData:
    """Save the public profile and complete the profile setup step."""
    form = ProfileForm(form_data)
    if not form.validate():
        return invalid_form(form)

    components = current_components()
    profile = UserProfile(
        account_id=session.account_id,
        full_name=form.full_name.data.strip(),
        username=form.username.data,
        bio=form.bio.data or None,
        profile_picture=form.profile_picture.data or None
    )
    try:
        components.onboarding.check_step(session.account_id,
                                         steps.PROFILE_SETUP)
        components.profiles.save_user_profile(profile)
        account = components.onboarding.complete_step(session.account_id,
                                                      steps.PROFILE_SETUP)
    except DuplicateUsername:
        return failure(ErrorKind.CONFLICT, 'Username is already taken')
    except InvalidTransition as e:
        return from_error(e)
    return _advanced(account, 'Profile saved', profile={
        'fullName': profile.full_name,
        'username': profile.username,
        'bio': profile.bio,
        'profilePicture': profile.profile_picture
    })


def interests(session: SessionArtifact,
              form_data: MultiDict) -> ResponseData:
    """Save a traveler's interests; this is the traveler's last step."""
    form = InterestsForm(form_data)
    if not form.validate():
        return invalid_form(form)

    components = current_components()
    account, _ = components.onboarding.status(session.account_id)
    if account.role is not Role.TRAVELER:
        return failure(ErrorKind.CONFLICT,
                       'Interests are only collected for travelers')
    try:
        components.onboarding.check_step(session.account_id,
                                         steps.INTEREST_SELECTION)
    except InvalidTransition as e:
        return from_error(e)
    # This is the last step, so the interests are stored before completing it.
    saved = components.profiles.set_travel_interests(session.account_id,
                                                     form.interests.data)
    account = components.onboarding.complete_step(session.account_id,
                                                  steps.INTEREST_SELECTION)
    return _advanced(account, 'Interests saved', interests=saved)


def verify_identity(session: SessionArtifact,
                    form_data: MultiDict) -> ResponseData:
    """Submit an identity document. Optional, for hosts and influencers."""
    form = IdentityForm(form_data)
    if not form.validate():
        return invalid_form(form)

    components = current_components()
    account, _ = components.onboarding.status(session.account_id)
    if not steps.is_optional(account.role, steps.IDENTITY_VERIFICATION):
        return failure(ErrorKind.CONFLICT, 'Identity verification is not '
                                           'available for this role')
    try:
        components.onboarding.check_step(session.account_id,
                                         steps.IDENTITY_VERIFICATION)
    except InvalidTransition as e:
        return from_error(e)
    verification_id = components.profiles.record_identity_document(
        session.account_id, form.document_type.data, form.document_url.data)
    account = components.onboarding.complete_step(
        session.account_id, steps.IDENTITY_VERIFICATION)
    return _advanced(account, 'Identity document submitted',
                     verificationId=verification_id)


def skip_identity(session: SessionArtifact) -> ResponseData:
    """Skip identity verification. Nothing is recorded."""
    account, _ = current_components().onboarding.status(session.account_id)
    return _advanced(account, 'Identity verification skipped')


def complete_step(session: SessionArtifact,
                  form_data: MultiDict) -> ResponseData:
    """Complete one of the role-specific steps."""
    form = StepForm(form_data)
    if not form.validate():
        return invalid_form(form)
    if form.step.data not in ROLE_STEPS:
        return failure(ErrorKind.VALIDATION,
                       f'Step {form.step.data} cannot be completed here')
    try:
        account = current_components().onboarding.complete_step(
            session.account_id, form.step.data)
    except (InvalidInput, InvalidTransition) as e:
        return from_error(e)
    return _advanced(account, 'Step completed')


def reset(account_id: str) -> ResponseData:
    """Reopen onboarding for an account. For administrators."""
    account = current_components().onboarding.reset(account_id)
    logger.info('Onboarding reopened for %s by an administrator', account_id)
    _, progress = current_components().onboarding.status(account_id)
    return success('Onboarding reopened', **_progress_view(account, progress))
