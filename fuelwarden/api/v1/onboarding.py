import logging
from typing import Optional

import redis.asyncio as redis
from fastapi import APIRouter, Depends, HTTPException, status
from redis.exceptions import RedisError

from fuelwarden.api.deps import get_auth_context, get_redis_client
from fuelwarden.core.config import settings
from fuelwarden.core.exceptions import FuelWardenError, NotAuthenticatedError
from fuelwarden.models.onboarding_draft import OnboardingDraft, WizardState
from fuelwarden.models.profile import UserProfile
from fuelwarden.schemas.onboarding_request import (
    OnboardingOptions,
    ToggleRequest,
    WizardResponse,
)
from fuelwarden.services import onboarding
from fuelwarden.services.auth_context import AuthContext
from fuelwarden.services.onboarding import OnboardingWizard

logger = logging.getLogger(__name__)
router = APIRouter()


def _state_key(uid: str) -> str:
    return f"onboarding:{uid}"


async def get_wizard(
    context: AuthContext = Depends(get_auth_context),
    redis_client: redis.Redis = Depends(get_redis_client),
) -> OnboardingWizard:
    """Rebuilds the user's wizard from the state cached in Redis."""
    if not context.is_authenticated:
        raise NotAuthenticatedError("Sign in to start onboarding.")
    uid = context.user.uid
    try:
        state_json = await redis_client.get(_state_key(uid))
    except RedisError as e:
        logger.error(f"Redis error loading onboarding state for '{uid}': {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="A database error occurred while loading onboarding progress.",
        )
    state = WizardState.model_validate_json(state_json) if state_json else None
    return OnboardingWizard(context, state)


async def _save_state(redis_client: redis.Redis, wizard: OnboardingWizard):
    uid = wizard.auth.user.uid
    try:
        await redis_client.set(
            _state_key(uid),
            wizard.state.model_dump_json(by_alias=True),
            ex=settings.ONBOARDING_DRAFT_TTL_SECONDS,
        )
    except RedisError as e:
        logger.error(f"Redis error saving onboarding state for '{uid}': {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="A database error occurred while saving onboarding progress.",
        )


def _response(wizard: OnboardingWizard, profile: Optional[UserProfile] = None) -> WizardResponse:
    return WizardResponse(
        step=wizard.current_step.value,
        step_number=wizard.state.current_step_index + 1,
        total_steps=len(onboarding.STEPS),
        state=wizard.state,
        has_completed_onboarding=wizard.auth.has_completed_onboarding,
        profile=profile,
    )


@router.get("/options", response_model=OnboardingOptions, summary="List the selectable choices")
def get_options():
    return OnboardingOptions(
        activities=onboarding.ACTIVITY_OPTIONS,
        goals=onboarding.GOAL_OPTIONS,
        restrictions=onboarding.RESTRICTION_OPTIONS,
        preferences=onboarding.PREFERENCE_OPTIONS,
        supplements=onboarding.SUPPLEMENT_OPTIONS,
        step_fields={
            step.value: list(fields) for step, fields in onboarding.STEP_FIELDS.items()
        },
    )


@router.get("/", response_model=WizardResponse, summary="Get onboarding progress")
async def get_progress(wizard: OnboardingWizard = Depends(get_wizard)):
    """
    Returns the saved progress, or a fresh wizard on the first step. Clients
    should leave onboarding when ``hasCompletedOnboarding`` is already true.
    """
    return _response(wizard)


@router.patch("/draft", response_model=WizardResponse, summary="Record answers")
async def update_draft(
    payload: OnboardingDraft,
    wizard: OnboardingWizard = Depends(get_wizard),
    redis_client: redis.Redis = Depends(get_redis_client),
):
    """Only the fields present in the body are changed."""
    wizard.update(**payload.model_dump(exclude_unset=True))
    await _save_state(redis_client, wizard)
    return _response(wizard)


@router.post("/toggle", response_model=WizardResponse, summary="Toggle a selectable option")
async def toggle_option(
    payload: ToggleRequest,
    wizard: OnboardingWizard = Depends(get_wizard),
    redis_client: redis.Redis = Depends(get_redis_client),
):
    wizard.toggle(payload.field, payload.value)
    await _save_state(redis_client, wizard)
    return _response(wizard)


@router.post("/next", response_model=WizardResponse, summary="Advance to the next step")
async def next_step(
    wizard: OnboardingWizard = Depends(get_wizard),
    redis_client: redis.Redis = Depends(get_redis_client),
):
    """Stays on the current step and reports field errors when it is incomplete."""
    wizard.next()
    await _save_state(redis_client, wizard)
    return _response(wizard)


@router.post("/previous", response_model=WizardResponse, summary="Go back one step")
async def previous_step(
    wizard: OnboardingWizard = Depends(get_wizard),
    redis_client: redis.Redis = Depends(get_redis_client),
):
    wizard.previous()
    await _save_state(redis_client, wizard)
    return _response(wizard)


@router.post("/submit", response_model=WizardResponse, summary="Complete onboarding")
async def submit(
    wizard: OnboardingWizard = Depends(get_wizard),
    redis_client: redis.Redis = Depends(get_redis_client),
):
    """
    Saves the profile and weekly schedule. On success the cached progress is
    discarded; otherwise it is kept so the user can correct and resubmit.
    """
    try:
        profile = await wizard.submit()
    except FuelWardenError:
        await _save_state(redis_client, wizard)
        raise

    if not wizard.state.completed:
        await _save_state(redis_client, wizard)
        return _response(wizard)

    try:
        await redis_client.delete(_state_key(wizard.auth.user.uid))
    except RedisError as e:
        logger.warning(f"Could not discard completed onboarding state: {e}")
    return _response(wizard, profile)


@router.delete("/", response_model=WizardResponse, summary="Start onboarding over")
async def reset_progress(
    wizard: OnboardingWizard = Depends(get_wizard),
    redis_client: redis.Redis = Depends(get_redis_client),
):
    try:
        await redis_client.delete(_state_key(wizard.auth.user.uid))
    except RedisError as e:
        logger.error(f"Redis error resetting onboarding state: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="A database error occurred while resetting onboarding progress.",
        )
    return _response(OnboardingWizard(wizard.auth))
