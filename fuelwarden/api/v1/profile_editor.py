import logging

import redis.asyncio as redis
from fastapi import APIRouter, Depends, HTTPException, status
from redis.exceptions import RedisError

from fuelwarden.api.deps import get_auth_context, get_redis_client
from fuelwarden.core.config import settings
from fuelwarden.core.exceptions import FuelWardenError, NotAuthenticatedError
from fuelwarden.models.onboarding_draft import OnboardingDraft, ProfileEditorState
from fuelwarden.schemas.profile_editor_request import ProfileEditorResponse, TabRequest
from fuelwarden.services.auth_context import AuthContext
from fuelwarden.services.profile_editor import ProfileEditor

logger = logging.getLogger(__name__)
router = APIRouter()


def _state_key(uid: str) -> str:
    return f"profile_editor:{uid}"


async def get_editor(
    context: AuthContext = Depends(get_auth_context),
    redis_client: redis.Redis = Depends(get_redis_client),
) -> ProfileEditor:
    """Rebuilds the user's editor from Redis and the stored profile."""
    if not context.is_authenticated:
        raise NotAuthenticatedError("Sign in to edit your profile.")
    uid = context.user.uid
    try:
        state_json = await redis_client.get(_state_key(uid))
    except RedisError as e:
        logger.error(f"Redis error loading profile editor state for '{uid}': {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="A database error occurred while loading unsaved profile edits.",
        )
    state = ProfileEditorState.model_validate_json(state_json) if state_json else None
    editor = ProfileEditor(context, state)
    await editor.load(refresh_draft=state is None)
    return editor


async def _save_state(redis_client: redis.Redis, editor: ProfileEditor):
    uid = editor.auth.user.uid
    try:
        await redis_client.set(
            _state_key(uid),
            editor.state.model_dump_json(by_alias=True),
            ex=settings.ONBOARDING_DRAFT_TTL_SECONDS,
        )
    except RedisError as e:
        logger.error(f"Redis error saving profile editor state for '{uid}': {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="A database error occurred while saving unsaved profile edits.",
        )


def _response(editor: ProfileEditor) -> ProfileEditorResponse:
    return ProfileEditorResponse(
        state=editor.state,
        profile=editor.profile,
        has_completed_onboarding=editor.auth.has_completed_onboarding,
    )


@router.get("/", response_model=ProfileEditorResponse, summary="Open the profile editor")
async def get_editor_state(editor: ProfileEditor = Depends(get_editor)):
    """Returns the stored profile together with any unsaved edits."""
    return _response(editor)


@router.put("/tab", response_model=ProfileEditorResponse, summary="Switch the active tab")
async def select_tab(
    payload: TabRequest,
    editor: ProfileEditor = Depends(get_editor),
    redis_client: redis.Redis = Depends(get_redis_client),
):
    editor.select_tab(payload.tab)
    await _save_state(redis_client, editor)
    return _response(editor)


@router.patch("/draft", response_model=ProfileEditorResponse, summary="Edit profile fields")
async def update_draft(
    payload: OnboardingDraft,
    editor: ProfileEditor = Depends(get_editor),
    redis_client: redis.Redis = Depends(get_redis_client),
):
    """Changes are held until the tab is saved. Only fields present in the body change."""
    editor.update(**payload.model_dump(exclude_unset=True))
    await _save_state(redis_client, editor)
    return _response(editor)


@router.post("/save", response_model=ProfileEditorResponse, summary="Save the active tab")
async def save_tab(
    editor: ProfileEditor = Depends(get_editor),
    redis_client: redis.Redis = Depends(get_redis_client),
):
    """
    Writes the active tab's fields, or the whole draft when there is no profile
    yet. Out-of-range fields are reported in ``state.errors`` and nothing is written.
    """
    try:
        await editor.save()
    except FuelWardenError:
        await _save_state(redis_client, editor)
        raise
    await _save_state(redis_client, editor)
    return _response(editor)


@router.delete("/", status_code=status.HTTP_204_NO_CONTENT, summary="Delete the profile")
async def delete_profile(
    editor: ProfileEditor = Depends(get_editor),
    redis_client: redis.Redis = Depends(get_redis_client),
):
    """Deletes the stored profile and discards unsaved edits. The account is kept."""
    await editor.delete()
    try:
        await redis_client.delete(_state_key(editor.auth.user.uid))
    except RedisError as e:
        logger.warning(f"Could not discard profile editor state: {e}")
