import logging
from typing import Optional

from fastapi import APIRouter, Depends, status

from fuelwarden.api.deps import get_current_user, get_database_service
from fuelwarden.models.profile import UserProfile, UserProfileBase, UserProfileUpdate
from fuelwarden.models.user import AuthUser
from fuelwarden.services.database import DatabaseService

logger = logging.getLogger(__name__)
router = APIRouter()


def _with_owner(payload: UserProfileBase, current_user: AuthUser) -> dict:
    return {**payload.model_dump(), "user_id": current_user.uid}


@router.get("/", response_model=Optional[UserProfile], summary="Get the user's profile")
async def get_profile(
    current_user: AuthUser = Depends(get_current_user),
    database: DatabaseService = Depends(get_database_service),
):
    """Returns null when the user has not created a profile yet."""
    return await database.get_user_profile(current_user.uid)


@router.post(
    "/",
    response_model=UserProfile,
    status_code=status.HTTP_201_CREATED,
    summary="Create the user's profile",
)
async def create_profile(
    payload: UserProfileBase,
    current_user: AuthUser = Depends(get_current_user),
    database: DatabaseService = Depends(get_database_service),
):
    return await database.create_user_profile(_with_owner(payload, current_user))


@router.put("/", response_model=UserProfile, summary="Create or replace the user's profile")
async def upsert_profile(
    payload: UserProfileBase,
    current_user: AuthUser = Depends(get_current_user),
    database: DatabaseService = Depends(get_database_service),
):
    return await database.upsert_user_profile(_with_owner(payload, current_user))


@router.patch("/{profile_id}", response_model=UserProfile, summary="Update profile fields")
async def update_profile(
    profile_id: str,
    payload: UserProfileUpdate,
    database: DatabaseService = Depends(get_database_service),
):
    return await database.update_user_profile(profile_id, payload)


@router.delete(
    "/{profile_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete the profile"
)
async def delete_profile(
    profile_id: str,
    current_user: AuthUser = Depends(get_current_user),
    database: DatabaseService = Depends(get_database_service),
):
    await database.delete_user_profile(profile_id, current_user.uid)
