import logging
from typing import Optional

from fastapi import APIRouter, Depends, status

from fuelwarden.api.deps import get_current_user, get_database_service
from fuelwarden.models.activity_schedule import (
    ActivitySchedule,
    ActivityScheduleBase,
    ActivityScheduleUpdate,
)
from fuelwarden.models.user import AuthUser
from fuelwarden.services.database import DatabaseService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get(
    "/",
    response_model=Optional[ActivitySchedule],
    summary="Get the user's weekly activity schedule",
)
async def get_activity_schedule(
    current_user: AuthUser = Depends(get_current_user),
    database: DatabaseService = Depends(get_database_service),
):
    return await database.get_activity_schedule(current_user.uid)


@router.put(
    "/",
    response_model=ActivitySchedule,
    summary="Create or replace the weekly activity schedule",
)
async def upsert_activity_schedule(
    payload: ActivityScheduleBase,
    current_user: AuthUser = Depends(get_current_user),
    database: DatabaseService = Depends(get_database_service),
):
    """Items without an activity name are dropped before saving."""
    return await database.upsert_activity_schedule(
        {**payload.model_dump(), "user_id": current_user.uid}
    )


@router.patch("/{schedule_id}", response_model=ActivitySchedule, summary="Update the schedule")
async def update_activity_schedule(
    schedule_id: str,
    payload: ActivityScheduleUpdate,
    database: DatabaseService = Depends(get_database_service),
):
    return await database.update_activity_schedule(schedule_id, payload)


@router.delete(
    "/{schedule_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete the schedule",
)
async def delete_activity_schedule(
    schedule_id: str,
    current_user: AuthUser = Depends(get_current_user),
    database: DatabaseService = Depends(get_database_service),
):
    await database.delete_activity_schedule(schedule_id, current_user.uid)
