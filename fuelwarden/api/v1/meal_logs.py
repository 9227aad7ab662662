import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from fuelwarden.api.deps import get_current_user, get_database_service
from fuelwarden.models.meal import MealLog, MealLogBase, MealLogUpdate
from fuelwarden.models.user import AuthUser
from fuelwarden.services.database import DatabaseService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/", response_model=List[MealLog], summary="Get the user's meal logs")
async def get_meal_logs(
    on_date: Optional[date] = Query(
        None, alias="date", description="Only logs for this day (YYYY-MM-DD)."
    ),
    current_user: AuthUser = Depends(get_current_user),
    database: DatabaseService = Depends(get_database_service),
):
    return await database.get_user_meal_logs(current_user.uid, on_date)


@router.post(
    "/",
    response_model=MealLog,
    status_code=status.HTTP_201_CREATED,
    summary="Log a meal",
)
async def create_meal_log(
    payload: MealLogBase,
    current_user: AuthUser = Depends(get_current_user),
    database: DatabaseService = Depends(get_database_service),
):
    """Totals that are not supplied are summed from the foods."""
    return await database.create_meal_log(
        {**payload.model_dump(), "user_id": current_user.uid}
    )


@router.patch("/{meal_log_id}", response_model=MealLog, summary="Update a meal log")
async def update_meal_log(
    meal_log_id: str,
    payload: MealLogUpdate,
    database: DatabaseService = Depends(get_database_service),
):
    return await database.update_meal_log(meal_log_id, payload)


@router.delete(
    "/{meal_log_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a meal log"
)
async def delete_meal_log(
    meal_log_id: str,
    current_user: AuthUser = Depends(get_current_user),
    database: DatabaseService = Depends(get_database_service),
):
    await database.delete_meal_log(meal_log_id, current_user.uid)
