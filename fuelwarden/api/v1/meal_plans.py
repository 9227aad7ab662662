import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from fuelwarden.api.deps import get_current_user, get_database_service
from fuelwarden.models.meal import MealPlan, MealPlanBase, MealPlanUpdate
from fuelwarden.models.user import AuthUser
from fuelwarden.services.database import DatabaseService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/", response_model=List[MealPlan], summary="Get the user's meal plans")
async def get_meal_plans(
    on_date: Optional[date] = Query(
        None, alias="date", description="Only plans for this day (YYYY-MM-DD)."
    ),
    current_user: AuthUser = Depends(get_current_user),
    database: DatabaseService = Depends(get_database_service),
):
    return await database.get_user_meal_plans(current_user.uid, on_date)


@router.post(
    "/",
    response_model=MealPlan,
    status_code=status.HTTP_201_CREATED,
    summary="Plan a day of meals",
)
async def create_meal_plan(
    payload: MealPlanBase,
    current_user: AuthUser = Depends(get_current_user),
    database: DatabaseService = Depends(get_database_service),
):
    """Totals that are not supplied are summed over every planned meal."""
    return await database.create_meal_plan(
        {**payload.model_dump(), "user_id": current_user.uid}
    )


@router.patch("/{meal_plan_id}", response_model=MealPlan, summary="Update a meal plan")
async def update_meal_plan(
    meal_plan_id: str,
    payload: MealPlanUpdate,
    database: DatabaseService = Depends(get_database_service),
):
    return await database.update_meal_plan(meal_plan_id, payload)


@router.delete(
    "/{meal_plan_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a meal plan"
)
async def delete_meal_plan(
    meal_plan_id: str,
    current_user: AuthUser = Depends(get_current_user),
    database: DatabaseService = Depends(get_database_service),
):
    await database.delete_meal_plan(meal_plan_id, current_user.uid)
