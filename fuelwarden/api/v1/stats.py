from fastapi import APIRouter, Depends

from fuelwarden.api.deps import get_current_user, get_database_service
from fuelwarden.models.user import AuthUser
from fuelwarden.schemas.user_stats import UserStats
from fuelwarden.services.database import DatabaseService

router = APIRouter()


@router.get("/", response_model=UserStats, summary="Get counts of the user's data")
async def get_user_stats(
    current_user: AuthUser = Depends(get_current_user),
    database: DatabaseService = Depends(get_database_service),
):
    return await database.get_user_stats(current_user.uid)
