import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from fuelwarden.api.deps import get_database_service
from fuelwarden.services.database import DatabaseService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/database", summary="Probe each collection")
async def check_database(database: DatabaseService = Depends(get_database_service)):
    """
    Reads one document from every collection. Responds 503 with the same body
    when any collection is unreachable.
    """
    result = await database.test_connection()
    if not result["success"]:
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=result)
    return result
