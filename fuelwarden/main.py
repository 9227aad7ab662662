import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from fuelwarden.api.deps import get_redis_client
from fuelwarden.api.v1 import (
    activity_schedule,
    auth as auth_v1,
    health,
    meal_logs,
    meal_plans,
    onboarding,
    profile,
    profile_editor,
    stats,
)
from fuelwarden.core.config import settings
from fuelwarden.core.exceptions import AuthError, FuelWardenError, ValidationError
from fuelwarden.db.firebase import initialize_firebase

logging.basicConfig(
    level=settings.LOG_LEVEL, format="%(asctime)s - %(levelname)s - %(message)s"
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manages application startup and shutdown events.

    Firebase is initialized at startup; the shared Redis pool is closed on
    shutdown.
    """
    logging.info("Application startup...")
    try:
        initialize_firebase()
    except Exception as e:
        logging.critical(f"Failed to initialize resources: {e}")
        raise

    yield

    logging.info("Application shutdown...")
    await get_redis_client().aclose()


app = FastAPI(
    lifespan=lifespan,
    title="FuelWarden API",
    version="1.0.0",
    description="API for nutrition profiles, meal logs, meal plans and training schedules.",
)


@app.exception_handler(FuelWardenError)
async def fuelwarden_exception_handler(request: Request, exc: FuelWardenError):
    """Renders application errors with the status code their type carries."""
    content = {
        "error": exc.__class__.__name__,
        "message": exc.message,
        "path": str(request.url),
    }
    if isinstance(exc, ValidationError):
        content["field"] = exc.field
    if isinstance(exc, AuthError):
        content["code"] = exc.code
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logging.error(f"{exc.__class__.__name__} for request {request.url}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """
    Catches all unhandled exceptions and returns a generic 500 error.
    """
    logging.error(
        f"Unhandled exception for request {request.url}: {exc}", exc_info=True
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "An internal server error occurred."},
    )


app.include_router(auth_v1.router, prefix="/api/v1/auth", tags=["auth"])
app.include_router(profile.router, prefix="/api/v1/profile", tags=["profile"])
app.include_router(
    profile_editor.router, prefix="/api/v1/profileEditor", tags=["profile"]
)
app.include_router(meal_logs.router, prefix="/api/v1/mealLogs", tags=["Meal Logs"])
app.include_router(meal_plans.router, prefix="/api/v1/mealPlans", tags=["Meal Plans"])
app.include_router(
    activity_schedule.router, prefix="/api/v1/activitySchedule", tags=["Activity Schedule"]
)
app.include_router(stats.router, prefix="/api/v1/stats", tags=["stats"])
app.include_router(onboarding.router, prefix="/api/v1/onboarding", tags=["onboarding"])
app.include_router(health.router, prefix="/api/v1/health", tags=["health"])


@app.get("/", tags=["Root"])
def read_root():
    """
    Root endpoint that provides a welcome message.

    Useful for simple health checks to confirm the API is running.
    """
    return {"message": "Welcome to the FuelWarden API"}
