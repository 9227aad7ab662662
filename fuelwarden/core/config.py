from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings.
    """

    FIREBASE_PROJECT_ID: str
    FIREBASE_WEB_API_KEY: str
    GOOGLE_APPLICATION_CREDENTIALS: Optional[str] = None
    FIRESTORE_DATABASE_ID: str = "fuelwarden"
    REDIS_URL: str = "redis://localhost:6379/0"
    ONBOARDING_DRAFT_TTL_SECONDS: int = 86400
    IDENTITY_TIMEOUT_SECONDS: float = 10.0
    AUTH_CACHE_TTL_SECONDS: int = 3600
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env")


settings = Settings()
