"""Shared configuration definitions for the estimate import service."""

from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict  # type: ignore[import-not-found]


class SharedSettings(BaseSettings):
    """Global defaults and environment-driven overrides."""

    # Environment
    APP_ENV: str = "development"

    # Estimate import service defaults
    IMPORT_SERVICE_NAME: str = "Collision Estimate Import Agent"
    IMPORT_SERVICE_VERSION: str = "1.0.0"
    IMPORT_SERVICE_HOST: str = "0.0.0.0"
    IMPORT_SERVICE_PORT: int = 8210
    IMPORT_DEBUG: bool = True
    IMPORT_CORS_ORIGINS: str = "*"
    IMPORT_MAX_FILE_SIZE_MB: int = 10
    IMPORT_RETENTION_DAYS: int = 30
    IMPORT_MAX_BATCH_FILES: int = 10

    # Tenant scoping
    DEV_MODE: bool = False
    DEV_SHOP_ID: str = "00000000-0000-4000-8000-000000000001"

    # Auto-creation gate (completeness score 0-100)
    MIN_AUTO_CREATE_SCORE: int = 0

    # MongoDB defaults
    MONGODB_URI: str = "mongodb://localhost:27017/"
    DATABASE_NAME: str = "CollisionRepair"
    CUSTOMER_COLLECTION_NAME: str = "customers"
    VEHICLE_COLLECTION_NAME: str = "vehicles"
    JOB_COLLECTION_NAME: str = "jobs"

    # Optional store backend override ("memory" or "mongo")
    STORE_BACKEND: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parent.parent / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="allow",
    )


shared_settings = SharedSettings()
