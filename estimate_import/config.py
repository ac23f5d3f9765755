"""Configuration for the estimate import service"""

from pathlib import Path
from typing import List

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from config.shared_settings import shared_settings

ROOT_DIR = Path(__file__).resolve().parents[1]
SERVICE_DIR = Path(__file__).resolve().parent


class Settings(BaseSettings):
    """Configuration for the estimate import service."""

    # Service metadata
    SERVICE_NAME: str = shared_settings.IMPORT_SERVICE_NAME
    SERVICE_VERSION: str = shared_settings.IMPORT_SERVICE_VERSION
    APP_HOST: str = Field(
        default=shared_settings.IMPORT_SERVICE_HOST,
        validation_alias=AliasChoices("HOST", "APP_HOST"),
    )
    APP_PORT: int = Field(
        default=shared_settings.IMPORT_SERVICE_PORT,
        validation_alias=AliasChoices("PORT", "APP_PORT"),
    )
    APP_ENV: str = shared_settings.APP_ENV
    DEBUG: bool = Field(
        default=shared_settings.IMPORT_DEBUG,
        validation_alias=AliasChoices("DEBUG", "APP_DEBUG"),
    )

    # Logging
    LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ORIGINS: str = shared_settings.IMPORT_CORS_ORIGINS
    CORS_ALLOW_CREDENTIALS: bool = True

    # Uploads
    ALLOWED_EXTENSIONS: List[str] = Field(default=["xml", "bms", "ems", "txt"])
    MAX_FILE_SIZE_MB: int = Field(
        default=shared_settings.IMPORT_MAX_FILE_SIZE_MB,
        validation_alias="MAX_FILE_SIZE_MB",
    )
    IMPORT_RETENTION_DAYS: int = shared_settings.IMPORT_RETENTION_DAYS
    MAX_BATCH_FILES: int = Field(
        default=shared_settings.IMPORT_MAX_BATCH_FILES,
        ge=1,
        validation_alias=AliasChoices("MAX_BATCH_FILES", "IMPORT_MAX_BATCH_FILES"),
    )

    # Tenant scoping
    DEV_MODE: bool = Field(
        default=shared_settings.DEV_MODE,
        validation_alias=AliasChoices("DEV_MODE", "IMPORT_DEV_MODE"),
    )
    DEV_SHOP_ID: str = shared_settings.DEV_SHOP_ID
    MIN_AUTO_CREATE_SCORE: int = Field(
        default=shared_settings.MIN_AUTO_CREATE_SCORE,
        ge=0,
        le=100,
        validation_alias="MIN_AUTO_CREATE_SCORE",
    )

    # Storage
    STORE_BACKEND: str = Field(
        default=shared_settings.STORE_BACKEND or "memory",
        validation_alias=AliasChoices("STORE_BACKEND", "IMPORT_STORE_BACKEND"),
    )
    MONGODB_URI: str = Field(
        default=shared_settings.MONGODB_URI,
        validation_alias=AliasChoices("MONGODB_URI", "MONGO_URI"),
    )
    DATABASE_NAME: str = Field(
        default=shared_settings.DATABASE_NAME,
        validation_alias=AliasChoices("DATABASE_NAME", "MONGO_DB"),
    )
    CUSTOMER_COLLECTION_NAME: str = shared_settings.CUSTOMER_COLLECTION_NAME
    VEHICLE_COLLECTION_NAME: str = shared_settings.VEHICLE_COLLECTION_NAME
    JOB_COLLECTION_NAME: str = shared_settings.JOB_COLLECTION_NAME

    model_config = SettingsConfigDict(
        env_file=[str(SERVICE_DIR / ".env"), str(ROOT_DIR / ".env")],
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="allow",
    )

    @property
    def cors_origins_list(self) -> List[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def max_file_size_bytes(self) -> int:
        return self.MAX_FILE_SIZE_MB * 1024 * 1024


settings = Settings()
