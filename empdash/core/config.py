"""Application configuration loaded from environment variables."""

import logging
from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Allowed URL schemes for DATABASE_URL (module-level so validators can use it).
VALID_DATABASE_URL_PREFIXES = (
    "postgresql://",
    "postgresql+psycopg2://",
    "postgres://",
    "postgres+psycopg2://",
    "sqlite://",
)


class Settings(BaseSettings):
    """Validated application settings from env and optional .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    APP_ENV: Literal["dev", "prod"] = "dev"
    DEBUG: bool = False
    API_V1_PREFIX: str = "/api/v1"
    LOG_LEVEL: str = "INFO"

    # Where identity state lives: "database" persists in store_entries, "memory" is per-process
    STORE_BACKEND: Literal["database", "memory"] = "database"
    DATABASE_URL: str = "sqlite:///./empdash.db"

    # Account rules
    PASSWORD_MIN_LENGTH: int = 6
    USERNAME_MIN_LENGTH: int = 3
    # Login notifications kept (newest first)
    LOGIN_HISTORY_LIMIT: int = 20

    @field_validator("DATABASE_URL")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("DATABASE_URL must be set and non-empty")
        if not any(v.startswith(prefix) for prefix in VALID_DATABASE_URL_PREFIXES):
            raise ValueError(
                "DATABASE_URL must be a PostgreSQL or SQLite URL (e.g. postgresql:// or sqlite:///)"
            )
        return v.strip()

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = (v or "").strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError("LOG_LEVEL must be a logging level name (e.g. INFO, DEBUG)")
        return level

    @field_validator("PASSWORD_MIN_LENGTH")
    @classmethod
    def validate_password_min_length(cls, v: int) -> int:
        if v < 1 or v > 128:
            raise ValueError("PASSWORD_MIN_LENGTH must be between 1 and 128")
        return v

    @field_validator("USERNAME_MIN_LENGTH")
    @classmethod
    def validate_username_min_length(cls, v: int) -> int:
        if v < 1 or v > 255:
            raise ValueError("USERNAME_MIN_LENGTH must be between 1 and 255")
        return v

    @field_validator("LOGIN_HISTORY_LIMIT")
    @classmethod
    def validate_login_history_limit(cls, v: int) -> int:
        if v < 1 or v > 1000:
            raise ValueError("LOGIN_HISTORY_LIMIT must be between 1 and 1000")
        return v


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance (safe to call from dependencies)."""
    return Settings()


settings = get_settings()
