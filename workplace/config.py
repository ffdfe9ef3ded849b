"""Application configuration settings."""
from __future__ import annotations

import os
from functools import lru_cache

from pydantic import BaseModel, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Runtime toggles -----------------------------------------------------
# Execution environment: "dev" | "test" | "staging" | "prod"
ENV = os.getenv("WORKPLACE_ENV", "dev").lower()

LOCK_BACKENDS = {"auto", "advisory", "local"}


class Settings(BaseSettings):
    """Environment configuration for the workplace registry backend."""

    app_env: str = ENV
    database_url: str = "sqlite:///workplace.db"
    ALLOW_DB_CREATE_ALL: bool = False
    LOG_LEVEL: str = "INFO"
    CORS_ALLOW_ORIGINS: list[str] = ["http://localhost:3000"]

    # --- Consistency engine ------------------------------------------------
    HISTORY_INTERVAL_MINUTES: int = 15
    LOCK_BACKEND: str = "auto"

    # --- Image storage -----------------------------------------------------
    IMAGE_STORAGE_ROOT: str = "./var/images"
    IMAGE_PUBLIC_BASE_URL: str = "/images"
    IMAGE_MAX_BYTES: int = 5 * 1024 * 1024
    IMAGE_ALLOWED_MIME_TYPES: list[str] = ["image/png", "image/jpeg", "image/webp", "image/svg+xml"]

    # --- Post-commit cleanup -----------------------------------------------
    CLEANUP_SWEEP_ENABLED: bool = False
    CLEANUP_SWEEP_MINUTES: int = 30
    CLEANUP_SWEEP_GRACE_MINUTES: int = 10

    TIMEZONE_CACHE_TTL_SECONDS: int = 3600

    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="", env_file_encoding="utf-8"
    )

    @field_validator("LOCK_BACKEND")
    @classmethod
    def _check_lock_backend(cls, value: str) -> str:
        """Reject unknown lock backends early instead of at first mutation."""

        cleaned = value.strip().lower()
        if cleaned not in LOCK_BACKENDS:
            raise ValueError(f"LOCK_BACKEND must be one of {sorted(LOCK_BACKENDS)}")
        return cleaned

    @field_validator("HISTORY_INTERVAL_MINUTES")
    @classmethod
    def _check_interval(cls, value: int) -> int:
        if value <= 0 or 1440 % value != 0:
            raise ValueError("HISTORY_INTERVAL_MINUTES must be a positive divisor of 1440")
        return value


class AppInfo(BaseModel):
    name: str = "workplace-registry"
    version: str = "0.1.0"


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings."""

    return Settings()


__all__ = [
    "ENV",
    "LOCK_BACKENDS",
    "Settings",
    "AppInfo",
    "get_settings",
]
