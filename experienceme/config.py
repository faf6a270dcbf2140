"""
Configuration and settings for the discovery service.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    log_level: str = Field(default="INFO", env="LOG_LEVEL")

    # Platform Postgres (row data lives on the hosted platform)
    database_url: Optional[str] = Field(default=None, env="DATABASE_URL")

    # Platform auth REST API
    supabase_url: Optional[str] = Field(default=None, env="SUPABASE_URL")
    supabase_anon_key: Optional[str] = Field(default=None, env="SUPABASE_ANON_KEY")

    # S3-compatible storage exposed by the platform
    storage_endpoint: Optional[str] = Field(default=None, env="STORAGE_ENDPOINT")
    storage_region: Optional[str] = Field(default=None, env="STORAGE_REGION")
    storage_bucket: str = Field(default="experience-images", env="STORAGE_BUCKET")
    storage_access_key_id: Optional[str] = Field(
        default=None, env="STORAGE_ACCESS_KEY_ID"
    )
    storage_secret_access_key: Optional[str] = Field(
        default=None, env="STORAGE_SECRET_ACCESS_KEY"
    )
    storage_public_base_url: Optional[str] = Field(
        default=None, env="STORAGE_PUBLIC_BASE_URL"
    )

    # Per-browser session cookie (auth token, visitor id, dedup timestamps)
    session_secret: str = Field(
        default="dev-only-session-secret", env="SESSION_SECRET"
    )
    session_max_age: int = Field(default=60 * 60 * 24 * 7)

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False, env="USE_IN_MEMORY_BACKENDS"
    )

    metrics_cooldown_minutes: int = Field(default=30)
    finder_match_limit: int = Field(default=3)
    max_upload_images: int = Field(default=5)
    max_upload_bytes: int = Field(default=5 * 1024 * 1024)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
