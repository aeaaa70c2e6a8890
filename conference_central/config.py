"""
Configuration and settings for the conference backend.
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
    log_level: str = Field(default="INFO")

    # Database (any SQLAlchemy URL; Postgres expected in production)
    database_url: Optional[str] = Field(default=None)
    db_max_attempts: int = Field(default=3, ge=1)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    # Queue and cache (Redis)
    redis_url: Optional[str] = Field(default=None)
    redis_queue_key: str = Field(default="conference:tasks")
    redis_cache_prefix: str = Field(default="conference")

    # Identity headers set by the authenticating front proxy
    user_id_header: str = Field(default="X-User-Id")
    user_email_header: str = Field(default="X-User-Email")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
