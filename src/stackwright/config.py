"""
Application settings and configuration.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="STACKWRIGHT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Environment the blueprint is instantiated for
    environment: str = "dev"

    # State store
    state_dir: Path = Path(".stackwright")

    # Backend
    backend: Literal["memory", "http"] = "memory"
    backend_url: str | None = None
    backend_token: str | None = None
    backend_timeout: float = 30.0

    # Retry policy for backend calls
    max_retries: int = Field(default=3, ge=1)
    retry_backoff: float = Field(default=2.0, gt=0)

    # Execution
    concurrency: int = Field(default=4, ge=1)

    log_level: str = "WARNING"
    log_format: Literal["json", "console"] = "json"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
