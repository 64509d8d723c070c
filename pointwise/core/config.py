"""
Application configuration using Pydantic Settings.

Values are read from environment variables (and an optional .env file).
"""

from functools import lru_cache
from typing import List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ===========================================
    # Environment
    # ===========================================
    ENVIRONMENT: Literal["local", "test"] = "local"
    DEBUG: bool = True

    # ===========================================
    # Database
    # ===========================================
    DATABASE_URL: str = "sqlite+aiosqlite:///./pointwise.db"

    # ===========================================
    # Auth
    # ===========================================
    # When disabled, every request acts as dev_user.
    AUTH_ENABLED: bool = False

    # Bearer secret expected by the batch trigger endpoint.
    # Empty means the endpoint is open (development only).
    CRON_SECRET: str = ""

    # ===========================================
    # Recurring tasks
    # ===========================================
    DEFAULT_TIME_ZONE: str = "UTC"
    RECURRING_JOB_ENABLED: bool = True
    RECURRING_JOB_HOUR: int = Field(0, ge=0, le=23)
    RECURRING_JOB_MINUTE: int = Field(15, ge=0, le=59)

    # ===========================================
    # Server
    # ===========================================
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    ALLOWED_ORIGINS: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"]
    )

    @property
    def is_test(self) -> bool:
        """Check if running in the test environment."""
        return self.ENVIRONMENT == "test"

    @property
    def is_local(self) -> bool:
        """Check if running in local environment."""
        return self.ENVIRONMENT == "local"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache ensures settings are loaded only once.
    """
    return Settings()
