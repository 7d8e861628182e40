"""
Application configuration using Pydantic Settings.

All values can be overridden through environment variables or a local .env file.
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
    LOG_LEVEL: str = "INFO"

    # ===========================================
    # Database
    # ===========================================
    DATABASE_URL: str = "sqlite+aiosqlite:///./plancal.db"

    # ===========================================
    # Content generation (LiteLLM)
    # ===========================================
    LITELLM_MODEL: str = "openai/gpt-4o-mini"

    # Custom endpoint (optional, for proxy servers)
    LITELLM_API_BASE: str = ""
    LITELLM_API_KEY: str = ""
    CONTENT_GENERATION_TIMEOUT_SECONDS: float = 120.0

    # ===========================================
    # Server
    # ===========================================
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    ALLOWED_ORIGINS: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"]
    )

    # ===========================================
    # Credits
    # ===========================================
    # When disabled, reserve/commit/release are no-ops (self-hosted installs).
    CREDIT_ENFORCEMENT_ENABLED: bool = True
    DEFAULT_CREDIT_ALLOCATION: int = 10
    REGENERATION_CREDIT_COST: int = 1

    # ===========================================
    # Planning
    # ===========================================
    PLAN_LOCK_TTL_SECONDS: int = 300
    DEFAULT_PLAN_DAYS: int = 21
    INDEFINITE_HORIZON_DAYS: int = 60

    # ===========================================
    # Background jobs
    # ===========================================
    OVERDUE_SWEEP_ENABLED: bool = True
    OVERDUE_SWEEP_CRON_HOUR: int = 3

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
