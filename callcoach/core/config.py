"""
Interview Call Coach - Configuration Management.

Uses pydantic-settings for environment variable loading with validation.
"""

import logging
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # API Keys
    # -------------------------------------------------------------------------
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-2.5-flash"

    # -------------------------------------------------------------------------
    # Voice Provider (call transport + call-data store)
    # -------------------------------------------------------------------------
    VAPI_API_KEY: str = ""
    VAPI_BASE_URL: str = "https://api.vapi.ai"
    VAPI_ASSISTANT_ID: str = ""
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # -------------------------------------------------------------------------
    # Call Session Timing
    # -------------------------------------------------------------------------
    CALL_ID_PROBE_DELAY_SECONDS: float = 1.0  # Wait before the fallback call-id probe
    CALL_ID_PROBE_TIMEOUT_SECONDS: float = 2.0
    RECONCILE_SETTLING_DELAY_SECONDS: float = 3.0  # Provider write lag after call end
    FINISHED_RESET_DELAY_SECONDS: float = 2.0  # Finished -> Idle
    RECORD_NOT_FOUND_RETRIES: int = 2

    # -------------------------------------------------------------------------
    # Feedback Generation
    # -------------------------------------------------------------------------
    FEEDBACK_MAX_RETRIES: int = 3
    FEEDBACK_INITIAL_BACKOFF_SECONDS: float = 2.0

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    DEBUG_MODE: bool = False

    # -------------------------------------------------------------------------
    # Paths
    # -------------------------------------------------------------------------
    CALL_LOG_DIR: str = "data/call_logs"
    CALL_LOG_MAX_AGE_HOURS: int = 24 * 30


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def configure_logging() -> None:
    """Configure application logging based on settings."""
    settings = get_settings()

    log_format = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"

    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL),
        format=log_format,
        datefmt=date_format,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
