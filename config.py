"""
Configuration - Environment Variables Management

Settings are loaded from the environment (and an optional ``.env`` file) with
pydantic-settings.

Usage:
    from config import get_settings

    settings = get_settings()
    store = build_store(settings)
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from scrapers.carbon import CARBON_URL, META_MARKER
from scrapers.common import DEFAULT_TIMEOUT_SECONDS, USER_AGENT as DEFAULT_USER_AGENT


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore")

    # Source
    SOURCE_URL: str = Field(default=CARBON_URL)
    SOURCE_MARKER: str = Field(default=META_MARKER)
    USER_AGENT: str = Field(default=DEFAULT_USER_AGENT)
    ACCEPT: str = Field(default="text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8")
    ACCEPT_LANGUAGE: str = Field(default="en-US,en;q=0.9")
    # Session cookie for the source site, if it requires one. Never commit it.
    SOURCE_COOKIE: str | None = Field(default=None)
    FETCH_TIMEOUT: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)

    # Scheduler (no data is published on weekends)
    UPDATE_SCHEDULE_CRON: str = Field(default="0 0,12 * * *")
    SCHEDULER_ENABLED: bool = Field(default=True)
    RUN_ON_STARTUP: bool = Field(default=True)

    # Storage
    STORAGE_BACKEND: Literal["file", "memory"] = Field(default="file")
    DATA_DIR: str = Field(default="data")
    SNAPSHOT_FILE: str = Field(default="carbon_prices.json")
    MAX_RECORDS: int = Field(default=30, ge=1)

    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    LOG_DIR: str | None = Field(default="logs")

    # API
    API_HOST: str = Field(default="0.0.0.0")
    API_PORT: int = Field(default=10000)
    APP_NAME: str = Field(default="carbon-price-tracker")
    APP_VERSION: str = Field(default="1.0.0")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
