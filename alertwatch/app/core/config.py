"""
Environment configuration — single source of truth for all settings.

Uses pydantic-settings for type-safe config with .env file support.
All values have sensible defaults for local development; the only value
without a usable default is the OpenWeatherMap API key, whose absence
disables that feed instead of failing startup.

Usage:
    from alertwatch.app.core.config import settings
    print(settings.USGS_FEED_URL)
"""

from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application-wide settings loaded from environment variables or .env file.

    Precedence: env var > .env file > default value
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        populate_by_name=True,
    )

    # ── Application ──
    APP_NAME: str = "AlertWatch Disaster Aggregator"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development | staging | production
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"  # DEBUG | INFO | WARNING | ERROR | CRITICAL

    # ── Server ──
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # ── CORS ──
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]
    CORS_ALLOW_ALL: bool = True  # False in production

    # ── Upstream feeds ──
    USGS_FEED_URL: str = "https://earthquake.usgs.gov/earthquakes/feed/v1.0/summary"
    NOAA_ALERTS_URL: str = "https://api.weather.gov/alerts/active"
    NOAA_USER_AGENT: str = "(alertwatch, ops@alertwatch.local)"
    OWM_BASE_URL: str = "https://api.openweathermap.org/data/2.5"
    OPENWEATHERMAP_API_KEY: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("OPENWEATHERMAP_API_KEY", "OWM_API_KEY"),
    )

    # ── HTTP client ──
    HTTP_TIMEOUT_SECONDS: float = 10.0
    HTTP_MAX_RETRIES: int = 2  # extra attempts after the first one
    HTTP_RETRY_BACKOFF_SECONDS: float = 0.5  # wait = base * 2^(attempt-1)

    # ── Aggregation ──
    AGGREGATION_FAILURE_MODE: str = "partial"  # partial | strict
    DEFAULT_RADIUS_KM: float = 100.0
    DEFAULT_TIME_RANGE: str = "24h"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()


settings = get_settings()
