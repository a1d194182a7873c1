"""
Environment configuration — single source of truth for all settings.

Uses pydantic-settings for type-safe config with .env file support.
All values have sensible defaults for local development.

Usage:
    from backend.app.core.config import settings
    print(settings.CACHE_TTL_SECONDS)
"""

from __future__ import annotations

from functools import lru_cache
from typing import List

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
    )

    # ── Application ──
    APP_NAME: str = "Sumatra Hazard Fusion"
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

    # ── Monitored region (inclusive bounding box) ──
    REGION_NAME: str = "Sumatra"
    REGION_MIN_LAT: float = -6.5
    REGION_MAX_LAT: float = 6.0
    REGION_MIN_LNG: float = 95.0
    REGION_MAX_LNG: float = 109.0

    # ── Aggregation ──
    CACHE_TTL_SECONDS: int = 300  # freshness window (5 min)
    FEED_TIMEOUT_SECONDS: float = 15.0  # per upstream call
    INCLUDE_DEMO_POINTS: bool = True
    # Most trusted first. Unlisted sources tie below every listed one, and
    # a tie keeps the first-seen duplicate.
    SOURCE_PRIORITY: List[str] = ["BMKG"]

    # ── External feeds ──
    BMKG_LATEST_URL: str = "https://data.bmkg.go.id/DataMKG/TEWS/gempaterkini.json"
    BMKG_FELT_URL: str = "https://data.bmkg.go.id/DataMKG/TEWS/gempadirasakan.json"
    EONET_EVENTS_URL: str = "https://eonet.gsfc.nasa.gov/api/v3/events"
    USGS_FEED_BASE: str = "https://earthquake.usgs.gov/earthquakes/feed/v1.0/summary"
    USGS_FEED_NAME: str = "significant_month"
    OPEN_METEO_FORECAST_URL: str = "https://api.open-meteo.com/v1/forecast"
    HTTP_USER_AGENT: str = "SumatraHazardFusion/1.0"

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
