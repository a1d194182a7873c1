"""
weather_service.py — Short-range precipitation context from Open-Meteo.

Fetches the daily precipitation forecast for a coordinate from the
Open-Meteo API (free, no API key required) and reduces it to the two
values the fusion engine uses:

    text         — short human-readable summary shown on the map
    rainfall_mm  — today's forecast precipitation sum

Open-Meteo API Reference:
    https://open-meteo.com/en/docs

Request:
    GET /v1/forecast?latitude=..&longitude=..&daily=precipitation_sum
        &timezone=auto&forecast_days=1

Response (trimmed):
    {
        "daily": {
            "time": ["2026-10-19"],
            "precipitation_sum": [23.4]
        }
    }

Uses
====
    1. Flood-risk generator — one forecast per population centre; heavy
       rain turns into a synthetic FLOOD point (sources/weather_flood.py).
    2. Per-point enrichment — FIRE / FLOOD / LANDSLIDE points without a
       forecast get one during aggregation.

Error Handling Strategy
========================
    Network errors, timeouts, HTTP errors, missing or null fields
        → `Forecast.unavailable()`: placeholder text, rainfall 0.0
        → logged at WARNING, never raised

    0.0 is the conservative fallback: a failed forecast must not invent
    rain and push a point into a higher risk band.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

import httpx

from backend.app.core.config import settings
from backend.app.core.errors import FeedError
from backend.app.ingestion.http_client import fetch_json

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

FEED_NAME = "open-meteo"
FORECAST_MODEL_LABEL = "NOAA GFS"
UNAVAILABLE_TEXT = "Forecast unavailable."


class FetchStatus(str, Enum):
    """Outcome of a forecast fetch."""
    SUCCESS = "success"
    NO_DATA = "no_data"   # reachable, but no usable precipitation value
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Forecast:
    text: str
    rainfall_mm: float
    status: FetchStatus = FetchStatus.SUCCESS

    @property
    def available(self) -> bool:
        return self.status == FetchStatus.SUCCESS

    @classmethod
    def unavailable(cls, status: FetchStatus = FetchStatus.FAILED) -> "Forecast":
        return cls(text=UNAVAILABLE_TEXT, rainfall_mm=0.0, status=status)


def format_forecast_text(rainfall_mm: float) -> str:
    """
    >>> format_forecast_text(12.3)
    'Precipitation (NOAA GFS): 12.3mm'
    """
    return f"Precipitation ({FORECAST_MODEL_LABEL}): {rainfall_mm:g}mm"


def parse_forecast_response(data: Dict[str, Any]) -> Forecast:
    """Reduce an Open-Meteo daily response to today's precipitation."""
    daily = data.get("daily") or {}
    if not isinstance(daily, dict):
        return Forecast.unavailable(FetchStatus.NO_DATA)
    values = daily.get("precipitation_sum") or []
    if not isinstance(values, (list, tuple)) or not values or values[0] is None:
        return Forecast.unavailable(FetchStatus.NO_DATA)

    try:
        rainfall = float(values[0])
    except (TypeError, ValueError):
        return Forecast.unavailable(FetchStatus.NO_DATA)

    rainfall = max(0.0, rainfall)
    return Forecast(text=format_forecast_text(rainfall), rainfall_mm=rainfall)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class WeatherService:
    """
    Precipitation forecasts for single coordinates.

    Usage:
        service = WeatherService(client)
        fc = await service.forecast(-0.9471, 100.4172)
        print(fc.text, fc.rainfall_mm)
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.client = client
        self.url = url or settings.OPEN_METEO_FORECAST_URL
        self.timeout = timeout or settings.FEED_TIMEOUT_SECONDS

    async def forecast(self, latitude: float, longitude: float) -> Forecast:
        """Today's precipitation for a coordinate. Never raises."""
        params = {
            "latitude": round(latitude, 4),
            "longitude": round(longitude, 4),
            "daily": "precipitation_sum",
            "timezone": "auto",
            "forecast_days": 1,
        }
        try:
            data = await fetch_json(
                self.client, self.url,
                feed=FEED_NAME, params=params, timeout=self.timeout,
            )
        except FeedError as e:
            logger.warning(
                "Forecast failed for lat=%.4f, lon=%.4f: %s",
                latitude, longitude, e.message,
                extra={"lat": latitude, "lon": longitude},
            )
            return Forecast.unavailable()

        if not isinstance(data, dict):
            logger.warning("Unexpected forecast payload type: %s", type(data).__name__)
            return Forecast.unavailable(FetchStatus.NO_DATA)

        result = parse_forecast_response(data)
        logger.debug(
            "Forecast lat=%.4f, lon=%.4f → %s",
            latitude, longitude, result.text,
        )
        return result
