"""
weather_flood.py — Synthetic flood-risk points from precipitation forecasts.

For every population centre, today's forecast precipitation is fetched
(concurrently). Heavy rain becomes a FLOOD point at the centre:

    rainfall > 50 mm/day  → Critical
    rainfall > 20 mm/day  → High
    otherwise             → no point

Points are synthesised at pre-vetted city coordinates, so they skip the
region filter. They already carry `forecast` and `details.rainfall_mm`,
which keeps per-point enrichment from fetching the same forecast twice.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, List, Optional, Sequence

from backend.app.fusion.impact import POPULATION_CENTERS, PopulationCenter
from backend.app.fusion.models import (
    HazardDetails,
    HazardPoint,
    HazardType,
    Severity,
    Source,
)
from backend.app.ingestion.sources.base import SourceAdapter
from backend.app.ingestion.weather_service import Forecast, WeatherService
from backend.app.spatial.region import Coordinate

logger = logging.getLogger(__name__)

FLOOD_WATCH_MM = 20.0
FLOOD_CRITICAL_MM = 50.0


def _slug(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def flood_point(center: PopulationCenter, forecast: Forecast) -> Optional[HazardPoint]:
    """FLOOD point for a centre, or None below the watch threshold."""
    rain = forecast.rainfall_mm
    if not forecast.available or rain <= FLOOD_WATCH_MM:
        return None

    severity = Severity.CRITICAL if rain > FLOOD_CRITICAL_MM else Severity.HIGH
    return HazardPoint(
        id=f"weather-flood-{_slug(center.name)}",
        location_name=center.name,
        type=HazardType.FLOOD,
        coordinates=Coordinate(center.latitude, center.longitude),
        severity=severity,
        description=(
            f"Flood risk from forecast precipitation of {rain:g}mm/day "
            f"over {center.name}."
        ),
        source=Source.OPEN_METEO,
        sensor_label="NOAA GFS",
        forecast=forecast.text,
        details=HazardDetails(rainfall_mm=rain),
    )


class WeatherFloodSource(SourceAdapter):
    """Flood watch points for population centres under heavy rain."""

    name = Source.OPEN_METEO.value

    def __init__(
        self,
        client,
        *,
        weather: Optional[WeatherService] = None,
        centers: Sequence[PopulationCenter] = POPULATION_CENTERS,
        **kwargs: Any,
    ):
        super().__init__(client, **kwargs)
        self.weather = weather or WeatherService(client, timeout=self.timeout)
        self.centers = centers

    async def _fetch(self) -> List[HazardPoint]:
        forecasts = await asyncio.gather(
            *(self.weather.forecast(c.latitude, c.longitude) for c in self.centers)
        )
        points = []
        for center, fc in zip(self.centers, forecasts):
            point = flood_point(center, fc)
            if point is not None:
                logger.info(
                    "Flood watch for %s: %.1fmm (%s)",
                    center.name, fc.rainfall_mm, point.severity.value,
                    extra={"source": self.name},
                )
                points.append(point)
        return points
