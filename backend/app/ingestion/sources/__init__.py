"""
sources — Per-feed hazard adapters.

Each adapter module exposes a `SourceAdapter` subclass:
    await adapter.fetch() → List[HazardPoint]

`fetch` never raises. A failing feed contributes an empty list and a
failed `SourceReport`; orchestration lives in fusion/aggregator.
"""

from backend.app.ingestion.sources.base import SourceAdapter
from backend.app.ingestion.sources.bmkg import BMKGSource
from backend.app.ingestion.sources.eonet import EONETSource
from backend.app.ingestion.sources.usgs import USGSSource
from backend.app.ingestion.sources.weather_flood import WeatherFloodSource

__all__ = [
    "SourceAdapter",
    "BMKGSource",
    "EONETSource",
    "USGSSource",
    "WeatherFloodSource",
]
