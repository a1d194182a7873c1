"""
Shared fixtures: point factory, fake clock, mocked upstream feeds.

No test touches the network. Feeds are served by `httpx.MockTransport`
handlers keyed on the request host.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from backend.app.fusion.models import (
    HazardDetails,
    HazardPoint,
    HazardType,
    Severity,
    Source,
)
from backend.app.ingestion.sources.base import SourceAdapter
from backend.app.ingestion.weather_service import (
    Forecast,
    WeatherService,
    format_forecast_text,
)
from backend.app.spatial.region import Coordinate


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def build_point(
    id: str = "p-1",
    *,
    type: HazardType = HazardType.EARTHQUAKE,
    lat: float = 0.0,
    lng: float = 100.0,
    severity: Severity = Severity.HIGH,
    source: Source = Source.USGS,
    sensor_label: Optional[str] = None,
    forecast: Optional[str] = None,
    **details: Any,
) -> HazardPoint:
    return HazardPoint(
        id=id,
        location_name=f"Location {id}",
        type=type,
        coordinates=Coordinate(lat, lng),
        severity=severity,
        description=f"Test point {id}",
        source=source,
        sensor_label=sensor_label,
        forecast=forecast,
        details=HazardDetails(**details),
    )


class StubSource(SourceAdapter):
    """Adapter returning fixed points, optionally slow or failing."""

    def __init__(self, name: str, points=(), *, error: Optional[Exception] = None,
                 delay: float = 0.0):
        super().__init__(client=None)
        self.name = name
        self.points = list(points)
        self.error = error
        self.delay = delay
        self.calls = 0

    async def _fetch(self) -> List[HazardPoint]:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.points)


class StubWeather(WeatherService):
    """Fixed precipitation for every coordinate; None means unavailable."""

    def __init__(self, rainfall_mm: Optional[float] = None):
        super().__init__(client=None)
        self.rainfall_mm = rainfall_mm
        self.calls = 0

    async def forecast(self, latitude: float, longitude: float) -> Forecast:
        self.calls += 1
        if self.rainfall_mm is None:
            return Forecast.unavailable()
        return Forecast(
            text=format_forecast_text(self.rainfall_mm),
            rainfall_mm=self.rainfall_mm,
        )


def json_handler(routes: Dict[str, Any]) -> Callable[[httpx.Request], httpx.Response]:
    """
    MockTransport handler from a {host-or-path-fragment: response} map.

    A value may be a JSON-able body, an int status code, an
    `httpx.Response`, or an exception instance to raise.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        for fragment, reply in routes.items():
            if fragment in url:
                if isinstance(reply, Exception):
                    raise reply
                if isinstance(reply, httpx.Response):
                    return reply
                if isinstance(reply, int):
                    return httpx.Response(reply, json={"error": "mocked"})
                return httpx.Response(200, json=reply)
        return httpx.Response(404, json={"error": f"no route for {url}"})

    return handler


def mock_client(routes: Dict[str, Any]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(json_handler(routes)))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_point() -> Callable[..., HazardPoint]:
    return build_point
