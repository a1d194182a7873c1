"""
bmkg.py — BMKG (Indonesian Meteorology, Climatology and Geophysics Agency)
local seismic feed.

Two endpoints are read and concatenated, latest list first:

    gempaterkini.json    — latest M5+ earthquakes
    gempadirasakan.json  — recent earthquakes reported as felt

Payload (both endpoints):
    {
        "Infogempa": {
            "gempa": [
                {
                    "Tanggal": "19 Okt 2026",
                    "Jam": "05:12:33 WIB",
                    "DateTime": "2026-10-18T22:12:33+00:00",
                    "Coordinates": "-3.52,101.83",
                    "Magnitude": "5.2",
                    "Kedalaman": "10 km",
                    "Wilayah": "45 km BaratDaya KAUR-BENGKULU",
                    ...
                }
            ]
        }
    }

`Infogempa.gempa` is a list on these endpoints but a single object on
the "autogempa" endpoint; both shapes are accepted.

Severity: Critical if magnitude > 6.0, otherwise High.

BMKG is the trusted local source: on a duplicate it overrides the global
feeds (see fusion/merger.py).
"""

from __future__ import annotations

import asyncio
import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from backend.app.core.config import settings
from backend.app.core.errors import FeedError
from backend.app.fusion.models import (
    HazardDetails,
    HazardPoint,
    HazardType,
    Severity,
    Source,
    epoch_ms,
)
from backend.app.ingestion.http_client import fetch_json
from backend.app.ingestion.sources.base import SourceAdapter
from backend.app.spatial.region import BoundingBox, Coordinate, inside_region

logger = logging.getLogger(__name__)

CRITICAL_MAGNITUDE = 6.0
WARNING_PORTAL_URL = "https://warning.bmkg.go.id"

_NUMBER_RE = re.compile(r"-?\d+(?:[.,]\d+)?")


def _parse_number(raw: Any) -> Optional[float]:
    """Leading number of strings like ``"10 km"`` or ``"5,2"``."""
    if raw is None:
        return None
    if isinstance(raw, (int, float)):
        return float(raw)
    match = _NUMBER_RE.search(str(raw))
    if match is None:
        return None
    return float(match.group(0).replace(",", "."))


def _parse_coordinates(raw: str) -> Coordinate:
    """``"-3.52,101.83"`` → Coordinate(-3.52, 101.83)."""
    lat_s, lng_s = str(raw).split(",")
    return Coordinate(float(lat_s.strip()), float(lng_s.strip()))


def _parse_timestamp(raw: Any) -> Optional[int]:
    if not raw:
        return None
    try:
        return epoch_ms(datetime.fromisoformat(str(raw)))
    except ValueError:
        return None


def _records(payload: Any) -> List[Dict[str, Any]]:
    if not isinstance(payload, dict):
        raise FeedError("bmkg", "payload is not a JSON object")
    gempa = (payload.get("Infogempa") or {}).get("gempa") or []
    if isinstance(gempa, dict):
        return [gempa]
    return [g for g in gempa if isinstance(g, dict)]


def parse_quake(
    record: Dict[str, Any],
    region: Optional[BoundingBox] = None,
) -> Optional[HazardPoint]:
    """
    Normalise one BMKG record.

    Returns None for malformed or out-of-region records.
    """
    try:
        coords = _parse_coordinates(record["Coordinates"])
        magnitude = _parse_number(record.get("Magnitude"))
        if magnitude is None:
            raise ValueError("missing magnitude")
    except (KeyError, ValueError, TypeError) as exc:
        logger.debug("Skipping malformed BMKG record: %s", exc)
        return None

    if not inside_region(coords.latitude, coords.longitude, region):
        return None

    depth = _parse_number(record.get("Kedalaman"))
    depth_text = record.get("Kedalaman") or "unknown depth"
    stamp = record.get("DateTime") or f"{record.get('Tanggal')}-{record.get('Jam')}"
    occurrence = " ".join(
        str(v) for v in (record.get("Tanggal"), record.get("Jam")) if v
    )

    return HazardPoint(
        id=f"bmkg-{stamp}",
        location_name=str(record.get("Wilayah") or "Unknown region"),
        type=HazardType.EARTHQUAKE,
        coordinates=coords,
        severity=Severity.CRITICAL if magnitude > CRITICAL_MAGNITUDE else Severity.HIGH,
        description=f"Tectonic earthquake M{magnitude:g}, depth {depth_text}.",
        source=Source.BMKG,
        last_occurrence=occurrence or None,
        timestamp=_parse_timestamp(record.get("DateTime")),
        external_link=WARNING_PORTAL_URL,
        details=HazardDetails(magnitude=magnitude, depth_km=depth),
    )


def parse_feed(payload: Any, region: Optional[BoundingBox] = None) -> List[HazardPoint]:
    points = []
    for record in _records(payload):
        point = parse_quake(record, region)
        if point is not None:
            points.append(point)
    return points


class BMKGSource(SourceAdapter):
    """Latest + felt earthquake lists from BMKG."""

    name = Source.BMKG.value

    def __init__(self, client, *, latest_url: Optional[str] = None,
                 felt_url: Optional[str] = None, **kwargs: Any):
        super().__init__(client, **kwargs)
        self.urls = [
            latest_url or settings.BMKG_LATEST_URL,
            felt_url or settings.BMKG_FELT_URL,
        ]

    async def _fetch(self) -> List[HazardPoint]:
        results = await asyncio.gather(
            *(
                fetch_json(self.client, url, feed="bmkg", timeout=self.timeout)
                for url in self.urls
            ),
            return_exceptions=True,
        )

        points: List[HazardPoint] = []
        failures: List[str] = []
        for url, result in zip(self.urls, results):
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result
            try:
                if isinstance(result, Exception):
                    raise result
                points.extend(parse_feed(result))
            except FeedError as e:
                failures.append(e.message)
                logger.warning("BMKG endpoint %s failed: %s", url, e.message,
                               extra={"source": self.name})
            except Exception as e:
                failures.append(f"{type(e).__name__}: {e}")
                logger.exception("BMKG endpoint %s raised unexpectedly", url,
                                 extra={"source": self.name})

        if len(failures) == len(self.urls):
            raise FeedError("bmkg", "; ".join(failures))

        # The felt list repeats quakes from the latest list
        seen = set()
        unique = []
        for p in points:
            if p.id not in seen:
                seen.add(p.id)
                unique.append(p)
        return unique
