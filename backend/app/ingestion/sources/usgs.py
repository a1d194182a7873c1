"""
usgs.py — USGS global earthquake catalogue (GeoJSON summary feeds).

Feed URL:
    {USGS_FEED_BASE}/{USGS_FEED_NAME}.geojson
    e.g. .../summary/significant_month.geojson

USGS GeoJSON format:
    feature = {
        "type": "Feature",
        "properties": { "mag": 5.2, "place": "...", "time": 1708617600000,
                        "title": "M 5.2 - ...", "url": "..." },
        "geometry": { "type": "Point", "coordinates": [lon, lat, depth_km] },
        "id": "us7000m..."
    }

Severity: Critical if magnitude > 6, otherwise High. A null magnitude
stays None (severity High). Events outside the monitored region are
dropped.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from backend.app.core.config import settings
from backend.app.core.errors import FeedError
from backend.app.fusion.models import (
    HazardDetails,
    HazardPoint,
    HazardType,
    Severity,
    Source,
    format_occurrence,
)
from backend.app.ingestion.http_client import fetch_json
from backend.app.ingestion.sources.base import SourceAdapter
from backend.app.spatial.region import BoundingBox, Coordinate, inside_region

logger = logging.getLogger(__name__)

CRITICAL_MAGNITUDE = 6.0


def parse_feature(
    feature: Dict[str, Any],
    region: Optional[BoundingBox] = None,
) -> Optional[HazardPoint]:
    """Parse a single GeoJSON feature; None if malformed or out of region."""
    try:
        props = feature["properties"]
        geom = feature["geometry"]["coordinates"]  # [lon, lat, depth]

        longitude = float(geom[0])
        latitude = float(geom[1])
        depth_km = float(geom[2]) if len(geom) > 2 and geom[2] is not None else None
        mag = props.get("mag")
        magnitude = float(mag) if mag is not None else None
        coords = Coordinate(latitude, longitude)
    except (KeyError, IndexError, TypeError, ValueError) as exc:
        logger.debug("Failed to parse USGS feature: %s", exc)
        return None

    if not inside_region(latitude, longitude, region):
        return None

    ts = props.get("time")
    ts = int(ts) if isinstance(ts, (int, float)) else None
    label = f"M{magnitude:g}" if magnitude is not None else "Unrated"
    title = str(props.get("title") or f"{label} Earthquake")
    critical = magnitude is not None and magnitude > CRITICAL_MAGNITUDE

    return HazardPoint(
        id=f"usgs-{feature.get('id', '')}",
        location_name=str(props.get("place") or "Unknown"),
        type=HazardType.EARTHQUAKE,
        coordinates=coords,
        severity=Severity.CRITICAL if critical else Severity.HIGH,
        description=f"USGS global network: {label} - {title}",
        source=Source.USGS,
        last_occurrence=format_occurrence(ts) if ts is not None else None,
        timestamp=ts,
        external_link=props.get("url"),
        details=HazardDetails(
            magnitude=magnitude,
            depth_km=max(0.0, depth_km) if depth_km is not None else None,
        ),
    )


def parse_feed(payload: Any, region: Optional[BoundingBox] = None) -> List[HazardPoint]:
    if not isinstance(payload, dict):
        raise FeedError("usgs", "payload is not a JSON object")
    points = []
    for feat in payload.get("features") or []:
        if not isinstance(feat, dict):
            continue
        point = parse_feature(feat, region)
        if point is not None:
            points.append(point)
    return points


class USGSSource(SourceAdapter):
    name = Source.USGS.value

    def __init__(self, client, *, feed_name: Optional[str] = None,
                 base_url: Optional[str] = None, **kwargs: Any):
        super().__init__(client, **kwargs)
        base = (base_url or settings.USGS_FEED_BASE).rstrip("/")
        self.url = f"{base}/{feed_name or settings.USGS_FEED_NAME}.geojson"

    async def _fetch(self) -> List[HazardPoint]:
        payload = await fetch_json(
            self.client, self.url, feed="usgs", timeout=self.timeout,
        )
        return parse_feed(payload)
