"""
eonet.py — NASA EONET (Earth Observatory Natural Event Tracker) v3.

Query:
    GET /api/v3/events?bbox=minLng,minLat,maxLng,maxLat&status=open

Each event carries one or more categories and a geometry history; the
most recent geometry is used. Categories map to hazard types through a
fixed table, and anything unmapped is dropped:

    Category       HazardType   Display label
    ────────       ──────────   ─────────────
    wildfires      FIRE         MODIS
    floods         FLOOD        SENTINEL
    landslides     LANDSLIDE    LANDSAT
    volcanoes      VOLCANO      LAPAN
    severeStorms   WAVE         BMKG Maritime
    earthquakes    EARTHQUAKE   EONET

The display label is a category-level association for the map legend,
not a sensor attribution, and it is stored in `sensor_label`. The
provenance (`source`) of every point from this feed is EONET.

Severity is High for every event: EONET does not grade severity.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

from backend.app.core.config import settings
from backend.app.core.errors import FeedError
from backend.app.fusion.models import (
    HazardPoint,
    HazardType,
    Severity,
    Source,
    epoch_ms,
    format_occurrence,
)
from backend.app.ingestion.http_client import fetch_json
from backend.app.ingestion.sources.base import SourceAdapter
from backend.app.spatial.region import (
    BoundingBox,
    Coordinate,
    inside_region,
    monitored_region,
)

logger = logging.getLogger(__name__)


class CategoryMapping(NamedTuple):
    type: HazardType
    label: str
    description_prefix: str


CATEGORY_MAP: Dict[str, CategoryMapping] = {
    "wildfires": CategoryMapping(HazardType.FIRE, "MODIS", "MODIS thermal anomaly"),
    "floods": CategoryMapping(HazardType.FLOOD, "SENTINEL", "Sentinel-1 radar analysis"),
    "landslides": CategoryMapping(HazardType.LANDSLIDE, "LANDSAT", "Landsat terrain analysis"),
    "volcanoes": CategoryMapping(HazardType.VOLCANO, "LAPAN", "Volcanic activity"),
    "severeStorms": CategoryMapping(HazardType.WAVE, "BMKG Maritime", "Severe storm / high waves"),
    "earthquakes": CategoryMapping(HazardType.EARTHQUAKE, "EONET", "Earthquake"),
}


def _geometry_point(geometry: Dict[str, Any]) -> Tuple[float, float]:
    """(lat, lng) of a Point, or the vertex mean of a Polygon's outer ring."""
    gtype = geometry.get("type", "Point")
    coords = geometry["coordinates"]
    if gtype == "Point":
        return float(coords[1]), float(coords[0])
    if gtype == "Polygon":
        ring = coords[0]
        if not ring:
            raise ValueError("empty polygon ring")
        lng = sum(float(p[0]) for p in ring) / len(ring)
        lat = sum(float(p[1]) for p in ring) / len(ring)
        return lat, lng
    raise ValueError(f"unsupported geometry type {gtype!r}")


def _parse_date(raw: Any) -> Optional[int]:
    if not raw:
        return None
    try:
        return epoch_ms(datetime.fromisoformat(str(raw).replace("Z", "+00:00")))
    except ValueError:
        return None


def parse_event(
    event: Dict[str, Any],
    region: Optional[BoundingBox] = None,
) -> Optional[HazardPoint]:
    """Normalise one EONET event; None if unmapped, malformed or out of region."""
    categories = event.get("categories") or []
    first = categories[0] if categories else None
    category_id = first.get("id") if isinstance(first, dict) else None
    mapping = CATEGORY_MAP.get(category_id)
    if mapping is None:
        return None

    try:
        geometry = (event.get("geometry") or [])[-1]
        lat, lng = _geometry_point(geometry)
        coords = Coordinate(lat, lng)
    except (AttributeError, IndexError, KeyError, TypeError, ValueError) as exc:
        logger.debug("Skipping EONET event %s: %s", event.get("id"), exc)
        return None

    if not inside_region(lat, lng, region):
        return None

    title = str(event.get("title") or "Untitled event")
    ts = _parse_date(geometry.get("date"))

    return HazardPoint(
        id=f"eonet-{event.get('id')}",
        location_name=title,
        type=mapping.type,
        coordinates=coords,
        severity=Severity.HIGH,
        description=f"{mapping.description_prefix}: {title}",
        source=Source.EONET,
        sensor_label=mapping.label,
        last_occurrence=format_occurrence(ts) if ts is not None else None,
        timestamp=ts,
        external_link=event.get("link"),
    )


def parse_feed(payload: Any, region: Optional[BoundingBox] = None) -> List[HazardPoint]:
    if not isinstance(payload, dict):
        raise FeedError("eonet", "payload is not a JSON object")
    points = []
    for event in payload.get("events") or []:
        if not isinstance(event, dict):
            continue
        point = parse_event(event, region)
        if point is not None:
            points.append(point)
    return points


class EONETSource(SourceAdapter):
    """Open natural events inside the monitored bounding box."""

    name = Source.EONET.value

    def __init__(self, client, *, url: Optional[str] = None,
                 region: Optional[BoundingBox] = None, **kwargs: Any):
        super().__init__(client, **kwargs)
        self.url = url or settings.EONET_EVENTS_URL
        self.region = region or monitored_region()

    async def _fetch(self) -> List[HazardPoint]:
        params = {"bbox": self.region.as_bbox_param(), "status": "open"}
        payload = await fetch_json(
            self.client, self.url,
            feed="eonet", params=params, timeout=self.timeout,
        )
        return parse_feed(payload, self.region)
