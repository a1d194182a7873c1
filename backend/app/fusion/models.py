"""
models.py — Shared data structures for the hazard fusion engine.

Defines:
    • HazardType   — the six hazard categories served to clients
    • Severity     — ordered Low < Medium < High < Critical
    • Source       — provenance of a point (used for merge trust)
    • HazardDetails — type-specific payload (magnitude, rainfall, ...)
    • ImpactDetails — nearest population centre + exposure bucket
    • HazardPoint   — the fused entity
    • SourceReport  — outcome of one adapter fetch in one cycle

═══════════════════════════════════════════════════════════════════════════
PROVENANCE vs. DISPLAY LABEL
═══════════════════════════════════════════════════════════════════════════

`source` records which feed (or generator) produced a point. It is the
only field the merger consults for trust decisions.

`sensor_label` is a display attribution ("MODIS", "SENTINEL", ...)
derived from an event category. It is cosmetic: a multi-hazard feed
labelling its wildfire category "MODIS" does not make the point a
verified MODIS detection, and a storm category labelled "BMKG Maritime"
must never earn the trust reserved for the BMKG seismic feed.

Points are frozen. Enrichment builds new instances with
`dataclasses.replace`, so a published snapshot can be shared between
concurrent readers without copying.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from backend.app.spatial.region import Coordinate


# ═══════════════════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════════════════

class HazardType(str, Enum):
    FIRE       = "FIRE"
    FLOOD      = "FLOOD"
    LANDSLIDE  = "LANDSLIDE"
    WAVE       = "WAVE"
    VOLCANO    = "VOLCANO"
    EARTHQUAKE = "EARTHQUAKE"


class Severity(str, Enum):
    """Ordered severity. Compare with `rank`, not the string value."""
    LOW      = "Low"
    MEDIUM   = "Medium"
    HIGH     = "High"
    CRITICAL = "Critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}


class Source(str, Enum):
    """Where a point came from."""
    BMKG       = "BMKG"        # Indonesian agency seismic feed (local)
    EONET      = "EONET"       # NASA multi-hazard event tracker
    USGS       = "USGS"        # global seismic catalogue
    OPEN_METEO = "OPEN_METEO"  # synthesised from precipitation forecast
    BACKFILL   = "BACKFILL"    # pre-vetted reference incidents
    DEMO       = "DEMO"        # presentation filler


class ExposureBucket(str, Enum):
    HIGH   = "High"
    MEDIUM = "Medium"
    LOW    = "Low"


# Types whose risk depends on rainfall and which receive weather context
WEATHER_SENSITIVE_TYPES = frozenset({
    HazardType.FIRE,
    HazardType.FLOOD,
    HazardType.LANDSLIDE,
})


# ═══════════════════════════════════════════════════════════════════════════
# Value objects
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class HazardDetails:
    """Type-specific payload. Every field is optional."""
    magnitude: Optional[float] = None
    depth_km: Optional[float] = None
    rainfall_mm: Optional[float] = None
    auxiliary_points: Tuple[Coordinate, ...] = ()  # e.g. water sources near a fire
    population_density: Optional[str] = None
    elevation_m: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {}
        if self.magnitude is not None:
            d["magnitude"] = self.magnitude
        if self.depth_km is not None:
            d["depth"] = self.depth_km
        if self.rainfall_mm is not None:
            d["rainfallMm"] = round(self.rainfall_mm, 2)
        if self.auxiliary_points:
            d["auxiliaryPoints"] = [
                {"lat": c.latitude, "lng": c.longitude}
                for c in self.auxiliary_points
            ]
        if self.population_density is not None:
            d["populationDensity"] = self.population_density
        if self.elevation_m is not None:
            d["elevation"] = self.elevation_m
        return d


@dataclass(frozen=True)
class ImpactDetails:
    nearest_center_name: str
    distance_km: int
    exposure_bucket: ExposureBucket

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nearestCenterName": self.nearest_center_name,
            "distanceKm": self.distance_km,
            "exposureBucket": self.exposure_bucket.value,
        }


# ═══════════════════════════════════════════════════════════════════════════
# Hazard point
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class HazardPoint:
    """One normalised hazard record."""

    id: str
    location_name: str
    type: HazardType
    coordinates: Coordinate
    severity: Severity
    description: str
    source: Source

    last_occurrence: Optional[str] = None
    timestamp: Optional[int] = None  # epoch milliseconds
    sensor_label: Optional[str] = None
    external_link: Optional[str] = None
    details: HazardDetails = field(default_factory=HazardDetails)

    # Populated by enrichment
    risk_score: Optional[int] = None
    forecast: Optional[str] = None
    impact: Optional[ImpactDetails] = None

    @property
    def latitude(self) -> float:
        return self.coordinates.latitude

    @property
    def longitude(self) -> float:
        return self.coordinates.longitude

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation consumed by the map client (camelCase keys)."""
        return {
            "id": self.id,
            "locationName": self.location_name,
            "type": self.type.value,
            "coordinates": {"lat": self.latitude, "lng": self.longitude},
            "severity": self.severity.value,
            "description": self.description,
            "lastOccurrence": self.last_occurrence,
            "timestamp": self.timestamp,
            "source": self.source.value,
            "sensorLabel": self.sensor_label,
            "externalLink": self.external_link,
            "riskScore": self.risk_score,
            "forecast": self.forecast,
            "impactDetails": self.impact.to_dict() if self.impact else None,
            "details": self.details.to_dict(),
        }


@dataclass(frozen=True)
class SourceReport:
    """What one adapter contributed to one aggregation cycle."""
    source: str
    ok: bool
    count: int
    duration_ms: float
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "ok": self.ok,
            "count": self.count,
            "duration_ms": round(self.duration_ms, 1),
            "error": self.error,
        }


def epoch_ms(dt: datetime) -> int:
    """Milliseconds since the Unix epoch; naive datetimes are taken as UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def format_occurrence(ts_ms: int) -> str:
    """Display date for a timestamp, day-first as shown on the map client."""
    dt = datetime.fromtimestamp(ts_ms / 1000.0, tz=timezone.utc)
    return dt.strftime("%d/%m/%Y")
