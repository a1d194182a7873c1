"""
region.py — Monitored-region filtering and great-circle distance.

Provides:
    - Coordinate value type with range validation
    - Inclusive bounding-box test for the monitored region
    - Haversine distance between two (lat, lng) points

All distances are in **kilometers**. Coordinates are in **decimal degrees**.

Haversine Formula
=================
Given two points P₁(φ₁, λ₁) and P₂(φ₂, λ₂):

    a = sin²(Δφ / 2) + cos(φ₁) · cos(φ₂) · sin²(Δλ / 2)
    c = 2 · atan2(√a, √(1 − a))
    d = R · c

with R = 6,371 km. Accurate to ~0.5%, which is well inside the precision
of "nearest city" impact estimates.

Region Filter
=============
Geo-scanned feeds (BMKG, EONET, USGS) can return events outside the area
we monitor. Every record from those feeds passes `inside_region` before
any other processing. The box is inclusive on all four edges.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from backend.app.core.config import settings


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EARTH_RADIUS_KM: float = 6_371.0


# ---------------------------------------------------------------------------
# Core data structures
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Coordinate:
    """A geographic point in decimal degrees."""
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if not (-90.0 <= self.latitude <= 90.0):
            raise ValueError(
                f"Latitude must be in [-90, 90], got {self.latitude}"
            )
        if not (-180.0 <= self.longitude <= 180.0):
            raise ValueError(
                f"Longitude must be in [-180, 180], got {self.longitude}"
            )

    @property
    def lat_rad(self) -> float:
        return math.radians(self.latitude)

    @property
    def lon_rad(self) -> float:
        return math.radians(self.longitude)


@dataclass(frozen=True)
class BoundingBox:
    """Inclusive lat/lng rectangle."""
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    def __post_init__(self) -> None:
        if self.min_lat > self.max_lat or self.min_lng > self.max_lng:
            raise ValueError(f"Degenerate bounding box: {self}")

    def contains(self, lat: float, lng: float) -> bool:
        return (
            self.min_lat <= lat <= self.max_lat
            and self.min_lng <= lng <= self.max_lng
        )

    def as_bbox_param(self) -> str:
        """Format as ``minLng,minLat,maxLng,maxLat`` (EONET query order)."""
        return f"{self.min_lng},{self.min_lat},{self.max_lng},{self.max_lat}"

    @classmethod
    def around(cls, lat: float, lng: float, half_size_deg: float) -> "BoundingBox":
        """Square neighbourhood centred on a point."""
        return cls(
            min_lat=lat - half_size_deg,
            max_lat=lat + half_size_deg,
            min_lng=lng - half_size_deg,
            max_lng=lng + half_size_deg,
        )


def monitored_region() -> BoundingBox:
    """The configured monitored region."""
    return BoundingBox(
        min_lat=settings.REGION_MIN_LAT,
        max_lat=settings.REGION_MAX_LAT,
        min_lng=settings.REGION_MIN_LNG,
        max_lng=settings.REGION_MAX_LNG,
    )


def inside_region(
    lat: float,
    lng: float,
    region: Optional[BoundingBox] = None,
) -> bool:
    """
    Is (lat, lng) inside the monitored region?

    Examples
    --------
    >>> inside_region(-0.9471, 100.4172)   # Padang
    True
    >>> inside_region(13.0827, 80.2707)    # Chennai
    False
    >>> inside_region(6.0, 109.0)          # corner, inclusive
    True
    """
    box = region or monitored_region()
    return box.contains(lat, lng)


# ---------------------------------------------------------------------------
# Haversine implementation
# ---------------------------------------------------------------------------

def haversine(point1: Coordinate, point2: Coordinate) -> float:
    """
    Great-circle distance in km between two coordinates.

    >>> haversine(Coordinate(0, 0), Coordinate(0, 0))
    0.0
    """
    d_lat = point2.lat_rad - point1.lat_rad
    d_lon = point2.lon_rad - point1.lon_rad

    a = (
        math.sin(d_lat / 2.0) ** 2
        + math.cos(point1.lat_rad)
        * math.cos(point2.lat_rad)
        * math.sin(d_lon / 2.0) ** 2
    )

    c = 2.0 * math.atan2(math.sqrt(a), math.sqrt(1.0 - a))
    return EARTH_RADIUS_KM * c


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Convenience wrapper over raw floats."""
    return haversine(Coordinate(lat1, lng1), Coordinate(lat2, lng2))
