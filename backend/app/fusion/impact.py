"""
impact.py — Population exposure estimate for a coordinate.

For each hazard point we find the nearest of a fixed list of major
population centres and bucket the distance:

    distance < 20 km  → High
    distance < 50 km  → Medium
    otherwise         → Low

Buckets use the exact haversine distance; `distance_km` in the output is
rounded to the nearest whole kilometre for display. On exactly equal
distances the centre listed first wins.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

from backend.app.fusion.models import ExposureBucket, ImpactDetails
from backend.app.spatial.region import haversine_km

HIGH_EXPOSURE_KM = 20.0
MEDIUM_EXPOSURE_KM = 50.0


@dataclass(frozen=True)
class PopulationCenter:
    name: str
    latitude: float
    longitude: float


# Provincial capitals, north to south
POPULATION_CENTERS: Sequence[PopulationCenter] = (
    PopulationCenter("Banda Aceh", 5.5483, 95.3238),
    PopulationCenter("Medan", 3.5952, 98.6722),
    PopulationCenter("Padang", -0.9471, 100.4172),
    PopulationCenter("Pekanbaru", 0.5071, 101.4478),
    PopulationCenter("Jambi", -1.6099, 103.6073),
    PopulationCenter("Palembang", -2.9761, 104.7754),
    PopulationCenter("Bengkulu", -3.8004, 102.2655),
    PopulationCenter("Bandar Lampung", -5.3971, 105.2668),
)


def exposure_bucket(distance_km: float) -> ExposureBucket:
    if distance_km < HIGH_EXPOSURE_KM:
        return ExposureBucket.HIGH
    if distance_km < MEDIUM_EXPOSURE_KM:
        return ExposureBucket.MEDIUM
    return ExposureBucket.LOW


def assess_impact(
    lat: float,
    lng: float,
    centers: Sequence[PopulationCenter] = POPULATION_CENTERS,
) -> ImpactDetails:
    """
    Nearest population centre, rounded distance and exposure bucket.

    Raises ValueError if `centers` is empty.
    """
    if not centers:
        raise ValueError("At least one population centre is required")

    nearest = centers[0]
    min_dist = math.inf
    for center in centers:
        dist = haversine_km(lat, lng, center.latitude, center.longitude)
        # strict < keeps the first centre on ties
        if dist < min_dist:
            min_dist = dist
            nearest = center

    return ImpactDetails(
        nearest_center_name=nearest.name,
        distance_km=int(round(min_dist)),
        exposure_bucket=exposure_bucket(min_dist),
    )
