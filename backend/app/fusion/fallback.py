"""
fallback.py — Deterministic points that do not come from live feeds.

Two generators:

    backfill_points(live)  Reference incidents that must stay on the map.
                           Each one is injected only when no live point of
                           the same hazard type lies inside its
                           neighbourhood box, so a live report of the same
                           event always takes precedence.

    demo_points()          Presentation filler (deforestation-linked fire,
                           landslide and flood risk, coastal waves). The
                           aggregator appends these every cycle while
                           settings.INCLUDE_DEMO_POINTS is true.

Both are pre-vetted and exempt from the region filter. Neither performs
I/O, so an aggregation cycle where every feed fails still returns these.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, List, Sequence

from backend.app.fusion.models import (
    HazardDetails,
    HazardPoint,
    HazardType,
    Severity,
    Source,
    epoch_ms,
    format_occurrence,
)
from backend.app.spatial.region import BoundingBox, Coordinate

BACKFILL_NEIGHBOURHOOD_DEG = 0.5


@dataclass(frozen=True)
class BackfillEvent:
    point: HazardPoint
    neighbourhood: BoundingBox

    def is_covered_by(self, live: Iterable[HazardPoint]) -> bool:
        return any(
            p.type == self.point.type
            and self.neighbourhood.contains(p.latitude, p.longitude)
            for p in live
        )


def _backfill(
    slug: str,
    name: str,
    hazard: HazardType,
    lat: float,
    lng: float,
    severity: Severity,
    description: str,
    when: datetime,
    link: str,
    details: HazardDetails = HazardDetails(),
) -> BackfillEvent:
    ts = epoch_ms(when)
    return BackfillEvent(
        point=HazardPoint(
            id=f"backfill-{slug}",
            location_name=name,
            type=hazard,
            coordinates=Coordinate(lat, lng),
            severity=severity,
            description=description,
            source=Source.BACKFILL,
            last_occurrence=format_occurrence(ts),
            timestamp=ts,
            external_link=link,
            details=details,
        ),
        neighbourhood=BoundingBox.around(lat, lng, BACKFILL_NEIGHBOURHOOD_DEG),
    )


BACKFILL_EVENTS: Sequence[BackfillEvent] = (
    _backfill(
        "marapi-2023",
        "Mount Marapi, Agam, West Sumatra",
        HazardType.VOLCANO,
        -0.381, 100.473,
        Severity.CRITICAL,
        "Explosive eruption of Mount Marapi; ash column about 3 km above the summit.",
        datetime(2023, 12, 3, 7, 59, tzinfo=timezone.utc),
        "https://magma.esdm.go.id",
    ),
    _backfill(
        "lahar-tanah-datar-2024",
        "Tanah Datar, West Sumatra",
        HazardType.FLOOD,
        -0.455, 100.565,
        Severity.CRITICAL,
        "Cold lava flood (lahar) from Mount Marapi after extreme rainfall.",
        datetime(2024, 5, 11, 15, 0, tzinfo=timezone.utc),
        "https://bnpb.go.id",
        HazardDetails(rainfall_mm=100.0),
    ),
    _backfill(
        "sumatra-andaman-2004",
        "Off the west coast of northern Sumatra",
        HazardType.EARTHQUAKE,
        3.316, 95.854,
        Severity.CRITICAL,
        "M9.1 megathrust earthquake and Indian Ocean tsunami source region.",
        datetime(2004, 12, 26, 0, 58, 53, tzinfo=timezone.utc),
        "https://earthquake.usgs.gov/earthquakes/eventpage/official20041226005853450_30",
        HazardDetails(magnitude=9.1, depth_km=30.0),
    ),
)


def backfill_points(
    live: Sequence[HazardPoint],
    events: Sequence[BackfillEvent] = BACKFILL_EVENTS,
) -> List[HazardPoint]:
    """Reference incidents not already represented in `live`."""
    return [e.point for e in events if not e.is_covered_by(live)]


# ═══════════════════════════════════════════════════════════════════════════
# Demo filler
# ═══════════════════════════════════════════════════════════════════════════

DEMO_POINTS: Sequence[HazardPoint] = (
    HazardPoint(
        id="demo-fire-dumai",
        location_name="Dumai Barat, Riau",
        type=HazardType.FIRE,
        coordinates=Coordinate(1.6666, 101.4500),
        severity=Severity.CRITICAL,
        description="Hotspot in drained peatland next to recent forest clearing.",
        source=Source.DEMO,
        details=HazardDetails(
            auxiliary_points=(
                Coordinate(1.6700, 101.4600),
                Coordinate(1.6600, 101.4400),
            ),
            population_density="Medium",
        ),
    ),
    HazardPoint(
        id="demo-landslide-lembah-anai",
        location_name="Lembah Anai, West Sumatra",
        type=HazardType.LANDSLIDE,
        coordinates=Coordinate(-0.4700, 100.3700),
        severity=Severity.HIGH,
        description="Deforested slopes with saturated soil along the main road.",
        source=Source.DEMO,
        details=HazardDetails(elevation_m=420.0, population_density="Low"),
    ),
    HazardPoint(
        id="demo-flood-lhoksukon",
        location_name="Lhoksukon, North Aceh",
        type=HazardType.FLOOD,
        coordinates=Coordinate(5.0500, 97.3100),
        severity=Severity.MEDIUM,
        description="Upstream forest loss raises river flood risk after heavy rain.",
        source=Source.DEMO,
        details=HazardDetails(population_density="High"),
    ),
    HazardPoint(
        id="demo-wave-pesisir-selatan",
        location_name="Pesisir Selatan, West Sumatra",
        type=HazardType.WAVE,
        coordinates=Coordinate(-1.5000, 100.5000),
        severity=Severity.HIGH,
        description="Significant wave height above 4 m forecast along the coast.",
        source=Source.DEMO,
    ),
)


def demo_points() -> List[HazardPoint]:
    return list(DEMO_POINTS)
