"""
risk_scorer.py — Deterministic risk score for a hazard point.

═══════════════════════════════════════════════════════════════════════════
SCORING FORMULA
═══════════════════════════════════════════════════════════════════════════

    score = BASE
          + severity addend
          + earthquake addends   (magnitude band, shallow depth)
          + fire addend          (thermal-satellite attribution)
          + rainfall addend      (flood / landslide only)

    final = min(100, score)

    Severity      Addend
    ────────      ──────
    Critical      +30
    High          +15
    Medium        +5
    Low           +0

    Earthquake: M ≥ 7.0 → +20, else M ≥ 6.0 → +10
                depth < 15 km → +15 (stacks with magnitude)
    Fire:       MODIS / VIIRS attribution → +10
    Rainfall:   > 50 mm → +20, else > 20 mm → +10

All addends are non-negative, so the floor is BASE and only the upper
clamp matters. Summation is order-independent.
"""

from __future__ import annotations

from typing import Optional

from backend.app.fusion.models import HazardPoint, HazardType, Severity


# ═══════════════════════════════════════════════════════════════════════════
# Constants
# ═══════════════════════════════════════════════════════════════════════════

BASE_SCORE = 50
MAX_SCORE = 100

SEVERITY_ADDEND = {
    Severity.CRITICAL: 30,
    Severity.HIGH: 15,
    Severity.MEDIUM: 5,
    Severity.LOW: 0,
}

MAGNITUDE_MAJOR = 7.0
MAGNITUDE_STRONG = 6.0
SHALLOW_DEPTH_KM = 15.0

RAINFALL_HEAVY_MM = 50.0
RAINFALL_MODERATE_MM = 20.0

THERMAL_SATELLITE_LABELS = frozenset({"MODIS", "VIIRS"})

RAINFALL_SCORED_TYPES = frozenset({HazardType.FLOOD, HazardType.LANDSLIDE})


# ═══════════════════════════════════════════════════════════════════════════
# Addends
# ═══════════════════════════════════════════════════════════════════════════

def earthquake_addend(magnitude: Optional[float], depth_km: Optional[float]) -> int:
    """
    >>> earthquake_addend(7.5, 5.0)
    35
    >>> earthquake_addend(6.2, 40.0)
    10
    >>> earthquake_addend(None, 10.0)
    15
    """
    addend = 0
    if magnitude is not None:
        if magnitude >= MAGNITUDE_MAJOR:
            addend += 20
        elif magnitude >= MAGNITUDE_STRONG:
            addend += 10
    if depth_km is not None and depth_km < SHALLOW_DEPTH_KM:
        addend += 15
    return addend


def rainfall_addend(rainfall_mm: Optional[float]) -> int:
    if rainfall_mm is None:
        return 0
    if rainfall_mm > RAINFALL_HEAVY_MM:
        return 20
    if rainfall_mm > RAINFALL_MODERATE_MM:
        return 10
    return 0


def is_thermal_satellite(point: HazardPoint) -> bool:
    label = (point.sensor_label or "").upper()
    return label in THERMAL_SATELLITE_LABELS


# ═══════════════════════════════════════════════════════════════════════════
# Score
# ═══════════════════════════════════════════════════════════════════════════

def score(point: HazardPoint) -> int:
    """
    Compute the 0–100 risk score for a point.

    Examples
    --------
    A Critical M7.5 quake at 5 km depth saturates:
        50 + 30 + 20 + 15 = 115 → 100
    """
    total = BASE_SCORE + SEVERITY_ADDEND.get(point.severity, 0)

    if point.type == HazardType.EARTHQUAKE:
        total += earthquake_addend(point.details.magnitude, point.details.depth_km)

    if point.type == HazardType.FIRE and is_thermal_satellite(point):
        total += 10

    if point.type in RAINFALL_SCORED_TYPES:
        total += rainfall_addend(point.details.rainfall_mm)

    return min(MAX_SCORE, total)
