"""
Tests for the nearest-population-centre impact assessor.
"""

from __future__ import annotations

import math

import pytest

from backend.app.fusion.impact import (
    POPULATION_CENTERS,
    PopulationCenter,
    assess_impact,
    exposure_bucket,
)
from backend.app.fusion.models import ExposureBucket
from backend.app.spatial.region import EARTH_RADIUS_KM

MEDAN = (3.5952, 98.6722)


def _north_of_medan(km: float):
    """Point `km` due north of Medan (exact along a meridian)."""
    return MEDAN[0] + math.degrees(km / EARTH_RADIUS_KM), MEDAN[1]


class TestExposureBucket:
    @pytest.mark.parametrize("d,expected", [
        (0.0, ExposureBucket.HIGH),
        (19.99, ExposureBucket.HIGH),
        (20.0, ExposureBucket.MEDIUM),
        (49.99, ExposureBucket.MEDIUM),
        (50.0, ExposureBucket.LOW),
        (500.0, ExposureBucket.LOW),
    ])
    def test_boundaries(self, d, expected):
        assert exposure_bucket(d) == expected


class TestAssessImpact:
    def test_at_centre(self):
        impact = assess_impact(-0.9471, 100.4172)
        assert impact.nearest_center_name == "Padang"
        assert impact.distance_km == 0
        assert impact.exposure_bucket == ExposureBucket.HIGH

    def test_19_9_km_is_high(self):
        impact = assess_impact(*_north_of_medan(19.9))
        assert impact.nearest_center_name == "Medan"
        # Display distance rounds up to 20, bucket still uses 19.9
        assert impact.distance_km == 20
        assert impact.exposure_bucket == ExposureBucket.HIGH

    def test_medium_band(self):
        impact = assess_impact(*_north_of_medan(35.0))
        assert impact.nearest_center_name == "Medan"
        assert impact.distance_km == 35
        assert impact.exposure_bucket == ExposureBucket.MEDIUM

    def test_low_band(self):
        impact = assess_impact(*_north_of_medan(80.0))
        assert impact.exposure_bucket == ExposureBucket.LOW
        assert impact.distance_km == 80

    def test_distance_is_int(self):
        impact = assess_impact(1.6666, 101.45)
        assert isinstance(impact.distance_km, int)

    def test_outside_region_still_assessed(self):
        impact = assess_impact(13.0827, 80.2707)
        assert impact.nearest_center_name in {c.name for c in POPULATION_CENTERS}
        assert impact.exposure_bucket == ExposureBucket.LOW

    def test_tie_keeps_first_centre(self):
        centers = (
            PopulationCenter("West", 0.0, 99.0),
            PopulationCenter("East", 0.0, 101.0),
        )
        impact = assess_impact(0.0, 100.0, centers)
        assert impact.nearest_center_name == "West"

    def test_empty_centres_rejected(self):
        with pytest.raises(ValueError):
            assess_impact(0.0, 100.0, ())

    def test_eight_centres(self):
        assert len(POPULATION_CENTERS) == 8
