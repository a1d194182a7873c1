"""
Pydantic schemas for the hazard fusion API.

Separated from the route handlers so they are reusable across
the codebase (background workers, tests). Field names are snake_case in
Python and camelCase on the wire, matching what the map client reads.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from backend.app.fusion.models import (
    ExposureBucket,
    HazardPoint,
    HazardType,
    ImpactDetails,
    Severity,
    Source,
    SourceReport,
)


class WireModel(BaseModel):
    """Base for every response body: camelCase aliases, snake_case names."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Hazard points
# ---------------------------------------------------------------------------

class LatLng(WireModel):
    lat: float = Field(..., ge=-90.0, le=90.0)
    lng: float = Field(..., ge=-180.0, le=180.0)


class HazardDetailsOut(WireModel):
    magnitude: Optional[float] = None
    depth: Optional[float] = Field(None, description="Hypocentre depth in km")
    rainfall_mm: Optional[float] = None
    auxiliary_points: List[LatLng] = Field(default_factory=list)
    population_density: Optional[str] = None
    elevation: Optional[float] = Field(None, description="Metres above sea level")


class ImpactOut(WireModel):
    nearest_center_name: str
    distance_km: int = Field(..., ge=0, description="Rounded to whole km")
    exposure_bucket: ExposureBucket

    @classmethod
    def from_impact(cls, impact: ImpactDetails) -> "ImpactOut":
        return cls.model_validate(impact.to_dict())


class HazardPointOut(WireModel):
    """A single fused hazard point."""
    id: str
    location_name: str
    type: HazardType
    coordinates: LatLng
    severity: Severity
    description: str
    source: Source
    last_occurrence: Optional[str] = None
    timestamp: Optional[int] = Field(None, description="Epoch milliseconds")
    sensor_label: Optional[str] = None
    external_link: Optional[str] = None
    risk_score: Optional[int] = Field(None, ge=0, le=100)
    forecast: Optional[str] = None
    impact_details: Optional[ImpactOut] = None
    details: HazardDetailsOut = Field(default_factory=HazardDetailsOut)

    @classmethod
    def from_point(cls, point: HazardPoint) -> "HazardPointOut":
        return cls.model_validate(point.to_dict())


# ---------------------------------------------------------------------------
# Response envelopes
# ---------------------------------------------------------------------------

class AggregateResponse(WireModel):
    """Response for GET /api/v1/disasters/aggregate."""
    success: bool = True
    count: int
    timestamp: str = Field(..., description="ISO-8601 time of aggregation")
    data: List[HazardPointOut]


class ImpactResponse(WireModel):
    """Response for GET /api/v1/disasters/impact."""
    success: bool = True
    coordinates: LatLng
    data: ImpactOut


class SourceReportOut(WireModel):
    source: str
    ok: bool
    count: int
    duration_ms: float
    error: Optional[str] = None

    @classmethod
    def from_report(cls, report: SourceReport) -> "SourceReportOut":
        return cls(
            source=report.source,
            ok=report.ok,
            count=report.count,
            duration_ms=round(report.duration_ms, 1),
            error=report.error,
        )


class SourcesResponse(WireModel):
    """Response for GET /api/v1/disasters/sources."""
    success: bool = True
    cache_fresh: bool
    cache_age_seconds: Optional[float] = None
    cache_ttl_seconds: float
    generated_at: Optional[str] = None
    point_count: int = 0
    sources: List[SourceReportOut]
