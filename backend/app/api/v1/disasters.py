"""
FastAPI routes: fused hazard points, impact lookup, feed status.

The aggregator is created once per process in the application lifespan
and reached through `request.app.state`; tests swap it out with
`app.dependency_overrides[get_aggregator]`.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, Response

from backend.app.api.schemas import (
    AggregateResponse,
    HazardPointOut,
    ImpactOut,
    ImpactResponse,
    LatLng,
    SourceReportOut,
    SourcesResponse,
)
from backend.app.core.errors import HazardAPIError
from backend.app.fusion.aggregator import HazardAggregator
from backend.app.fusion.impact import assess_impact
from backend.app.fusion.models import HazardType

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["disasters"])


def get_aggregator(request: Request) -> HazardAggregator:
    aggregator = getattr(request.app.state, "aggregator", None)
    if aggregator is None:
        raise HazardAPIError(
            "Aggregator not initialised",
            status_code=503,
            error_code="SERVICE_UNAVAILABLE",
        )
    return aggregator


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "/disasters/aggregate",
    response_model=AggregateResponse,
    summary="Fused hazard points for the monitored region",
    description=(
        "Returns every hazard point from all feeds, de-duplicated, scored "
        "and enriched with impact and weather context. Served from a "
        "short-lived cache; `X-Cache` reports HIT or MISS."
    ),
)
async def aggregate(
    response: Response,
    types: Optional[List[HazardType]] = Query(
        None, alias="type", description="Only these hazard types (repeatable)",
    ),
    min_risk: Optional[int] = Query(
        None, ge=0, le=100, description="Minimum risk score",
    ),
    refresh: bool = Query(False, description="Bypass the cache"),
    aggregator: HazardAggregator = Depends(get_aggregator),
):
    """
    **Flow:**
    1. Cached snapshot if fresh, else one (single-flight) aggregation cycle
    2. Optional filtering by hazard type and minimum risk score
    3. Serialise to the camelCase wire form
    """
    snapshot, hit = await aggregator.resolve(force_refresh=refresh)
    response.headers["X-Cache"] = "HIT" if hit else "MISS"

    points = snapshot.points
    if types:
        wanted = set(types)
        points = [p for p in points if p.type in wanted]
    if min_risk is not None:
        points = [p for p in points if (p.risk_score or 0) >= min_risk]

    return AggregateResponse(
        count=len(points),
        timestamp=snapshot.generated_at.isoformat(),
        data=[HazardPointOut.from_point(p) for p in points],
    )


@router.get(
    "/disasters/impact",
    response_model=ImpactResponse,
    summary="Nearest population centre and exposure for a coordinate",
)
async def impact(
    lat: float = Query(..., ge=-90, le=90, description="Latitude"),
    lng: float = Query(..., ge=-180, le=180, description="Longitude"),
):
    """Works for any coordinate, inside the monitored region or not."""
    details = assess_impact(lat, lng)
    return ImpactResponse(
        coordinates=LatLng(lat=lat, lng=lng),
        data=ImpactOut.from_impact(details),
    )


@router.get(
    "/disasters/sources",
    response_model=SourcesResponse,
    summary="Per-feed outcome of the last aggregation cycle",
)
async def sources(aggregator: HazardAggregator = Depends(get_aggregator)):
    cache = aggregator.cache
    snap = cache.peek()
    age = cache.age()
    return SourcesResponse(
        cache_fresh=cache.is_fresh(),
        cache_age_seconds=round(age, 1) if age is not None else None,
        cache_ttl_seconds=cache.ttl_seconds,
        generated_at=snap.generated_at.isoformat() if snap else None,
        point_count=snap.count if snap else 0,
        sources=[SourceReportOut.from_report(r) for r in aggregator.last_reports()],
    )
