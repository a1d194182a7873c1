"""
aggregator.py — Hazard aggregation pipeline.

═══════════════════════════════════════════════════════════════════════════
PIPELINE
═══════════════════════════════════════════════════════════════════════════

    get_points()
      │
      ├─ cache fresh? ──────────────────────────────► return snapshot
      │
      └─ single-flight lock
           ├─ cache fresh now? (another request rebuilt) ► return snapshot
           │
           ├─ 1. FETCH     all adapters concurrently, settle-all
           ├─ 2. BACKFILL  reference incidents missing from live data
           ├─ 3. FILLER    demo points (INCLUDE_DEMO_POINTS)
           ├─ 4. ENRICH    one task per point: weather → impact → score
           ├─ 5. MERGE     spatial dedup with provenance priority
           └─ 6. PUBLISH   replace cache snapshot, return it

═══════════════════════════════════════════════════════════════════════════
ORDERING
═══════════════════════════════════════════════════════════════════════════

Adapters finish in any order, but `asyncio.gather` returns results in
submission order. Accumulation therefore follows the adapter list
(BMKG, EONET, USGS, weather floods), then backfill, then filler, and the
merge result is reproducible across cycles. A BMKG duplicate wins in any
order; among the other sources the first-seen duplicate is kept, so an
EONET event shadows a later USGS report of the same quake.

═══════════════════════════════════════════════════════════════════════════
FAILURE MODEL
═══════════════════════════════════════════════════════════════════════════

    Adapter failure     → empty contribution (adapter never raises)
    Weather failure     → placeholder forecast, rainfall 0
    Enrichment bug      → that point scored without weather context
    Everything failed   → backfill + filler only, still scored
    Unexpected bug      → logged; previous snapshot served, or an empty
                          uncached one

`get_points` does not raise.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from typing import List, Optional, Sequence, Tuple

import httpx

from backend.app.core.cache import AggregationCache, AggregationSnapshot
from backend.app.core.config import settings
from backend.app.fusion.fallback import backfill_points, demo_points
from backend.app.fusion.impact import assess_impact
from backend.app.fusion.merger import SourcePriority, merge_points
from backend.app.fusion.models import (
    WEATHER_SENSITIVE_TYPES,
    HazardPoint,
    SourceReport,
)
from backend.app.fusion.risk_scorer import score
from backend.app.ingestion.sources import (
    BMKGSource,
    EONETSource,
    SourceAdapter,
    USGSSource,
    WeatherFloodSource,
)
from backend.app.ingestion.weather_service import UNAVAILABLE_TEXT, WeatherService

logger = logging.getLogger(__name__)


class HazardAggregator:
    """
    Cache-fronted fan-out / fan-in aggregation of all hazard sources.

    Usage:
        async with httpx.AsyncClient() as client:
            aggregator = build_default_aggregator(client)
            snapshot = await aggregator.get_points()
            for p in snapshot.points:
                print(p.type.value, p.location_name, p.risk_score)
    """

    def __init__(
        self,
        sources: Sequence[SourceAdapter],
        weather: WeatherService,
        *,
        cache: Optional[AggregationCache] = None,
        priority: Optional[SourcePriority] = None,
        include_demo: Optional[bool] = None,
    ):
        self.sources = list(sources)
        self.weather = weather
        self.cache = cache or AggregationCache()
        self.priority = priority or SourcePriority.from_settings()
        self.include_demo = (
            settings.INCLUDE_DEMO_POINTS if include_demo is None else include_demo
        )
        self._rebuild_lock = asyncio.Lock()
        self.rebuild_count = 0
        self._generation = 0  # bumped on every published snapshot

    # ── Public API ──

    async def get_points(self, force_refresh: bool = False) -> AggregationSnapshot:
        """Fresh cached snapshot, or a newly built one. Never raises."""
        snapshot, _ = await self.resolve(force_refresh)
        return snapshot

    async def resolve(
        self, force_refresh: bool = False,
    ) -> Tuple[AggregationSnapshot, bool]:
        """Like `get_points`, also reporting whether the cache served it."""
        if not force_refresh:
            cached = self.cache.get()
            if cached is not None:
                return cached, True

        seen_generation = self._generation
        async with self._rebuild_lock:
            # Another request rebuilt while we waited: reuse its result
            cached = self.cache.get()
            if cached is not None and (
                not force_refresh or self._generation != seen_generation
            ):
                return cached, True

            try:
                snapshot = await self._build()
            except Exception:
                logger.exception("Aggregation cycle failed")
                fallback = self.cache.peek() or AggregationSnapshot(
                    points=(), produced_at=self.cache.now(),
                )
                return fallback, False

            self.cache.store(snapshot)
            self._generation += 1
            return snapshot, False

    def last_reports(self) -> List[SourceReport]:
        snap = self.cache.peek()
        return list(snap.reports) if snap else []

    # ── Pipeline ──

    async def _build(self) -> AggregationSnapshot:
        start = time.perf_counter()
        self.rebuild_count += 1

        # 1. Fetch (settle-all, submission order preserved)
        results = await asyncio.gather(
            *(source.fetch() for source in self.sources),
            return_exceptions=True,
        )

        live: List[HazardPoint] = []
        reports: List[SourceReport] = []
        for source, result in zip(self.sources, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.error(
                    "%s raised past its boundary: %s", source.name, result,
                    extra={"source": source.name},
                )
                reports.append(SourceReport(
                    source=source.name, ok=False, count=0,
                    duration_ms=0.0, error=str(result),
                ))
                continue
            live.extend(result)
            reports.append(source.last_report or SourceReport(
                source=source.name, ok=True, count=len(result), duration_ms=0.0,
            ))

        # 2-3. Deterministic points
        candidates = list(live)
        backfill = backfill_points(live)
        candidates.extend(backfill)
        if self.include_demo:
            candidates.extend(demo_points())

        # 4. Enrich
        enriched = await asyncio.gather(*(self._enrich_isolated(p) for p in candidates))

        # 5. Merge
        merged = merge_points(enriched, self.priority)

        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "Aggregated %d live + %d backfill → %d unique points (%.0fms)",
            len(live), len(backfill), len(merged), duration_ms,
            extra={"count": len(merged), "duration_ms": duration_ms},
        )

        return AggregationSnapshot(
            points=tuple(merged),
            produced_at=self.cache.now(),
            reports=tuple(reports),
        )

    async def enrich(self, point: HazardPoint) -> HazardPoint:
        """Weather context (where relevant), impact and risk score."""
        updates = {}

        if point.type in WEATHER_SENSITIVE_TYPES and point.forecast is None:
            fc = await self.weather.forecast(point.latitude, point.longitude)
            updates["forecast"] = fc.text
            if point.details.rainfall_mm is None and fc.available:
                updates["details"] = dataclasses.replace(
                    point.details, rainfall_mm=fc.rainfall_mm,
                )

        point = dataclasses.replace(point, **updates) if updates else point
        return dataclasses.replace(
            point,
            impact=assess_impact(point.latitude, point.longitude),
            risk_score=score(point),
        )

    async def _enrich_isolated(self, point: HazardPoint) -> HazardPoint:
        """`enrich`, falling back to impact + score alone if it raises."""
        try:
            return await self.enrich(point)
        except Exception:
            logger.exception("Enrichment failed for %s; scoring without weather", point.id)

        if point.type in WEATHER_SENSITIVE_TYPES and point.forecast is None:
            point = dataclasses.replace(point, forecast=UNAVAILABLE_TEXT)
        return dataclasses.replace(
            point,
            impact=assess_impact(point.latitude, point.longitude),
            risk_score=score(point),
        )

    async def close(self) -> None:
        """Nothing owned; the HTTP client belongs to the caller."""
        self.cache.invalidate()


def build_default_aggregator(
    client: httpx.AsyncClient,
    *,
    cache: Optional[AggregationCache] = None,
) -> HazardAggregator:
    """Production wiring: every live feed, in trust-relevant order."""
    weather = WeatherService(client)
    sources: List[SourceAdapter] = [
        BMKGSource(client),
        EONETSource(client),
        USGSSource(client),
        WeatherFloodSource(client, weather=weather),
    ]
    return HazardAggregator(sources, weather, cache=cache)
