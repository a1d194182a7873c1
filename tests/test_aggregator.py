"""
Tests for the aggregation pipeline.

Covers:
    • Total feed outage → backfill + demo points, fully scored
    • Backfill suppression by live reports of the same event
    • Trusted-source merge independent of adapter order
    • Enrichment: weather context, impact, risk score
    • Single-flight rebuilds under concurrent requests
    • Unexpected build failure → previous or empty snapshot
    • Production wiring

Run with:
    pytest tests/test_aggregator.py -v
"""

from __future__ import annotations

import asyncio

import pytest

from backend.app.core.cache import AggregationCache
from backend.app.fusion.aggregator import HazardAggregator, build_default_aggregator
from backend.app.fusion.fallback import BACKFILL_EVENTS, DEMO_POINTS
from backend.app.fusion.models import (
    WEATHER_SENSITIVE_TYPES,
    HazardType,
    Severity,
    Source,
)
from backend.app.ingestion.weather_service import UNAVAILABLE_TEXT

from conftest import StubSource, StubWeather, build_point, mock_client


def _failing_sources():
    return [
        StubSource(name, error=RuntimeError(f"{name} down"))
        for name in ("BMKG", "EONET", "USGS", "OPEN_METEO")
    ]


def _aggregate(aggregator: HazardAggregator, **kwargs):
    return asyncio.run(aggregator.get_points(**kwargs))


# ═══════════════════════════════════════════════════════════════════════════
# Degraded operation
# ═══════════════════════════════════════════════════════════════════════════

class TestAllFeedsDown:
    def test_backfill_and_demo_still_served(self):
        agg = HazardAggregator(_failing_sources(), StubWeather(), include_demo=True)
        snap = _aggregate(agg)

        ids = [p.id for p in snap.points]
        assert ids == [e.point.id for e in BACKFILL_EVENTS] + [p.id for p in DEMO_POINTS]

    def test_every_point_enriched(self):
        agg = HazardAggregator(_failing_sources(), StubWeather(), include_demo=True)
        for p in _aggregate(agg).points:
            assert 0 <= p.risk_score <= 100
            assert p.impact is not None
            if p.type in WEATHER_SENSITIVE_TYPES:
                assert p.forecast == UNAVAILABLE_TEXT

    def test_expected_scores(self):
        agg = HazardAggregator(_failing_sources(), StubWeather(), include_demo=True)
        scores = {p.id: p.risk_score for p in _aggregate(agg).points}
        assert scores["backfill-marapi-2023"] == 80
        assert scores["backfill-lahar-tanah-datar-2024"] == 100
        assert scores["backfill-sumatra-andaman-2004"] == 100
        assert scores["demo-flood-lhoksukon"] == 55

    def test_reports_mark_every_feed_failed(self):
        agg = HazardAggregator(_failing_sources(), StubWeather(), include_demo=True)
        snap = _aggregate(agg)
        assert [r.source for r in snap.reports] == ["BMKG", "EONET", "USGS", "OPEN_METEO"]
        assert not any(r.ok for r in snap.reports)
        assert agg.last_reports() == list(snap.reports)

    def test_demo_can_be_disabled(self):
        agg = HazardAggregator(_failing_sources(), StubWeather(), include_demo=False)
        snap = _aggregate(agg)
        assert all(p.source == Source.BACKFILL for p in snap.points)
        assert snap.count == len(BACKFILL_EVENTS)


class TestBackfill:
    def test_live_report_suppresses_backfill(self):
        live = build_point(
            "eonet-marapi", type=HazardType.VOLCANO, lat=-0.38, lng=100.47,
            source=Source.EONET, sensor_label="LAPAN",
        )
        agg = HazardAggregator(
            [StubSource("EONET", [live])], StubWeather(), include_demo=False,
        )
        ids = {p.id for p in _aggregate(agg).points}
        assert "eonet-marapi" in ids
        assert "backfill-marapi-2023" not in ids
        assert "backfill-lahar-tanah-datar-2024" in ids

    def test_other_type_does_not_suppress(self):
        quake = build_point("usgs-near-marapi", lat=-0.38, lng=100.47)
        agg = HazardAggregator(
            [StubSource("USGS", [quake])], StubWeather(), include_demo=False,
        )
        ids = {p.id for p in _aggregate(agg).points}
        assert "backfill-marapi-2023" in ids


# ═══════════════════════════════════════════════════════════════════════════
# Merge through the pipeline
# ═══════════════════════════════════════════════════════════════════════════

class TestTrustedSourceMerge:
    @pytest.mark.parametrize("bmkg_first", [True, False])
    def test_bmkg_wins_regardless_of_adapter_order(self, bmkg_first):
        bmkg = StubSource("BMKG", [build_point(
            "bmkg-1", lat=5.00, lng=96.10, source=Source.BMKG,
            severity=Severity.CRITICAL, magnitude=6.5, depth_km=10.0,
        )])
        usgs = StubSource("USGS", [build_point(
            "usgs-1", lat=5.05, lng=96.15, source=Source.USGS, magnitude=6.4,
        )])
        sources = [bmkg, usgs] if bmkg_first else [usgs, bmkg]
        agg = HazardAggregator(sources, StubWeather(), include_demo=False)

        ids = [p.id for p in _aggregate(agg).points]
        assert "bmkg-1" in ids
        assert "usgs-1" not in ids

    def test_eonet_before_usgs_keeps_eonet(self):
        eonet = StubSource("EONET", [build_point(
            "eonet-q", lat=5.00, lng=96.10, source=Source.EONET,
        )])
        usgs = StubSource("USGS", [build_point(
            "usgs-q", lat=5.05, lng=96.15, source=Source.USGS, magnitude=6.4,
        )])
        agg = HazardAggregator([eonet, usgs], StubWeather(), include_demo=False)

        ids = [p.id for p in _aggregate(agg).points]
        assert "eonet-q" in ids
        assert "usgs-q" not in ids

    def test_result_is_reproducible(self):
        def run():
            sources = [
                StubSource("EONET", [build_point("e", type=HazardType.FIRE, lat=1.0, lng=101.0,
                                                 source=Source.EONET)]),
                StubSource("USGS", [build_point("u", lat=2.0, lng=99.0)], delay=0.01),
            ]
            agg = HazardAggregator(sources, StubWeather(), include_demo=True)
            return [p.id for p in _aggregate(agg).points]

        assert run() == run()


# ═══════════════════════════════════════════════════════════════════════════
# Enrichment
# ═══════════════════════════════════════════════════════════════════════════

class TestEnrichment:
    def _agg(self, weather):
        return HazardAggregator([], weather, include_demo=False)

    def test_weather_fills_missing_rainfall(self):
        weather = StubWeather(rainfall_mm=30.0)
        flood = build_point("f", type=HazardType.FLOOD, severity=Severity.MEDIUM,
                            lat=5.05, lng=97.31, source=Source.DEMO)
        p = asyncio.run(self._agg(weather).enrich(flood))
        assert p.details.rainfall_mm == 30.0
        assert p.forecast == "Precipitation (NOAA GFS): 30mm"
        assert p.risk_score == 50 + 5 + 10

    def test_existing_rainfall_kept(self):
        weather = StubWeather(rainfall_mm=5.0)
        flood = build_point("f", type=HazardType.FLOOD, severity=Severity.CRITICAL,
                            lat=-0.455, lng=100.565, rainfall_mm=100.0)
        p = asyncio.run(self._agg(weather).enrich(flood))
        assert p.details.rainfall_mm == 100.0
        assert p.risk_score == 100

    def test_existing_forecast_not_refetched(self):
        weather = StubWeather(rainfall_mm=64.0)
        flood = build_point("weather-flood-padang", type=HazardType.FLOOD,
                            lat=-0.9471, lng=100.4172, forecast="already",
                            rainfall_mm=64.0)
        p = asyncio.run(self._agg(weather).enrich(flood))
        assert weather.calls == 0
        assert p.forecast == "already"

    def test_earthquake_skips_weather(self):
        weather = StubWeather(rainfall_mm=80.0)
        quake = build_point("q", lat=-0.9471, lng=100.4172)
        p = asyncio.run(self._agg(weather).enrich(quake))
        assert weather.calls == 0
        assert p.forecast is None
        assert p.impact.nearest_center_name == "Padang"

    def test_original_point_untouched(self):
        fire = build_point("fire", type=HazardType.FIRE, lat=1.6666, lng=101.45)
        asyncio.run(self._agg(StubWeather(12.0)).enrich(fire))
        assert fire.risk_score is None
        assert fire.forecast is None

    def test_weather_bug_keeps_the_cycle(self):
        class BrokenWeather(StubWeather):
            async def forecast(self, latitude, longitude):
                raise TypeError("'float' object is not subscriptable")

        agg = HazardAggregator(_failing_sources(), BrokenWeather(), include_demo=True)
        snap = _aggregate(agg)

        assert [p.id for p in snap.points] == (
            [e.point.id for e in BACKFILL_EVENTS] + [p.id for p in DEMO_POINTS]
        )
        scores = {p.id: p.risk_score for p in snap.points}
        assert scores["demo-flood-lhoksukon"] == 55
        for p in snap.points:
            assert p.impact is not None
            if p.type in WEATHER_SENSITIVE_TYPES:
                assert p.forecast == UNAVAILABLE_TEXT


# ═══════════════════════════════════════════════════════════════════════════
# Concurrency and failure
# ═══════════════════════════════════════════════════════════════════════════

class TestSingleFlight:
    def test_concurrent_misses_build_once(self):
        source = StubSource("USGS", [build_point("u", lat=2.0, lng=99.0)], delay=0.05)
        agg = HazardAggregator([source], StubWeather(), include_demo=False)

        async def go():
            return await asyncio.gather(*(agg.resolve() for _ in range(5)))

        results = asyncio.run(go())
        snapshots = {id(snap) for snap, _ in results}
        assert len(snapshots) == 1
        assert source.calls == 1
        assert agg.rebuild_count == 1
        assert sum(1 for _, hit in results if not hit) == 1

    def test_concurrent_forced_refreshes_share_rebuild(self):
        source = StubSource("USGS", [build_point("u", lat=2.0, lng=99.0)], delay=0.05)
        agg = HazardAggregator([source], StubWeather(), include_demo=False)

        async def go():
            await agg.get_points()
            await asyncio.gather(*(agg.get_points(force_refresh=True) for _ in range(3)))

        asyncio.run(go())
        assert source.calls == 2


class TestBuildFailure:
    def test_previous_snapshot_served(self, monkeypatch):
        agg = HazardAggregator(_failing_sources(), StubWeather(), include_demo=False)

        async def boom():
            raise RuntimeError("merge bug")

        async def go():
            good = await agg.get_points()
            monkeypatch.setattr(agg, "_build", boom)
            again, hit = await agg.resolve(force_refresh=True)
            return good, again, hit

        good, again, hit = asyncio.run(go())
        assert again is good
        assert not hit

    def test_empty_snapshot_not_cached(self, monkeypatch):
        agg = HazardAggregator([], StubWeather(), include_demo=False)

        async def boom():
            raise RuntimeError("merge bug")

        monkeypatch.setattr(agg, "_build", boom)
        snap = _aggregate(agg)
        assert snap.count == 0
        assert agg.cache.peek() is None

    def test_adapter_raising_past_boundary(self):
        class Leaky(StubSource):
            async def fetch(self):
                raise ValueError("escaped")

        agg = HazardAggregator([Leaky("EONET")], StubWeather(), include_demo=False)
        snap = _aggregate(agg)
        assert snap.reports[0].ok is False
        assert "escaped" in snap.reports[0].error
        assert snap.count == len(BACKFILL_EVENTS)


class TestDefaultWiring:
    def test_adapter_order(self):
        async def go():
            async with mock_client({}) as client:
                return build_default_aggregator(client, cache=AggregationCache(ttl_seconds=60))

        agg = asyncio.run(go())
        assert [s.name for s in agg.sources] == ["BMKG", "EONET", "USGS", "OPEN_METEO"]
        assert agg.cache.ttl_seconds == 60

    def test_feed_outage_with_drifted_forecast_shape(self):
        routes = {
            "gempaterkini": 503,
            "gempadirasakan": 503,
            "eonet": 503,
            "earthquake.usgs.gov": 503,
            "open-meteo": {"daily": {"precipitation_sum": 12.5}},
        }

        async def go():
            async with mock_client(routes) as client:
                agg = build_default_aggregator(client)
                return await agg.get_points()

        snap = asyncio.run(go())
        assert snap.count == len(BACKFILL_EVENTS) + len(DEMO_POINTS)
        assert all(p.risk_score is not None for p in snap.points)
        assert [r.ok for r in snap.reports] == [False, False, False, True]
