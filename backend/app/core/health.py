"""
Health check aggregation — deep health probe for the fusion service.

Checks:
    • Aggregator wiring (created in the application lifespan)
    • Aggregation cache (snapshot age vs. TTL)
    • Live feeds (outcome of each adapter in the last cycle)

Feeds are never polled from here: the probe reads the reports of the
most recent aggregation cycle, so a health check costs no network I/O.

Returns a structured health report suitable for:
    - Kubernetes liveness/readiness probes
    - Load balancer health checks
    - Monitoring dashboards
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from backend.app.core.config import settings

if TYPE_CHECKING:
    from backend.app.fusion.aggregator import HazardAggregator

logger = logging.getLogger(__name__)


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"  # serving, but from fallback data or stale cache
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    name: str
    status: HealthStatus = HealthStatus.HEALTHY
    latency_ms: float = 0.0
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "name": self.name,
            "status": self.status.value,
            "latency_ms": round(self.latency_ms, 2),
        }
        if self.message:
            d["message"] = self.message
        if self.details:
            d["details"] = self.details
        return d


@dataclass
class HealthReport:
    status: HealthStatus = HealthStatus.HEALTHY
    version: str = settings.APP_VERSION
    environment: str = settings.ENVIRONMENT
    timestamp: str = ""
    uptime_seconds: float = 0.0
    components: List[ComponentHealth] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "version": self.version,
            "environment": self.environment,
            "timestamp": self.timestamp or datetime.now(timezone.utc).isoformat(),
            "uptime_seconds": round(self.uptime_seconds, 1),
            "components": [c.to_dict() for c in self.components],
        }


# Track application start time
_start_time = time.monotonic()


def check_cache(aggregator: Optional["HazardAggregator"]) -> ComponentHealth:
    """Snapshot presence and age."""
    comp = ComponentHealth(name="aggregation_cache")
    start = time.monotonic()

    if aggregator is None:
        comp.status = HealthStatus.UNHEALTHY
        comp.message = "Aggregator not initialised"
    else:
        cache = aggregator.cache
        age = cache.age()
        snap = cache.peek()
        comp.details = {
            "ttl_seconds": cache.ttl_seconds,
            "rebuilds": aggregator.rebuild_count,
        }
        if snap is None:
            comp.message = "Cold (first request will aggregate)"
        else:
            comp.details.update({"age_seconds": round(age, 1), "points": snap.count})
            if cache.is_fresh():
                comp.message = f"{snap.count} points cached"
            else:
                comp.message = "Snapshot stale, next request rebuilds"

    comp.latency_ms = (time.monotonic() - start) * 1000
    return comp


def check_feeds(aggregator: Optional["HazardAggregator"]) -> ComponentHealth:
    """Outcome of every live feed in the most recent cycle."""
    comp = ComponentHealth(name="live_feeds")
    start = time.monotonic()

    reports = aggregator.last_reports() if aggregator is not None else []
    if not reports:
        comp.message = "No aggregation cycle yet"
    else:
        failed = [r.source for r in reports if not r.ok]
        comp.details = {r.source: r.to_dict() for r in reports}
        if len(failed) == len(reports):
            comp.status = HealthStatus.DEGRADED
            comp.message = "All feeds failed; serving fallback data"
        elif failed:
            comp.status = HealthStatus.DEGRADED
            comp.message = f"Feeds failing: {', '.join(failed)}"
        else:
            comp.message = f"{len(reports)} feeds OK"

    comp.latency_ms = (time.monotonic() - start) * 1000
    return comp


async def run_health_check(
    aggregator: Optional["HazardAggregator"] = None,
) -> HealthReport:
    """Run all health checks and aggregate into a report."""
    report = HealthReport(
        timestamp=datetime.now(timezone.utc).isoformat(),
        uptime_seconds=time.monotonic() - _start_time,
    )

    report.components.append(check_cache(aggregator))
    report.components.append(check_feeds(aggregator))

    # Aggregate status
    statuses = [c.status for c in report.components]
    if HealthStatus.UNHEALTHY in statuses:
        report.status = HealthStatus.UNHEALTHY
    elif HealthStatus.DEGRADED in statuses:
        report.status = HealthStatus.DEGRADED
    else:
        report.status = HealthStatus.HEALTHY

    if report.status != HealthStatus.HEALTHY:
        logger.warning("Health check: %s", report.status.value)
    return report
