"""
Aggregation cache — a single time-boxed snapshot of fused hazard points.

Provides:
    • Immutable `AggregationSnapshot` (tuple of frozen points + reports)
    • Freshness check against an injectable clock
    • Atomic replacement (one attribute assignment per rebuild)
    • Explicit invalidation

The cache is process-local and ephemeral. It is not a store: a new
aggregation cycle always produces a whole new snapshot; nothing is
patched in place.

Usage:
    from backend.app.core.cache import AggregationCache

    cache = AggregationCache(ttl_seconds=300)
    snapshot = cache.get()          # None on miss or when stale
    cache.store(new_snapshot)

Testing:
    clock = FakeClock()
    cache = AggregationCache(ttl_seconds=300, clock=clock)
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional, Tuple

from backend.app.core.config import settings
from backend.app.fusion.models import HazardPoint, SourceReport

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


@dataclass(frozen=True)
class AggregationSnapshot:
    """Result of one aggregation cycle."""
    points: Tuple[HazardPoint, ...]
    produced_at: float  # clock reading, used for freshness only
    generated_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    reports: Tuple[SourceReport, ...] = ()

    @property
    def count(self) -> int:
        return len(self.points)


class AggregationCache:
    """Single-slot snapshot cache with a freshness window."""

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        clock: Clock = time.monotonic,
    ):
        self.ttl_seconds = (
            settings.CACHE_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        )
        self.clock = clock
        self._snapshot: Optional[AggregationSnapshot] = None

    def now(self) -> float:
        return self.clock()

    def age(self) -> Optional[float]:
        """Seconds since the current snapshot was produced, None if empty."""
        snap = self._snapshot
        if snap is None:
            return None
        return self.clock() - snap.produced_at

    def is_fresh(self) -> bool:
        age = self.age()
        return age is not None and age < self.ttl_seconds

    def get(self) -> Optional[AggregationSnapshot]:
        """Current snapshot if still fresh, else None."""
        snap = self._snapshot
        if snap is None:
            return None
        age = self.clock() - snap.produced_at
        if age < self.ttl_seconds:
            logger.debug("Cache HIT (age %.1fs)", age, extra={"cache_age_s": age})
            return snap
        logger.debug("Cache STALE (age %.1fs)", age, extra={"cache_age_s": age})
        return None

    def peek(self) -> Optional[AggregationSnapshot]:
        """Current snapshot regardless of age."""
        return self._snapshot

    def store(self, snapshot: AggregationSnapshot) -> None:
        self._snapshot = snapshot
        logger.info(
            "Cache replaced with %d points", snapshot.count,
            extra={"count": snapshot.count},
        )

    def invalidate(self) -> None:
        self._snapshot = None
