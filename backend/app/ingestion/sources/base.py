"""
base.py — Failure-isolated adapter contract.

Subclasses implement `_fetch()` and may raise anything. The public
`fetch()` turns every failure into an empty contribution:

    FeedError        → expected upstream trouble (timeout, HTTP, JSON)
    anything else    → schema drift or a parsing bug; logged with traceback

Either way the rest of the aggregation cycle carries on.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import List, Optional

import httpx

from backend.app.core.config import settings
from backend.app.core.errors import FeedError
from backend.app.fusion.models import HazardPoint, SourceReport

logger = logging.getLogger(__name__)


class SourceAdapter(ABC):
    """One upstream feed → zero or more normalised hazard points."""

    name: str = "source"

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        timeout: Optional[float] = None,
    ):
        self.client = client
        self.timeout = timeout or settings.FEED_TIMEOUT_SECONDS
        self.last_report: Optional[SourceReport] = None

    @abstractmethod
    async def _fetch(self) -> List[HazardPoint]:
        """Fetch and normalise. May raise."""

    async def fetch(self) -> List[HazardPoint]:
        """Fetch and normalise. Never raises."""
        start = time.perf_counter()
        error: Optional[str] = None
        points: List[HazardPoint] = []

        try:
            points = await self._fetch()
        except FeedError as e:
            error = e.message
            logger.warning(
                "%s fetch failed: %s", self.name, e.message,
                extra={"source": self.name},
            )
        except Exception as e:
            error = f"{type(e).__name__}: {e}"
            logger.exception(
                "%s fetch crashed", self.name,
                extra={"source": self.name},
            )

        duration_ms = (time.perf_counter() - start) * 1000
        self.last_report = SourceReport(
            source=self.name,
            ok=error is None,
            count=len(points),
            duration_ms=duration_ms,
            error=error,
        )
        if error is None:
            logger.info(
                "%s returned %d points (%.0fms)",
                self.name, len(points), duration_ms,
                extra={"source": self.name, "count": len(points),
                       "duration_ms": duration_ms},
            )
        return points

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
