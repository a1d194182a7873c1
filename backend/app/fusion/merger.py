"""
merger.py — Spatial deduplication with provenance priority.

Two points describe the same real-world event when they share a hazard
type and lie within DEDUP_THRESHOLD_DEG of each other on BOTH axes
(≈ 10 km near the equator).

Merge rule (single ordered pass):
    1. No existing match           → append the candidate.
    2. Match, candidate outranks   → replace that matched entry.
    3. Match, otherwise            → drop the candidate.

"Outranks" means the candidate's source appears earlier in the priority
list than the existing entry's source. Equal rank keeps the first-seen
entry. Sources missing from the list rank below all listed ones and tie
with each other. The default list names only BMKG, so every other
conflict keeps whichever duplicate arrived first.

Because replacement depends on rank rather than position, a trusted and
an untrusted duplicate resolve to the trusted one in either arrival
order. Only the `source` field participates; display labels are ignored.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Sequence

from backend.app.core.config import settings
from backend.app.fusion.models import HazardPoint

logger = logging.getLogger(__name__)

DEDUP_THRESHOLD_DEG = 0.1


class SourcePriority:
    """Provenance ranking, most trusted first."""

    def __init__(self, ordered_sources: Sequence[str]):
        self._rank: Dict[str, int] = {}
        for i, name in enumerate(ordered_sources):
            self._rank.setdefault(str(name).upper(), i)
        self._unlisted = len(self._rank)

    @classmethod
    def from_settings(cls) -> "SourcePriority":
        return cls(settings.SOURCE_PRIORITY)

    def rank(self, source: str) -> int:
        """Lower is more trusted."""
        key = getattr(source, "value", source)
        return self._rank.get(str(key).upper(), self._unlisted)

    def outranks(self, candidate: HazardPoint, existing: HazardPoint) -> bool:
        return self.rank(candidate.source) < self.rank(existing.source)

    def __repr__(self) -> str:
        ordered = sorted(self._rank, key=self._rank.__getitem__)
        return f"SourcePriority({ordered})"


def is_duplicate(a: HazardPoint, b: HazardPoint) -> bool:
    if a.type != b.type:
        return False
    return (
        abs(a.latitude - b.latitude) < DEDUP_THRESHOLD_DEG
        and abs(a.longitude - b.longitude) < DEDUP_THRESHOLD_DEG
    )


def _find_match(merged: List[HazardPoint], candidate: HazardPoint) -> Optional[int]:
    for idx, existing in enumerate(merged):
        if is_duplicate(existing, candidate):
            return idx
    return None


def merge_points(
    points: Iterable[HazardPoint],
    priority: Optional[SourcePriority] = None,
) -> List[HazardPoint]:
    """
    Deduplicate `points` in the given order.

    Parameters
    ----------
    points : Iterable[HazardPoint]
        Candidates in a stable accumulation order.
    priority : SourcePriority | None
        Provenance ranking. Defaults to settings.SOURCE_PRIORITY.

    Returns
    -------
    List[HazardPoint]
        Unique points, first-seen order preserved (replacements keep the
        slot of the entry they replace).
    """
    priority = priority or SourcePriority.from_settings()
    merged: List[HazardPoint] = []
    dropped = 0
    replaced = 0

    for candidate in points:
        idx = _find_match(merged, candidate)
        if idx is None:
            merged.append(candidate)
        elif priority.outranks(candidate, merged[idx]):
            logger.debug(
                "Replacing %s (%s) with %s (%s)",
                merged[idx].id, merged[idx].source.value,
                candidate.id, candidate.source.value,
            )
            merged[idx] = candidate
            replaced += 1
        else:
            dropped += 1

    logger.debug(
        "Merged %d unique points (%d replaced, %d dropped)",
        len(merged), replaced, dropped,
        extra={"count": len(merged)},
    )
    return merged
