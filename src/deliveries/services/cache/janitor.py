"""On-demand cleanup of the distance fact cache."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from ...persistence.distance_cache import PairwiseDistanceCache

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CleanupReport:
    evicted_by_age: int
    evicted_by_capacity: int


class CacheJanitor:
    """Evicts stale facts, then caps the table size. Safe to run alongside lookups."""

    def __init__(self, cache: PairwiseDistanceCache) -> None:
        self.cache = cache

    def run_cleanup(self, retention_days: int = 30, max_records: int = 10000) -> CleanupReport:
        if retention_days < 0 or max_records < 0:
            raise ValueError("retention_days and max_records must be non-negative.")
        evicted_by_age = self.cache.evict_older_than(timedelta(days=retention_days))
        evicted_by_capacity = self.cache.evict_excess(max_records)
        logger.info(
            f"Distance cache cleanup: {evicted_by_age} evicted by age "
            f"(> {retention_days} days), {evicted_by_capacity} by capacity (max {max_records})"
        )
        return CleanupReport(evicted_by_age=evicted_by_age, evicted_by_capacity=evicted_by_capacity)
