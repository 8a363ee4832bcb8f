"""Two-tier cache of pairwise distance facts.

The in-process tier is keyed by the exact coordinate pair rounded to the
persisted precision. The persistent tier (a Baserow table) is searched with a
bounding box of ``tolerance`` degrees around both endpoints. A miss is always
safe: callers fall back to a live lookup.
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional

from ..config import settings
from ..db.baserow import RecordStore, StoreError
from ..models.domain import Coordinate, PairwiseDistanceFact
from ..services.failure_tracker import FailureTracker
from ..services.routing.errors import CacheWriteFailed
from .fact_rows import (
    LEAST_RECENT_FIRST,
    MOST_RECENT_FIRST,
    bounding_box_filters,
    fact_to_row,
    last_used_before_filter,
    row_to_fact,
    touch_patch,
)

logger = logging.getLogger(__name__)

PairKey = tuple[float, float, float, float]

# Rows fetched per bounding-box query; duplicates for one pair are rare.
LOOKUP_CANDIDATES = 10


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MemoryTier:
    """Thread-safe TTL map of facts keyed by rounded coordinate pair.

    An exact key miss falls back to a scan for a fact within ``tolerance``.
    """

    def __init__(
        self,
        ttl_seconds: float,
        precision: int,
        tolerance: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.precision = precision
        self.tolerance = tolerance
        self._clock = clock
        self._entries: dict[PairKey, tuple[float, PairwiseDistanceFact]] = {}
        self._lock = threading.Lock()

    def key(self, origin: Coordinate, destination: Coordinate) -> PairKey:
        o = origin.rounded(self.precision)
        d = destination.rounded(self.precision)
        return (o.lat, o.lng, d.lat, d.lng)

    def get(self, origin: Coordinate, destination: Coordinate) -> Optional[PairwiseDistanceFact]:
        key = self.key(origin, destination)
        with self._lock:
            self._expire()
            entry = self._entries.get(key)
            if entry is not None:
                return entry[1]
            if self.tolerance <= 0:
                return None
            for _, fact in self._entries.values():
                if fact.origin.within(origin, self.tolerance) and fact.destination.within(destination, self.tolerance):
                    return fact
            return None

    def _expire(self) -> None:
        now = self._clock()
        for key in [k for k, (stored_at, _) in self._entries.items() if now - stored_at > self.ttl_seconds]:
            del self._entries[key]

    def put(self, origin: Coordinate, destination: Coordinate, fact: PairwiseDistanceFact) -> None:
        with self._lock:
            self._entries[self.key(origin, destination)] = (self._clock(), fact)

    def discard_records(self, record_ids: Iterable[int]) -> None:
        ids = set(record_ids)
        if not ids:
            return
        with self._lock:
            for key in [k for k, (_, fact) in self._entries.items() if fact.record_id in ids]:
                del self._entries[key]

    def evict_last_used_before(self, cutoff: datetime) -> int:
        with self._lock:
            stale = [
                key
                for key, (_, fact) in self._entries.items()
                if fact.last_used_at is not None and fact.last_used_at < cutoff
            ]
            for key in stale:
                del self._entries[key]
            return len(stale)

    def evict_least_recent(self, count: int) -> int:
        """Drop ``count`` facts, never-used and least recently used first."""
        if count <= 0:
            return 0
        with self._lock:
            never_used = [k for k, (_, fact) in self._entries.items() if fact.last_used_at is None]
            used = sorted(
                (k for k, (_, fact) in self._entries.items() if fact.last_used_at is not None),
                key=lambda k: self._entries[k][1].last_used_at,
            )
            victims = (never_used + used)[:count]
            for key in victims:
                del self._entries[key]
            return len(victims)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class PairwiseDistanceCache:
    def __init__(
        self,
        store: Optional[RecordStore],
        tolerance: float | None = None,
        precision: int | None = None,
        memory_ttl_seconds: float | None = None,
        failure_tracker: Optional[FailureTracker] = None,
        now: Callable[[], datetime] = utc_now,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store_backend = store
        self.tolerance = tolerance if tolerance is not None else settings.coordinate_tolerance
        self.precision = precision if precision is not None else settings.coordinate_precision
        self.memory = MemoryTier(
            memory_ttl_seconds if memory_ttl_seconds is not None else settings.memory_cache_ttl_seconds,
            self.precision,
            tolerance=self.tolerance,
            clock=monotonic,
        )
        self.failure_tracker = failure_tracker or FailureTracker(
            threshold=settings.store_failure_threshold,
            cooldown=settings.store_cooldown_seconds,
        )
        # Stored decimals are rounded to `precision`, so a persisted fact may sit half a unit further out.
        self.match_tolerance = self.tolerance + 0.5 * 10 ** -self.precision
        self._now = now

    @property
    def persistent(self) -> bool:
        return self.store_backend is not None

    def lookup(self, origin: Coordinate, destination: Coordinate) -> Optional[PairwiseDistanceFact]:
        """Return a fact for a pair within tolerance of ``origin``/``destination``, or None."""
        fact = self.memory.get(origin, destination)
        if fact is not None:
            fact.last_used_at = self._now()
            logger.debug(f"Memory cache hit for {origin} -> {destination}")
            return fact

        if self.store_backend is None:
            return None
        if not self.failure_tracker.should_attempt():
            logger.debug("Persistent distance cache skipped after repeated failures")
            return None

        filters = bounding_box_filters(origin, destination, self.match_tolerance, self.precision)
        try:
            rows = self.store_backend.query(filters, order_by=MOST_RECENT_FIRST, limit=LOOKUP_CANDIDATES)
        except StoreError as exc:
            self.failure_tracker.record_failure()
            logger.warning(f"Distance cache lookup failed, treating as miss: {exc}")
            return None
        self.failure_tracker.reset()

        # The tolerance check is repeated locally so a store that ignores a filter can never yield a wrong pair.
        fact = next(
            (
                candidate
                for candidate in (row_to_fact(row) for row in rows)
                if candidate is not None
                and candidate.origin.within(origin, self.match_tolerance)
                and candidate.destination.within(destination, self.match_tolerance)
            ),
            None,
        )
        if fact is None:
            return None

        self._touch(fact)
        self.memory.put(origin, destination, fact)
        logger.debug(f"Persistent cache hit (row {fact.record_id}) for {origin} -> {destination}")
        return fact

    def _touch(self, fact: PairwiseDistanceFact) -> None:
        now = self._now()
        fact.last_used_at = now
        if fact.record_id is None or self.store_backend is None:
            return
        try:
            self.store_backend.update(fact.record_id, touch_patch(now))
        except StoreError as exc:
            logger.warning(f"Could not refresh last_used for distance row {fact.record_id}: {exc}")

    def store(self, fact: PairwiseDistanceFact) -> PairwiseDistanceFact:
        """Persist ``fact``; raises ``CacheWriteFailed`` when the persistent tier rejects it."""
        now = self._now()
        fact.created_at = fact.created_at or now
        fact.last_used_at = fact.last_used_at or now

        if self.store_backend is None:
            self.memory.put(fact.origin, fact.destination, fact)
            return fact
        if not self.failure_tracker.should_attempt():
            raise CacheWriteFailed("Persistent distance cache temporarily disabled after repeated failures.")

        try:
            created = self.store_backend.insert(fact_to_row(fact, self.precision))
        except StoreError as exc:
            self.failure_tracker.record_failure()
            raise CacheWriteFailed(f"Failed to persist distance fact: {exc}") from exc
        self.failure_tracker.reset()

        stored = row_to_fact(created) or fact
        if stored.record_id is None:
            stored.record_id = created.get("id")
        self.memory.put(fact.origin, fact.destination, stored)
        return stored

    def evict_older_than(self, age: timedelta) -> int:
        """Delete facts whose ``last_used`` is older than ``age``. Returns the number removed."""
        cutoff = self._now() - age
        memory_evicted = self.memory.evict_last_used_before(cutoff)
        if self.store_backend is None:
            return memory_evicted

        rows = self.store_backend.query([last_used_before_filter(cutoff)], order_by=LEAST_RECENT_FIRST)
        stale_ids = []
        for row in rows:
            fact = row_to_fact(row)
            if fact is None or fact.last_used_at is None or fact.last_used_at < cutoff:
                stale_ids.append(row["id"])
        return self._delete_rows(stale_ids)

    def evict_excess(self, max_count: int) -> int:
        """Delete least-recently-used facts until at most ``max_count`` remain."""
        if self.store_backend is None:
            return self.memory.evict_least_recent(len(self.memory) - max_count)
        total = self.store_backend.count()
        excess = total - max_count
        if excess <= 0:
            return 0
        rows = self.store_backend.query(order_by=LEAST_RECENT_FIRST, limit=excess)
        return self._delete_rows([row["id"] for row in rows])

    def count(self) -> int:
        if self.store_backend is None:
            return len(self.memory)
        return self.store_backend.count()

    def _delete_rows(self, row_ids: list[int]) -> int:
        deleted: list[int] = []
        try:
            for row_id in row_ids:
                self.store_backend.delete(row_id)
                deleted.append(row_id)
        finally:
            self.memory.discard_records(deleted)
        if deleted:
            logger.info(f"Evicted {len(deleted)} distance fact(s)")
        return len(deleted)
