"""Distance oracle: cached, retried access to pairwise distances and directions."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional, Protocol

from ...models.domain import Coordinate, PairwiseDistanceFact
from ...persistence.distance_cache import PairwiseDistanceCache
from ..geospatial import to_wire
from .errors import CacheWriteFailed, DistanceUnavailable
from .models import DirectionsResult, DistanceResult
from .retry import RetryExhausted, RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)


class RoutingCollaborator(Protocol):
    def distance_matrix(self, origin: Coordinate, destination: Coordinate) -> tuple[int, int]: ...

    def directions(self, origin: Coordinate, destination: Coordinate) -> DirectionsResult: ...


class CallStats:
    """Counters for cache hits versus live calls. Observability only."""

    FIELDS = (
        "distance_cache_hits",
        "distance_live_calls",
        "directions_cache_hits",
        "directions_live_calls",
        "attempts",
        "retries",
        "cache_write_failures",
    )

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counts = dict.fromkeys(self.FIELDS, 0)

    def increment(self, name: str, amount: int = 1) -> None:
        with self._lock:
            self._counts[name] += amount

    def __getattr__(self, name: str) -> int:
        if name in CallStats.FIELDS:
            return self._counts[name]
        raise AttributeError(name)

    def snapshot(self) -> dict:
        with self._lock:
            counts = dict(self._counts)

        def hit_rate(hits: int, live: int) -> float:
            total = hits + live
            return round(hits / total, 4) if total else 0.0

        counts["distance_hit_rate"] = hit_rate(counts["distance_cache_hits"], counts["distance_live_calls"])
        counts["directions_hit_rate"] = hit_rate(counts["directions_cache_hits"], counts["directions_live_calls"])
        return counts

    def reset(self) -> None:
        with self._lock:
            self._counts = dict.fromkeys(self.FIELDS, 0)


class DistanceOracle:
    """Uniform access to pairwise distances (cached) and full directions (burst-cached)."""

    def __init__(
        self,
        collaborator: RoutingCollaborator,
        cache: PairwiseDistanceCache,
        policy: Optional[RetryPolicy] = None,
        directions_ttl_seconds: float = 15 * 60,
        sleep: Callable[[float], None] = time.sleep,
        monotonic: Callable[[], float] = time.monotonic,
        stats: Optional[CallStats] = None,
    ) -> None:
        self.collaborator = collaborator
        self.cache = cache
        self.policy = policy or RetryPolicy.from_settings()
        self.directions_ttl_seconds = directions_ttl_seconds
        self.stats = stats or CallStats()
        self._sleep = sleep
        self._monotonic = monotonic
        self._directions: dict[tuple[str, str], tuple[float, DirectionsResult]] = {}
        self._directions_lock = threading.Lock()

    def _call(self, func: Callable, origin: Coordinate, destination: Coordinate, description: str):
        def count_attempt(attempt: int) -> None:
            self.stats.increment("attempts")
            if attempt > 1:
                self.stats.increment("retries")

        try:
            return call_with_retry(
                lambda: func(origin, destination),
                self.policy,
                sleep=self._sleep,
                on_attempt=count_attempt,
                description=f"{description} {to_wire(origin)} -> {to_wire(destination)}",
            )
        except RetryExhausted as exc:
            raise DistanceUnavailable(to_wire(origin), to_wire(destination), exc.attempts) from exc.last_error

    def get_distance(
        self,
        origin: Coordinate,
        destination: Coordinate,
        origin_address: str = "",
        destination_address: str = "",
    ) -> DistanceResult:
        fact = self.cache.lookup(origin, destination)
        if fact is not None:
            self.stats.increment("distance_cache_hits")
            return DistanceResult(fact.distance_meters, fact.duration_seconds, from_cache=True)

        self.stats.increment("distance_live_calls")
        distance_meters, duration_seconds = self._call(
            self.collaborator.distance_matrix, origin, destination, "Distance Matrix"
        )
        logger.info(f"Live distance {to_wire(origin)} -> {to_wire(destination)}: {distance_meters} m")

        try:
            self.cache.store(
                PairwiseDistanceFact(
                    origin=origin,
                    destination=destination,
                    distance_meters=distance_meters,
                    duration_seconds=duration_seconds,
                    origin_address=origin_address,
                    destination_address=destination_address,
                )
            )
        except CacheWriteFailed as exc:
            self.stats.increment("cache_write_failures")
            logger.warning(f"Distance obtained but not cached: {exc}")
        return DistanceResult(distance_meters, duration_seconds)

    def get_directions(self, origin: Coordinate, destination: Coordinate) -> DirectionsResult:
        key = (to_wire(origin), to_wire(destination))
        with self._directions_lock:
            self._sweep_directions()
            entry = self._directions.get(key)
            if entry is not None:
                self.stats.increment("directions_cache_hits")
                return entry[1]

        self.stats.increment("directions_live_calls")
        result = self._call(self.collaborator.directions, origin, destination, "Directions")
        with self._directions_lock:
            self._directions[key] = (self._monotonic(), result)
        return result

    def _sweep_directions(self) -> None:
        # Caller holds _directions_lock.
        now = self._monotonic()
        expired = [k for k, (stored_at, _) in self._directions.items() if now - stored_at > self.directions_ttl_seconds]
        for key in expired:
            del self._directions[key]
