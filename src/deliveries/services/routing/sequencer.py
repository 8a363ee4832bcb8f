"""Farthest-last, nearest-neighbour route sequencing.

The stop with the greatest depot distance is pinned as the final visit. The
remaining stops are ordered by a nearest-neighbour walk from the depot over a
pairwise distance matrix. Legs are then materialized with full directions,
whose distances and durations supersede the matrix values in the totals.
This is a heuristic; no optimality guarantee is made.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from itertools import combinations
from typing import Callable, Optional, Sequence, TypeVar

from ...config import settings
from ...models.domain import Coordinate, StopPoint
from .errors import InvalidStop
from .models import DEPOT_ID, RouteLeg, RoutePlan
from .oracle import DistanceOracle

logger = logging.getLogger(__name__)

T = TypeVar("T")


def select_farthest(distances: Sequence[int]) -> int:
    """Index of the strictly greatest distance; the first one wins on ties."""
    best_index = 0
    for index, distance in enumerate(distances):
        if distance > distances[best_index]:
            best_index = index
    return best_index


def nearest_neighbor_order(
    start_distances: Sequence[int],
    pair_distance: Callable[[int, int], int],
) -> list[int]:
    """Visit order over ``len(start_distances)`` points, starting from an external origin.

    Ties are broken by insertion order.
    """
    unvisited = list(range(len(start_distances)))
    order: list[int] = []
    current: Optional[int] = None
    while unvisited:
        best: Optional[int] = None
        best_distance = 0
        for candidate in unvisited:
            distance = start_distances[candidate] if current is None else pair_distance(current, candidate)
            if best is None or distance < best_distance:
                best, best_distance = candidate, distance
        order.append(best)
        unvisited.remove(best)
        current = best
    return order


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RouteSequencer:
    def __init__(
        self,
        oracle: DistanceOracle,
        max_parallel_requests: int | None = None,
        now: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.oracle = oracle
        self.max_parallel_requests = max_parallel_requests or settings.max_parallel_requests
        self._now = now

    def _run_parallel(self, func: Callable[..., T], calls: Sequence[tuple]) -> list[T]:
        """Run independent lookups with bounded concurrency; results keep the order of ``calls``."""
        if not calls:
            return []
        if self.max_parallel_requests <= 1 or len(calls) == 1:
            return [func(*args) for args in calls]
        executor = ThreadPoolExecutor(max_workers=min(self.max_parallel_requests, len(calls)))
        try:
            futures = [executor.submit(func, *args) for args in calls]
            return [future.result() for future in futures]
        finally:
            # First failure aborts the phase; queued lookups are dropped.
            executor.shutdown(wait=True, cancel_futures=True)

    @staticmethod
    def _validate(depot: Coordinate, stops: Sequence[StopPoint]) -> None:
        if depot is None or not depot.is_valid():
            raise InvalidStop("Depot coordinates are missing or out of range.", stop_id=DEPOT_ID)
        if not stops:
            raise InvalidStop("At least one stop is required to build a route.")
        seen: set[str] = set()
        for stop in stops:
            if stop.id == DEPOT_ID:
                raise InvalidStop(f"Stop id '{DEPOT_ID}' is reserved for the depot.", stop_id=stop.id)
            if stop.id in seen:
                raise InvalidStop(f"Duplicate stop id '{stop.id}'.", stop_id=stop.id)
            seen.add(stop.id)
            if stop.coordinates is None:
                raise InvalidStop(f"Stop '{stop.id}' has no resolved coordinates.", stop_id=stop.id)
            if not stop.coordinates.is_valid():
                raise InvalidStop(f"Stop '{stop.id}' has out-of-range coordinates.", stop_id=stop.id)

    def sequence(
        self,
        depot: Coordinate,
        stops: Sequence[StopPoint],
        departure_at: Optional[datetime] = None,
        depot_address: str = "",
    ) -> RoutePlan:
        self._validate(depot, stops)
        stops = list(stops)

        # Farthest-first seed.
        depot_results = self._run_parallel(
            self.oracle.get_distance,
            [(depot, stop.coordinates, depot_address, stop.raw_address) for stop in stops],
        )
        depot_distances = [result.distance_meters for result in depot_results]
        farthest_index = select_farthest(depot_distances)
        farthest = stops[farthest_index]

        remaining = [stop for index, stop in enumerate(stops) if index != farthest_index]
        start_distances = [d for index, d in enumerate(depot_distances) if index != farthest_index]

        # Pairwise matrix over the remaining stops, one lookup per unordered pair.
        pairs = list(combinations(range(len(remaining)), 2))
        pair_results = self._run_parallel(
            self.oracle.get_distance,
            [
                (remaining[i].coordinates, remaining[j].coordinates, remaining[i].raw_address, remaining[j].raw_address)
                for i, j in pairs
            ],
        )
        matrix = {pair: result.distance_meters for pair, result in zip(pairs, pair_results)}

        walk = nearest_neighbor_order(start_distances, lambda a, b: matrix[(min(a, b), max(a, b))])
        ordered = [remaining[index] for index in walk] + [farthest]

        legs = self._materialize_legs(depot, ordered)
        total_distance = legs[-1].cumulative_distance_meters
        total_duration = legs[-1].cumulative_duration_seconds
        departure = departure_at or self._now()

        logger.info(
            f"Sequenced {len(ordered)} stop(s), farthest '{farthest.id}' last: "
            f"{total_distance} m, {total_duration} s"
        )
        return RoutePlan(
            depot=depot,
            order=[stop.id for stop in ordered],
            legs=legs,
            total_distance_meters=total_distance,
            total_duration_seconds=total_duration,
            departure_at=departure,
            estimated_return_at=departure + timedelta(seconds=total_duration),
            farthest_stop_id=farthest.id,
        )

    def _materialize_legs(self, depot: Coordinate, ordered: Sequence[StopPoint]) -> list[RouteLeg]:
        points = [(DEPOT_ID, depot), *((stop.id, stop.coordinates) for stop in ordered), (DEPOT_ID, depot)]
        segments = list(zip(points, points[1:]))
        directions = self._run_parallel(
            self.oracle.get_directions,
            [(origin, destination) for (_, origin), (_, destination) in segments],
        )

        legs: list[RouteLeg] = []
        cumulative_distance = 0
        cumulative_duration = 0
        for ((from_id, _), (to_id, _)), result in zip(segments, directions):
            cumulative_distance += result.distance_meters
            cumulative_duration += result.duration_seconds
            legs.append(
                RouteLeg(
                    from_stop_id=from_id,
                    to_stop_id=to_id,
                    distance_meters=result.distance_meters,
                    duration_seconds=result.duration_seconds,
                    polyline=list(result.polyline),
                    cumulative_distance_meters=cumulative_distance,
                    cumulative_duration_seconds=cumulative_duration,
                )
            )
        return legs
