from __future__ import annotations

import threading
from datetime import datetime, timezone

import httpx
import pytest

from deliveries.db.baserow import Filter, StoreError
from deliveries.models.domain import Coordinate
from deliveries.persistence.fact_rows import parse_timestamp
from deliveries.services.routing.errors import GeocodingFailed
from deliveries.services.routing.models import DirectionsResult, GeocodeResult
from deliveries.services.routing.retry import RetryPolicy


class FakeRecordStore:
    """In-memory stand-in for the Baserow distance table.

    Understands the filter operators and ordering the distance cache sends.
    """

    def __init__(self) -> None:
        self.rows: dict[int, dict] = {}
        self.next_id = 1
        self.queries: list[tuple[list[Filter], tuple, int | None]] = []
        self.updates: list[tuple[int, dict]] = []
        self.fail_with: StoreError | None = None
        self._lock = threading.Lock()

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    @staticmethod
    def _matches(row: dict, flt: Filter) -> bool:
        value = row.get(flt.field)
        if flt.op == "higher_than_or_equal":
            return float(value) >= float(flt.value)
        if flt.op == "lower_than_or_equal":
            return float(value) <= float(flt.value)
        if flt.op == "date_before":
            return parse_timestamp(value) < parse_timestamp(flt.value)
        raise AssertionError(f"unexpected filter operator {flt.op}")

    def query(self, filters=(), order_by=(), limit=None):
        self._check()
        self.queries.append((list(filters), tuple(order_by), limit))
        with self._lock:
            snapshot = [dict(row) for row in self.rows.values()]
        rows = [row for row in snapshot if all(self._matches(row, f) for f in filters)]
        for key in reversed(order_by):
            field = key.lstrip("-")
            rows.sort(key=lambda row: row[field], reverse=key.startswith("-"))
        return rows if limit is None else rows[:limit]

    def insert(self, row):
        self._check()
        with self._lock:
            stored = {**row, "id": self.next_id}
            self.rows[self.next_id] = stored
            self.next_id += 1
        return dict(stored)

    def update(self, row_id, patch):
        self._check()
        self.updates.append((row_id, dict(patch)))
        self.rows[row_id].update(patch)
        return dict(self.rows[row_id])

    def delete(self, row_id):
        self._check()
        self.rows.pop(row_id)

    def count(self, filters=()):
        self._check()
        with self._lock:
            snapshot = list(self.rows.values())
        return len([row for row in snapshot if all(self._matches(row, f) for f in filters)])


class DummyMaps:
    """Google Maps stand-in: distances come from a lookup table keyed by rounded coordinates."""

    def __init__(self, distances: dict | None = None, addresses: dict | None = None) -> None:
        self.distances = distances or {}
        self.addresses = addresses or {}
        self.distance_calls: list[tuple[Coordinate, Coordinate]] = []
        self.directions_calls: list[tuple[Coordinate, Coordinate]] = []
        self.geocode_calls: list[str] = []
        self.failures: list[Exception] = []

    @staticmethod
    def _key(point: Coordinate) -> tuple[float, float]:
        return (round(point.lat, 4), round(point.lng, 4))

    def _distance(self, origin: Coordinate, destination: Coordinate) -> int:
        key = (self._key(origin), self._key(destination))
        if key in self.distances:
            return self.distances[key]
        reverse = (key[1], key[0])
        if reverse in self.distances:
            return self.distances[reverse]
        # Fallback: about 111 km per degree on both axes.
        return int((abs(origin.lat - destination.lat) + abs(origin.lng - destination.lng)) * 111_000)

    def distance_matrix(self, origin, destination):
        self.distance_calls.append((origin, destination))
        if self.failures:
            raise self.failures.pop(0)
        meters = self._distance(origin, destination)
        return meters, meters // 10

    def directions(self, origin, destination):
        self.directions_calls.append((origin, destination))
        if self.failures:
            raise self.failures.pop(0)
        meters = self._distance(origin, destination)
        return DirectionsResult(
            distance_meters=meters,
            duration_seconds=meters // 10,
            polyline=[origin, destination],
        )

    def geocode(self, address):
        self.geocode_calls.append(address)
        if self.failures:
            raise self.failures.pop(0)
        for known, coordinates in self.addresses.items():
            if address.startswith(known):
                return GeocodeResult(coordinates=coordinates, formatted_address=f"{known} (formatted)")
        raise GeocodingFailed(address)


def timeout_error() -> httpx.ConnectTimeout:
    return httpx.ConnectTimeout("timed out")


@pytest.fixture
def record_store() -> FakeRecordStore:
    return FakeRecordStore()


@pytest.fixture
def fast_policy() -> RetryPolicy:
    return RetryPolicy(max_attempts=3, base_delay=0.0)


@pytest.fixture
def fixed_now():
    return lambda: datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)
