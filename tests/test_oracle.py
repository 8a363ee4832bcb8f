import pytest

from conftest import DummyMaps, FakeRecordStore, timeout_error
from deliveries.db.baserow import StoreError
from deliveries.models.domain import Coordinate
from deliveries.persistence.distance_cache import PairwiseDistanceCache
from deliveries.services.routing.errors import CollaboratorError, DistanceUnavailable
from deliveries.services.routing.oracle import CallStats, DistanceOracle
from deliveries.services.routing.retry import RetryPolicy

ORIGIN = Coordinate(-25.4284, -49.2733)
DESTINATION = Coordinate(-25.5, -49.3)


def _oracle(maps, store=None, sleeps=None, clock=None, **kwargs) -> DistanceOracle:
    cache = PairwiseDistanceCache(store, tolerance=0.0001, precision=6, memory_ttl_seconds=3600)
    return DistanceOracle(
        maps,
        cache,
        policy=RetryPolicy(max_attempts=3, base_delay=1.0),
        sleep=(sleeps.append if sleeps is not None else lambda _: None),
        monotonic=clock or (lambda: 0.0),
        **kwargs,
    )


def test_live_distance_is_stored_and_reused(record_store: FakeRecordStore) -> None:
    maps = DummyMaps(distances={((-25.4284, -49.2733), (-25.5, -49.3)): 12500})
    oracle = _oracle(maps, record_store)

    first = oracle.get_distance(ORIGIN, DESTINATION)
    second = oracle.get_distance(ORIGIN, DESTINATION)

    assert (first.distance_meters, first.from_cache) == (12500, False)
    assert (second.distance_meters, second.from_cache) == (12500, True)
    assert len(maps.distance_calls) == 1
    assert len(record_store.rows) == 1


def test_fact_stored_by_one_oracle_serves_another_within_tolerance(record_store: FakeRecordStore) -> None:
    _oracle(DummyMaps(), record_store).get_distance(ORIGIN, DESTINATION)

    maps = DummyMaps()
    result = _oracle(maps, record_store).get_distance(Coordinate(ORIGIN.lat + 0.00005, ORIGIN.lng), DESTINATION)

    assert result.from_cache is True
    assert maps.distance_calls == []


def test_two_timeouts_then_success_takes_three_attempts() -> None:
    maps = DummyMaps()
    maps.failures = [timeout_error(), timeout_error()]
    sleeps: list[float] = []
    oracle = _oracle(maps, sleeps=sleeps)

    result = oracle.get_distance(ORIGIN, DESTINATION)

    assert result.distance_meters > 0
    assert len(maps.distance_calls) == 3
    assert sleeps == [1.0, 2.0]
    assert oracle.stats.attempts == 3
    assert oracle.stats.retries == 2


def test_exhausted_retries_raise_distance_unavailable() -> None:
    maps = DummyMaps()
    maps.failures = [timeout_error() for _ in range(3)]

    with pytest.raises(DistanceUnavailable) as exc_info:
        _oracle(maps).get_distance(ORIGIN, DESTINATION)

    assert exc_info.value.attempts == 3
    assert exc_info.value.origin == "-25.4284,-49.2733"
    assert len(maps.distance_calls) == 3


def test_collaborator_error_is_not_retried() -> None:
    maps = DummyMaps()
    maps.failures = [CollaboratorError("distance_matrix", "REQUEST_DENIED", "bad key")]

    with pytest.raises(CollaboratorError) as exc_info:
        _oracle(maps).get_distance(ORIGIN, DESTINATION)

    assert exc_info.value.status == "REQUEST_DENIED"
    assert len(maps.distance_calls) == 1


def test_cache_write_failure_still_returns_distance(record_store: FakeRecordStore) -> None:
    maps = DummyMaps()
    oracle = _oracle(maps, record_store)
    record_store.fail_with = StoreError("Baserow POST failed with 503", status_code=503)

    result = oracle.get_distance(ORIGIN, DESTINATION)

    assert result.from_cache is False
    assert result.distance_meters > 0
    assert oracle.stats.cache_write_failures == 1


def test_directions_are_cached_for_a_short_burst() -> None:
    clock = [0.0]
    maps = DummyMaps()
    oracle = _oracle(maps, clock=lambda: clock[0], directions_ttl_seconds=900)

    first = oracle.get_directions(ORIGIN, DESTINATION)
    clock[0] = 600.0
    second = oracle.get_directions(ORIGIN, DESTINATION)
    clock[0] = 1600.0
    oracle.get_directions(ORIGIN, DESTINATION)

    assert second is first
    assert len(maps.directions_calls) == 2
    assert oracle.stats.directions_cache_hits == 1
    assert oracle.stats.directions_live_calls == 2


def test_expired_directions_are_swept_from_the_burst_cache() -> None:
    clock = [0.0]
    oracle = _oracle(DummyMaps(), clock=lambda: clock[0], directions_ttl_seconds=900)

    for index in range(200):
        clock[0] = index * 1000.0
        oracle.get_directions(ORIGIN, Coordinate(DESTINATION.lat - index / 1000, DESTINATION.lng))

    assert len(oracle._directions) == 1
    assert oracle.stats.directions_live_calls == 200


def test_call_stats_snapshot_reports_hit_rates() -> None:
    stats = CallStats()
    stats.increment("distance_cache_hits", 3)
    stats.increment("distance_live_calls")

    snapshot = stats.snapshot()

    assert snapshot["distance_hit_rate"] == 0.75
    assert snapshot["directions_hit_rate"] == 0.0
    stats.reset()
    assert stats.snapshot()["distance_cache_hits"] == 0
