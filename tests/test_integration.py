import pytest
from fastapi.testclient import TestClient

from conftest import DummyMaps, FakeRecordStore, timeout_error
from deliveries.main import create_app
from deliveries.models.domain import Coordinate
from deliveries.services.routing import service as routing_service

CACHED_FACTORIES = (
    routing_service.get_distance_cache,
    routing_service.get_distance_oracle,
    routing_service.get_geocoder,
    routing_service.get_route_sequencer,
    routing_service.get_janitor,
)

DEPOT = {"lat": -25.4284, "lng": -49.2733}
STOPS = [
    {"id": "A", "lat": -25.42, "lng": -49.27},
    {"id": "B", "lat": -25.50, "lng": -49.30},
    {"id": "C", "lat": -25.43, "lng": -49.28},
]


def _clear_factories() -> None:
    for factory in CACHED_FACTORIES:
        factory.cache_clear()


@pytest.fixture
def maps() -> DummyMaps:
    return DummyMaps(
        addresses={
            "Av. Sete de Setembro 2775": Coordinate(-25.4420, -49.2790),
            "Rua XV de Novembro 1000": Coordinate(-25.4300, -49.2650),
            "Rua Marechal Deodoro 500": Coordinate(-25.4310, -49.2700),
        }
    )


@pytest.fixture
def api_client(maps: DummyMaps, record_store: FakeRecordStore, monkeypatch: pytest.MonkeyPatch) -> TestClient:
    _clear_factories()
    monkeypatch.setattr(routing_service.settings, "oracle_backoff_seconds", 0.0)
    monkeypatch.setattr(routing_service, "get_google_maps_client", lambda: maps)
    monkeypatch.setattr(routing_service, "get_baserow_client", lambda: record_store)
    yield TestClient(create_app())
    _clear_factories()


def test_root_and_health(api_client: TestClient) -> None:
    root = api_client.get("/")
    assert root.status_code == 200
    assert root.json()["status"] == "running"

    health = api_client.get("/api/health")
    assert health.json() == {"status": "ok"}


def test_baserow_health_reports_fact_count(
    api_client: TestClient, record_store: FakeRecordStore, monkeypatch: pytest.MonkeyPatch
) -> None:
    from deliveries.api.routes import health

    monkeypatch.setattr(health, "get_baserow_client", lambda: record_store)
    record_store.insert({"distance": 1})

    body = api_client.get("/api/health/baserow").json()

    assert body["connected"] is True
    assert body["facts_count"] == 1


def test_sequence_route_with_coordinates(api_client: TestClient, record_store: FakeRecordStore) -> None:
    response = api_client.post(
        "/api/routes/sequence",
        json={"depot": DEPOT, "stops": STOPS, "departure_at": "2026-03-02T08:00:00Z"},
    )

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["order"] == ["C", "A", "B"]
    assert body["farthest_stop_id"] == "B"
    assert [leg["to_stop_id"] for leg in body["legs"]] == ["C", "A", "B", "depot"]
    assert body["total_distance_meters"] == sum(leg["distance_meters"] for leg in body["legs"])
    assert body["metadata"]["api_calls"]["distance_live_calls"] == 4
    overlays = body["metadata"]["map_overlays"]
    assert overlays["markers"][0]["kind"] == "depot"
    assert overlays["polylines"][0]["first_leg"] is True
    assert overlays["polylines"][-1]["return_leg"] is True
    # Every live distance was persisted for the next request.
    assert len(record_store.rows) == 4


def test_repeated_route_is_served_from_cache(api_client: TestClient, maps: DummyMaps) -> None:
    api_client.post("/api/routes/sequence", json={"depot": DEPOT, "stops": STOPS})
    calls_after_first = len(maps.distance_calls)

    body = api_client.post("/api/routes/sequence", json={"depot": DEPOT, "stops": STOPS}).json()

    assert len(maps.distance_calls) == calls_after_first
    assert body["metadata"]["api_calls"]["distance_cache_hits"] == 4
    assert body["order"] == ["C", "A", "B"]


def test_sequence_route_with_addresses_and_skipped_stop(api_client: TestClient) -> None:
    payload = {
        "depot": {"address": "Av. Sete de Setembro 2775"},
        "stops": [
            {"id": "1", "address": "Rua XV de Novembro 1000"},
            {"id": "2", "address": "Endereco inexistente"},
            {"id": "3", "address": "Rua Marechal Deodoro 500"},
        ],
        "skip_unresolved": True,
    }

    response = api_client.post("/api/routes/sequence", json=payload)

    assert response.status_code == 200, response.text
    body = response.json()
    assert sorted(body["order"]) == ["1", "3"]
    assert body["skipped_stops"] == [{"id": "2", "address": "Endereco inexistente", "reason": "ZERO_RESULTS"}]
    assert body["metadata"]["depot_address"] == "Av. Sete de Setembro 2775 (formatted)"


def test_unresolved_address_is_unprocessable(api_client: TestClient) -> None:
    payload = {"depot": DEPOT, "stops": [{"id": "1", "address": "Endereco inexistente"}]}

    response = api_client.post("/api/routes/sequence", json=payload)

    assert response.status_code == 422
    assert response.json()["detail"]["status"] == "ZERO_RESULTS"


def test_duplicate_stop_ids_are_rejected(api_client: TestClient) -> None:
    payload = {"depot": DEPOT, "stops": [STOPS[0], {**STOPS[1], "id": "A"}]}

    response = api_client.post("/api/routes/sequence", json=payload)

    assert response.status_code == 400
    assert "Duplicate" in response.json()["detail"]


def test_stop_without_address_or_coordinates_fails_validation(api_client: TestClient) -> None:
    response = api_client.post("/api/routes/sequence", json={"depot": DEPOT, "stops": [{"id": "1"}]})

    assert response.status_code == 422


def test_unreachable_google_returns_service_unavailable(api_client: TestClient, maps: DummyMaps) -> None:
    maps.failures = [timeout_error() for _ in range(3)]

    response = api_client.post("/api/routes/sequence", json={"depot": DEPOT, "stops": STOPS[:1]})

    assert response.status_code == 503
    assert "Unable to compute route" in response.json()["detail"]


def test_distance_matrix_endpoint_reports_cache_use(api_client: TestClient, maps: DummyMaps) -> None:
    payload = {"origin": "-25.4284,-49.2733", "destination": "-25.5,-49.3"}

    first = api_client.post("/api/cache/distance-matrix", json=payload).json()
    second = api_client.post("/api/cache/distance-matrix", json=payload).json()

    assert first["from_cache"] is False
    assert second["from_cache"] is True
    assert second["distance_meters"] == first["distance_meters"]
    assert len(maps.distance_calls) == 1


def test_distance_matrix_rejects_malformed_coordinates(api_client: TestClient) -> None:
    response = api_client.post("/api/cache/distance-matrix", json={"origin": "abc", "destination": "-25.5,-49.3"})

    assert response.status_code == 400


def test_save_then_read_cached_distance(api_client: TestClient) -> None:
    params = {
        "origin_lat": -25.4284,
        "origin_lng": -49.2733,
        "destination_lat": -25.5,
        "destination_lng": -49.3,
    }
    assert api_client.get("/api/cache/distance", params=params).status_code == 404

    saved = api_client.post(
        "/api/cache/save",
        json={**params, "distance": 12500, "duration": 1260, "points": [[-25.4284, -49.2733], [-25.5, -49.3]]},
    )
    assert saved.status_code == 200, saved.text
    assert saved.json()["id"] == 1

    nearby = {**params, "origin_lat": -25.42835}
    found = api_client.get("/api/cache/distance", params=nearby)
    assert found.status_code == 200
    assert found.json()["distance"] == 12500


def test_cleanup_endpoint(api_client: TestClient, record_store: FakeRecordStore) -> None:
    api_client.post("/api/routes/sequence", json={"depot": DEPOT, "stops": STOPS})

    response = api_client.delete("/api/cache/cleanup", params={"days": 30, "max_records": 2})

    assert response.status_code == 200
    assert response.json() == {
        "evicted_by_age": 0,
        "evicted_by_capacity": 2,
        "retention_days": 30,
        "max_records": 2,
    }
    assert len(record_store.rows) == 2


def test_stats_endpoint_and_reset(api_client: TestClient) -> None:
    payload = {"origin": "-25.4284,-49.2733", "destination": "-25.5,-49.3"}
    api_client.post("/api/cache/distance-matrix", json=payload)
    api_client.post("/api/cache/distance-matrix", json=payload)

    stats = api_client.get("/api/cache/stats").json()
    assert stats["distance_cache_hits"] == 1
    assert stats["distance_live_calls"] == 1
    assert stats["distance_hit_rate"] == 0.5

    assert api_client.delete("/api/cache/stats").json() == {"status": "reset"}
    assert api_client.get("/api/cache/stats").json()["distance_live_calls"] == 0


def test_geocode_and_directions_endpoints(api_client: TestClient) -> None:
    geocoded = api_client.post("/api/geocode", json={"address": "Rua XV de Novembro 1000"})
    assert geocoded.status_code == 200
    assert geocoded.json()["lat"] == -25.43

    directions = api_client.post(
        "/api/directions", json={"origin": "-25.4284,-49.2733", "destination": "-25.43,-49.265"}
    )
    assert directions.status_code == 200
    assert directions.json()["points"] == [[-25.4284, -49.2733], [-25.43, -49.265]]
