"""Routing orchestration service."""

from __future__ import annotations

import logging
from functools import lru_cache

from ...config import settings
from ...db.baserow import get_baserow_client
from ...models.domain import Coordinate
from ...persistence.distance_cache import PairwiseDistanceCache
from ...schemas.routing import LocationInput, RouteRequest, RouteResponse
from ..cache.janitor import CacheJanitor
from ..outputs.routing_formatter import plan_to_response
from .errors import InvalidStop
from .geocoder import Geocoder, RawStop
from .google_maps import GoogleMapsClient
from .models import DEPOT_ID
from .oracle import DistanceOracle
from .sequencer import RouteSequencer

logger = logging.getLogger(__name__)


@lru_cache()
def get_distance_cache() -> PairwiseDistanceCache:
    return PairwiseDistanceCache(store=get_baserow_client())


@lru_cache()
def get_google_maps_client() -> GoogleMapsClient:
    try:
        return GoogleMapsClient()
    except ValueError as e:
        logger.error(f"Google Maps client initialization failed: {e}")
        raise ValueError("Google Maps is not configured. Please check the DLV_GOOGLE_MAPS_API_KEY setting.") from e


@lru_cache()
def get_distance_oracle() -> DistanceOracle:
    return DistanceOracle(
        collaborator=get_google_maps_client(),
        cache=get_distance_cache(),
        directions_ttl_seconds=settings.directions_cache_ttl_seconds,
    )


@lru_cache()
def get_geocoder() -> Geocoder:
    return Geocoder(get_google_maps_client(), region_suffix=settings.geocode_region_suffix)


@lru_cache()
def get_route_sequencer() -> RouteSequencer:
    return RouteSequencer(get_distance_oracle(), max_parallel_requests=settings.max_parallel_requests)


@lru_cache()
def get_janitor() -> CacheJanitor:
    return CacheJanitor(get_distance_cache())


def reset_components() -> None:
    """Drop every process-cached component (used after settings change and in tests)."""
    for factory in (
        get_distance_cache,
        get_google_maps_client,
        get_distance_oracle,
        get_geocoder,
        get_route_sequencer,
        get_janitor,
        get_baserow_client,
    ):
        factory.cache_clear()


def _resolve_depot(depot: LocationInput, geocoder: Geocoder) -> tuple[Coordinate, str]:
    if depot.lat is not None and depot.lng is not None:
        coordinates = Coordinate(depot.lat, depot.lng)
        if not coordinates.is_valid():
            raise InvalidStop("Depot coordinates are out of range.", stop_id=DEPOT_ID)
        return coordinates, depot.address or ""
    result = geocoder.geocode(depot.address or "")
    return result.coordinates, result.formatted_address


def _call_delta(before: dict, after: dict) -> dict:
    keys = ("distance_cache_hits", "distance_live_calls", "directions_cache_hits", "directions_live_calls", "retries")
    return {key: after[key] - before[key] for key in keys}


def plan_route(payload: RouteRequest) -> RouteResponse:
    geocoder = get_geocoder()
    sequencer = get_route_sequencer()

    depot, depot_address = _resolve_depot(payload.depot, geocoder)

    raw_stops = [
        RawStop(
            id=stop.id,
            address=stop.address or "",
            coordinates=Coordinate(stop.lat, stop.lng) if stop.lat is not None and stop.lng is not None else None,
        )
        for stop in payload.stops
    ]
    stops, unresolved = geocoder.resolve_stops(raw_stops, skip_unresolved=payload.skip_unresolved)
    if not stops:
        raise InvalidStop("None of the stops could be resolved to coordinates.")
    if unresolved:
        logger.warning(f"{len(unresolved)} stop(s) skipped: {[stop.id for stop in unresolved]}")

    stats_before = sequencer.oracle.stats.snapshot()
    plan = sequencer.sequence(depot, stops, departure_at=payload.departure_at, depot_address=depot_address)
    stats_after = sequencer.oracle.stats.snapshot()

    metadata = {
        "status": "complete",
        "depot_address": depot_address,
        "stop_count": len(stops),
        "heuristic": "farthest_last_nearest_neighbor",
        "api_calls": _call_delta(stats_before, stats_after),
    }
    return plan_to_response(plan, stops, skipped=unresolved, metadata=metadata)
