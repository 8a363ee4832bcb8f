"""Distance cache endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, status

from ...config import settings
from ...models.domain import Coordinate, PairwiseDistanceFact
from ...schemas.cache import (
    CachedFactModel,
    CleanupResponse,
    DistanceLookupRequest,
    DistanceResponse,
    SaveFactRequest,
)
from ...services.geospatial import parse_wire
from ...services.outputs.routing_formatter import fact_to_model
from ...services.routing.errors import CacheWriteFailed
from ...services.routing.service import get_distance_cache, get_distance_oracle, get_janitor
from ..errors import to_http_exception

router = APIRouter(prefix="/cache", tags=["cache"])


def _coordinate(lat: float, lng: float, label: str) -> Coordinate:
    coordinate = Coordinate(lat, lng)
    if not coordinate.is_valid():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{label} coordinates out of range")
    return coordinate


@router.post("/distance-matrix", response_model=DistanceResponse, status_code=status.HTTP_200_OK)
def distance_matrix(payload: DistanceLookupRequest) -> DistanceResponse:
    """Distance between two points, served from the cache when a nearby pair is known."""
    try:
        result = get_distance_oracle().get_distance(parse_wire(payload.origin), parse_wire(payload.destination))
    except Exception as exc:
        raise to_http_exception(exc, "compute distance") from exc
    return DistanceResponse(
        origin=payload.origin,
        destination=payload.destination,
        distance_meters=result.distance_meters,
        duration_seconds=result.duration_seconds,
        from_cache=result.from_cache,
    )


@router.get("/distance", response_model=CachedFactModel, status_code=status.HTTP_200_OK)
def get_cached_distance(
    origin_lat: float = Query(...),
    origin_lng: float = Query(...),
    destination_lat: float = Query(...),
    destination_lng: float = Query(...),
) -> CachedFactModel:
    origin = _coordinate(origin_lat, origin_lng, "origin")
    destination = _coordinate(destination_lat, destination_lng, "destination")
    fact = get_distance_cache().lookup(origin, destination)
    if fact is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Route not found in cache")
    return fact_to_model(fact)


@router.post("/save", response_model=CachedFactModel, status_code=status.HTTP_200_OK)
def save_distance(payload: SaveFactRequest) -> CachedFactModel:
    fact = PairwiseDistanceFact(
        origin=_coordinate(payload.origin_lat, payload.origin_lng, "origin"),
        destination=_coordinate(payload.destination_lat, payload.destination_lng, "destination"),
        distance_meters=payload.distance,
        duration_seconds=payload.duration,
        origin_address=payload.origin_address,
        destination_address=payload.destination_address,
        polyline_points=[Coordinate(lat, lng) for lat, lng in payload.points],
    )
    try:
        stored = get_distance_cache().store(fact)
    except CacheWriteFailed as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return fact_to_model(stored)


@router.delete("/cleanup", response_model=CleanupResponse, status_code=status.HTTP_200_OK)
def cleanup(
    days: int | None = Query(default=None, ge=0, description="Retention window in days"),
    max_records: int | None = Query(default=None, ge=0, description="Maximum facts kept after cleanup"),
) -> CleanupResponse:
    retention_days = days if days is not None else settings.cache_retention_days
    limit = max_records if max_records is not None else settings.cache_max_records
    try:
        report = get_janitor().run_cleanup(retention_days=retention_days, max_records=limit)
    except Exception as exc:
        raise to_http_exception(exc, "clean distance cache") from exc
    return CleanupResponse(
        evicted_by_age=report.evicted_by_age,
        evicted_by_capacity=report.evicted_by_capacity,
        retention_days=retention_days,
        max_records=limit,
    )


@router.get("/stats", status_code=status.HTTP_200_OK)
def get_stats() -> dict:
    try:
        oracle = get_distance_oracle()
    except Exception as exc:
        raise to_http_exception(exc, "read cache statistics") from exc
    return {**oracle.stats.snapshot(), "memory_entries": len(oracle.cache.memory)}


@router.delete("/stats", status_code=status.HTTP_200_OK)
def reset_stats() -> dict:
    try:
        get_distance_oracle().stats.reset()
    except Exception as exc:
        raise to_http_exception(exc, "reset cache statistics") from exc
    return {"status": "reset"}
