"""Geocoding and directions proxy endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from ...schemas.routing import DirectionsRequest, DirectionsResponse, GeocodeRequest, GeocodeResponse
from ...services.geospatial import parse_wire
from ...services.routing.service import get_distance_oracle, get_geocoder
from ..errors import to_http_exception

router = APIRouter(tags=["maps"])


@router.post("/geocode", response_model=GeocodeResponse, status_code=status.HTTP_200_OK)
def geocode(payload: GeocodeRequest) -> GeocodeResponse:
    try:
        result = get_geocoder().geocode(payload.address)
    except Exception as exc:
        raise to_http_exception(exc, "geocode address") from exc
    return GeocodeResponse(
        address=payload.address,
        formatted_address=result.formatted_address,
        lat=result.coordinates.lat,
        lng=result.coordinates.lng,
    )


@router.post("/directions", response_model=DirectionsResponse, status_code=status.HTTP_200_OK)
def directions(payload: DirectionsRequest) -> DirectionsResponse:
    try:
        result = get_distance_oracle().get_directions(parse_wire(payload.origin), parse_wire(payload.destination))
    except Exception as exc:
        raise to_http_exception(exc, "fetch directions") from exc
    return DirectionsResponse(
        distance_meters=result.distance_meters,
        duration_seconds=result.duration_seconds,
        start_address=result.start_address,
        end_address=result.end_address,
        points=[[point.lat, point.lng] for point in result.polyline],
    )
