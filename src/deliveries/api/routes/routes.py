"""Routing endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from ...schemas.routing import RouteRequest, RouteResponse
from ...services.routing.service import plan_route
from ..errors import to_http_exception

router = APIRouter(prefix="/routes", tags=["routes"])


@router.post("/sequence", response_model=RouteResponse, status_code=status.HTTP_200_OK)
def sequence(payload: RouteRequest) -> RouteResponse:
    """Geocode the depot and stops, order the stops and materialize every leg."""
    try:
        return plan_route(payload)
    except Exception as exc:
        raise to_http_exception(exc, "compute route") from exc
