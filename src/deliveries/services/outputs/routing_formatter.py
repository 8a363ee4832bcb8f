"""Serializers for route plans and cached distance facts."""

from __future__ import annotations

from typing import Sequence

from ...models.domain import Coordinate, PairwiseDistanceFact, StopPoint
from ...schemas.cache import CachedFactModel
from ...schemas.routing import CoordinateModel, RouteLegModel, RouteResponse, SkippedStopModel
from ..routing.geocoder import UnresolvedStop
from ..routing.models import RoutePlan


def _points(polyline: Sequence[Coordinate]) -> list[list[float]]:
    return [[point.lat, point.lng] for point in polyline]


def build_route_overlays(plan: RoutePlan, stops: Sequence[StopPoint]) -> dict:
    """Markers and polylines for the map view, in visiting order."""
    by_id = {stop.id: stop for stop in stops}
    markers = [{"id": "depot", "kind": "depot", "lat": plan.depot.lat, "lng": plan.depot.lng}]
    for sequence, stop_id in enumerate(plan.order, start=1):
        stop = by_id[stop_id]
        markers.append(
            {
                "id": stop_id,
                "kind": "stop",
                "sequence": sequence,
                "address": stop.raw_address,
                "lat": stop.coordinates.lat,
                "lng": stop.coordinates.lng,
            }
        )
    polylines = [
        {
            "from": leg.from_stop_id,
            "to": leg.to_stop_id,
            "first_leg": index == 0,
            "return_leg": index == len(plan.legs) - 1,
            "coordinates": _points(leg.polyline),
        }
        for index, leg in enumerate(plan.legs)
    ]
    return {"markers": markers, "polylines": polylines}


def plan_to_response(
    plan: RoutePlan,
    stops: Sequence[StopPoint],
    skipped: Sequence[UnresolvedStop] = (),
    metadata: dict | None = None,
) -> RouteResponse:
    metadata = dict(metadata or {})
    metadata["map_overlays"] = build_route_overlays(plan, stops)
    return RouteResponse(
        depot=CoordinateModel(lat=plan.depot.lat, lng=plan.depot.lng),
        order=list(plan.order),
        legs=[
            RouteLegModel(
                from_stop_id=leg.from_stop_id,
                to_stop_id=leg.to_stop_id,
                distance_meters=leg.distance_meters,
                duration_seconds=leg.duration_seconds,
                distance_km=round(leg.distance_meters / 1000.0, 3),
                duration_min=round(leg.duration_seconds / 60.0, 1),
                cumulative_distance_meters=leg.cumulative_distance_meters,
                cumulative_duration_seconds=leg.cumulative_duration_seconds,
                polyline=_points(leg.polyline),
            )
            for leg in plan.legs
        ],
        total_distance_meters=plan.total_distance_meters,
        total_duration_seconds=plan.total_duration_seconds,
        total_distance_km=round(plan.total_distance_meters / 1000.0, 3),
        total_duration_min=round(plan.total_duration_seconds / 60.0, 1),
        departure_at=plan.departure_at,
        estimated_return_at=plan.estimated_return_at,
        farthest_stop_id=plan.farthest_stop_id,
        skipped_stops=[SkippedStopModel(id=s.id, address=s.address, reason=s.reason) for s in skipped],
        metadata=metadata,
    )


def fact_to_model(fact: PairwiseDistanceFact) -> CachedFactModel:
    return CachedFactModel(
        id=fact.record_id,
        origin_address=fact.origin_address,
        origin_lat=fact.origin.lat,
        origin_lng=fact.origin.lng,
        destination_address=fact.destination_address,
        destination_lat=fact.destination.lat,
        destination_lng=fact.destination.lng,
        distance=fact.distance_meters,
        duration=fact.duration_seconds,
        points=_points(fact.polyline_points),
        created_at=fact.created_at,
        last_used=fact.last_used_at,
    )
