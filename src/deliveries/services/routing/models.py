"""Routing domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List

from ...models.domain import Coordinate

DEPOT_ID = "depot"


@dataclass(slots=True)
class GeocodeResult:
    coordinates: Coordinate
    formatted_address: str


@dataclass(slots=True)
class DistanceResult:
    distance_meters: int
    duration_seconds: int
    from_cache: bool = False


@dataclass(slots=True)
class DirectionsResult:
    distance_meters: int
    duration_seconds: int
    polyline: List[Coordinate] = field(default_factory=list)
    start_address: str = ""
    end_address: str = ""


@dataclass(slots=True)
class RouteLeg:
    from_stop_id: str
    to_stop_id: str
    distance_meters: int
    duration_seconds: int
    polyline: List[Coordinate]
    cumulative_distance_meters: int = 0
    cumulative_duration_seconds: int = 0


@dataclass(slots=True)
class RoutePlan:
    depot: Coordinate
    order: List[str]
    legs: List[RouteLeg]
    total_distance_meters: int
    total_duration_seconds: int
    departure_at: datetime
    estimated_return_at: datetime
    farthest_stop_id: str
