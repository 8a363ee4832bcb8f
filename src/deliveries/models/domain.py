"""Domain models for coordinates, delivery stops and cached distance facts."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

# Absorbs float noise in coordinate differences such as -25.4284 - -25.4285.
COORDINATE_EPSILON = 1e-9


@dataclass(frozen=True, slots=True)
class Coordinate:
    """A WGS84 point. Two coordinates are the same place when both axes fall within tolerance."""

    lat: float
    lng: float

    def is_valid(self) -> bool:
        return -90.0 <= self.lat <= 90.0 and -180.0 <= self.lng <= 180.0

    def within(self, other: Coordinate, tolerance: float) -> bool:
        limit = tolerance + COORDINATE_EPSILON
        return abs(self.lat - other.lat) <= limit and abs(self.lng - other.lng) <= limit

    def rounded(self, precision: int) -> Coordinate:
        return Coordinate(round(self.lat, precision), round(self.lng, precision))


@dataclass(slots=True)
class StopPoint:
    """A delivery destination taking part in one route computation."""

    id: str
    coordinates: Optional[Coordinate]
    raw_address: str = ""


@dataclass(slots=True)
class PairwiseDistanceFact:
    """A cached distance/duration measurement between two coordinates."""

    origin: Coordinate
    destination: Coordinate
    distance_meters: int
    duration_seconds: int
    origin_address: str = ""
    destination_address: str = ""
    created_at: Optional[datetime] = None
    last_used_at: Optional[datetime] = None
    polyline_points: list[Coordinate] = field(default_factory=list)
    record_id: Optional[int] = None
