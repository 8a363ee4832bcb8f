"""Geospatial helper functions."""

from __future__ import annotations

import math

from ..models.domain import Coordinate


def to_wire(coordinate: Coordinate) -> str:
    """Serialize a coordinate as the ``"lat,lng"`` string Google web services expect."""

    return f"{coordinate.lat},{coordinate.lng}"


def parse_wire(value: str) -> Coordinate:
    """Parse a ``"lat,lng"`` string, rejecting malformed or out-of-range values."""

    parts = [part.strip() for part in value.split(",")]
    if len(parts) != 2:
        raise ValueError(f"Expected 'lat,lng', got '{value}'.")
    try:
        coordinate = Coordinate(float(parts[0]), float(parts[1]))
    except ValueError as exc:
        raise ValueError(f"Invalid coordinate '{value}'.") from exc
    if not coordinate.is_valid() or any(math.isnan(v) for v in (coordinate.lat, coordinate.lng)):
        raise ValueError(f"Coordinate out of range: '{value}'.")
    return coordinate
