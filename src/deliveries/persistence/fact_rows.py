"""Mapping between Baserow distance rows and ``PairwiseDistanceFact``.

This is the only module aware of the table's column names and value formats.
Coordinates are written as fixed-precision decimal strings so the bounding-box
filters used on lookup compare against exactly what was written.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from ..db.baserow import Filter
from ..models.domain import Coordinate, PairwiseDistanceFact

logger = logging.getLogger(__name__)

LAST_USED = "last_used"
MOST_RECENT_FIRST = ("-last_used", "-id")
LEAST_RECENT_FIRST = ("last_used", "id")
DATE_BEFORE_OP = "date_before"


@dataclass(slots=True)
class FactRow:
    origin_address: str
    origin_lat: str
    origin_lng: str
    destination_address: str
    destination_lat: str
    destination_lng: str
    distance: int
    duration: int
    points: str
    created_at: str
    last_used: str


def format_decimal(value: float, precision: int) -> str:
    return f"{value:.{precision}f}"


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def parse_timestamp(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def fact_to_row(fact: PairwiseDistanceFact, precision: int) -> dict:
    now = datetime.now(timezone.utc)
    row = FactRow(
        origin_address=fact.origin_address,
        origin_lat=format_decimal(fact.origin.lat, precision),
        origin_lng=format_decimal(fact.origin.lng, precision),
        destination_address=fact.destination_address,
        destination_lat=format_decimal(fact.destination.lat, precision),
        destination_lng=format_decimal(fact.destination.lng, precision),
        distance=int(fact.distance_meters),
        duration=int(fact.duration_seconds),
        points=json.dumps([[p.lat, p.lng] for p in fact.polyline_points]),
        created_at=format_timestamp(fact.created_at or now),
        last_used=format_timestamp(fact.last_used_at or fact.created_at or now),
    )
    return asdict(row)


def row_to_fact(row: dict) -> Optional[PairwiseDistanceFact]:
    """Convert a stored row, or return None when the row is malformed."""
    try:
        raw_points = row.get("points") or "[]"
        points = json.loads(raw_points) if isinstance(raw_points, str) else raw_points
        return PairwiseDistanceFact(
            origin=Coordinate(float(row["origin_lat"]), float(row["origin_lng"])),
            destination=Coordinate(float(row["destination_lat"]), float(row["destination_lng"])),
            distance_meters=int(float(row["distance"])),
            duration_seconds=int(float(row["duration"])),
            origin_address=row.get("origin_address") or "",
            destination_address=row.get("destination_address") or "",
            created_at=parse_timestamp(row.get("created_at")),
            last_used_at=parse_timestamp(row.get(LAST_USED)),
            polyline_points=[Coordinate(float(lat), float(lng)) for lat, lng in points],
            record_id=row.get("id"),
        )
    except (KeyError, TypeError, ValueError) as exc:
        logger.warning(f"Skipping malformed distance row {row.get('id')}: {exc}")
        return None


def bounding_box_filters(
    origin: Coordinate, destination: Coordinate, tolerance: float, precision: int
) -> list[Filter]:
    # One extra digit keeps the box edges from rounding inward.
    digits = precision + 1
    filters: list[Filter] = []
    for prefix, point in (("origin", origin), ("destination", destination)):
        for axis, value in (("lat", point.lat), ("lng", point.lng)):
            column = f"{prefix}_{axis}"
            filters.append(Filter(column, "higher_than_or_equal", format_decimal(value - tolerance, digits)))
            filters.append(Filter(column, "lower_than_or_equal", format_decimal(value + tolerance, digits)))
    return filters


def last_used_before_filter(cutoff: datetime) -> Filter:
    return Filter(LAST_USED, DATE_BEFORE_OP, format_timestamp(cutoff))


def touch_patch(when: datetime) -> dict:
    return {LAST_USED: format_timestamp(when)}
