"""Routing request/response schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class CoordinateModel(BaseModel):
    lat: float
    lng: float


class LocationInput(BaseModel):
    address: Optional[str] = Field(default=None, description="Free-text address, geocoded when lat/lng are absent.")
    lat: Optional[float] = None
    lng: Optional[float] = None

    @model_validator(mode="after")
    def _require_address_or_coordinates(self):
        has_coordinates = self.lat is not None and self.lng is not None
        if (self.lat is None) != (self.lng is None):
            raise ValueError("lat and lng must be provided together.")
        if not has_coordinates and not (self.address and self.address.strip()):
            raise ValueError("Either an address or lat/lng coordinates are required.")
        return self


class StopInput(LocationInput):
    id: str = Field(..., min_length=1, description="Unique within the request.")
    customer_name: Optional[str] = None


class RouteRequest(BaseModel):
    depot: LocationInput
    stops: List[StopInput] = Field(..., min_length=1)
    departure_at: Optional[datetime] = Field(
        default=None, description="Departure time from the depot; defaults to now."
    )
    skip_unresolved: bool = Field(
        default=False,
        description="If True, stops whose address cannot be geocoded are dropped and reported instead of failing.",
    )


class RouteLegModel(BaseModel):
    from_stop_id: str
    to_stop_id: str
    distance_meters: int
    duration_seconds: int
    distance_km: float
    duration_min: float
    cumulative_distance_meters: int
    cumulative_duration_seconds: int
    polyline: List[List[float]]


class SkippedStopModel(BaseModel):
    id: str
    address: str
    reason: str


class RouteResponse(BaseModel):
    depot: CoordinateModel
    order: List[str]
    legs: List[RouteLegModel]
    total_distance_meters: int
    total_duration_seconds: int
    total_distance_km: float
    total_duration_min: float
    departure_at: datetime
    estimated_return_at: datetime
    farthest_stop_id: str
    skipped_stops: List[SkippedStopModel] = Field(default_factory=list)
    metadata: dict = Field(default_factory=dict)


class GeocodeRequest(BaseModel):
    address: str = Field(..., min_length=1)


class GeocodeResponse(BaseModel):
    address: str
    formatted_address: str
    lat: float
    lng: float


class DirectionsRequest(BaseModel):
    origin: str = Field(..., description="'lat,lng'")
    destination: str = Field(..., description="'lat,lng'")


class DirectionsResponse(BaseModel):
    distance_meters: int
    duration_seconds: int
    start_address: str
    end_address: str
    points: List[List[float]]
