"""Distance cache request/response schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class DistanceLookupRequest(BaseModel):
    origin: str = Field(..., description="'lat,lng'")
    destination: str = Field(..., description="'lat,lng'")


class DistanceResponse(BaseModel):
    origin: str
    destination: str
    distance_meters: int
    duration_seconds: int
    from_cache: bool


class CachedFactModel(BaseModel):
    id: Optional[int] = None
    origin_address: str
    origin_lat: float
    origin_lng: float
    destination_address: str
    destination_lat: float
    destination_lng: float
    distance: int
    duration: int
    points: List[List[float]] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    last_used: Optional[datetime] = None


class SaveFactRequest(BaseModel):
    origin_address: str = ""
    origin_lat: float
    origin_lng: float
    destination_address: str = ""
    destination_lat: float
    destination_lng: float
    distance: int = Field(..., ge=0)
    duration: int = Field(..., ge=0)
    points: List[List[float]] = Field(default_factory=list)


class CleanupResponse(BaseModel):
    evicted_by_age: int
    evicted_by_capacity: int
    retention_days: int
    max_records: int
