"""Application configuration and settings management."""

from typing import Any, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="DLV_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Delivery Routes API"
    api_prefix: str = "/api"

    # Google Maps web services
    google_maps_api_key: Optional[str] = Field(
        default=None,
        description="API key used for Geocoding, Distance Matrix and Directions requests.",
    )
    google_maps_base_url: str = Field(default="https://maps.googleapis.com/maps/api")
    travel_mode: str = Field(default="driving", description="Google 'mode' parameter.")
    language: str = Field(default="pt-BR")
    geocode_region_suffix: str = Field(
        default="Brasil",
        description="Appended to free-text addresses before geocoding to improve precision.",
    )
    request_timeout_seconds: float = Field(default=20.0, gt=0.0)
    oracle_max_attempts: int = Field(default=3, ge=1)
    oracle_backoff_seconds: float = Field(default=1.0, ge=0.0)
    max_parallel_requests: int = Field(default=4, ge=1)

    # Baserow distance fact store
    baserow_api_url: str = Field(default="https://api.baserow.io/api")
    baserow_token: Optional[str] = Field(default=None, description="Baserow database token.")
    baserow_distance_table_id: Optional[str] = Field(
        default=None,
        description="Baserow table holding cached pairwise distance facts.",
    )

    # Distance cache
    coordinate_tolerance: float = Field(default=0.0001, gt=0.0)
    coordinate_precision: int = Field(default=6, ge=4, le=7)
    memory_cache_ttl_seconds: int = Field(default=24 * 60 * 60, ge=0)
    directions_cache_ttl_seconds: int = Field(default=15 * 60, ge=0)
    cache_retention_days: int = Field(default=30, ge=0)
    cache_max_records: int = Field(default=10000, ge=0)
    store_failure_threshold: int = Field(default=3, ge=1)
    store_cooldown_seconds: float = Field(default=60.0, ge=0.0)

    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:8081",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()


settings = Settings()
