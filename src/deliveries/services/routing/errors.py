"""Error taxonomy for geocoding, distance lookups and route sequencing."""

from __future__ import annotations

from typing import Optional


class RoutingError(Exception):
    """Base class for every routing-core failure."""


class InvalidStop(RoutingError, ValueError):
    """A stop lacks resolved coordinates or its coordinates are out of range."""

    def __init__(self, message: str, stop_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.stop_id = stop_id


class DistanceUnavailable(RoutingError, ConnectionError):
    """The retry budget was exhausted for a required lookup."""

    def __init__(self, origin: str, destination: str, attempts: int) -> None:
        target = f"{origin} -> {destination}" if destination else origin
        super().__init__(f"Lookup for {target} unavailable after {attempts} attempt(s).")
        self.origin = origin
        self.destination = destination
        self.attempts = attempts


class CollaboratorError(RoutingError):
    """A well-formed error response from an external collaborator. Never retried."""

    def __init__(self, service: str, status: str, message: str = "") -> None:
        detail = f"{service} returned {status}"
        if message:
            detail = f"{detail}: {message}"
        super().__init__(detail)
        self.service = service
        self.status = status
        self.provider_message = message


class GeocodingFailed(CollaboratorError):
    """An address could not be resolved to coordinates."""

    def __init__(self, address: str, status: str = "ZERO_RESULTS", message: str = "") -> None:
        super().__init__("geocode", status, message or f"address not found: {address}")
        self.address = address


class CacheWriteFailed(RoutingError):
    """Persisting a distance fact failed. Logged by callers, never fatal to a route."""
