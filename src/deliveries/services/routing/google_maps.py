"""HTTP client for the Google Maps Geocoding, Distance Matrix and Directions services."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ...config import settings
from ...models.domain import Coordinate
from ..geospatial import to_wire
from .errors import CollaboratorError, GeocodingFailed
from .models import DirectionsResult, GeocodeResult

logger = logging.getLogger(__name__)


class GoogleMapsClient:
    """Thin wrapper over the Google Maps JSON web services.

    Transport failures surface as ``httpx.TransportError`` so the caller's
    retry layer can classify them; any non-``OK`` status is raised as
    ``CollaboratorError`` and must not be retried.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        mode: str | None = None,
        language: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_key = api_key or settings.google_maps_api_key
        if not self.api_key:
            raise ValueError("Google Maps API key is not configured.")
        self.base_url = (base_url or settings.google_maps_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.request_timeout_seconds
        self.mode = mode or settings.travel_mode
        self.language = language or settings.language
        self._transport = transport

    def _get_client(self) -> httpx.Client:
        # One client per call; lookups run on worker threads.
        return httpx.Client(
            timeout=httpx.Timeout(self.timeout, connect=10.0),
            transport=self._transport,
        )

    def _get_json(self, service: str, params: dict[str, Any]) -> dict:
        url = f"{self.base_url}/{service}/json"
        client = self._get_client()
        try:
            response = client.get(url, params={**params, "key": self.api_key})
            response.raise_for_status()
            return response.json()
        finally:
            client.close()

    @staticmethod
    def _check_status(service: str, data: dict) -> None:
        status = data.get("status", "UNKNOWN_ERROR")
        if status != "OK":
            raise CollaboratorError(service, status, data.get("error_message", ""))

    def geocode(self, address: str) -> GeocodeResult:
        data = self._get_json("geocode", {"address": address, "language": self.language})
        if data.get("status") == "ZERO_RESULTS":
            raise GeocodingFailed(address)
        self._check_status("geocode", data)
        results = data.get("results") or []
        if not results:
            raise GeocodingFailed(address)
        location = results[0]["geometry"]["location"]
        return GeocodeResult(
            coordinates=Coordinate(float(location["lat"]), float(location["lng"])),
            formatted_address=results[0].get("formatted_address", address),
        )

    def distance_matrix(self, origin: Coordinate, destination: Coordinate) -> tuple[int, int]:
        """Return ``(distance_meters, duration_seconds)`` for a single origin/destination element."""
        params = {
            "origins": to_wire(origin),
            "destinations": to_wire(destination),
            "mode": self.mode,
            "language": self.language,
            "units": "metric",
        }
        data = self._get_json("distancematrix", params)
        self._check_status("distance_matrix", data)
        try:
            element = data["rows"][0]["elements"][0]
        except (KeyError, IndexError) as exc:
            raise CollaboratorError("distance_matrix", "INVALID_RESPONSE", "missing matrix element") from exc
        element_status = element.get("status", "UNKNOWN_ERROR")
        if element_status != "OK":
            raise CollaboratorError("distance_matrix", element_status)
        return int(element["distance"]["value"]), int(element["duration"]["value"])

    def directions(self, origin: Coordinate, destination: Coordinate) -> DirectionsResult:
        params = {
            "origin": to_wire(origin),
            "destination": to_wire(destination),
            "mode": self.mode,
            "language": self.language,
            "units": "metric",
        }
        data = self._get_json("directions", params)
        self._check_status("directions", data)
        routes = data.get("routes") or []
        if not routes:
            raise CollaboratorError("directions", "ZERO_RESULTS")
        route = routes[0]
        legs = route.get("legs") or []
        if not legs:
            raise CollaboratorError("directions", "ZERO_RESULTS", "route without legs")
        encoded = (route.get("overview_polyline") or {}).get("points", "")
        return DirectionsResult(
            distance_meters=sum(int(leg["distance"]["value"]) for leg in legs),
            duration_seconds=sum(int(leg["duration"]["value"]) for leg in legs),
            polyline=decode_polyline(encoded) if encoded else [],
            start_address=legs[0].get("start_address", ""),
            end_address=legs[-1].get("end_address", ""),
        )


def decode_polyline(polyline: str, precision: int = 5) -> list[Coordinate]:
    """Decode a Google encoded polyline string into coordinates.

    Args:
        polyline: Encoded polyline string
        precision: Number of decimal digits encoded (5 for Google Directions)

    Returns:
        List of coordinates in path order
    """
    factor = 10 ** precision
    coordinates: list[Coordinate] = []
    index = 0
    lat = 0
    lng = 0

    while index < len(polyline):
        deltas = []
        for _ in range(2):
            shift = 0
            result = 0
            while True:
                b = ord(polyline[index]) - 63
                index += 1
                result |= (b & 0x1F) << shift
                shift += 5
                if b < 0x20:
                    break
            deltas.append(~(result >> 1) if (result & 1) else (result >> 1))
        lat += deltas[0]
        lng += deltas[1]
        coordinates.append(Coordinate(lat / factor, lng / factor))

    return coordinates


def check_health(client: GoogleMapsClient | None = None) -> bool:
    """Check Google Maps reachability with a single geocode request."""
    try:
        maps = client or GoogleMapsClient()
        maps.geocode("Curitiba, PR, Brasil")
        return True
    except (httpx.HTTPError, CollaboratorError, ValueError) as exc:
        logger.warning(f"Google Maps health check failed: {exc}")
        return False
