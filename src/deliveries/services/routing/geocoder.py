"""Address resolution for depots and delivery stops."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, Sequence

from ...models.domain import Coordinate, StopPoint
from .errors import DistanceUnavailable, GeocodingFailed, InvalidStop
from .models import GeocodeResult
from .retry import RetryExhausted, RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)


class GeocodingCollaborator(Protocol):
    def geocode(self, address: str) -> GeocodeResult: ...


@dataclass(slots=True)
class RawStop:
    id: str
    address: str = ""
    coordinates: Optional[Coordinate] = None


@dataclass(slots=True)
class UnresolvedStop:
    id: str
    address: str
    reason: str


class Geocoder:
    def __init__(
        self,
        collaborator: GeocodingCollaborator,
        region_suffix: str = "",
        policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.collaborator = collaborator
        self.region_suffix = region_suffix.strip()
        self.policy = policy or RetryPolicy.from_settings()
        self._sleep = sleep
        self._memo: dict[str, GeocodeResult] = {}
        self._lock = threading.Lock()

    def _qualify(self, address: str) -> str:
        address = " ".join(address.split())
        if self.region_suffix and not address.lower().endswith(self.region_suffix.lower()):
            return f"{address}, {self.region_suffix}"
        return address

    def geocode(self, address: str) -> GeocodeResult:
        if not address or not address.strip():
            raise GeocodingFailed(address or "", "INVALID_REQUEST", "empty address")
        query = self._qualify(address)
        key = query.lower()
        with self._lock:
            cached = self._memo.get(key)
        if cached is not None:
            return cached

        try:
            result = call_with_retry(
                lambda: self.collaborator.geocode(query),
                self.policy,
                sleep=self._sleep,
                description=f"Geocode '{query}'",
            )
        except RetryExhausted as exc:
            raise DistanceUnavailable(query, "", exc.attempts) from exc.last_error
        if not result.coordinates.is_valid():
            raise GeocodingFailed(address, "INVALID_COORDINATES")

        with self._lock:
            self._memo[key] = result
        return result

    def resolve_stops(
        self, raw_stops: Sequence[RawStop], skip_unresolved: bool = False
    ) -> tuple[list[StopPoint], list[UnresolvedStop]]:
        """Turn raw stops into ``StopPoint``s, geocoding those without coordinates.

        With ``skip_unresolved`` the failures are returned instead of raised.
        """
        resolved: list[StopPoint] = []
        unresolved: list[UnresolvedStop] = []
        for raw in raw_stops:
            if raw.coordinates is not None:
                if not raw.coordinates.is_valid():
                    if not skip_unresolved:
                        raise InvalidStop(f"Stop '{raw.id}' has out-of-range coordinates.", stop_id=raw.id)
                    unresolved.append(UnresolvedStop(raw.id, raw.address, "INVALID_COORDINATES"))
                    continue
                resolved.append(StopPoint(id=raw.id, coordinates=raw.coordinates, raw_address=raw.address))
                continue
            try:
                result = self.geocode(raw.address)
            except GeocodingFailed as exc:
                if not skip_unresolved:
                    raise
                logger.warning(f"Skipping stop '{raw.id}': {exc}")
                unresolved.append(UnresolvedStop(raw.id, raw.address, exc.status))
                continue
            resolved.append(StopPoint(id=raw.id, coordinates=result.coordinates, raw_address=raw.address))
        return resolved, unresolved
