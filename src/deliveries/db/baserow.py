"""Baserow REST client used as the persistent record store."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Protocol, Sequence

import httpx

from ..config import settings

logger = logging.getLogger(__name__)

# Baserow rejects list requests with size > 200.
MAX_PAGE_SIZE = 200


class StoreError(Exception):
    """Any failure talking to the record store."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class Filter:
    """A single Baserow view filter, e.g. ``Filter("origin_lat", "higher_than_or_equal", "-25.4")``."""

    field: str
    op: str
    value: Any

    def as_param(self) -> tuple[str, str]:
        return f"filter__{self.field}__{self.op}", str(self.value)


class RecordStore(Protocol):
    def query(
        self, filters: Sequence[Filter] = (), order_by: Sequence[str] = (), limit: int | None = None
    ) -> list[dict]: ...

    def insert(self, row: dict) -> dict: ...

    def update(self, row_id: int, patch: dict) -> dict: ...

    def delete(self, row_id: int) -> None: ...

    def count(self, filters: Sequence[Filter] = ()) -> int: ...


class BaserowClient:
    """Row CRUD against a single Baserow table, always using user field names."""

    def __init__(
        self,
        table_id: str,
        token: str,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not table_id or not token:
            raise ValueError("Baserow table id and token are required.")
        self.table_id = table_id
        self.base_url = (base_url or settings.baserow_api_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.request_timeout_seconds
        self._headers = {"Authorization": f"Token {token}", "Content-Type": "application/json"}
        self._transport = transport

    @property
    def rows_url(self) -> str:
        return f"{self.base_url}/database/rows/table/{self.table_id}/"

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        params = kwargs.pop("params", [])
        params = [("user_field_names", "true"), *params]
        try:
            with httpx.Client(
                timeout=httpx.Timeout(self.timeout, connect=10.0),
                headers=self._headers,
                transport=self._transport,
            ) as client:
                response = client.request(method, url, params=params, **kwargs)
                response.raise_for_status()
                return response
        except httpx.HTTPStatusError as exc:
            raise StoreError(
                f"Baserow {method} {url} failed with {exc.response.status_code}: {exc.response.text[:200]}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise StoreError(f"Baserow {method} {url} failed: {exc}") from exc

    def query(
        self, filters: Sequence[Filter] = (), order_by: Sequence[str] = (), limit: int | None = None
    ) -> list[dict]:
        """List rows matching every filter, following pagination until ``limit`` rows are collected."""
        page_size = MAX_PAGE_SIZE if limit is None else max(1, min(limit, MAX_PAGE_SIZE))
        base_params = [f.as_param() for f in filters]
        if order_by:
            base_params.append(("order_by", ",".join(order_by)))

        rows: list[dict] = []
        page = 1
        while True:
            params = [*base_params, ("size", str(page_size)), ("page", str(page))]
            data = self._request("GET", self.rows_url, params=params).json()
            rows.extend(data.get("results") or [])
            if limit is not None and len(rows) >= limit:
                return rows[:limit]
            if not data.get("next"):
                return rows
            page += 1

    def insert(self, row: dict) -> dict:
        return self._request("POST", self.rows_url, json=row).json()

    def update(self, row_id: int, patch: dict) -> dict:
        return self._request("PATCH", f"{self.rows_url}{row_id}/", json=patch).json()

    def delete(self, row_id: int) -> None:
        self._request("DELETE", f"{self.rows_url}{row_id}/")

    def count(self, filters: Sequence[Filter] = ()) -> int:
        params = [*(f.as_param() for f in filters), ("size", "1")]
        data = self._request("GET", self.rows_url, params=params).json()
        return int(data.get("count", 0))


@lru_cache()
def get_baserow_client() -> BaserowClient | None:
    """Get cached Baserow client for the distance fact table.

    Returns:
        BaserowClient if configured, None otherwise (the distance cache then runs memory-only).
    """
    if not settings.baserow_token or not settings.baserow_distance_table_id:
        logger.warning("Baserow credentials not configured (missing token or table id)")
        return None
    return BaserowClient(
        table_id=settings.baserow_distance_table_id,
        token=settings.baserow_token,
    )
