"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from ...config import settings
from ...db.baserow import StoreError, get_baserow_client

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


def _get_google_health_check():
    """Lazy import to avoid startup failures."""
    from ...services.routing.google_maps import check_health as google_health_check
    return google_health_check


@router.get("/health/google", status_code=status.HTTP_200_OK)
def health_google() -> dict:
    """Check Google Maps reachability."""
    if not settings.google_maps_api_key:
        return {"service": "google_maps", "healthy": False, "error": "DLV_GOOGLE_MAPS_API_KEY is not set"}
    return {"service": "google_maps", "healthy": _get_google_health_check()()}


@router.get("/health/baserow", status_code=status.HTTP_200_OK)
def health_baserow() -> dict:
    """Check the Baserow distance table and report how many facts it holds."""
    client = get_baserow_client()
    if not client:
        return {
            "configured": False,
            "message": "Baserow not configured. Set DLV_BASEROW_TOKEN and DLV_BASEROW_DISTANCE_TABLE_ID. "
            "The distance cache is running memory-only.",
            "facts_count": 0,
        }

    try:
        facts = client.count()
    except StoreError as exc:
        return {
            "configured": True,
            "connected": False,
            "error": str(exc),
            "message": f"Database connection error: {exc}",
        }
    return {
        "configured": True,
        "connected": True,
        "facts_count": facts,
        "message": f"Database connected. Found {facts} cached distance facts.",
    }
