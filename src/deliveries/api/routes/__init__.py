"""Route group exports."""

from . import cache, health, maps, routes

__all__ = ["cache", "health", "maps", "routes"]
