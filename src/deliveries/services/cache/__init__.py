"""Distance cache maintenance."""

from .janitor import CacheJanitor, CleanupReport

__all__ = ["CacheJanitor", "CleanupReport"]
