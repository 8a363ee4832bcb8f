"""Database clients and utilities."""

from .baserow import BaserowClient, Filter, RecordStore, StoreError, get_baserow_client

__all__ = ["BaserowClient", "Filter", "RecordStore", "StoreError", "get_baserow_client"]
