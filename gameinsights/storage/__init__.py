"""
Model snapshot storage.

Snapshots are JSON strings stored under fixed keys. DuckDB backs persistent
deployments; the in-memory store serves tests and ephemeral runs.
"""

from functools import lru_cache

from gameinsights.config import get_settings

from .base import KeyValueStore, StorageError
from .duckdb_storage import DuckDBKeyValueStore
from .memory_storage import InMemoryKeyValueStore


@lru_cache
def get_storage() -> KeyValueStore:
    """
    Get cached store instance (singleton).

    Returns the implementation selected by settings.storage_type.
    """
    settings = get_settings()
    if settings.storage_type == "memory":
        return InMemoryKeyValueStore()
    return DuckDBKeyValueStore(db_path=settings.db_path)


__all__ = [
    "KeyValueStore",
    "StorageError",
    "DuckDBKeyValueStore",
    "InMemoryKeyValueStore",
    "get_storage",
]
