"""
In-process key-value store for tests and ephemeral deployments.
"""

import threading
from typing import Optional

import structlog

from .base import KeyValueStore

logger = structlog.get_logger(__name__)


class InMemoryKeyValueStore(KeyValueStore):
    """Dictionary-backed store; contents are lost with the process."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value
        logger.debug("memory_store_set", key=key, size=len(value))

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._data)
