"""
Abstract key-value interface used to persist model snapshots.

Each forecasting model serializes its whole state to one JSON string under a
fixed key. The store only moves strings; parsing and validation belong to the
models, so a corrupt payload is a model concern, not a storage error.
"""

from abc import ABC, abstractmethod
from typing import Optional


class StorageError(Exception):
    """Base exception for all storage operation failures."""

    pass


class KeyValueStore(ABC):
    """
    Abstract base class for model snapshot stores.

    Implementations should ensure:
    - set() replaces the whole value for a key in one write
    - get() returns None for absent keys rather than raising
    - Backend failures surface as StorageError
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Read the serialized value stored under a key.

        Args:
            key: Snapshot key (e.g., "retention_predictor_model")

        Returns:
            The stored string, or None if the key is absent

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """
        Store a serialized value, replacing any previous value.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """
        Remove a key.

        Returns:
            True if a value was removed, False if the key was absent
        """
        pass

    @abstractmethod
    def keys(self) -> list[str]:
        """List stored keys in sorted order."""
        pass
