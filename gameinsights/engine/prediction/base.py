"""
Shared train/predict/evaluate/persist lifecycle for the forecasting models.

A model owns exactly one immutable state snapshot. Construction, train() and
load() are the only ways to replace it, always by a single assignment in
_commit(), so an exception part-way through fitting or parsing leaves the
previous snapshot in place.
"""

from datetime import datetime
from typing import Optional, Sequence

import numpy as np
import structlog
from pydantic import BaseModel, ValidationError

from gameinsights.models.predictions import ModelMetrics
from gameinsights.storage.base import KeyValueStore, StorageError
from gameinsights.storage.memory_storage import InMemoryKeyValueStore

logger = structlog.get_logger()


class InsufficientDataError(ValueError):
    """Raised by train() when the dataset is smaller than min_data_points."""

    def __init__(self, model: str, required: int, received: int):
        self.model = model
        self.required = required
        self.received = received
        super().__init__(
            f"Insufficient data for {model}: need at least {required}, got {received}"
        )


class PersistentModel:
    """
    Base class for models with a serializable state snapshot.

    Subclasses set `name`, `version` and `state_class`, and may override
    `_default_state()` to seed construction-time defaults from their config.

    Args:
        storage: Key-value store for save()/load(); in-memory when omitted
        storage_key: Fixed key the snapshot is stored under
    """

    name: str = "PersistentModel"
    version: str = "1.0.0"
    state_class: type[BaseModel] = BaseModel

    def __init__(self, storage: Optional[KeyValueStore] = None, storage_key: str = ""):
        self.storage = storage if storage is not None else InMemoryKeyValueStore()
        self.storage_key = storage_key or self.name
        self._state = self._default_state()

    def _default_state(self) -> BaseModel:
        return self.state_class()

    @property
    def state(self):
        """Current state snapshot (frozen; replaced, never mutated)."""
        return self._state

    @property
    def metrics(self) -> Optional[ModelMetrics]:
        """Metrics recorded by the most recent successful train()."""
        return getattr(self._state, "metrics", None)

    @property
    def is_trained(self) -> bool:
        return bool(getattr(self._state, "is_trained", False))

    def _commit(self, state: BaseModel) -> None:
        self._state = state

    def _require_data(self, received: int, required: int) -> None:
        if received < required:
            logger.warning(
                "model_training_rejected",
                model=self.name,
                required=required,
                received=received,
            )
            raise InsufficientDataError(self.name, required, received)

    def initialize(self) -> bool:
        """Load the saved snapshot, if any. Returns whether one was loaded."""
        loaded = self.load()
        logger.info("model_initialized", model=self.name, loaded=loaded)
        return loaded

    def save(self) -> None:
        """
        Write the current snapshot to the store under storage_key.

        Raises:
            StorageError: If the store rejects the write
        """
        payload = self._state.model_dump_json()
        self.storage.set(self.storage_key, payload)
        logger.info("model_saved", model=self.name, key=self.storage_key, size=len(payload))

    def load(self) -> bool:
        """
        Replace the current snapshot with the stored one.

        Never raises. A missing key, an unreadable store or a payload that does
        not validate all return False and keep the in-memory state as it was.
        """
        try:
            payload = self.storage.get(self.storage_key)
        except StorageError as e:
            logger.warning("model_load_failed", model=self.name, key=self.storage_key, error=str(e))
            return False

        if payload is None:
            logger.info("model_load_missing", model=self.name, key=self.storage_key)
            return False

        try:
            state = self.state_class.model_validate_json(payload)
        except (ValidationError, ValueError) as e:
            logger.warning(
                "model_load_corrupt",
                model=self.name,
                key=self.storage_key,
                error=str(e)[:200],
            )
            return False

        self._commit(state)
        logger.info("model_loaded", model=self.name, key=self.storage_key)
        return True


def validation_tail(items: Sequence, validation_split: float) -> list:
    """Last `validation_split` share of items, at least one item when non-empty."""
    if not items:
        return []
    count = max(1, int(round(len(items) * validation_split)))
    return list(items[-count:])


def error_metrics(
    predicted: Sequence[float],
    actual: Sequence[float],
    data_points_used: int,
    last_trained_at: Optional[datetime] = None,
) -> ModelMetrics:
    """
    MSE, MAE and R² of predictions against actuals.

    Returns all-zero errors when there is nothing to compare. R² is None when
    the actuals have no variance.
    """
    if len(actual) == 0:
        return ModelMetrics(data_points_used=data_points_used, last_trained_at=last_trained_at)

    pred = np.asarray(predicted, dtype=float)
    obs = np.asarray(actual, dtype=float)
    residuals = obs - pred

    mse = float(np.mean(residuals**2))
    mae = float(np.mean(np.abs(residuals)))
    ss_tot = float(np.sum((obs - obs.mean()) ** 2))
    r2 = 1.0 - float(np.sum(residuals**2)) / ss_tot if ss_tot > 0 else None

    return ModelMetrics(
        mse=mse,
        mae=mae,
        r2=r2,
        data_points_used=data_points_used,
        last_trained_at=last_trained_at,
    )
