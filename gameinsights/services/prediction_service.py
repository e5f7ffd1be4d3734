"""
Prediction service: owns the retention and revenue models for the API.

Wires both models to the configured snapshot store, loads saved snapshots on
startup, and runs training passes in which each model succeeds or fails on
its own.
"""

from datetime import datetime
from typing import Iterable, Mapping, Optional, Union

import structlog

from gameinsights.config import Settings, get_settings
from gameinsights.engine.prediction import (
    InsufficientDataError,
    RetentionPredictor,
    RevenueForecaster,
)
from gameinsights.models.config import RetentionModelConfig, RevenueModelConfig
from gameinsights.models.retention import CohortRecord, RetentionDataset, RetentionPoint
from gameinsights.models.revenue import RevenueDataPoint, RevenueForecast
from gameinsights.models.system import ModelStatus, ModelTrainingOutcome
from gameinsights.storage.base import KeyValueStore, StorageError

logger = structlog.get_logger()

# Used when the caller has no observed retention yet
DEFAULT_OBSERVED_RETENTION: dict[int, float] = {1: 0.40, 7: 0.15}


class PredictionService:
    """
    Lifecycle owner for the predictive models.

    Mutating calls (initialize, train) must be serialized by the caller;
    prediction calls only read the models' current snapshots.

    Args:
        storage: Snapshot store shared by both models
        settings: Keys and training thresholds (default: get_settings())
    """

    def __init__(self, storage: KeyValueStore, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.storage = storage
        self.retention = RetentionPredictor(
            config=RetentionModelConfig(
                min_data_points=settings.retention_min_data_points,
                validation_split=settings.validation_split,
            ),
            storage=storage,
            storage_key=settings.retention_model_key,
        )
        self.revenue = RevenueForecaster(
            config=RevenueModelConfig(
                min_data_points=settings.revenue_min_data_points,
                validation_split=settings.validation_split,
            ),
            storage=storage,
            storage_key=settings.revenue_model_key,
        )
        self.is_initialized = False
        self.last_trained_at: Optional[datetime] = None

    def initialize(self) -> dict[str, bool]:
        """Load saved snapshots for both models. Returns which ones loaded."""
        loaded = {
            "retention": self.retention.initialize(),
            "revenue": self.revenue.initialize(),
        }
        self.is_initialized = True
        logger.info("prediction_service_initialized", **loaded)
        return loaded

    def train(
        self,
        cohorts: Union[RetentionDataset, Iterable[Union[CohortRecord, dict]], None] = None,
        revenue: Optional[Iterable[Union[RevenueDataPoint, dict]]] = None,
    ) -> list[ModelTrainingOutcome]:
        """
        Train each model that was given data, then save it.

        An InsufficientDataError or StorageError for one model is recorded in
        its outcome and does not stop the other.
        """
        outcomes: list[ModelTrainingOutcome] = []
        if cohorts is not None:
            outcomes.append(self._train_one("retention", self.retention, cohorts))
        if revenue is not None:
            outcomes.append(self._train_one("revenue", self.revenue, list(revenue)))

        if any(o.trained for o in outcomes):
            self.last_trained_at = datetime.utcnow()

        logger.info(
            "prediction_service_trained",
            trained=[o.model for o in outcomes if o.trained],
            failed=[o.model for o in outcomes if not o.trained],
        )
        return outcomes

    def _train_one(self, label: str, model, data) -> ModelTrainingOutcome:
        try:
            metrics = model.train(data)
        except InsufficientDataError as e:
            logger.warning(
                "model_training_skipped",
                model=label,
                required=e.required,
                received=e.received,
            )
            return ModelTrainingOutcome(model=label, trained=False, error=str(e))

        try:
            model.save()
        except StorageError as e:
            logger.error("model_save_failed", model=label, error=str(e))
            return ModelTrainingOutcome(model=label, trained=True, metrics=metrics, error=str(e))

        return ModelTrainingOutcome(model=label, trained=True, metrics=metrics)

    def retention_forecast(
        self,
        observed: Optional[Mapping[int, float]] = None,
        days: int = 30,
    ) -> list[RetentionPoint]:
        """
        Retention for days 1..days, observed where known and predicted elsewhere.

        Uses a typical D1/D7 profile when nothing has been observed.
        """
        observed = dict(observed or DEFAULT_OBSERVED_RETENTION)
        points = []
        for day in range(1, max(0, days) + 1):
            prediction = self.retention.predict_retention(observed, day)
            points.append(
                RetentionPoint(
                    day=day,
                    retention=prediction.value,
                    predicted=day not in observed,
                )
            )
        return points

    def revenue_forecast(self, days: int = 30) -> list[RevenueForecast]:
        return self.revenue.forecast(days)

    def status(self) -> ModelStatus:
        return ModelStatus(
            is_initialized=self.is_initialized,
            last_trained_at=self.last_trained_at,
            retention=self.retention.metrics,
            revenue=self.revenue.metrics,
            retention_trained=self.retention.is_trained,
            revenue_trained=self.revenue.is_trained,
        )
