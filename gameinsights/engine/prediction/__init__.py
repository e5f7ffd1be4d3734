"""Prediction models: retention curves and revenue forecasts."""

from .base import InsufficientDataError, PersistentModel
from .retention_predictor import RetentionPredictor
from .revenue_forecaster import RevenueForecaster

__all__ = [
    "InsufficientDataError",
    "PersistentModel",
    "RetentionPredictor",
    "RevenueForecaster",
]
