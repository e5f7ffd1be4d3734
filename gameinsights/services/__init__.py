"""
Business logic layer.
Services orchestrate model lifecycle and persistence for the routers.
"""

from functools import lru_cache

from gameinsights.storage import get_storage

from .prediction_service import PredictionService


@lru_cache
def get_prediction_service() -> PredictionService:
    """Get cached prediction service bound to the configured store."""
    return PredictionService(storage=get_storage())


__all__ = ["PredictionService", "get_prediction_service"]
