"""
System models: model lifecycle status reported by the prediction service.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from gameinsights.models.predictions import ModelMetrics


class ModelTrainingOutcome(BaseModel):
    """Result of training one model inside a service-level training pass."""

    model: str
    trained: bool
    metrics: Optional[ModelMetrics] = None
    error: Optional[str] = None


class ModelStatus(BaseModel):
    """
    Lifecycle status of the predictive models.

    Attributes:
        is_initialized: Whether initialize() has run
        last_trained_at: Completion time of the most recent training pass
        retention: Last metrics of the retention predictor
        revenue: Last metrics of the revenue forecaster
    """

    is_initialized: bool = Field(default=False)
    last_trained_at: Optional[datetime] = Field(default=None)
    retention: Optional[ModelMetrics] = Field(default=None)
    revenue: Optional[ModelMetrics] = Field(default=None)
    retention_trained: bool = Field(default=False)
    revenue_trained: bool = Field(default=False)
