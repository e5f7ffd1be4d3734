"""
Pydantic v2 data models for the predictive engine.

Model Organization:
    - enums: Enumeration types for consistent classification
    - config: Tunable model parameters and documented default curves
    - predictions: Factors, ranges, and metrics shared by both models
    - retention: Cohort inputs, retention predictions, retention snapshot
    - revenue: Daily revenue inputs, forecasts, scenarios, revenue snapshot
    - system: Model lifecycle status

Usage:
    >>> from gameinsights.models import CohortRecord
    >>> cohort = CohortRecord(
    ...     cohort_date="2024-01-01",
    ...     size=1000,
    ...     retention_by_day={1: 0.45, 7: 0.20},
    ... )
"""

from .config import RetentionModelConfig, RevenueModelConfig
from .enums import BenchmarkComparison, ForecastPeriod, GameType, TrendDirection
from .predictions import ModelMetrics, PredictionFactor, PredictionRange
from .retention import (
    CohortLTV,
    CohortRecord,
    CurvePoint,
    RetentionDataset,
    RetentionModelState,
    RetentionPoint,
    RetentionPrediction,
)
from .revenue import (
    RevenueBreakdown,
    RevenueDataPoint,
    RevenueDrivers,
    RevenueForecast,
    RevenueModelState,
    WhatIfResult,
    WhatIfScenario,
)
from .system import ModelStatus, ModelTrainingOutcome

__all__ = [
    "BenchmarkComparison",
    "CohortLTV",
    "CohortRecord",
    "CurvePoint",
    "ForecastPeriod",
    "GameType",
    "ModelMetrics",
    "ModelStatus",
    "ModelTrainingOutcome",
    "PredictionFactor",
    "PredictionRange",
    "RetentionDataset",
    "RetentionModelConfig",
    "RetentionModelState",
    "RetentionPoint",
    "RetentionPrediction",
    "RevenueBreakdown",
    "RevenueDataPoint",
    "RevenueDrivers",
    "RevenueForecast",
    "RevenueModelConfig",
    "RevenueModelState",
    "TrendDirection",
    "WhatIfResult",
    "WhatIfScenario",
]
