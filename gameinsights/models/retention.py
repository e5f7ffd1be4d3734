"""
Retention models: cohort inputs, predictions, and the persisted snapshot.
"""

from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from gameinsights.models.enums import BenchmarkComparison, GameType
from gameinsights.models.predictions import (
    ModelMetrics,
    PredictionFactor,
    PredictionRange,
    check_value_in_range,
)


class CohortRecord(BaseModel):
    """
    Observed retention for one acquisition cohort.

    Attributes:
        cohort_date: Install date shared by the cohort
        size: Number of users acquired
        retention_by_day: Day offset -> fraction of the cohort active that day
    """

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "cohort_date": "2024-01-01",
                "size": 1200,
                "retention_by_day": {"0": 1.0, "1": 0.45, "7": 0.2, "30": 0.09},
            }
        },
    )

    cohort_date: date = Field(description="Cohort acquisition date")
    size: int = Field(gt=0, description="Number of users in the cohort")
    retention_by_day: dict[int, float] = Field(
        default_factory=dict, description="Day offset -> retention fraction"
    )

    @field_validator("retention_by_day")
    @classmethod
    def validate_retention(cls, v: dict[int, float]) -> dict[int, float]:
        """Day offsets are non-negative and fractions lie in [0, 1]."""
        for day, rate in v.items():
            if day < 0:
                raise ValueError(f"Negative day offset {day}")
            if not 0.0 <= rate <= 1.0:
                raise ValueError(f"Retention for day {day} must be in [0, 1], got {rate}")
        return v


class RetentionDataset(BaseModel):
    """Training/evaluation input for the retention predictor."""

    cohort_data: list[CohortRecord] = Field(default_factory=list)


class CurvePoint(BaseModel):
    """One point of a retention curve."""

    day: int = Field(ge=0)
    retention: float = Field(ge=0.0, le=1.0)


class RetentionPrediction(BaseModel):
    """
    Retention estimate for a target day.

    Exact observations come back with confidence 1.0 and no range; extrapolated
    values carry a range that widens with distance from the observed data.
    """

    value: float = Field(ge=0.0, le=1.0, description="Predicted retention fraction")
    confidence: float = Field(ge=0.0, le=1.0, description="Confidence in [0, 1]")
    range: Optional[PredictionRange] = Field(default=None)
    retention_curve: list[CurvePoint] = Field(default_factory=list)
    benchmark_comparison: BenchmarkComparison
    factors: list[PredictionFactor] = Field(default_factory=list)
    cohort_size: Optional[int] = Field(default=None, gt=0)

    @model_validator(mode="after")
    def validate_prediction(self) -> "RetentionPrediction":
        """Range must bracket the value and the curve must never increase."""
        check_value_in_range(self.value, self.range)
        for prev, cur in zip(self.retention_curve, self.retention_curve[1:]):
            if cur.day <= prev.day:
                raise ValueError("Retention curve days must be strictly increasing")
            if cur.retention > prev.retention:
                raise ValueError("Retention curve must be non-increasing")
        return self


class CohortLTV(BaseModel):
    """Cumulative expected revenue per user over a horizon."""

    ltv: float = Field(ge=0.0)
    confidence: float = Field(gt=0.0, le=1.0)
    horizon_days: int = Field(ge=0)


class RetentionPoint(BaseModel):
    """A day of a retention forecast, flagged when it was not observed."""

    day: int = Field(ge=0)
    retention: float = Field(ge=0.0, le=1.0)
    predicted: bool


class RetentionModelState(BaseModel):
    """
    Persisted snapshot of the retention predictor.

    The fitted curve is retention(d) = exp(log_intercept + log_slope * d),
    pre-evaluated on days 0..curve_horizon_days in `curve`.
    """

    model_config = ConfigDict(frozen=True)

    schema_version: str = Field(default="1.0")
    is_trained: bool = Field(default=False)
    log_intercept: float = Field(default=0.0)
    log_slope: float = Field(default=0.0, le=0.0)
    curve: list[float] = Field(default_factory=list)
    game_type: GameType = Field(default=GameType.DEFAULT)
    metrics: Optional[ModelMetrics] = Field(default=None)

    @field_validator("curve")
    @classmethod
    def validate_curve(cls, v: list[float]) -> list[float]:
        """Curve values are retention fractions."""
        if any(not 0.0 <= x <= 1.0 for x in v):
            raise ValueError("Curve values must be in [0, 1]")
        return v
