"""
Prediction building blocks shared by the retention and revenue models.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class PredictionFactor(BaseModel):
    """
    A named contributor to a prediction, for explainability.

    Attributes:
        name: Human-readable factor name (e.g., "Day 1 Retention")
        weight: Signed relative contribution in [-1, 1]; positive helps
        description: Short explanation suitable for a dashboard tooltip
    """

    name: str = Field(description="Factor name")
    weight: float = Field(ge=-1.0, le=1.0, description="Signed relative contribution")
    description: str = Field(description="Human-readable explanation")


class PredictionRange(BaseModel):
    """Uncertainty band around a predicted value."""

    low: float = Field(description="Lower bound")
    high: float = Field(description="Upper bound")

    @model_validator(mode="after")
    def validate_ordering(self) -> "PredictionRange":
        """Ensure low <= high."""
        if self.low > self.high:
            raise ValueError(f"Range low ({self.low}) exceeds high ({self.high})")
        return self


class ModelMetrics(BaseModel):
    """
    Error summary of the most recent train or evaluate call.

    Attributes:
        mse: Mean squared error
        mae: Mean absolute error
        r2: Coefficient of determination, when it can be computed
        data_points_used: Records that contributed to the metrics
        last_trained_at: When the scored model was trained (None if never)
    """

    mse: float = Field(default=0.0, ge=0.0)
    mae: float = Field(default=0.0, ge=0.0)
    r2: Optional[float] = Field(default=None)
    data_points_used: int = Field(default=0, ge=0)
    last_trained_at: Optional[datetime] = Field(default=None)


def check_value_in_range(value: float, value_range: Optional[PredictionRange]) -> None:
    """Raise ValueError unless range.low <= value <= range.high."""
    if value_range is None:
        return
    if not value_range.low <= value <= value_range.high:
        raise ValueError(
            f"Value {value} outside range [{value_range.low}, {value_range.high}]"
        )
