"""
Revenue models: daily inputs, forecasts, scenarios, and the persisted snapshot.
"""

import datetime as dt
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from gameinsights.models.enums import ForecastPeriod, TrendDirection
from gameinsights.models.predictions import (
    ModelMetrics,
    PredictionFactor,
    PredictionRange,
    check_value_in_range,
)


class RevenueDataPoint(BaseModel):
    """One calendar day of aggregate revenue and audience counts."""

    model_config = ConfigDict(frozen=True)

    date: dt.date
    revenue: float = Field(ge=0.0)
    dau: float = Field(ge=0.0)
    new_users: float = Field(default=0.0, ge=0.0)
    payers: float = Field(default=0.0, ge=0.0)


class RevenueBreakdown(BaseModel):
    """Revenue split by user origin."""

    existing_users: float = Field(default=0.0, ge=0.0)
    new_users: float = Field(default=0.0, ge=0.0)
    reactivated: float = Field(default=0.0, ge=0.0)

    @property
    def total(self) -> float:
        return self.existing_users + self.new_users + self.reactivated

    def scaled(self, factor: float) -> "RevenueBreakdown":
        return RevenueBreakdown(
            existing_users=self.existing_users * factor,
            new_users=self.new_users * factor,
            reactivated=self.reactivated * factor,
        )


class RevenueForecast(BaseModel):
    """
    Revenue projection for a day or an aggregated period.

    Attributes:
        value: Projected revenue
        confidence: Confidence in [0, 1]
        period: daily, weekly, or monthly
        breakdown: Split by user origin; zero-filled when not requested
        trend: Direction of the learned trend
        seasonal_factor: Multiplier applied for seasonality (always > 0)
        range: Uncertainty band around value
        factors: Named contributors for explainability
        date: Forecast date (first day of the period for aggregates)
    """

    value: float = Field(ge=0.0)
    confidence: float = Field(ge=0.0, le=1.0)
    period: ForecastPeriod = Field(default=ForecastPeriod.DAILY)
    breakdown: RevenueBreakdown = Field(default_factory=RevenueBreakdown)
    trend: TrendDirection = Field(default=TrendDirection.STABLE)
    seasonal_factor: float = Field(default=1.0, gt=0.0)
    range: Optional[PredictionRange] = Field(default=None)
    factors: list[PredictionFactor] = Field(default_factory=list)
    date: Optional[dt.date] = Field(default=None)

    @model_validator(mode="after")
    def validate_range(self) -> "RevenueForecast":
        check_value_in_range(self.value, self.range)
        return self


class WhatIfScenario(BaseModel):
    """Percentage shifts applied to revenue drivers (e.g., 20 means +20%)."""

    model_config = ConfigDict(populate_by_name=True)

    dau_change: float = Field(default=0.0, alias="dauChange", description="Percent change in DAU")
    arpu_change: float = Field(default=0.0, alias="arpuChange", description="Percent change in ARPU")
    conversion_change: float = Field(
        default=0.0, alias="conversionChange", description="Percent change in payer conversion"
    )


class RevenueDrivers(BaseModel):
    """
    Daily revenue decomposed into audience and monetization.

    daily_revenue = dau * arpdau, where arpdau already reflects
    payer_conversion (the share of DAU that pays).
    """

    dau: float = Field(default=0.0, ge=0.0)
    arpdau: float = Field(default=0.0, ge=0.0)
    payer_conversion: float = Field(default=0.0, ge=0.0, le=1.0)

    @property
    def daily_revenue(self) -> float:
        return self.dau * self.arpdau


class WhatIfResult(BaseModel):
    """Baseline vs scenario revenue over the same horizon."""

    baseline: RevenueForecast
    scenario: RevenueForecast
    difference: float
    percent_change: float
    multiplier: float = Field(ge=0.0, description="Combined scenario multiplier")
    horizon_days: int = Field(ge=0)
    baseline_drivers: RevenueDrivers = Field(default_factory=RevenueDrivers)
    scenario_drivers: RevenueDrivers = Field(default_factory=RevenueDrivers)


class RevenueModelState(BaseModel):
    """
    Persisted snapshot of the revenue forecaster.

    Forecast for a date d: (baseline_revenue + trend_slope * (d - training_end))
    * day_of_week[d.weekday()] * month_of_year[d.month] / month_of_year[training_end.month],
    floored at zero. The baseline already carries the training end's month, so
    month multipliers only move the forecast relative to it.

    residual_std widens forecast ranges; avg_dau, arpdau and payer_conversion
    are the recent revenue drivers that what-if scenarios shift.
    """

    model_config = ConfigDict(frozen=True)

    schema_version: str = Field(default="1.1")
    is_trained: bool = Field(default=False)
    baseline_revenue: float = Field(default=0.0, ge=0.0)
    trend_slope: float = Field(default=0.0)
    day_of_week: list[float] = Field(default_factory=lambda: [1.0] * 7)
    month_of_year: list[float] = Field(default_factory=lambda: [1.0] * 12)
    training_end: Optional[dt.date] = Field(default=None)
    history_days: int = Field(default=0, ge=0)
    residual_std: float = Field(default=0.0, ge=0.0)
    avg_dau: float = Field(default=0.0, ge=0.0)
    arpdau: float = Field(default=0.0, ge=0.0)
    payer_conversion: float = Field(default=0.0, ge=0.0)
    new_user_ratio: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    metrics: Optional[ModelMetrics] = Field(default=None)

    @field_validator("day_of_week")
    @classmethod
    def validate_day_of_week(cls, v: list[float]) -> list[float]:
        if len(v) != 7 or any(m <= 0 for m in v):
            raise ValueError("day_of_week needs 7 positive multipliers")
        return v

    @field_validator("month_of_year")
    @classmethod
    def validate_month_of_year(cls, v: list[float]) -> list[float]:
        if len(v) != 12 or any(m <= 0 for m in v):
            raise ValueError("month_of_year needs 12 positive multipliers")
        return v
