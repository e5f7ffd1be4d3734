"""
Revenue Forecaster: linear trend with weekday and month seasonality.

Training fits revenue ~ intercept + slope * day_index with
scipy.stats.linregress, then learns seven Monday-first multipliers from the
ratio of actual revenue to the fitted trend. With at least month_history_days
of history it also learns twelve month multipliers from what the weekday
pattern leaves unexplained; shorter histories keep the configured defaults.
The forecast level starts at a baseline that blends the trend's end point with
the de-seasonalized average of the most recent week:

    forecast(d) = max(0, (baseline + slope * (d - training_end))
                         * dow[d.weekday()] * moy[d.month] / moy[training_end.month])

Confidence decays linearly with days ahead down to a floor and the range
widens with it, plus the training residual spread on both sides. Sequences of
daily forecasts are never more certain further out. Period forecasts sum the
daily ones and keep the weakest confidence.

Scenario analysis shifts the recent revenue drivers (DAU, ARPDAU, payer
conversion) and scales the baseline aggregate by the resulting change in
DAU * ARPDAU, where a conversion change reaches ARPDAU through an elasticity.
"""

import calendar
from datetime import date, datetime, timedelta
from typing import Iterable, Optional, Union

import numpy as np
import structlog
from scipy import stats

from gameinsights.engine.prediction.base import (
    PersistentModel,
    error_metrics,
    validation_tail,
)
from gameinsights.models.config import REVENUE_FEATURE_IMPORTANCE, RevenueModelConfig
from gameinsights.models.enums import ForecastPeriod, TrendDirection
from gameinsights.models.predictions import ModelMetrics, PredictionFactor, PredictionRange
from gameinsights.models.revenue import (
    RevenueBreakdown,
    RevenueDataPoint,
    RevenueDrivers,
    RevenueForecast,
    RevenueModelState,
    WhatIfResult,
    WhatIfScenario,
)
from gameinsights.storage.base import KeyValueStore

logger = structlog.get_logger()


def _normalized(multipliers: Iterable[float]) -> list[float]:
    """Scale multipliers to mean 1.0."""
    values = np.asarray(list(multipliers), dtype=float)
    return [float(v) for v in values / values.mean()]


class RevenueForecaster(PersistentModel):
    """
    Forecasts daily and period revenue from historical daily aggregates.

    Args:
        config: Thresholds and tuning; defaults to RevenueModelConfig()
        storage: Snapshot store for save()/load()
        storage_key: Key of the persisted snapshot
    """

    name = "RevenueForecaster"
    version = "1.0.0"
    state_class = RevenueModelState

    def __init__(
        self,
        config: Optional[RevenueModelConfig] = None,
        storage: Optional[KeyValueStore] = None,
        storage_key: str = "revenue_forecaster_model",
    ):
        self.config = config or RevenueModelConfig()
        super().__init__(storage=storage, storage_key=storage_key)

    def _default_state(self) -> RevenueModelState:
        return RevenueModelState(
            day_of_week=list(self.config.day_of_week),
            month_of_year=_normalized(self.config.month_of_year),
        )

    # =========================================================================
    # Forecasting
    # =========================================================================

    def forecast(
        self,
        days: int = 30,
        include_breakdown: bool = True,
        start_date: Optional[date] = None,
    ) -> list[RevenueForecast]:
        """
        Daily forecasts for `days` consecutive dates.

        Args:
            days: Number of days to forecast; <= 0 returns []
            include_breakdown: Split each value by user origin
            start_date: First forecast date (default: day after training)

        Returns:
            List of daily RevenueForecast in date order
        """
        if days <= 0:
            return []
        state = self._state
        start = start_date or self._default_start(state)
        return [
            self._forecast_day(state, start + timedelta(days=offset), include_breakdown)
            for offset in range(days)
        ]

    def forecast_single_day(self, day: date, include_breakdown: bool = True) -> RevenueForecast:
        """Forecast for one calendar date."""
        return self._forecast_day(self._state, day, include_breakdown)

    def forecast_period(
        self,
        period: Union[ForecastPeriod, str],
        start_date: Optional[date] = None,
    ) -> RevenueForecast:
        """
        Aggregate forecast over a week (7 days) or month (30 days).

        Value, breakdown and range are sums of the daily forecasts; confidence
        is the lowest daily confidence.
        """
        period = ForecastPeriod(period)
        state = self._state
        start = start_date or self._default_start(state)

        if period == ForecastPeriod.DAILY:
            return self._forecast_day(state, start, True)

        days = self.config.weekly_days if period == ForecastPeriod.WEEKLY else self.config.monthly_days
        daily = [self._forecast_day(state, start + timedelta(days=i), True) for i in range(days)]
        return self._aggregate(state, daily, period)

    def what_if(
        self,
        scenario: Union[WhatIfScenario, dict, None] = None,
        horizon_days: int = 30,
    ) -> WhatIfResult:
        """
        Compare the baseline aggregate with one where revenue drivers shift.

        Args:
            scenario: Percent changes to DAU, ARPU and payer conversion
            horizon_days: Days aggregated on both sides (at least 1)

        Returns:
            WhatIfResult with the scenario scaled by the change in daily
            DAU * ARPDAU, plus the baseline and shifted drivers
        """
        if scenario is None:
            scenario = WhatIfScenario()
        elif not isinstance(scenario, WhatIfScenario):
            scenario = WhatIfScenario.model_validate(scenario)

        state = self._state
        horizon_days = max(1, int(horizon_days))
        start = self._default_start(state)
        period = ForecastPeriod.WEEKLY if horizon_days <= self.config.weekly_days else ForecastPeriod.MONTHLY

        daily = [self._forecast_day(state, start + timedelta(days=i), True) for i in range(horizon_days)]
        baseline = self._aggregate(state, daily, period)

        baseline_drivers, scenario_drivers = self._scenario_drivers(state, scenario)
        if baseline_drivers.daily_revenue > 0:
            multiplier = scenario_drivers.daily_revenue / baseline_drivers.daily_revenue
        else:
            multiplier = self._scenario_multiplier(scenario)

        scenario_forecast = RevenueForecast(
            value=baseline.value * multiplier,
            confidence=baseline.confidence,
            period=baseline.period,
            breakdown=baseline.breakdown.scaled(multiplier),
            trend=baseline.trend,
            seasonal_factor=baseline.seasonal_factor,
            range=PredictionRange(
                low=baseline.range.low * multiplier,
                high=baseline.range.high * multiplier,
            )
            if baseline.range
            else None,
            factors=baseline.factors
            + self._scenario_factors(scenario, baseline_drivers, scenario_drivers),
            date=baseline.date,
        )

        difference = scenario_forecast.value - baseline.value
        percent_change = difference / baseline.value * 100 if baseline.value > 0 else 0.0

        logger.debug(
            "revenue_what_if_computed",
            horizon_days=horizon_days,
            multiplier=round(multiplier, 4),
            difference=round(difference, 2),
        )

        return WhatIfResult(
            baseline=baseline,
            scenario=scenario_forecast,
            difference=difference,
            percent_change=percent_change,
            multiplier=multiplier,
            horizon_days=horizon_days,
            baseline_drivers=baseline_drivers,
            scenario_drivers=scenario_drivers,
        )

    # =========================================================================
    # Training and evaluation
    # =========================================================================

    def train(self, data: Iterable[Union[RevenueDataPoint, dict]]) -> ModelMetrics:
        """
        Fit trend, seasonality and revenue drivers from daily history.

        Raises:
            InsufficientDataError: Fewer rows than min_data_points; the
                current model is left untouched
        """
        cfg = self.config
        rows = self._coerce_rows(data)
        self._require_data(len(rows), cfg.min_data_points)

        first = rows[0].date
        x = np.array([(r.date - first).days for r in rows], dtype=float)
        y = np.array([r.revenue for r in rows], dtype=float)

        if len(np.unique(x)) >= 2:
            result = stats.linregress(x, y)
            slope, intercept = float(result.slope), float(result.intercept)
        else:
            slope, intercept = 0.0, float(y.mean())

        trend = intercept + slope * x
        day_of_week = self._fit_day_of_week(rows, y, trend)

        recent = rows[-cfg.recent_days:]
        recent_level = float(
            np.mean([r.revenue / day_of_week[r.date.weekday()] for r in recent])
        )
        end_level = intercept + slope * x[-1]
        baseline = max(0.0, (1.0 - cfg.recent_weight) * end_level + cfg.recent_weight * recent_level)

        fitted = trend * np.array([day_of_week[r.date.weekday()] for r in rows])
        residual_std = float(np.std(y - fitted))
        month_of_year = self._fit_month_of_year(rows, y, fitted)

        recent_dau = sum(r.dau for r in recent)
        recent_revenue = sum(r.revenue for r in recent)
        new_user_ratio = None
        if recent_dau > 0:
            new_user_ratio = min(1.0, sum(r.new_users for r in recent) / recent_dau)

        candidate = RevenueModelState(
            is_trained=True,
            baseline_revenue=baseline,
            trend_slope=slope,
            day_of_week=day_of_week,
            month_of_year=month_of_year,
            training_end=rows[-1].date,
            history_days=len(rows),
            residual_std=residual_std,
            avg_dau=recent_dau / len(recent),
            arpdau=recent_revenue / recent_dau if recent_dau > 0 else 0.0,
            payer_conversion=sum(r.payers for r in recent) / recent_dau if recent_dau > 0 else 0.0,
            new_user_ratio=new_user_ratio,
        )

        held_out = validation_tail(rows, cfg.validation_split)
        metrics = self._score(candidate, held_out).model_copy(
            update={"data_points_used": len(rows), "last_trained_at": datetime.utcnow()}
        )
        self._commit(candidate.model_copy(update={"metrics": metrics}))

        logger.info(
            "revenue_model_trained",
            rows=len(rows),
            baseline=round(baseline, 2),
            slope=round(slope, 4),
            months_learned=len(rows) >= cfg.month_history_days,
            mse=round(metrics.mse, 4),
        )
        return metrics

    def evaluate(self, data: Iterable[Union[RevenueDataPoint, dict]]) -> ModelMetrics:
        """Score the current model against actual daily revenue. Non-mutating."""
        state = self._state
        rows = self._coerce_rows(data)
        metrics = self._score(state, rows)
        logger.debug("revenue_model_evaluated", rows=len(rows), mse=metrics.mse)
        return metrics

    def get_feature_importance(self) -> dict[str, float]:
        return dict(REVENUE_FEATURE_IMPORTANCE)

    # =========================================================================
    # Private helpers
    # =========================================================================

    def _default_start(self, state: RevenueModelState) -> date:
        if state.training_end is not None:
            return state.training_end + timedelta(days=1)
        return date.today() + timedelta(days=1)

    def _point_value(self, state: RevenueModelState, day: date) -> tuple[float, int, float]:
        """(value, days_ahead, seasonal_factor) for a date."""
        anchor = state.training_end or date.today()
        days_ahead = (day - anchor).days
        months = state.month_of_year
        month_shift = months[day.month - 1] / months[anchor.month - 1]
        seasonal_factor = state.day_of_week[day.weekday()] * month_shift
        level = state.baseline_revenue + state.trend_slope * days_ahead
        return max(0.0, level * seasonal_factor), days_ahead, seasonal_factor

    def _forecast_day(
        self, state: RevenueModelState, day: date, include_breakdown: bool
    ) -> RevenueForecast:
        cfg = self.config
        value, days_ahead, seasonal_factor = self._point_value(state, day)

        confidence = max(
            cfg.min_confidence,
            cfg.max_confidence - cfg.confidence_decay_per_day * max(days_ahead, 1),
        )
        width = min(cfg.range_max_width, cfg.range_base_width + cfg.range_growth_per_day * max(days_ahead, 0))
        spread = cfg.residual_band * state.residual_std
        trend = self._trend(state)

        return RevenueForecast(
            value=value,
            confidence=min(1.0, confidence),
            period=ForecastPeriod.DAILY,
            breakdown=self._breakdown(state, value) if include_breakdown else RevenueBreakdown(),
            trend=trend,
            seasonal_factor=seasonal_factor,
            range=PredictionRange(
                low=max(0.0, value * (1.0 - width) - spread),
                high=value * (1.0 + width) + spread,
            ),
            factors=self._daily_factors(state, day, days_ahead, trend),
            date=day,
        )

    def _aggregate(
        self,
        state: RevenueModelState,
        daily: list[RevenueForecast],
        period: ForecastPeriod,
    ) -> RevenueForecast:
        """Sum daily forecasts into one period forecast."""
        trend = self._trend(state)
        factors: list[PredictionFactor] = []
        if trend == TrendDirection.GROWING:
            factors.append(
                PredictionFactor(
                    name="Positive Momentum",
                    weight=0.5,
                    description="Revenue has been trending upward",
                )
            )
        elif trend == TrendDirection.DECLINING:
            factors.append(
                PredictionFactor(
                    name="Negative Momentum",
                    weight=-0.5,
                    description="Revenue has been trending downward",
                )
            )
        if state.history_days >= self.config.historical_pattern_days:
            factors.append(
                PredictionFactor(
                    name="Historical Patterns",
                    weight=0.3,
                    description=f"Based on {state.history_days} days of history",
                )
            )

        return RevenueForecast(
            value=sum(d.value for d in daily),
            confidence=min(d.confidence for d in daily),
            period=period,
            breakdown=RevenueBreakdown(
                existing_users=sum(d.breakdown.existing_users for d in daily),
                new_users=sum(d.breakdown.new_users for d in daily),
                reactivated=sum(d.breakdown.reactivated for d in daily),
            ),
            trend=trend,
            seasonal_factor=float(np.mean([d.seasonal_factor for d in daily])),
            range=PredictionRange(
                low=sum(d.range.low for d in daily),
                high=sum(d.range.high for d in daily),
            ),
            factors=factors,
            date=daily[0].date,
        )

    def _breakdown(self, state: RevenueModelState, value: float) -> RevenueBreakdown:
        """Split a value by user origin; existing users take the remainder."""
        cfg = self.config
        new_share = state.new_user_ratio if state.new_user_ratio is not None else cfg.default_new_user_ratio
        reactivated = value * cfg.reactivated_share
        new_users = (value - reactivated) * new_share
        return RevenueBreakdown(
            existing_users=max(0.0, value - reactivated - new_users),
            new_users=new_users,
            reactivated=reactivated,
        )

    def _trend(self, state: RevenueModelState) -> TrendDirection:
        band = self.config.trend_stable_band
        if state.baseline_revenue > 0:
            relative = state.trend_slope / state.baseline_revenue
        else:
            relative = state.trend_slope
        if relative > band:
            return TrendDirection.GROWING
        if relative < -band:
            return TrendDirection.DECLINING
        return TrendDirection.STABLE

    def _daily_factors(
        self,
        state: RevenueModelState,
        day: date,
        days_ahead: int,
        trend: TrendDirection,
    ) -> list[PredictionFactor]:
        cfg = self.config
        factors: list[PredictionFactor] = []
        weekday = calendar.day_name[day.weekday()]
        weekday_factor = state.day_of_week[day.weekday()]
        month_factor = state.month_of_year[day.month - 1]

        if weekday_factor > cfg.weekend_effect_threshold:
            factors.append(
                PredictionFactor(
                    name="Weekend Effect",
                    weight=min(1.0, weekday_factor - 1.0),
                    description=f"{weekday} revenue runs {(weekday_factor - 1) * 100:.0f}% above average",
                )
            )
        elif weekday_factor < cfg.weekday_dip_threshold:
            factors.append(
                PredictionFactor(
                    name="Weekday Dip",
                    weight=-min(1.0, 1.0 - weekday_factor),
                    description=f"{weekday} revenue runs {(1 - weekday_factor) * 100:.0f}% below average",
                )
            )

        if month_factor > cfg.seasonal_peak_threshold:
            factors.append(
                PredictionFactor(
                    name="Seasonal Peak",
                    weight=min(1.0, month_factor - 1.0),
                    description=f"{calendar.month_name[day.month]} is typically a high-revenue month",
                )
            )

        if trend == TrendDirection.GROWING:
            factors.append(
                PredictionFactor(
                    name="Growth Trend",
                    weight=0.4,
                    description=f"Revenue growing by {state.trend_slope:.2f} per day",
                )
            )
        elif trend == TrendDirection.DECLINING:
            factors.append(
                PredictionFactor(
                    name="Declining Trend",
                    weight=-0.4,
                    description=f"Revenue falling by {abs(state.trend_slope):.2f} per day",
                )
            )

        if days_ahead > cfg.long_term_days:
            factors.append(
                PredictionFactor(
                    name="Long-term Forecast",
                    weight=-0.2,
                    description=f"{days_ahead} days ahead of the training data",
                )
            )

        return factors

    def _scenario_multiplier(self, scenario: WhatIfScenario) -> float:
        dau = max(0.0, 1.0 + scenario.dau_change / 100)
        arpu = max(0.0, 1.0 + scenario.arpu_change / 100)
        conversion = max(0.0, 1.0 + scenario.conversion_change / 100 * self.config.conversion_elasticity)
        return dau * arpu * conversion

    def _scenario_drivers(
        self, state: RevenueModelState, scenario: WhatIfScenario
    ) -> tuple[RevenueDrivers, RevenueDrivers]:
        """Recent drivers from training and the same drivers under the scenario."""
        baseline = RevenueDrivers(
            dau=state.avg_dau,
            arpdau=state.arpdau,
            payer_conversion=min(1.0, state.payer_conversion),
        )
        conversion = max(0.0, 1.0 + scenario.conversion_change / 100)
        shifted = RevenueDrivers(
            dau=baseline.dau * max(0.0, 1.0 + scenario.dau_change / 100),
            arpdau=baseline.arpdau
            * max(0.0, 1.0 + scenario.arpu_change / 100)
            * max(0.0, 1.0 + scenario.conversion_change / 100 * self.config.conversion_elasticity),
            payer_conversion=min(1.0, baseline.payer_conversion * conversion),
        )
        return baseline, shifted

    @staticmethod
    def _scenario_factors(
        scenario: WhatIfScenario, baseline: RevenueDrivers, shifted: RevenueDrivers
    ) -> list[PredictionFactor]:
        known = baseline.daily_revenue > 0
        factors = []
        for name, change, description in (
            ("DAU Change", scenario.dau_change, f"DAU {baseline.dau:,.0f} -> {shifted.dau:,.0f}"),
            (
                "ARPU Change",
                scenario.arpu_change,
                f"ARPDAU {baseline.arpdau:.3f} -> {shifted.arpdau:.3f}",
            ),
            (
                "Conversion Change",
                scenario.conversion_change,
                f"Payer conversion {baseline.payer_conversion:.1%} -> {shifted.payer_conversion:.1%}",
            ),
        ):
            if change:
                factors.append(
                    PredictionFactor(
                        name=name,
                        weight=max(-1.0, min(1.0, change / 100)),
                        description=description if known else f"{change:+.1f}% applied to the baseline",
                    )
                )
        return factors

    def _fit_day_of_week(self, rows: list[RevenueDataPoint], y: np.ndarray, trend: np.ndarray) -> list[float]:
        """Mean actual/trend ratio per weekday, floored and normalized to mean 1."""
        ratios: dict[int, list[float]] = {wd: [] for wd in range(7)}
        for row, actual, expected in zip(rows, y, trend):
            if expected > 0:
                ratios[row.date.weekday()].append(actual / expected)

        factors = np.array(
            [np.mean(ratios[wd]) if ratios[wd] else 1.0 for wd in range(7)], dtype=float
        )
        factors = np.maximum(factors, self.config.min_seasonal_factor)
        return [float(f) for f in factors / factors.mean()]

    def _fit_month_of_year(
        self, rows: list[RevenueDataPoint], y: np.ndarray, fitted: np.ndarray
    ) -> list[float]:
        """
        Mean actual/fitted ratio per calendar month, normalized to mean 1.

        Below month_history_days the configured defaults are kept; months the
        history never covers keep their default value.
        """
        cfg = self.config
        defaults = _normalized(cfg.month_of_year)
        if len(rows) < cfg.month_history_days:
            return defaults

        ratios: dict[int, list[float]] = {m: [] for m in range(12)}
        for row, actual, expected in zip(rows, y, fitted):
            if expected > 0:
                ratios[row.date.month - 1].append(actual / expected)

        factors = np.array(
            [np.mean(ratios[m]) if ratios[m] else defaults[m] for m in range(12)], dtype=float
        )
        return _normalized(np.maximum(factors, cfg.min_seasonal_factor))

    def _score(self, state: RevenueModelState, rows: list[RevenueDataPoint]) -> ModelMetrics:
        predicted = [self._point_value(state, r.date)[0] for r in rows]
        actual = [r.revenue for r in rows]
        trained_at = state.metrics.last_trained_at if state.metrics else None
        return error_metrics(predicted, actual, data_points_used=len(rows), last_trained_at=trained_at)

    @staticmethod
    def _coerce_rows(data: Optional[Iterable[Union[RevenueDataPoint, dict]]]) -> list[RevenueDataPoint]:
        rows = [
            r if isinstance(r, RevenueDataPoint) else RevenueDataPoint.model_validate(r)
            for r in (data or [])
        ]
        return sorted(rows, key=lambda r: r.date)
