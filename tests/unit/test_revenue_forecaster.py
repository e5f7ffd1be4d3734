"""
Unit tests for the revenue forecaster.

Training data comes from make_revenue_series: noiseless linear revenue times
the default Monday-first weekday multipliers, starting Monday 2024-01-01.
"""

from datetime import date, timedelta

import pytest

from gameinsights.engine.prediction import InsufficientDataError, RevenueForecaster
from gameinsights.models.config import DEFAULT_DAY_OF_WEEK, DEFAULT_MONTH_OF_YEAR, RevenueModelConfig
from gameinsights.models.enums import ForecastPeriod, TrendDirection
from gameinsights.models.revenue import WhatIfScenario
from tests.conftest import make_revenue_series

# 60 days from 2024-01-01 (leap year)
TRAINING_END = date(2024, 2, 29)
NEXT_SATURDAY = date(2024, 3, 2)
NEXT_TUESDAY = date(2024, 3, 5)
DECEMBER_SATURDAY = date(2024, 12, 14)


@pytest.fixture
def stable_forecaster(memory_store):
    forecaster = RevenueForecaster(storage=memory_store)
    forecaster.train(make_revenue_series(days=60, slope=0.0))
    return forecaster


class TestForecast:
    """Tests for RevenueForecaster.forecast."""

    def test_forecast_returns_requested_days(self, trained_revenue_forecaster):
        forecasts = trained_revenue_forecaster.forecast(7)
        assert len(forecasts) == 7
        assert forecasts[0].confidence >= forecasts[6].confidence

    def test_forecast_confidence_non_increasing(self, trained_revenue_forecaster):
        confidences = [f.confidence for f in trained_revenue_forecaster.forecast(60)]
        assert all(b <= a for a, b in zip(confidences, confidences[1:]))

    @pytest.mark.parametrize("days", [0, -3])
    def test_forecast_non_positive_days_empty(self, trained_revenue_forecaster, days):
        assert trained_revenue_forecaster.forecast(days) == []

    def test_forecast_starts_day_after_training(self, trained_revenue_forecaster):
        forecasts = trained_revenue_forecaster.forecast(3)
        assert [f.date for f in forecasts] == [
            TRAINING_END + timedelta(days=1),
            TRAINING_END + timedelta(days=2),
            TRAINING_END + timedelta(days=3),
        ]

    def test_forecast_custom_start_date(self, trained_revenue_forecaster):
        start = date(2024, 4, 1)
        assert trained_revenue_forecaster.forecast(2, start_date=start)[0].date == start

    def test_forecast_breakdown_sums_to_value(self, trained_revenue_forecaster):
        for forecast in trained_revenue_forecaster.forecast(14):
            assert forecast.breakdown.total == pytest.approx(forecast.value)

    def test_forecast_without_breakdown_zero_filled(self, trained_revenue_forecaster):
        forecast = trained_revenue_forecaster.forecast(1, include_breakdown=False)[0]
        assert forecast.breakdown.total == 0.0
        assert forecast.value > 0.0

    def test_forecast_daily_period(self, trained_revenue_forecaster):
        assert all(f.period == ForecastPeriod.DAILY for f in trained_revenue_forecaster.forecast(5))

    def test_forecast_untrained_is_zero(self, revenue_forecaster):
        forecasts = revenue_forecaster.forecast(3)
        assert len(forecasts) == 3
        assert all(f.value == 0.0 for f in forecasts)


class TestForecastSingleDay:
    """Tests for RevenueForecaster.forecast_single_day."""

    def test_single_day_applies_trend_and_season(self, stable_forecaster):
        forecast = stable_forecaster.forecast_single_day(NEXT_SATURDAY)
        assert forecast.value == pytest.approx(1000.0 * 1.30, rel=0.03)
        assert forecast.seasonal_factor == pytest.approx(1.30, abs=0.05)

    def test_single_day_confidence_formula(self, trained_revenue_forecaster):
        tomorrow = trained_revenue_forecaster.forecast_single_day(TRAINING_END + timedelta(days=1))
        far = trained_revenue_forecaster.forecast_single_day(TRAINING_END + timedelta(days=40))
        assert tomorrow.confidence == pytest.approx(0.88)
        assert far.confidence == pytest.approx(0.3)

    def test_single_day_range_brackets_value(self, trained_revenue_forecaster):
        forecast = trained_revenue_forecaster.forecast_single_day(TRAINING_END + timedelta(days=1))
        spread = trained_revenue_forecaster.state.residual_std
        assert forecast.range.low == pytest.approx(max(0.0, forecast.value * 0.79 - spread))
        assert forecast.range.high == pytest.approx(forecast.value * 1.21 + spread)

    def test_single_day_range_widens_with_residual_spread(self):
        noisy = [
            p.model_copy(update={"revenue": p.revenue + (80.0 if i % 2 else -80.0)})
            for i, p in enumerate(make_revenue_series(days=60, slope=20.0))
        ]
        tight = RevenueForecaster(config=RevenueModelConfig(residual_band=0.0))
        wide = RevenueForecaster(config=RevenueModelConfig(residual_band=2.0))
        tight.train(noisy)
        wide.train(noisy)

        day = TRAINING_END + timedelta(days=1)
        narrow_range = tight.forecast_single_day(day).range
        wide_range = wide.forecast_single_day(day).range
        assert wide.state.residual_std > 50.0
        assert wide_range.high - narrow_range.high == pytest.approx(2.0 * wide.state.residual_std)
        assert wide_range.low < narrow_range.low

    def test_single_day_weekend_effect_factor(self, stable_forecaster):
        names = [f.name for f in stable_forecaster.forecast_single_day(NEXT_SATURDAY).factors]
        assert "Weekend Effect" in names

    def test_single_day_weekday_dip_factor(self, revenue_forecaster):
        names = [f.name for f in revenue_forecaster.forecast_single_day(NEXT_TUESDAY).factors]
        assert "Weekday Dip" in names

    def test_single_day_month_shift_relative_to_training_month(self, stable_forecaster):
        state = stable_forecaster.state
        forecast = stable_forecaster.forecast_single_day(DECEMBER_SATURDAY)
        expected = state.day_of_week[5] * state.month_of_year[11] / state.month_of_year[1]
        assert forecast.seasonal_factor == pytest.approx(expected)

    def test_single_day_same_month_as_training_has_no_month_shift(self, stable_forecaster):
        forecast = stable_forecaster.forecast_single_day(date(2024, 2, 24))
        assert forecast.seasonal_factor == pytest.approx(stable_forecaster.state.day_of_week[5])

    def test_single_day_seasonal_peak_factor(self, stable_forecaster):
        names = [f.name for f in stable_forecaster.forecast_single_day(DECEMBER_SATURDAY).factors]
        assert "Seasonal Peak" in names

    def test_single_day_no_seasonal_peak_in_march(self, stable_forecaster):
        names = [f.name for f in stable_forecaster.forecast_single_day(NEXT_SATURDAY).factors]
        assert "Seasonal Peak" not in names

    def test_single_day_long_term_factor(self, trained_revenue_forecaster):
        forecast = trained_revenue_forecaster.forecast_single_day(TRAINING_END + timedelta(days=20))
        assert "Long-term Forecast" in [f.name for f in forecast.factors]

    def test_single_day_growing_trend(self, trained_revenue_forecaster):
        forecast = trained_revenue_forecaster.forecast_single_day(NEXT_SATURDAY)
        assert forecast.trend == TrendDirection.GROWING
        assert "Growth Trend" in [f.name for f in forecast.factors]

    def test_single_day_declining_trend(self):
        forecaster = RevenueForecaster()
        forecaster.train(make_revenue_series(days=60, base=3000.0, slope=-30.0))
        forecast = forecaster.forecast_single_day(NEXT_SATURDAY)
        assert forecast.trend == TrendDirection.DECLINING

    def test_single_day_stable_trend(self, stable_forecaster):
        assert stable_forecaster.forecast_single_day(NEXT_SATURDAY).trend == TrendDirection.STABLE

    def test_single_day_value_never_negative(self):
        forecaster = RevenueForecaster()
        forecaster.train(make_revenue_series(days=60, base=3000.0, slope=-45.0))
        assert forecaster.forecast_single_day(TRAINING_END + timedelta(days=365)).value == 0.0


class TestForecastPeriod:
    """Tests for RevenueForecaster.forecast_period."""

    def test_weekly_sums_daily_values(self, trained_revenue_forecaster):
        daily = trained_revenue_forecaster.forecast(7)
        weekly = trained_revenue_forecaster.forecast_period(ForecastPeriod.WEEKLY)
        assert weekly.value == pytest.approx(sum(f.value for f in daily))
        assert weekly.confidence == pytest.approx(min(f.confidence for f in daily))
        assert weekly.period == ForecastPeriod.WEEKLY

    def test_monthly_covers_thirty_days(self, trained_revenue_forecaster):
        daily = trained_revenue_forecaster.forecast(30)
        monthly = trained_revenue_forecaster.forecast_period("monthly")
        assert monthly.value == pytest.approx(sum(f.value for f in daily))
        assert monthly.confidence == pytest.approx(daily[-1].confidence)

    def test_period_breakdown_consistent(self, trained_revenue_forecaster):
        weekly = trained_revenue_forecaster.forecast_period(ForecastPeriod.WEEKLY)
        assert weekly.breakdown.total == pytest.approx(weekly.value)
        assert weekly.range.low <= weekly.value <= weekly.range.high

    def test_period_factors(self, trained_revenue_forecaster):
        names = [f.name for f in trained_revenue_forecaster.forecast_period("weekly").factors]
        assert "Positive Momentum" in names
        assert "Historical Patterns" in names

    def test_period_invalid_raises(self, trained_revenue_forecaster):
        with pytest.raises(ValueError):
            trained_revenue_forecaster.forecast_period("yearly")


class TestWhatIf:
    """Tests for RevenueForecaster.what_if."""

    def test_what_if_zero_scenario_no_change(self, trained_revenue_forecaster):
        result = trained_revenue_forecaster.what_if(WhatIfScenario(), 30)
        assert result.difference == pytest.approx(0.0)
        assert result.percent_change == pytest.approx(0.0)

    def test_what_if_empty_dict_no_change(self, trained_revenue_forecaster):
        result = trained_revenue_forecaster.what_if({}, 30)
        assert result.difference == pytest.approx(0.0)

    def test_what_if_dau_increase_beats_decrease(self, trained_revenue_forecaster):
        up = trained_revenue_forecaster.what_if({"dauChange": 20}, 30)
        down = trained_revenue_forecaster.what_if({"dauChange": -20}, 30)
        assert up.scenario.value >= down.scenario.value

    def test_what_if_multiplier(self, trained_revenue_forecaster):
        scenario = WhatIfScenario(dau_change=20, arpu_change=10, conversion_change=10)
        result = trained_revenue_forecaster.what_if(scenario, 30)
        assert result.multiplier == pytest.approx(1.2 * 1.1 * 1.05)
        assert result.scenario.value == pytest.approx(result.baseline.value * result.multiplier)
        assert result.percent_change == pytest.approx((result.multiplier - 1) * 100)

    def test_what_if_scenario_breakdown_scaled(self, trained_revenue_forecaster):
        result = trained_revenue_forecaster.what_if({"arpu_change": 50}, 14)
        assert result.scenario.breakdown.total == pytest.approx(result.scenario.value)

    def test_what_if_floors_multiplier_at_zero(self, trained_revenue_forecaster):
        result = trained_revenue_forecaster.what_if({"dauChange": -200}, 7)
        assert result.multiplier == 0.0
        assert result.scenario.value == 0.0

    def test_what_if_baseline_matches_horizon(self, trained_revenue_forecaster):
        result = trained_revenue_forecaster.what_if({}, 10)
        assert result.horizon_days == 10
        assert result.baseline.value == pytest.approx(
            sum(f.value for f in trained_revenue_forecaster.forecast(10))
        )

    def test_what_if_shifts_recent_drivers(self, trained_revenue_forecaster):
        state = trained_revenue_forecaster.state
        result = trained_revenue_forecaster.what_if(
            WhatIfScenario(dau_change=10, conversion_change=20), 30
        )
        assert result.baseline_drivers.dau == pytest.approx(state.avg_dau)
        assert result.baseline_drivers.arpdau == pytest.approx(0.5)
        assert result.scenario_drivers.dau == pytest.approx(state.avg_dau * 1.1)
        assert result.scenario_drivers.payer_conversion == pytest.approx(0.03 * 1.2)
        # half of a conversion change reaches ARPDAU
        assert result.scenario_drivers.arpdau == pytest.approx(0.5 * 1.1)
        assert result.multiplier == pytest.approx(
            result.scenario_drivers.daily_revenue / result.baseline_drivers.daily_revenue
        )

    def test_what_if_driver_factors_describe_shift(self, trained_revenue_forecaster):
        result = trained_revenue_forecaster.what_if({"dauChange": 50}, 7)
        dau_factor = next(f for f in result.scenario.factors if f.name == "DAU Change")
        assert "->" in dau_factor.description

    def test_what_if_untrained_zero_percent(self, revenue_forecaster):
        result = revenue_forecaster.what_if({"dauChange": 50}, 30)
        assert result.percent_change == 0.0


class TestRevenueTrain:
    """Tests for RevenueForecaster.train."""

    def test_train_insufficient_data_raises(self, revenue_forecaster):
        with pytest.raises(InsufficientDataError) as exc_info:
            revenue_forecaster.train(make_revenue_series(days=10))
        assert exc_info.value.required == 30
        assert exc_info.value.received == 10

    def test_train_failure_leaves_state_untouched(self, trained_revenue_forecaster):
        before = trained_revenue_forecaster.state
        with pytest.raises(InsufficientDataError):
            trained_revenue_forecaster.train(make_revenue_series(days=5))
        assert trained_revenue_forecaster.state is before

    def test_train_custom_minimum(self, small_revenue_config):
        forecaster = RevenueForecaster(config=small_revenue_config)
        assert forecaster.train(make_revenue_series(days=14)).data_points_used == 14

    def test_train_records_state(self, trained_revenue_forecaster):
        state = trained_revenue_forecaster.state
        assert state.is_trained
        assert state.training_end == TRAINING_END
        assert state.history_days == 60
        assert state.trend_slope == pytest.approx(20.0, rel=0.1)

    def test_train_day_of_week_normalized(self, stable_forecaster):
        multipliers = stable_forecaster.state.day_of_week
        assert sum(multipliers) / 7 == pytest.approx(1.0)
        for learned, expected in zip(multipliers, DEFAULT_DAY_OF_WEEK):
            assert learned == pytest.approx(expected, abs=0.05)

    def test_train_learns_drivers(self, trained_revenue_forecaster):
        state = trained_revenue_forecaster.state
        assert state.arpdau == pytest.approx(0.5)
        assert state.payer_conversion == pytest.approx(0.03)
        assert state.new_user_ratio == pytest.approx(0.2)

    def test_train_short_history_keeps_default_months(self, trained_revenue_forecaster):
        months = trained_revenue_forecaster.state.month_of_year
        mean = sum(DEFAULT_MONTH_OF_YEAR) / 12
        assert months == pytest.approx([m / mean for m in DEFAULT_MONTH_OF_YEAR])

    def test_train_learns_months_from_long_history(self, revenue_forecaster):
        april_bump = [1.0, 1.0, 1.0, 1.3] + [1.0] * 8
        revenue_forecaster.train(make_revenue_series(days=120, month_of_year=april_bump))
        months = revenue_forecaster.state.month_of_year
        assert len(months) == 12
        assert sum(months) / 12 == pytest.approx(1.0)
        assert months[3] > months[2]
        # months outside the history keep the default shape
        assert months[11] / months[10] == pytest.approx(1.2 / 1.1)

    def test_train_sorts_input(self, revenue_forecaster):
        revenue_forecaster.train(list(reversed(make_revenue_series(days=60))))
        assert revenue_forecaster.state.training_end == TRAINING_END

    def test_train_returns_metrics(self, revenue_forecaster, sample_revenue):
        metrics = revenue_forecaster.train(sample_revenue)
        assert metrics.data_points_used == 60
        assert metrics.last_trained_at is not None
        assert metrics.mse >= 0.0


class TestRevenueEvaluate:
    def test_evaluate_empty_returns_zero(self, trained_revenue_forecaster):
        metrics = trained_revenue_forecaster.evaluate([])
        assert metrics.mse == 0.0
        assert metrics.mae == 0.0

    def test_evaluate_does_not_mutate(self, trained_revenue_forecaster, sample_revenue):
        before = trained_revenue_forecaster.state
        metrics = trained_revenue_forecaster.evaluate(sample_revenue)
        assert trained_revenue_forecaster.state is before
        assert metrics.data_points_used == 60


class TestRevenueFeatureImportance:
    def test_feature_importance_sums_to_one(self, revenue_forecaster):
        importance = revenue_forecaster.get_feature_importance()
        assert sum(importance.values()) == pytest.approx(1.0)
        assert importance["historical_trend"] == 0.30


class TestRevenuePersistence:
    def test_save_load_round_trip(self, trained_revenue_forecaster, memory_store):
        trained_revenue_forecaster.save()
        restored = RevenueForecaster(storage=memory_store)
        assert restored.load() is True
        assert restored.state == trained_revenue_forecaster.state
        assert restored.forecast(7) == trained_revenue_forecaster.forecast(7)

    def test_load_missing_returns_false(self, revenue_forecaster):
        assert revenue_forecaster.load() is False

    def test_load_corrupt_keeps_state(self, trained_revenue_forecaster, memory_store):
        before = trained_revenue_forecaster.state
        memory_store.set("revenue_forecaster_model", '{"day_of_week": [1, 2]}')
        assert trained_revenue_forecaster.load() is False
        assert trained_revenue_forecaster.state is before

    def test_untrained_uses_configured_weekdays(self):
        config = RevenueModelConfig(day_of_week=[1.0, 1.0, 1.0, 1.0, 1.0, 2.0, 1.0])
        assert RevenueForecaster(config=config).state.day_of_week[5] == 2.0
