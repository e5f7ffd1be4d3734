"""
Property-based tests using Hypothesis.

These tests check the bounds and ordering invariants of the retention and
revenue models across generated inputs rather than hand-picked cases.
"""

from datetime import date, timedelta

import hypothesis.strategies as st
from hypothesis import HealthCheck, assume, given, settings

from gameinsights.engine.prediction import InsufficientDataError, RetentionPredictor, RevenueForecaster
from gameinsights.models.config import RetentionModelConfig
from gameinsights.models.retention import RetentionDataset
from gameinsights.models.revenue import WhatIfScenario
from gameinsights.storage.memory_storage import InMemoryKeyValueStore
from tests.conftest import make_cohorts, make_revenue_series

retention_values = st.floats(min_value=0.0, max_value=1.0, allow_nan=False)
observed_retention = st.dictionaries(
    keys=st.integers(min_value=0, max_value=120),
    values=retention_values,
    max_size=8,
)
target_days = st.integers(min_value=0, max_value=400)
percent_changes = st.floats(min_value=-150.0, max_value=300.0, allow_nan=False)

_TRAINED_RETENTION = RetentionPredictor()
_TRAINED_RETENTION.train(RetentionDataset(cohort_data=make_cohorts(5)))

_TRAINED_REVENUE = RevenueForecaster()
_TRAINED_REVENUE.train(make_revenue_series(days=60, slope=10.0))


# =============================================================================
# Retention Property Tests
# =============================================================================


@given(observed=observed_retention, target_day=target_days)
@settings(max_examples=200)
def test_prop_retention_value_and_confidence_bounds(observed, target_day):
    """Value and confidence always lie in [0, 1]."""
    for predictor in (RetentionPredictor(), _TRAINED_RETENTION):
        result = predictor.predict_retention(observed, target_day)
        assert 0.0 <= result.value <= 1.0
        assert 0.0 <= result.confidence <= 1.0


@given(observed=observed_retention, target_day=target_days)
@settings(max_examples=200, suppress_health_check=[HealthCheck.filter_too_much, HealthCheck.too_slow])
def test_prop_retention_exact_hit_wins(observed, target_day):
    """An observed target day is returned verbatim with full confidence."""
    assume(target_day in observed)
    result = RetentionPredictor().predict_retention(observed, target_day)
    assert result.value == observed[target_day]
    assert result.confidence == 1.0
    assert result.range is None


@given(observed=observed_retention, target_day=target_days)
@settings(max_examples=200)
def test_prop_retention_extrapolation_below_full_confidence(observed, target_day):
    """Anything not observed is reported with confidence strictly below 1."""
    assume(target_day not in observed and target_day != 0)
    result = RetentionPredictor().predict_retention(observed, target_day)
    assert result.confidence < 1.0
    assert result.range.low <= result.value <= result.range.high


@given(observed=observed_retention, target_day=target_days)
@settings(max_examples=200)
def test_prop_retention_curve_non_increasing(observed, target_day):
    result = _TRAINED_RETENTION.predict_retention(observed, target_day)
    days = [p.day for p in result.retention_curve]
    values = [p.retention for p in result.retention_curve]
    assert days == sorted(set(days))
    assert all(b <= a for a, b in zip(values, values[1:]))


@given(
    observed=observed_retention.filter(lambda o: any(d > 0 for d in o)),
    near=st.integers(min_value=1, max_value=200),
    extra=st.integers(min_value=0, max_value=200),
)
@settings(max_examples=150)
def test_prop_retention_confidence_non_increasing_with_distance(observed, near, extra):
    """Moving the target further past the last observed day never raises confidence."""
    last = max(observed)
    predictor = RetentionPredictor()
    closer = predictor.predict_retention(observed, last + near)
    farther = predictor.predict_retention(observed, last + near + extra)
    assert farther.confidence <= closer.confidence


@given(d1=st.floats(min_value=0.0, max_value=1.0), d7=st.floats(min_value=0.0, max_value=1.0))
@settings(max_examples=150)
def test_prop_d30_bounded_by_d7(d1, d7):
    result = RetentionPredictor().predict_d30_from_early(d1, d7)
    assert 0.0 < result.value <= max(d7, RetentionModelConfig().retention_floor)
    assert 0.0 <= result.confidence <= 1.0


@given(
    curve=st.dictionaries(st.integers(min_value=1, max_value=90), retention_values, min_size=1, max_size=6),
    rate=st.floats(min_value=0.0, max_value=10.0),
    bump=st.floats(min_value=0.01, max_value=10.0),
    horizon=st.integers(min_value=0, max_value=400),
    extra=st.integers(min_value=1, max_value=400),
)
@settings(max_examples=150)
def test_prop_ltv_monotonicity(curve, rate, bump, horizon, extra):
    predictor = RetentionPredictor()
    base = predictor.predict_cohort_ltv(curve, rate, horizon)
    richer = predictor.predict_cohort_ltv(curve, rate + bump, horizon)
    longer = predictor.predict_cohort_ltv(curve, rate, horizon + extra)
    assert base.ltv >= 0.0
    assert richer.ltv > base.ltv
    assert 0.0 < longer.confidence <= base.confidence <= 1.0


@given(n=st.integers(min_value=0, max_value=2))
@settings(max_examples=10)
def test_prop_retention_train_below_minimum_is_non_mutating(n):
    predictor = RetentionPredictor()
    predictor.train(RetentionDataset(cohort_data=make_cohorts(5)))
    before = predictor.state
    try:
        predictor.train(RetentionDataset(cohort_data=make_cohorts(n) if n else []))
    except InsufficientDataError:
        pass
    assert predictor.state is before


# =============================================================================
# Revenue Property Tests
# =============================================================================


@given(days=st.integers(min_value=0, max_value=120))
@settings(max_examples=50)
def test_prop_forecast_length_and_confidence_order(days):
    forecasts = _TRAINED_REVENUE.forecast(days)
    assert len(forecasts) == days
    confidences = [f.confidence for f in forecasts]
    assert all(b <= a for a, b in zip(confidences, confidences[1:]))
    for forecast in forecasts:
        assert forecast.value >= 0.0
        assert forecast.seasonal_factor > 0.0
        assert abs(forecast.breakdown.total - forecast.value) <= 1e-6 * max(1.0, forecast.value)


@given(
    offset=st.integers(min_value=-30, max_value=400),
)
@settings(max_examples=100)
def test_prop_single_day_bounds(offset):
    day = date(2024, 3, 1) + timedelta(days=offset)
    forecast = _TRAINED_REVENUE.forecast_single_day(day)
    assert forecast.value >= 0.0
    assert 0.0 <= forecast.confidence <= 1.0
    assert forecast.range.low <= forecast.value <= forecast.range.high


@given(horizon=st.integers(min_value=1, max_value=90))
@settings(max_examples=30)
def test_prop_what_if_zero_scenario_is_identity(horizon):
    result = _TRAINED_REVENUE.what_if(WhatIfScenario(), horizon)
    assert abs(result.difference) <= 1e-9 * max(1.0, result.baseline.value)
    assert abs(result.percent_change) <= 1e-9


@given(
    dau=percent_changes,
    delta=st.floats(min_value=0.0, max_value=100.0),
    arpu=percent_changes,
    conversion=percent_changes,
)
@settings(max_examples=150, suppress_health_check=[HealthCheck.too_slow])
def test_prop_what_if_monotonic_in_dau(dau, delta, arpu, conversion):
    lower = _TRAINED_REVENUE.what_if(
        WhatIfScenario(dau_change=dau, arpu_change=arpu, conversion_change=conversion), 14
    )
    higher = _TRAINED_REVENUE.what_if(
        WhatIfScenario(dau_change=dau + delta, arpu_change=arpu, conversion_change=conversion), 14
    )
    assert higher.scenario.value >= lower.scenario.value
    assert lower.scenario.value >= 0.0


@given(days=st.integers(min_value=30, max_value=120), slope=st.floats(min_value=-5.0, max_value=20.0))
@settings(max_examples=20, deadline=None)
def test_prop_revenue_save_load_round_trip(days, slope):
    store = InMemoryKeyValueStore()
    forecaster = RevenueForecaster(storage=store)
    forecaster.train(make_revenue_series(days=days, slope=slope))
    forecaster.save()

    restored = RevenueForecaster(storage=store)
    assert restored.load()
    assert restored.forecast(14) == forecaster.forecast(14)
    assert restored.what_if({"dauChange": 10}, 30) == forecaster.what_if({"dauChange": 10}, 30)
