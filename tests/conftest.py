"""
Pytest configuration and shared fixtures for the Game Insights test suite.

Provides data factories for cohorts and daily revenue, isolated model stores,
and an API client bound to a throwaway DuckDB file.
"""

import os
import tempfile
import uuid as _uuid
from datetime import date, timedelta
from typing import Optional, Sequence

import pytest

# Set testing environment BEFORE importing app
# Use a temp path (must not exist - DuckDB creates the file).
_test_db_path = os.path.join(tempfile.gettempdir(), f"gameinsights_test_{_uuid.uuid4().hex[:8]}.duckdb")
os.environ["TESTING"] = "true"
os.environ["DB_PATH"] = _test_db_path
os.environ["STORAGE_TYPE"] = "duckdb"
os.environ["LOG_FORMAT"] = "console"


from gameinsights.engine.prediction import RetentionPredictor, RevenueForecaster
from gameinsights.models.config import DEFAULT_DAY_OF_WEEK, RetentionModelConfig, RevenueModelConfig
from gameinsights.models.retention import CohortRecord, RetentionDataset
from gameinsights.models.revenue import RevenueDataPoint
from gameinsights.storage.memory_storage import InMemoryKeyValueStore


# ---------------------------------------------------------------------------
# Pydantic model factories, reusable across all test suites
# ---------------------------------------------------------------------------


def make_cohort(
    cohort_date: date = date(2024, 1, 1),
    size: int = 1000,
    d1: float = 0.45,
    decay: float = 0.88,
    days: Sequence[int] = (1, 3, 7, 14, 30),
    **overrides,
) -> CohortRecord:
    """
    Factory for a cohort with geometric retention.

    retention(d) = d1 * decay ** (d - 1), day 0 always 1.0.
    """
    retention = {0: 1.0}
    retention.update({d: round(d1 * decay ** (d - 1), 6) for d in days})
    defaults = dict(cohort_date=cohort_date, size=size, retention_by_day=retention)
    defaults.update(overrides)
    return CohortRecord(**defaults)


def make_cohorts(
    n: int = 5,
    start: date = date(2024, 1, 1),
    d1: float = 0.45,
    decay: float = 0.88,
    sizes: Optional[Sequence[int]] = None,
) -> list[CohortRecord]:
    """Factory for n weekly cohorts sharing one decay profile."""
    sizes = sizes or [1000 + 100 * i for i in range(n)]
    return [
        make_cohort(cohort_date=start + timedelta(weeks=i), size=sizes[i], d1=d1, decay=decay)
        for i in range(n)
    ]


def make_revenue_series(
    days: int = 60,
    start: date = date(2024, 1, 1),
    base: float = 1000.0,
    slope: float = 0.0,
    day_of_week: Sequence[float] = DEFAULT_DAY_OF_WEEK,
    arpdau: float = 0.5,
    new_user_share: float = 0.2,
    payer_rate: float = 0.03,
    month_of_year: Optional[Sequence[float]] = None,
) -> list[RevenueDataPoint]:
    """
    Factory for noiseless daily revenue.

    revenue(i) = (base + slope * i) * day_of_week[weekday] * month_of_year[month],
    DAU derived from arpdau. Months default to a flat 1.0.
    """
    months = month_of_year or [1.0] * 12
    points = []
    for i in range(days):
        day = start + timedelta(days=i)
        revenue = max(0.0, (base + slope * i) * day_of_week[day.weekday()] * months[day.month - 1])
        dau = revenue / arpdau if arpdau > 0 else 0.0
        points.append(
            RevenueDataPoint(
                date=day,
                revenue=revenue,
                dau=dau,
                new_users=dau * new_user_share,
                payers=dau * payer_rate,
            )
        )
    return points


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def memory_store():
    """Fresh in-memory snapshot store."""
    return InMemoryKeyValueStore()


@pytest.fixture
def retention_predictor(memory_store):
    """Untrained retention predictor on an in-memory store."""
    return RetentionPredictor(storage=memory_store)


@pytest.fixture
def trained_retention_predictor(memory_store):
    """Retention predictor trained on five consistent cohorts."""
    predictor = RetentionPredictor(storage=memory_store)
    predictor.train(RetentionDataset(cohort_data=make_cohorts(5)))
    return predictor


@pytest.fixture
def revenue_forecaster(memory_store):
    """Untrained revenue forecaster on an in-memory store."""
    return RevenueForecaster(storage=memory_store)


@pytest.fixture
def trained_revenue_forecaster(memory_store):
    """Revenue forecaster trained on 60 days of growing revenue."""
    forecaster = RevenueForecaster(storage=memory_store)
    forecaster.train(make_revenue_series(days=60, slope=20.0))
    return forecaster


@pytest.fixture
def sample_cohorts():
    return make_cohorts(5)


@pytest.fixture
def sample_revenue():
    return make_revenue_series(days=60, slope=20.0)


@pytest.fixture
def small_retention_config():
    """Config that trains on a single cohort."""
    return RetentionModelConfig(min_data_points=1)


@pytest.fixture
def small_revenue_config():
    """Config that trains on two weeks of revenue."""
    return RevenueModelConfig(min_data_points=14)


@pytest.fixture
def client():
    """API client with a fresh prediction service over an empty store."""
    from fastapi.testclient import TestClient

    from gameinsights.main import app
    from gameinsights.services import get_prediction_service
    from gameinsights.storage import get_storage

    storage = get_storage()
    if hasattr(storage, "clear_for_testing"):
        storage.clear_for_testing()
    get_prediction_service.cache_clear()

    with TestClient(app) as c:
        yield c

    get_prediction_service.cache_clear()
