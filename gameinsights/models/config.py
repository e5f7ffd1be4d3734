"""
Model configuration for the retention predictor and revenue forecaster.

Every heuristic threshold used by the engine lives here as a named field so
callers can override it per instance. The module-level tables document the
default curves the engine falls back to when it has no data of its own:

- RETENTION_PATTERNS: expected retention for days 0..12 by game genre. Day 0 is
  always 1.0; beyond day 12 the curve keeps decaying at the rate of its last
  two points. predict_retention() uses these curves when no observation is
  usable and the model has not been trained.
- RETENTION_BENCHMARKS: industry "good" retention by day (D1 >= 40%,
  D7 >= 20%, D30 >= 10%), interpolated log-linearly between keyed days.
- DEFAULT_DAY_OF_WEEK: Monday-first revenue multipliers (weekends higher),
  used until the forecaster learns its own.
- DEFAULT_MONTH_OF_YEAR: January-first revenue multipliers (holiday quarter
  higher), normalized to mean 1.0 and used until the forecaster has
  month_history_days of history to learn its own.
"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from gameinsights.models.enums import GameType

RETENTION_PATTERNS: dict[GameType, list[float]] = {
    GameType.PUZZLE: [1, 0.45, 0.35, 0.28, 0.24, 0.21, 0.18, 0.16, 0.14, 0.13, 0.12, 0.11, 0.10],
    GameType.IDLE: [1, 0.50, 0.40, 0.32, 0.27, 0.24, 0.21, 0.19, 0.17, 0.15, 0.14, 0.13, 0.12],
    GameType.BATTLE_ROYALE: [1, 0.40, 0.30, 0.24, 0.20, 0.17, 0.15, 0.13, 0.11, 0.10, 0.09, 0.08, 0.07],
    GameType.MATCH3_META: [1, 0.48, 0.38, 0.30, 0.25, 0.22, 0.19, 0.17, 0.15, 0.14, 0.13, 0.12, 0.11],
    GameType.GACHA_RPG: [1, 0.42, 0.32, 0.26, 0.22, 0.19, 0.17, 0.15, 0.13, 0.12, 0.11, 0.10, 0.09],
    GameType.DEFAULT: [1, 0.44, 0.34, 0.27, 0.23, 0.20, 0.17, 0.15, 0.13, 0.12, 0.11, 0.10, 0.09],
}

RETENTION_BENCHMARKS: dict[int, float] = {
    1: 0.40,
    3: 0.28,
    7: 0.20,
    14: 0.14,
    30: 0.10,
    60: 0.07,
    90: 0.05,
}

CANONICAL_CURVE_DAYS: tuple[int, ...] = (1, 3, 7, 14, 30, 60, 90, 180, 365)

# Monday .. Sunday
DEFAULT_DAY_OF_WEEK: list[float] = [0.90, 0.85, 0.85, 0.90, 1.05, 1.30, 1.15]

# January .. December
DEFAULT_MONTH_OF_YEAR: list[float] = [1.0, 0.95, 0.95, 0.98, 1.0, 1.0, 0.95, 0.95, 1.0, 1.05, 1.1, 1.2]

RETENTION_FEATURE_IMPORTANCE: dict[str, float] = {
    "d1_retention": 0.35,
    "d7_retention": 0.25,
    "session_frequency": 0.15,
    "progression_speed": 0.10,
    "monetization_early": 0.08,
    "social_engagement": 0.07,
}

REVENUE_FEATURE_IMPORTANCE: dict[str, float] = {
    "historical_trend": 0.30,
    "recent_performance": 0.25,
    "day_of_week": 0.20,
    "month_of_year": 0.10,
    "dau_trend": 0.10,
    "arpu_trend": 0.05,
}


class RetentionModelConfig(BaseModel):
    """Tunable parameters of the retention predictor."""

    min_data_points: int = Field(default=3, ge=1, description="Minimum cohorts to train")
    validation_split: float = Field(default=0.2, gt=0.0, lt=1.0)
    curve_horizon_days: int = Field(
        default=30, ge=1, description="Days covered by the persisted fitted curve"
    )
    retention_floor: float = Field(
        default=0.001, gt=0.0, lt=1.0, description="Lowest retention ever predicted"
    )

    # Confidence and range
    max_extrapolated_confidence: float = Field(default=0.9, gt=0.0, lt=1.0)
    full_confidence_points: int = Field(
        default=7, ge=1, description="Observed points needed for full data confidence"
    )
    confidence_decay_days: float = Field(
        default=30.0, gt=0.0, description="e-folding distance of extrapolation confidence"
    )
    range_base_width: float = Field(default=0.2, ge=0.0, lt=1.0)
    range_growth: float = Field(default=0.3, ge=0.0, lt=1.0)
    ltv_min_confidence: float = Field(default=0.3, gt=0.0, le=1.0)
    default_tail_decay: float = Field(
        default=0.15, ge=0.0, description="Daily log-decay used when a curve has no tail"
    )

    # Benchmarks
    benchmark_tolerance: float = Field(
        default=0.10, ge=0.0, lt=1.0, description="Relative band counted as 'at' benchmark"
    )

    # Early D30 prediction
    early_base_confidence: float = Field(default=0.6, ge=0.0, le=1.0)
    early_confidence_step: float = Field(default=0.1, ge=0.0, le=1.0)
    early_max_confidence: float = Field(default=0.85, ge=0.0, le=1.0)
    healthy_d1: float = Field(default=0.30, ge=0.0, le=1.0)
    healthy_d7: float = Field(default=0.10, ge=0.0, le=1.0)
    healthy_d7_d1_ratio: float = Field(default=0.25, ge=0.0, le=1.0)

    # Factor bands
    strong_d1: float = Field(default=0.45, ge=0.0, le=1.0)
    good_d1: float = Field(default=0.35, ge=0.0, le=1.0)
    weak_d1: float = Field(default=0.25, ge=0.0, le=1.0)
    sticky_week_ratio: float = Field(default=0.5, ge=0.0, le=1.0)
    fair_week_ratio: float = Field(default=0.35, ge=0.0, le=1.0)
    early_strong_d1: float = Field(default=0.40, ge=0.0, le=1.0)
    early_fair_d1: float = Field(default=0.30, ge=0.0, le=1.0)
    early_strong_decay_ratio: float = Field(default=0.40, ge=0.0, le=1.0)
    early_fair_decay_ratio: float = Field(default=0.30, ge=0.0, le=1.0)

    game_type: GameType = Field(
        default=GameType.DEFAULT, description="Genre used for the fallback curve"
    )
    benchmarks: dict[int, float] = Field(default_factory=lambda: dict(RETENTION_BENCHMARKS))

    @field_validator("benchmarks")
    @classmethod
    def validate_benchmarks(cls, v: dict[int, float]) -> dict[int, float]:
        """Benchmarks need at least one positive day with a positive rate."""
        if not v:
            raise ValueError("At least one retention benchmark is required")
        for day, rate in v.items():
            if day < 1 or not 0.0 < rate <= 1.0:
                raise ValueError(f"Invalid benchmark D{day}={rate}")
        return v


class RevenueModelConfig(BaseModel):
    """Tunable parameters of the revenue forecaster."""

    min_data_points: int = Field(default=30, ge=2, description="Minimum daily rows to train")
    validation_split: float = Field(default=0.2, gt=0.0, lt=1.0)
    recent_days: int = Field(default=7, ge=1, description="Window for recent level and drivers")
    recent_weight: float = Field(
        default=0.5, ge=0.0, le=1.0, description="Blend of recent level into the baseline"
    )

    # Confidence and range
    max_confidence: float = Field(default=0.9, gt=0.0, le=1.0)
    min_confidence: float = Field(default=0.3, ge=0.0, le=1.0)
    confidence_decay_per_day: float = Field(default=0.02, ge=0.0)
    range_base_width: float = Field(default=0.2, ge=0.0, lt=1.0)
    range_growth_per_day: float = Field(default=0.01, ge=0.0)
    range_max_width: float = Field(default=0.9, ge=0.0, le=1.0)
    residual_band: float = Field(
        default=1.0, ge=0.0, description="Training residual std devs added to each side of the range"
    )

    # Trend and seasonality
    trend_stable_band: float = Field(
        default=0.005, ge=0.0, description="Relative daily slope still counted as stable"
    )
    min_seasonal_factor: float = Field(default=0.05, gt=0.0)
    weekend_effect_threshold: float = Field(default=1.1, gt=1.0)
    weekday_dip_threshold: float = Field(default=0.9, gt=0.0, lt=1.0)
    long_term_days: int = Field(default=14, ge=1)
    historical_pattern_days: int = Field(default=60, ge=1)
    day_of_week: list[float] = Field(default_factory=lambda: list(DEFAULT_DAY_OF_WEEK))
    month_of_year: list[float] = Field(default_factory=lambda: list(DEFAULT_MONTH_OF_YEAR))
    month_history_days: int = Field(
        default=90, ge=1, description="History needed before month multipliers are learned"
    )
    seasonal_peak_threshold: float = Field(default=1.1, gt=1.0)

    # Breakdown and scenarios
    reactivated_share: float = Field(default=0.05, ge=0.0, lt=1.0)
    default_new_user_ratio: float = Field(default=0.25, ge=0.0, lt=1.0)
    conversion_elasticity: float = Field(
        default=0.5, ge=0.0, description="Share of a conversion change reaching revenue"
    )
    weekly_days: int = Field(default=7, ge=1)
    monthly_days: int = Field(default=30, ge=1)

    @field_validator("day_of_week")
    @classmethod
    def validate_day_of_week(cls, v: list[float]) -> list[float]:
        """Seven strictly positive multipliers, Monday first."""
        if len(v) != 7 or any(m <= 0 for m in v):
            raise ValueError("day_of_week needs 7 positive multipliers (Monday first)")
        return v

    @field_validator("month_of_year")
    @classmethod
    def validate_month_of_year(cls, v: list[float]) -> list[float]:
        """Twelve strictly positive multipliers, January first."""
        if len(v) != 12 or any(m <= 0 for m in v):
            raise ValueError("month_of_year needs 12 positive multipliers (January first)")
        return v


def pattern_for(game_type: Optional[GameType]) -> list[float]:
    """Return the retention pattern for a genre, falling back to the default."""
    return RETENTION_PATTERNS.get(game_type or GameType.DEFAULT, RETENTION_PATTERNS[GameType.DEFAULT])
