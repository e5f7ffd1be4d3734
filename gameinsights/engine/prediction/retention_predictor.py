"""
Retention Curve Predictor: geometric decay fitting for cohort retention.

Fits retention(d) = a * b**d by least squares on log retention over the day
index and extrapolates it to arbitrary days. Exact observations always win,
extrapolated values carry a confidence that decays with distance from the
nearest observed day and a range that widens with it.

Training fits one global curve across cohorts, weighting each cohort by its
size. The trained slope then stands in for missing information: a single
observed day is extrapolated along it, and an empty observation set returns
the trained curve itself (or the genre pattern before any training).

All prediction methods are total: they clamp to [retention_floor, 1] and never
raise on degenerate input.
"""

import math
from datetime import datetime
from typing import Iterable, Mapping, NamedTuple, Optional, Union

import numpy as np
import structlog

from gameinsights.engine.prediction.base import (
    PersistentModel,
    error_metrics,
    validation_tail,
)
from gameinsights.models.config import (
    CANONICAL_CURVE_DAYS,
    RETENTION_FEATURE_IMPORTANCE,
    RETENTION_PATTERNS,
    RetentionModelConfig,
    pattern_for,
)
from gameinsights.models.enums import BenchmarkComparison, GameType
from gameinsights.models.predictions import ModelMetrics, PredictionFactor, PredictionRange
from gameinsights.models.retention import (
    CohortLTV,
    CohortRecord,
    CurvePoint,
    RetentionDataset,
    RetentionModelState,
    RetentionPrediction,
)
from gameinsights.storage.base import KeyValueStore

logger = structlog.get_logger()

CurveInput = Union[Mapping[int, float], Iterable[Union[CurvePoint, tuple[int, float], dict]]]


class DecayFit(NamedTuple):
    """retention(d) = exp(log_intercept + log_slope * d)"""

    log_intercept: float
    log_slope: float

    def at(self, day: float, floor: float) -> float:
        # log retention above 0 is capped at 1.0 anyway; clamping keeps exp() finite
        log_value = min(0.0, self.log_intercept + self.log_slope * day)
        return float(max(floor, math.exp(log_value)))


def _pattern_value(pattern: list[float], day: int) -> float:
    """Pattern value for a day; beyond the table, decay at the last step's rate."""
    if day < len(pattern):
        return float(pattern[day])
    step = pattern[-1] / pattern[-2] if len(pattern) >= 2 and pattern[-2] > 0 else 1.0
    return float(pattern[-1] * step ** (day - (len(pattern) - 1)))


class RetentionPredictor(PersistentModel):
    """
    Predicts future retention from sparse cohort observations.

    Args:
        config: Thresholds and tuning; defaults to RetentionModelConfig()
        storage: Snapshot store for save()/load()
        storage_key: Key of the persisted snapshot
    """

    name = "RetentionPredictor"
    version = "1.0.0"
    state_class = RetentionModelState

    def __init__(
        self,
        config: Optional[RetentionModelConfig] = None,
        storage: Optional[KeyValueStore] = None,
        storage_key: str = "retention_predictor_model",
    ):
        self.config = config or RetentionModelConfig()
        super().__init__(storage=storage, storage_key=storage_key)

    def _default_state(self) -> RetentionModelState:
        return RetentionModelState(game_type=self.config.game_type)

    # =========================================================================
    # Prediction
    # =========================================================================

    def predict_retention(
        self,
        observed: Mapping[int, float],
        target_day: int,
        cohort_size: Optional[int] = None,
    ) -> RetentionPrediction:
        """
        Predict retention on target_day given observed retention by day.

        Args:
            observed: Day offset -> retention fraction (day 0 implied as 1.0)
            target_day: Day to predict
            cohort_size: Optional cohort size echoed in the result

        Returns:
            RetentionPrediction; exact when target_day was observed
        """
        state = self._state
        obs = self._clean_observed(observed)
        target_day = max(0, int(target_day))
        cohort_size = cohort_size if cohort_size and cohort_size > 0 else None
        fit = self._fit_observed(state, obs)

        exact = obs.get(target_day, 1.0 if target_day == 0 else None)
        if exact is not None:
            return RetentionPrediction(
                value=exact,
                confidence=1.0,
                range=None,
                retention_curve=self._build_curve(state, obs, fit, target_day, exact),
                benchmark_comparison=self._compare_to_benchmark(exact, target_day),
                factors=self._identify_factors(obs),
                cohort_size=cohort_size,
            )

        floor = self.config.retention_floor
        factors = self._identify_factors(obs)
        if fit is None:
            value = self._fallback_value(state, target_day)
            factors.append(
                PredictionFactor(
                    name="Default Curve",
                    weight=-0.2,
                    description=(
                        "No usable observations; using the trained curve"
                        if state.is_trained
                        else f"No usable observations; using the {state.game_type.value} genre curve"
                    ),
                )
            )
        else:
            value = fit.at(target_day, floor)
            daily_loss = 1.0 - math.exp(fit.log_slope)
            factors.append(
                PredictionFactor(
                    name="Extrapolation Decay",
                    weight=-min(1.0, daily_loss * 10),
                    description=f"Fitted curve loses {daily_loss:.1%} of remaining users per day",
                )
            )

        observed_days = sorted(obs)
        gap = min(abs(target_day - d) for d in observed_days) if observed_days else target_day
        positive_points = sum(1 for d in obs if d > 0)
        confidence = self._extrapolation_confidence(gap, positive_points)

        if gap > 0:
            factors.append(
                PredictionFactor(
                    name="Extrapolation Distance",
                    weight=-min(1.0, gap / 90),
                    description=f"{gap} days from the nearest observed day",
                )
            )

        width = self.config.range_base_width + self.config.range_growth * (
            1.0 - math.exp(-gap / self.config.confidence_decay_days)
        )

        return RetentionPrediction(
            value=value,
            confidence=confidence,
            range=PredictionRange(
                low=max(0.0, value * (1.0 - width)),
                high=min(1.0, value * (1.0 + width)),
            ),
            retention_curve=self._build_curve(state, obs, fit, target_day, value),
            benchmark_comparison=self._compare_to_benchmark(value, target_day),
            factors=factors,
            cohort_size=cohort_size,
        )

    def predict_d30_from_early(
        self,
        d1: float,
        d7: float,
        cohort_size: Optional[int] = None,
    ) -> RetentionPrediction:
        """
        Predict D30 retention from D1 and D7 alone.

        The D1->D7 ratio gives a per-day decay factor r = (d7/d1)**(1/6), which
        is compounded from day 7 to day 30. Confidence grows with the health of
        the inputs rather than with horizon, since the horizon is fixed.
        """
        cfg = self.config
        floor = cfg.retention_floor
        d1 = min(1.0, max(floor, float(d1)))
        d7 = min(1.0, max(floor, float(d7)))

        ratio = min(1.0, d7 / d1)
        daily = ratio ** (1.0 / 6.0)
        d30 = min(d7, max(floor, d7 * daily**23))

        confidence = cfg.early_base_confidence
        if d1 >= cfg.healthy_d1:
            confidence += cfg.early_confidence_step
        if d7 >= cfg.healthy_d7:
            confidence += cfg.early_confidence_step
        if ratio >= cfg.healthy_d7_d1_ratio:
            confidence += cfg.early_confidence_step
        confidence = min(cfg.early_max_confidence, confidence)

        if d1 > cfg.early_strong_d1:
            d1_weight = 0.8
        elif d1 > cfg.early_fair_d1:
            d1_weight = 0.4
        else:
            d1_weight = -0.2

        if ratio > cfg.early_strong_decay_ratio:
            decay_weight = 0.6
        elif ratio > cfg.early_fair_decay_ratio:
            decay_weight = 0.2
        else:
            decay_weight = -0.4

        log_slope = math.log(daily)
        fit = DecayFit(log_intercept=math.log(d1) - log_slope, log_slope=log_slope)

        return RetentionPrediction(
            value=d30,
            confidence=confidence,
            range=PredictionRange(low=d30 * 0.7, high=min(d7, d30 * 1.3)),
            retention_curve=self._build_curve(self._state, {1: d1, 7: d7}, fit, 30, d30),
            benchmark_comparison=self._compare_to_benchmark(d30, 30),
            factors=[
                PredictionFactor(
                    name="D1 Retention",
                    weight=d1_weight,
                    description=f"D1 at {d1 * 100:.1f}%",
                ),
                PredictionFactor(
                    name="D1-D7 Decay",
                    weight=decay_weight,
                    description=f"{ratio * 100:.1f}% retained from D1 to D7",
                ),
            ],
            cohort_size=cohort_size if cohort_size and cohort_size > 0 else None,
        )

    def predict_cohort_ltv(
        self,
        curve: CurveInput,
        daily_revenue_per_user: float,
        horizon_days: int = 365,
    ) -> CohortLTV:
        """
        Lifetime value per user: sum of retention(d) * revenue rate, d = 0..horizon.

        Retention between known points is interpolated geometrically; past the
        last known point it keeps decaying at the rate of the last two points.
        Confidence is the share of the horizon covered by the curve, floored at
        ltv_min_confidence.
        """
        cfg = self.config
        horizon_days = max(0, int(horizon_days))
        points = self._curve_points(curve)

        days = np.array(sorted(points), dtype=float)
        logs = np.log(np.clip([points[int(d)] for d in days], cfg.retention_floor, 1.0))
        last_day = days[-1]

        if len(days) >= 2:
            tail = min(0.0, float((logs[-1] - logs[-2]) / (days[-1] - days[-2])))
        else:
            tail = -cfg.default_tail_decay

        grid = np.arange(horizon_days + 1, dtype=float)
        inside = np.interp(grid, days, logs)
        beyond = logs[-1] + tail * (grid - last_day)
        retention = np.exp(np.where(grid <= last_day, inside, beyond))
        retention = np.clip(retention, cfg.retention_floor, 1.0)

        rate = max(0.0, float(daily_revenue_per_user))
        ltv = float(rate * retention.sum())

        if horizon_days == 0:
            confidence = 1.0
        else:
            confidence = min(1.0, max(cfg.ltv_min_confidence, float(last_day) / horizon_days))

        return CohortLTV(ltv=ltv, confidence=confidence, horizon_days=horizon_days)

    # =========================================================================
    # Training and evaluation
    # =========================================================================

    def train(self, dataset: Union[RetentionDataset, Mapping, list]) -> ModelMetrics:
        """
        Fit one global decay curve across cohorts.

        Raises:
            InsufficientDataError: Fewer cohorts than min_data_points; the
                current model is left untouched
        """
        cohorts = self._coerce_dataset(dataset)
        self._require_data(len(cohorts), self.config.min_data_points)

        fit = self._fit_cohorts(cohorts)
        curve = [1.0] + [
            fit.at(d, self.config.retention_floor)
            for d in range(1, self.config.curve_horizon_days + 1)
        ]
        candidate = RetentionModelState(
            is_trained=True,
            log_intercept=fit.log_intercept,
            log_slope=fit.log_slope,
            curve=curve,
            game_type=self._infer_game_type(curve),
        )

        held_out = validation_tail(cohorts, self.config.validation_split)
        metrics = self._score(candidate, held_out).model_copy(
            update={"data_points_used": len(cohorts), "last_trained_at": datetime.utcnow()}
        )
        self._commit(candidate.model_copy(update={"metrics": metrics}))

        logger.info(
            "retention_model_trained",
            cohorts=len(cohorts),
            log_slope=round(fit.log_slope, 5),
            game_type=candidate.game_type.value,
            mse=round(metrics.mse, 6),
        )
        return metrics

    def evaluate(self, dataset: Union[RetentionDataset, Mapping, list]) -> ModelMetrics:
        """Score the current curve against observed cohort retention. Non-mutating."""
        state = self._state
        cohorts = self._coerce_dataset(dataset)
        metrics = self._score(state, cohorts)
        logger.debug("retention_model_evaluated", cohorts=len(cohorts), mse=metrics.mse)
        return metrics

    def get_feature_importance(self) -> dict[str, float]:
        return dict(RETENTION_FEATURE_IMPORTANCE)

    # =========================================================================
    # Private helpers
    # =========================================================================

    def _score(self, state: RetentionModelState, cohorts: list[CohortRecord]) -> ModelMetrics:
        predicted: list[float] = []
        actual: list[float] = []
        scored = 0
        for cohort in cohorts:
            points = [(d, v) for d, v in cohort.retention_by_day.items() if d > 0]
            if not points:
                continue
            scored += 1
            for day, value in points:
                predicted.append(self._fallback_value(state, day))
                actual.append(value)

        trained_at = state.metrics.last_trained_at if state.metrics else None
        return error_metrics(predicted, actual, data_points_used=scored, last_trained_at=trained_at)

    def _fit_cohorts(self, cohorts: list[CohortRecord]) -> DecayFit:
        """Size-weighted log-linear fit over every positive-day observation."""
        floor = self.config.retention_floor
        days: list[float] = []
        logs: list[float] = []
        weights: list[float] = []
        for cohort in cohorts:
            for day, value in cohort.retention_by_day.items():
                if day <= 0:
                    continue
                days.append(float(day))
                logs.append(math.log(max(floor, value)))
                # polyfit squares the weights, so sqrt(size) weighs errors by size
                weights.append(math.sqrt(cohort.size))

        if not days:
            pattern = pattern_for(self.config.game_type)
            days = [float(d) for d in range(1, len(pattern))]
            logs = [math.log(max(floor, v)) for v in pattern[1:]]
            weights = [1.0] * len(days)

        x = np.array(days)
        y = np.array(logs)
        w = np.array(weights)

        if len(np.unique(x)) >= 2:
            log_slope, log_intercept = (float(c) for c in np.polyfit(x, y, 1, w=w))
        else:
            # one distinct day: the line through the day-0 anchor (retention 1.0)
            log_intercept = 0.0
            log_slope = float(np.average(y, weights=w) / x[0])

        if log_slope > 0.0:
            log_slope = 0.0
            log_intercept = float(np.average(y, weights=w))
        return DecayFit(log_intercept=log_intercept, log_slope=log_slope)

    def _fit_observed(
        self, state: RetentionModelState, obs: dict[int, float]
    ) -> Optional[DecayFit]:
        """Fit the observed points, or None when no positive day was observed."""
        positive = [d for d in obs if d > 0]
        if not positive:
            return None

        floor = self.config.retention_floor
        points = dict(obs)
        if len(points) == 1:
            day = positive[0]
            log_value = math.log(max(floor, points[day]))
            if state.is_trained:
                return DecayFit(log_intercept=log_value - state.log_slope * day, log_slope=state.log_slope)
            points[0] = 1.0

        x = np.array(sorted(points), dtype=float)
        y = np.log(np.clip([points[int(d)] for d in x], floor, 1.0))
        log_slope, log_intercept = (float(c) for c in np.polyfit(x, y, 1))
        if log_slope > 0.0:
            log_slope = 0.0
            log_intercept = float(y.mean())
        return DecayFit(log_intercept=log_intercept, log_slope=log_slope)

    def _fallback_value(self, state: RetentionModelState, day: int) -> float:
        """Retention from the model alone: trained curve, else the genre pattern."""
        floor = self.config.retention_floor
        if day <= 0:
            return 1.0
        if state.is_trained:
            if day < len(state.curve):
                return max(floor, state.curve[day])
            return DecayFit(state.log_intercept, state.log_slope).at(day, floor)
        return min(1.0, max(floor, _pattern_value(pattern_for(state.game_type), day)))

    def _extrapolation_confidence(self, gap: int, positive_points: int) -> float:
        cfg = self.config
        data_confidence = min(1.0, max(1, positive_points) / cfg.full_confidence_points)
        distance_confidence = math.exp(-gap / cfg.confidence_decay_days)
        return cfg.max_extrapolated_confidence * data_confidence * distance_confidence

    def _build_curve(
        self,
        state: RetentionModelState,
        obs: Mapping[int, float],
        fit: Optional[DecayFit],
        target_day: int,
        target_value: float,
    ) -> list[CurvePoint]:
        """
        Curve over day 0, the canonical days before target_day, and target_day.

        Observed values are used where present. A reverse running maximum makes
        the curve non-increasing while keeping target_value as its last point.
        """
        days = [0] + [d for d in CANONICAL_CURVE_DAYS if 0 < d < target_day]
        if target_day > 0:
            days.append(target_day)

        values = []
        for day in days:
            if day == target_day:
                values.append(target_value)
            elif day in obs:
                values.append(obs[day])
            elif day == 0:
                values.append(1.0)
            elif fit is not None:
                values.append(fit.at(day, self.config.retention_floor))
            else:
                values.append(self._fallback_value(state, day))

        monotone = np.maximum.accumulate(np.array(values)[::-1])[::-1]
        return [CurvePoint(day=d, retention=float(v)) for d, v in zip(days, monotone)]

    def _benchmark_for(self, day: int) -> float:
        """Benchmark retention for a day, log-linear between table entries."""
        table = sorted(self.config.benchmarks.items())
        days = np.array([0.0] + [float(d) for d, _ in table])
        logs = np.log([1.0] + [r for _, r in table])
        if day <= days[-1]:
            return float(np.exp(np.interp(day, days, logs)))
        slope = (logs[-1] - logs[-2]) / (days[-1] - days[-2])
        return max(self.config.retention_floor, float(np.exp(logs[-1] + slope * (day - days[-1]))))

    def _compare_to_benchmark(self, value: float, day: int) -> BenchmarkComparison:
        benchmark = self._benchmark_for(day)
        tolerance = self.config.benchmark_tolerance
        if value > benchmark * (1.0 + tolerance):
            return BenchmarkComparison.ABOVE
        if value < benchmark * (1.0 - tolerance):
            return BenchmarkComparison.BELOW
        return BenchmarkComparison.AT

    def _identify_factors(self, obs: Mapping[int, float]) -> list[PredictionFactor]:
        cfg = self.config
        factors: list[PredictionFactor] = []

        d1 = obs.get(1)
        d7 = obs.get(7)

        if d1 is not None:
            if d1 > cfg.strong_d1:
                weight = 0.8
            elif d1 > cfg.good_d1:
                weight = 0.4
            elif d1 > cfg.weak_d1:
                weight = 0.0
            else:
                weight = -0.4
            factors.append(
                PredictionFactor(
                    name="Day 1 Retention",
                    weight=weight,
                    description=f"{d1 * 100:.1f}% returned on day 1",
                )
            )

        if d1 and d7 is not None:
            week_ratio = d7 / d1
            if week_ratio > cfg.sticky_week_ratio:
                weight = 0.7
            elif week_ratio > cfg.fair_week_ratio:
                weight = 0.3
            else:
                weight = -0.3
            factors.append(
                PredictionFactor(
                    name="Week 1 Stickiness",
                    weight=weight,
                    description=f"{week_ratio * 100:.1f}% of D1 users returned on D7",
                )
            )

        return factors

    def _infer_game_type(self, curve: list[float]) -> GameType:
        """Genre whose pattern is closest (least squares) to the fitted curve."""
        best, best_error = GameType.DEFAULT, float("inf")
        for game_type, pattern in RETENTION_PATTERNS.items():
            span = min(len(pattern), len(curve))
            error = sum((curve[d] - pattern[d]) ** 2 for d in range(1, span))
            if error < best_error:
                best, best_error = game_type, error
        return best

    @staticmethod
    def _clean_observed(observed: Optional[Mapping]) -> dict[int, float]:
        """Integer day keys, non-negative, values clamped to [0, 1], NaNs dropped."""
        clean: dict[int, float] = {}
        for day, value in (observed or {}).items():
            day = int(day)
            value = float(value)
            if day < 0 or math.isnan(value):
                continue
            clean[day] = min(1.0, max(0.0, value))
        return clean

    def _curve_points(self, curve: CurveInput) -> dict[int, float]:
        """Normalize a curve given as a mapping, CurvePoints, dicts or tuples."""
        if isinstance(curve, Mapping):
            raw = curve.items()
        else:
            raw = []
            for point in curve or []:
                if isinstance(point, CurvePoint):
                    raw.append((point.day, point.retention))
                elif isinstance(point, Mapping):
                    raw.append((point["day"], point.get("retention", point.get("value", 0.0))))
                else:
                    raw.append((point[0], point[1]))

        points = {0: 1.0}
        points.update(self._clean_observed(dict(raw)))
        return points

    @staticmethod
    def _coerce_dataset(dataset: Union[RetentionDataset, Mapping, list, None]) -> list[CohortRecord]:
        if dataset is None:
            return []
        if isinstance(dataset, RetentionDataset):
            return list(dataset.cohort_data)
        if isinstance(dataset, Mapping):
            return list(RetentionDataset.model_validate(dataset).cohort_data)
        return [c if isinstance(c, CohortRecord) else CohortRecord.model_validate(c) for c in dataset]
