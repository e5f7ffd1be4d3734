"""
Retention prediction router.

Wired to:
- RetentionPredictor (through PredictionService) for curve extrapolation,
  D30 estimates and cohort LTV
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from gameinsights.models.retention import CohortRecord, CurvePoint
from gameinsights.services import PredictionService, get_prediction_service
from gameinsights.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


class RetentionRequest(BaseModel):
    """Observed retention and the day to predict."""

    observed: dict[int, float] = Field(default_factory=dict)
    target_day: int = Field(ge=0)
    cohort_size: Optional[int] = Field(default=None, gt=0)


class EarlyRetentionRequest(BaseModel):
    """D1 and D7 retention of a young cohort."""

    d1: float = Field(ge=0.0, le=1.0)
    d7: float = Field(ge=0.0, le=1.0)
    cohort_size: Optional[int] = Field(default=None, gt=0)


class LTVRequest(BaseModel):
    """Retention curve and per-user revenue rate."""

    curve: list[CurvePoint]
    daily_revenue_per_user: float
    horizon_days: int = Field(default=365, ge=0)


class RetentionTrainRequest(BaseModel):
    cohort_data: list[CohortRecord]


@router.post("/predict")
async def predict_retention(
    request: RetentionRequest,
    service: PredictionService = Depends(get_prediction_service),
):
    """Predict retention on target_day from observed day -> retention pairs."""
    logger.info(
        "retention_predict",
        target_day=request.target_day,
        observed_days=len(request.observed),
    )
    prediction = service.retention.predict_retention(
        request.observed, request.target_day, request.cohort_size
    )
    return {"success": True, "data": prediction.model_dump(mode="json")}


@router.post("/d30")
async def predict_d30(
    request: EarlyRetentionRequest,
    service: PredictionService = Depends(get_prediction_service),
):
    """Estimate D30 retention from D1 and D7."""
    prediction = service.retention.predict_d30_from_early(
        request.d1, request.d7, request.cohort_size
    )
    return {"success": True, "data": prediction.model_dump(mode="json")}


@router.post("/ltv")
async def predict_ltv(
    request: LTVRequest,
    service: PredictionService = Depends(get_prediction_service),
):
    """Cumulative revenue per user over the horizon."""
    result = service.retention.predict_cohort_ltv(
        request.curve, request.daily_revenue_per_user, request.horizon_days
    )
    return {"success": True, "data": result.model_dump(mode="json")}


@router.get("/forecast")
async def retention_forecast(
    days: int = Query(default=30, ge=0, le=365),
    service: PredictionService = Depends(get_prediction_service),
):
    """Day-by-day retention for days 1..days from a typical early profile."""
    points = service.retention_forecast(days=days)
    return {"success": True, "data": [p.model_dump(mode="json") for p in points]}


@router.post("/train")
async def train_retention(
    request: RetentionTrainRequest,
    service: PredictionService = Depends(get_prediction_service),
):
    """
    Train the retention predictor on cohort data and save it.
    Returns 422 when there are too few cohorts; `saved` is false when the
    model trained but could not be persisted.
    """
    logger.info("retention_train_requested", cohorts=len(request.cohort_data))
    outcome = service.train(cohorts=request.cohort_data)[0]
    if not outcome.trained:
        raise HTTPException(status_code=422, detail=outcome.error)
    return {
        "success": True,
        "data": outcome.metrics.model_dump(mode="json"),
        "saved": outcome.error is None,
        "error": outcome.error,
    }


@router.get("/feature-importance")
async def retention_feature_importance(
    service: PredictionService = Depends(get_prediction_service),
):
    """Relative importance of the retention drivers."""
    return {"success": True, "data": service.retention.get_feature_importance()}
