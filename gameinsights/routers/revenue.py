"""
Revenue forecasting router.

Wired to:
- RevenueForecaster (through PredictionService) for daily and period
  forecasts, what-if scenarios and training
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from gameinsights.models.enums import ForecastPeriod
from gameinsights.models.revenue import RevenueDataPoint, WhatIfScenario
from gameinsights.services import PredictionService, get_prediction_service
from gameinsights.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


class WhatIfRequest(BaseModel):
    """Scenario percent changes and the horizon to compare over."""

    scenario: WhatIfScenario = Field(default_factory=WhatIfScenario)
    horizon_days: int = Field(default=30, ge=1)


class RevenueTrainRequest(BaseModel):
    data: list[RevenueDataPoint]


@router.get("/forecast")
async def forecast_revenue(
    days: int = Query(default=30, ge=0, le=365),
    include_breakdown: bool = True,
    start_date: Optional[date] = None,
    service: PredictionService = Depends(get_prediction_service),
):
    """Daily revenue forecasts for the next `days` days."""
    forecasts = service.revenue.forecast(days, include_breakdown, start_date)
    return {"success": True, "data": [f.model_dump(mode="json") for f in forecasts]}


@router.get("/period/{period}")
async def forecast_revenue_period(
    period: ForecastPeriod,
    start_date: Optional[date] = None,
    service: PredictionService = Depends(get_prediction_service),
):
    """Aggregate revenue forecast for a week or a month."""
    forecast = service.revenue.forecast_period(period, start_date)
    return {"success": True, "data": forecast.model_dump(mode="json")}


@router.post("/what-if")
async def revenue_what_if(
    request: WhatIfRequest,
    service: PredictionService = Depends(get_prediction_service),
):
    """Compare baseline revenue with a driver-shift scenario."""
    logger.info(
        "revenue_what_if",
        horizon_days=request.horizon_days,
        dau_change=request.scenario.dau_change,
        arpu_change=request.scenario.arpu_change,
        conversion_change=request.scenario.conversion_change,
    )
    result = service.revenue.what_if(request.scenario, request.horizon_days)
    return {"success": True, "data": result.model_dump(mode="json")}


@router.post("/train")
async def train_revenue(
    request: RevenueTrainRequest,
    service: PredictionService = Depends(get_prediction_service),
):
    """
    Train the revenue forecaster on daily history and save it.
    Returns 422 when there are too few days; `saved` is false when the
    model trained but could not be persisted.
    """
    logger.info("revenue_train_requested", rows=len(request.data))
    outcome = service.train(revenue=request.data)[0]
    if not outcome.trained:
        raise HTTPException(status_code=422, detail=outcome.error)
    return {
        "success": True,
        "data": outcome.metrics.model_dump(mode="json"),
        "saved": outcome.error is None,
        "error": outcome.error,
    }


@router.get("/feature-importance")
async def revenue_feature_importance(
    service: PredictionService = Depends(get_prediction_service),
):
    """Relative importance of the revenue drivers."""
    return {"success": True, "data": service.revenue.get_feature_importance()}
