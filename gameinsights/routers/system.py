"""
System health and model status router.

Wired to:
- KeyValueStore for storage diagnostics
- PredictionService for model lifecycle status
"""

import time

from fastapi import APIRouter, Depends

from gameinsights.config import get_settings
from gameinsights.services import PredictionService, get_prediction_service
from gameinsights.storage import StorageError, get_storage
from gameinsights.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()

# Track startup time for uptime calculation
_startup_time = time.time()


@router.get("/health")
async def system_health():
    """
    Get system health status.
    Checks that the model store answers a key listing.
    """
    settings = get_settings()
    uptime = time.time() - _startup_time

    storage_status = "healthy"
    try:
        get_storage().keys()
    except StorageError as e:
        storage_status = f"unhealthy: {e}"

    return {
        "success": True,
        "data": {
            "status": "healthy" if storage_status == "healthy" else "degraded",
            "version": "0.1.0",
            "uptime_seconds": round(uptime, 1),
            "storage": storage_status,
            "storage_type": settings.storage_type,
        },
    }


@router.get("/models")
async def model_status(service: PredictionService = Depends(get_prediction_service)):
    """Report whether each model is trained and its last metrics."""
    return {"success": True, "data": service.status().model_dump(mode="json")}
