"""Health check endpoints for monitoring application status.
"""
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter
from fastapi import Depends
from fastapi import HTTPException
from fastapi import status

from depot_quotes.core.config import get_settings
from depot_quotes.core.database import check_db_health
from depot_quotes.core.deps import get_rate_budget
from depot_quotes.core.docs import API_VERSION
from depot_quotes.services.quote_cache import RateBudget

router = APIRouter()


def budget_check(budget: RateBudget) -> dict[str, Any]:
    """Upstream call budget of this process; exhaustion does not make the service unhealthy."""
    snapshot = budget.snapshot()
    return {
        "status": "exhausted" if budget.at_limit() else "available",
        "minute": f"{snapshot['minute_count']}/{snapshot['minute_limit']}",
        "day": f"{snapshot['day_count']}/{snapshot['day_limit']}",
        "next_reset": snapshot["next_reset"].isoformat(),
    }


@router.get(
    "/health",
    response_model=dict[str, Any],
    summary="Comprehensive Health Check",
    description="Returns database connectivity and the quote call budget of this instance. "
    "The budget is per process: other instances keep their own counters.",
    operation_id="get_health_status",
    responses={
        200: {"description": "Service is healthy"},
        503: {"description": "Service is unhealthy"},
    },
)
async def health_check(budget: RateBudget = Depends(get_rate_budget)) -> dict[str, Any]:
    """Comprehensive health check endpoint.

    Raises:
        HTTPException: If the database check fails (status 503)
    """
    settings = get_settings()
    health_data: dict[str, Any] = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": API_VERSION,
        "environment": settings.environment,
        "checks": {},
    }

    database = await check_db_health()
    health_data["checks"]["database"] = database
    if database["status"] != "healthy":
        health_data["status"] = "unhealthy"

    health_data["checks"]["quote_budget"] = budget_check(budget)

    if health_data["status"] == "unhealthy":
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=health_data)

    return health_data


@router.get(
    "/health/ready",
    response_model=dict[str, str],
    summary="Readiness Probe",
    description="Returns 200 OK when the application is ready to serve traffic.",
    operation_id="get_readiness",
)
async def readiness_check() -> dict[str, str]:
    return {"status": "ready", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get(
    "/health/live",
    response_model=dict[str, str],
    summary="Liveness Probe",
    description="Returns 200 OK when the application process is alive.",
    operation_id="get_liveness",
)
async def liveness_check() -> dict[str, str]:
    return {"status": "alive", "timestamp": datetime.now(timezone.utc).isoformat()}
