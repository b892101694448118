"""
System health and poller control endpoints.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from firewatch import __version__
from firewatch.api.deps import get_services
from firewatch.core.health import SystemHealthChecker
from firewatch.core.services import ServiceContainer

router = APIRouter()
logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    """Response model for health check endpoints."""
    status: str
    version: str = __version__
    timestamp: str
    components: Dict[str, Any]
    uptime_seconds: int


class PollerStatus(BaseModel):
    running: bool
    interval_seconds: float
    schedule: str
    cron_expression: str
    device_count: int
    concurrency: int
    last_cycle: Optional[Dict[str, Any]] = None


class IntervalIn(BaseModel):
    seconds: float = Field(..., ge=1)


@router.get("/system/health", response_model=HealthResponse)
async def get_system_health(services: ServiceContainer = Depends(get_services)) -> HealthResponse:
    """Overall status of the database, Redis and the poller."""
    try:
        health_data = await SystemHealthChecker(services).check_overall_health()
        return HealthResponse(**health_data)
    except Exception as e:
        logger.exception("/system/health failed: %s", e)
        raise HTTPException(status_code=500, detail=f"Health check failed: {str(e)}")


@router.get("/system/poller", response_model=PollerStatus)
async def get_poller_status(services: ServiceContainer = Depends(get_services)) -> PollerStatus:
    return PollerStatus(**services.engine.status())


@router.post("/system/poller/reload", response_model=PollerStatus)
async def reload_devices(services: ServiceContainer = Depends(get_services)) -> PollerStatus:
    """Reload the active device roster."""
    count = await services.engine.reload_devices()
    logger.info("Device roster reloaded via API: %d device(s)", count)
    return PollerStatus(**services.engine.status())


@router.put("/system/poller/interval", response_model=PollerStatus)
async def set_poll_interval(
    payload: IntervalIn,
    services: ServiceContainer = Depends(get_services),
) -> PollerStatus:
    await services.engine.set_polling_interval(payload.seconds)
    return PollerStatus(**services.engine.status())
