"""
Health check endpoint for the Collections Engine Service.
"""
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from collections_service.core.dependencies import ServiceContainer, get_container
from collections_service.core.logging import get_logger

router = APIRouter()
logger = get_logger(__name__)


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    service_name: str
    timestamp: datetime
    store_healthy: bool
    scheduler_running: bool
    gateways: Dict[str, Any]


@router.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check(container: ServiceContainer = Depends(get_container)):
    """
    Report store connectivity, scheduler state and gateway circuit breakers.

    Status is ``degraded`` when the store is unreachable.
    """
    store_healthy = await container.store.health_check()
    if not store_healthy:
        logger.warning("Health check found store unavailable")

    return HealthResponse(
        status="healthy" if store_healthy else "degraded",
        version=container.settings.service_version,
        service_name=container.settings.service_name,
        timestamp=datetime.now(timezone.utc),
        store_healthy=store_healthy,
        scheduler_running=container.scheduler.is_running,
        gateways=container.transports.get_status(),
    )
