"""Base HTTP endpoints for health checks, metrics, and service info.

/info combines static build metadata with live orchestration counters
(cached agents, runs waiting on a tool confirmation) once the chat service
is up.
"""

from enum import Enum

from fastapi import APIRouter, Request, Response

from chat_orchestrator.platform.observability.logging import get_logger
from chat_orchestrator.platform.observability.metrics import metrics as prom_metrics
from chat_orchestrator.platform.server.health import HealthCheck, metadata

logger = get_logger(__name__)

base_router = APIRouter()
base_tags: list[Enum | str] = ["base"]


@base_router.get("/health", tags=base_tags)
async def health():
    """Health check endpoint for load balancers and orchestrators.

    Returns:
        200 OK with status if healthy, 404 while starting up or draining
    """
    if not HealthCheck.status():
        logger.info("health_check_failed", reason="disabled")
        return Response(status_code=404)
    return {"status": "OK"}


@base_router.get("/info", tags=base_tags)
async def info(request: Request):
    data = metadata.info()
    service = getattr(request.app.state, "chat_service", None)
    if service is not None:
        data |= service.runtime_info()
    return data


@base_router.get("/metrics", tags=base_tags)
async def metrics():
    body, media_type = prom_metrics()
    return Response(body, media_type=media_type)
