"""
EcoPlate Backend — Health Check Route
======================================

What:  Liveness/readiness probe for Docker and load balancers.
How:   SELECT 1 against the database, then the Gemini circuit breaker state
       or a list_models() call.

Status levels:
    - healthy:   database and vision both fine
    - degraded:  vision down or not configured (HTTP 200; the rest of the
                 app still works)
    - unhealthy: database unreachable
"""

import logging
import time

from fastapi import APIRouter
from sqlalchemy import text

from ecoplate import __version__
from ecoplate.config import settings
from ecoplate.schemas.common import HealthResponse
from ecoplate.services.gemini_service import CircuitBreaker, gemini_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


async def _check_database() -> str:
    from ecoplate import database

    try:
        async with database.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return "connected"
    except Exception as e:
        logger.warning("Health check: database unreachable: %s", str(e))
        return "disconnected"


async def _check_vision() -> str:
    if not settings.gemini_api_key:
        return "not_configured"
    if gemini_service.circuit_breaker.state == CircuitBreaker.OPEN:
        return "circuit_open"
    try:
        return "available" if await gemini_service.health_check() else "unavailable"
    except Exception as e:
        logger.warning("Health check: Gemini unreachable: %s", str(e))
        return "unavailable"


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    description="Database connectivity and food-recognition availability.",
)
async def health_check() -> HealthResponse:
    db_status = await _check_database()
    vision_status = await _check_vision()

    if db_status != "connected":
        overall = "unhealthy"
    elif vision_status != "available":
        overall = "degraded"
    else:
        overall = "healthy"

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        vision=vision_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
