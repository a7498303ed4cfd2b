"""
TaskBoard Backend - Health Check Route
======================================

What:  GET /health for Docker health checks and load balancer probes.
How:   Runs SELECT 1 against Postgres and PING against Redis. Both are
       required to serve authenticated traffic, so either one failing makes
       the service unhealthy (503).
"""

import logging
import time

from fastapi import APIRouter, Response, status
from sqlalchemy import text

from taskboard import __version__
from taskboard.database import engine
from taskboard.schemas.common import HealthResponse
from taskboard.session_storage import redis_client

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"description": "A backing store is unreachable", "model": HealthResponse}},
    summary="Service health check",
)
async def health_check(response: Response) -> HealthResponse:
    db_status = "connected"
    redis_status = "connected"

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        logger.warning("Health check: database unreachable: %s", str(e))

    try:
        await redis_client.ping()
    except Exception as e:
        redis_status = "disconnected"
        logger.warning("Health check: Redis unreachable: %s", str(e))

    overall = "healthy"
    if db_status != "connected" or redis_status != "connected":
        overall = "unhealthy"
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        session_storage=redis_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
