"""
NoteVault Backend — Health Check Route
========================================

What:  Health check endpoint for monitoring and load balancer probes.
Why:   Load balancers need to know whether the instance can serve requests,
       which depends only on the primary store.
How:   Runs SELECT 1 against the primary store and reports the remote
       store's lifecycle state without waiting for it.

Status levels:
    - healthy:    primary answers; remote ready or disabled
    - degraded:   primary answers; remote still pending or unavailable (HTTP 200)
    - unhealthy:  primary does not answer (HTTP 503, stop routing traffic)
"""

import logging
import time

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from notevault import __version__
from notevault.database import get_gateway
from notevault.persistence.gateway import PersistenceGateway
from notevault.schemas.store import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(gateway: PersistenceGateway = Depends(get_gateway)):
    primary_status = "connected"
    overall = "healthy"

    try:
        await gateway.primary.get("SELECT 1 AS ok")
    except Exception as e:
        primary_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: primary store failing: %s", str(e))

    remote_status = gateway.remote_state
    if remote_status in ("pending", "unavailable") and overall == "healthy":
        overall = "degraded"

    body = HealthResponse(
        status=overall,
        version=__version__,
        primary=primary_status,
        remote=remote_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
    if overall == "unhealthy":
        return JSONResponse(status_code=503, content=body.model_dump())
    return body
