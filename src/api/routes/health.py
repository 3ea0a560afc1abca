"""Health check endpoints."""

import time

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from ... import __version__
from ..dependencies import get_services
from ..schemas import HealthResponse

router = APIRouter()

_started_at = time.monotonic()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Check that the gateway is running and the shared store is reachable.",
)
async def health_check(request: Request):
    """Return 200 when Redis answers a ping, 503 otherwise."""
    services = get_services(request)
    redis_ok = await services.store.ping()
    body = HealthResponse(
        status="healthy" if redis_ok else "unhealthy",
        version=__version__,
        environment=services.config.server.environment,
        redis="connected" if redis_ok else "disconnected",
        uptime=round(time.monotonic() - _started_at, 2),
    )
    return JSONResponse(status_code=200 if redis_ok else 503, content=body.model_dump())
