"""Health check router with a real Discogs connectivity probe."""

import asyncio
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from core.dependencies import EnrichmentServices, get_services
from discogs.executor import RequestExecutor

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

CHECK_TIMEOUT = 3.0


async def _check_discogs_api(executor: RequestExecutor | None) -> str:
    """Ping the Discogs API via the executor's own client."""
    if executor is None:
        return "unavailable"
    return "ok" if await executor.check_api() else "error"


async def _run_check(coro) -> str:
    """Run a single health check with a timeout."""
    try:
        return await asyncio.wait_for(coro, timeout=CHECK_TIMEOUT)
    except TimeoutError:
        return "timeout"


@router.get(
    "/health",
    summary="Health check",
    responses={200: {"description": "Service is healthy or degraded"}},
)
async def health_check(services: EnrichmentServices = Depends(get_services)):
    """Report Discogs reachability, credential mode and rate gate state.

    Discogs trouble only degrades the service; the process itself stays up.
    """
    discogs_api = await _run_check(_check_discogs_api(services.executor))
    coordinator = services.coordinator

    status = "healthy" if discogs_api in ("ok", "unavailable") else "degraded"
    if coordinator is not None and coordinator.unauthorized is not None:
        status = "degraded"

    body = {
        "status": status,
        "version": services.settings.app_version,
        "services": {"discogs_api": discogs_api},
        "discogs": {
            "mode": services.auth.auth_mode,
            "cooldown_seconds": round(services.rate_gate.pending_cooldown(), 1),
            "active_lookups": len(coordinator.active_keys()) if coordinator else 0,
            "unauthorized": bool(coordinator and coordinator.unauthorized),
        },
    }
    return JSONResponse(content=body, status_code=200)
