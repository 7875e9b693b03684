"""Liveness and readiness endpoints."""

from __future__ import annotations

import time

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from stephie_mcp import __version__
from stephie_mcp.metadata.store import get_cache

_start_time: float = 0.0


def init_health() -> None:
    """Record the process start time for the uptime figure."""
    global _start_time
    _start_time = time.monotonic()


def _health(request: Request) -> JSONResponse:
    """Liveness probe. A stale or empty cache degrades the status but is still 200."""
    uptime = time.monotonic() - _start_time if _start_time else 0.0
    cache_status = get_cache().status()
    degraded = cache_status["boards"] == 0 or cache_status["lastError"] is not None
    return JSONResponse(
        {
            "status": "degraded" if degraded else "healthy",
            "service": "stephie-mcp",
            "version": __version__,
            "uptime_seconds": round(uptime, 2),
            "cache": cache_status,
        },
        status_code=200,
    )


def _ready_check(request: Request) -> JSONResponse:
    """Readiness probe: 200 once the cache has been initialized."""
    if get_cache().initialized:
        return JSONResponse({"status": "ready"}, status_code=200)
    return JSONResponse({"status": "not_ready"}, status_code=503)


health_routes: list[Route] = [
    Route("/health", _health, methods=["GET"]),
    Route("/ready", _ready_check, methods=["GET"]),
]
