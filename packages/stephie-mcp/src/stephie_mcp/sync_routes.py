"""HTTP endpoints that force a metadata sync.

``/api/cron/sync-metadata`` is hit by the scheduler and always requires
``Authorization: Bearer $CRON_SECRET``. ``/api/sync-metadata`` is the manual
variant; it only checks ``ADMIN_TOKEN`` when ``STEPHIE_ENV=production``.
"""

from __future__ import annotations

import hmac
import logging
import time
from typing import Any

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from stephie_mcp.config import Settings
from stephie_mcp.errors import RemoteQueryError, Unauthorized
from stephie_mcp.metadata.store import MetadataCache, get_cache

logger = logging.getLogger(__name__)


def _bearer_token(request: Request) -> str:
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return token.strip()


def require_bearer(request: Request, secret: str) -> None:
    """Raise :class:`Unauthorized` unless the request carries exactly *secret*.

    An unconfigured (empty) secret rejects every request.
    """
    token = _bearer_token(request)
    if not secret or not token or not hmac.compare_digest(token.encode(), secret.encode()):
        raise Unauthorized("Invalid or missing bearer token")


async def run_sync(cache: MetadataCache) -> dict[str, Any]:
    """Force a sync and return board/column counts for the response.

    Raises:
        RemoteQueryError: If the sync did not commit a new snapshot.
    """
    start = time.monotonic()
    if not await cache.sync():
        raise RemoteQueryError(cache.last_error or "Sync failed")

    metadata = await cache.get_metadata()
    duration_ms = round((time.monotonic() - start) * 1000)
    return {
        "boards": metadata.board_count if metadata else 0,
        "columns": metadata.column_count if metadata else 0,
        "duration_ms": duration_ms,
        "lastSync": metadata.last_sync_iso() if metadata else None,
    }


async def cron_sync(request: Request) -> JSONResponse:
    """Scheduled sync trigger."""
    logger.info("Cron sync triggered")
    try:
        require_bearer(request, Settings.from_env().cron_secret)
    except Unauthorized:
        client = request.client.host if request.client else "unknown"
        logger.warning("Unauthorized cron sync request from %s", client)
        return JSONResponse({"error": "Unauthorized"}, status_code=401)

    try:
        stats = await run_sync(get_cache())
    except Exception as exc:
        logger.exception("Cron sync failed")
        return JSONResponse(
            {"success": False, "error": str(exc) or "Sync failed"},
            status_code=500,
        )

    result = {
        "success": True,
        "message": "Metadata synced successfully",
        "stats": {
            "boards": stats["boards"],
            "columns": stats["columns"],
            "duration": f"{stats['duration_ms']}ms",
            "lastSync": stats["lastSync"],
        },
    }
    logger.info("Cron sync completed: %s", result["stats"])
    return JSONResponse(result, status_code=200)


async def manual_sync(request: Request) -> JSONResponse:
    """On-demand sync, open outside production."""
    settings = Settings.from_env()
    if settings.is_production:
        try:
            require_bearer(request, settings.admin_token)
        except Unauthorized:
            logger.warning("Unauthorized manual sync request")
            return JSONResponse({"error": "Unauthorized"}, status_code=401)

    logger.info("Manual sync triggered")
    try:
        stats = await run_sync(get_cache())
    except Exception as exc:
        logger.exception("Manual sync failed")
        return JSONResponse({"success": False, "error": str(exc) or "Sync failed"}, status_code=500)

    return JSONResponse(
        {
            "success": True,
            "message": "Sync completed",
            "duration": f"{stats['duration_ms']}ms",
            "boards": stats["boards"],
            "totalColumns": stats["columns"],
            "lastSync": stats["lastSync"],
        },
        status_code=200,
    )


sync_routes: list[Route] = [
    Route("/api/cron/sync-metadata", cron_sync, methods=["GET", "POST"]),
    Route("/api/sync-metadata", manual_sync, methods=["GET", "POST"]),
]
