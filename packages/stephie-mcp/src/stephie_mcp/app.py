"""Starlette application: health, sync triggers and the MCP SSE transport."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from starlette.applications import Starlette
from starlette.routing import BaseRoute, Mount

from stephie_mcp.health import health_routes, init_health
from stephie_mcp.metadata.store import get_cache
from stephie_mcp.sync_routes import sync_routes

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: Starlette) -> AsyncIterator[None]:
    init_health()
    await get_cache().initialize()
    logger.info("Metadata cache initialized from %s", get_cache().cache_file)
    yield


def create_app(include_mcp: bool = True) -> Starlette:
    """Build the HTTP app.

    Args:
        include_mcp: Mount the FastMCP SSE app at ``/`` after the
            health and sync routes.
    """
    routes: list[BaseRoute] = [*health_routes, *sync_routes]
    if include_mcp:
        from stephie_mcp.server import mcp

        routes.append(Mount("/", app=mcp.sse_app()))
    return Starlette(routes=routes, lifespan=lifespan)
