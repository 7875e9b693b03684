"""FastMCP server exposing board metadata tools."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from mcp.server.fastmcp import FastMCP

from stephie_mcp.logging_config import configure_logging
from stephie_mcp.metadata.store import get_cache
from stephie_mcp.tools.boards import (
    get_board_columns as _get_board_columns,
    get_board_items as _get_board_items,
    get_cache_status as _get_cache_status,
    list_registered_boards as _list_registered_boards,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncIterator[None]:
    """Load the metadata cache before the first tool call."""
    await get_cache().initialize()
    yield


mcp = FastMCP("stephie", lifespan=lifespan)


@mcp.tool()
async def get_board_columns(board_id: str) -> str:
    """Get the column IDs registered for a Monday.com board.

    Args:
        board_id: The ID of the Monday.com board.
    """
    return json.dumps(await _get_board_columns(board_id=board_id))


@mcp.tool()
async def list_registered_boards() -> str:
    """List all boards known to the Board Registry with their column counts."""
    return json.dumps(await _list_registered_boards())


@mcp.tool()
async def get_board_items(board_id: str, limit: int = 10, search: str | None = None) -> str:
    """Get items from a Monday.com board, requesting only its registered columns.

    Args:
        board_id: The ID of the Monday.com board.
        limit: Maximum number of items to return (default 10).
        search: Optional text to match against item names.
    """
    result = await _get_board_items(board_id=board_id, limit=limit, search=search)
    return json.dumps(result)


@mcp.tool()
async def get_cache_status() -> str:
    """Report the board metadata cache state: board count, last sync and staleness."""
    return json.dumps(await _get_cache_status())


def main() -> None:
    """Run the MCP server over stdio."""
    configure_logging()
    mcp.run()


if __name__ == "__main__":
    main()
