"""MCP tools for board metadata and column-restricted item queries."""

from __future__ import annotations

import logging
from typing import Any

from stephie_mcp.client import get_client
from stephie_mcp.dynamic_columns import DEFAULT_COLUMNS, get_dynamic_columns
from stephie_mcp.metadata.store import get_cache

logger = logging.getLogger(__name__)


async def get_board_columns(board_id: str) -> dict[str, Any]:
    """Get the column IDs tools request for a board.

    Args:
        board_id: The Monday.com board ID.

    Returns:
        A dict with ``board_id``, ``board_name``, ``columns`` and ``source``
        (``registry``, ``default`` or ``fallback``).
    """
    board_id = str(board_id)
    columns = await get_dynamic_columns(board_id)
    snapshot = get_cache().snapshot

    if snapshot is not None and board_id in snapshot.columns:
        source = "registry"
    elif board_id in DEFAULT_COLUMNS:
        source = "default"
    else:
        source = "fallback"

    descriptor = snapshot.boards.get(board_id) if snapshot else None
    return {
        "board_id": board_id,
        "board_name": descriptor.name if descriptor else None,
        "columns": columns,
        "source": source,
    }


async def list_registered_boards() -> list[dict[str, Any]]:
    """List every board in the Board Registry with its column count."""
    snapshot = await get_cache().get_metadata()
    if snapshot is None:
        return []

    boards = [
        {
            "board_id": board_id,
            "name": descriptor.name,
            "registry_item_id": descriptor.item_id,
            "column_count": len(snapshot.columns.get(board_id, [])),
        }
        for board_id, descriptor in snapshot.boards.items()
    ]
    boards.sort(key=lambda b: b["name"].lower())
    logger.info("Listing %d registered boards", len(boards))
    return boards


async def get_board_items(
    board_id: str,
    limit: int = 10,
    search: str | None = None,
) -> dict[str, Any]:
    """Fetch items from a board using only its registered columns.

    Args:
        board_id: The Monday.com board ID.
        limit: Maximum number of items to return.
        search: Optional text matched against the item name.

    Returns:
        A dict with ``board_id``, ``board_name``, ``columns`` and ``items``;
        each item maps column titles to their display text.
    """
    board_id = str(board_id)
    columns = await get_dynamic_columns(board_id)
    rules = None
    if search:
        rules = [{"column_id": "name", "compare_value": search, "operator": "contains_text"}]

    board = await get_client().get_board_items(board_id, columns, limit=limit, rules=rules)

    items = []
    for item in (board.get("items_page") or {}).get("items") or []:
        values = {}
        for col in item.get("column_values") or []:
            title = (col.get("column") or {}).get("title") or col.get("id")
            values[title] = col.get("text")
        items.append(
            {
                "id": item["id"],
                "name": item.get("name"),
                "created_at": item.get("created_at"),
                "updated_at": item.get("updated_at"),
                "columns": values,
            }
        )

    logger.info("Board %s returned %d items", board_id, len(items))
    return {
        "board_id": board_id,
        "board_name": board.get("name"),
        "columns": columns,
        "items": items,
    }


async def get_cache_status() -> dict[str, Any]:
    """Report the metadata cache state (board count, last sync, staleness)."""
    return get_cache().status()
