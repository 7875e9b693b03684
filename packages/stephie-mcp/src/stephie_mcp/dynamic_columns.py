"""Column selection for tool queries, backed by the metadata cache."""

from __future__ import annotations

import logging

from stephie_mcp.metadata.store import get_cache

logger = logging.getLogger(__name__)

# Used when the Column Registry has nothing for a board the tools know about.
DEFAULT_COLUMNS: dict[str, list[str]] = {
    # Tasks - Marketing
    "1693359113": [
        "name",
        "person",
        "status_1__1",
        "color_mkpwc7hm",
        "status_mkkw7ehb",
        "publish_date_mkn21n6b",
        "budget_mkn22001",
        "title_mkn256dt",
        "link_to_teams_Mjj8UZOX",
        "link_to_teams_Mjj8FZuw",
        "board_relation_mkpjg0ky",
        "budgets_mkn2xpkt",
    ],
    # Accounts
    "1402911027": [
        "text8",
        "status",
        "text",
        "phone",
        "people",
        "status5",
        "numbers",
        "status4",
        "color",
        "text5",
    ],
}


async def get_dynamic_columns(board_id: str) -> list[str]:
    """Columns to request for *board_id*.

    Prefers the registry-backed cache. Boards the registry does not know
    get a built-in list when there is one, else the cache fallback.
    """
    board_id = str(board_id)
    cache = get_cache()
    columns = await cache.get_columns(board_id)
    registered = cache.snapshot is not None and board_id in cache.snapshot.columns
    if not registered and board_id in DEFAULT_COLUMNS:
        logger.info("Using built-in default columns for board %s", board_id)
        return list(DEFAULT_COLUMNS[board_id])
    return columns
