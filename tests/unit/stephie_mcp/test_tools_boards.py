"""Tests for the board metadata tools and dynamic column selection."""

from __future__ import annotations

from typing import Any, Callable
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

import stephie_mcp.metadata.store
from stephie_mcp.dynamic_columns import DEFAULT_COLUMNS, get_dynamic_columns
from stephie_mcp.metadata.store import MetadataCache
from stephie_mcp.tools.boards import (
    get_board_columns,
    get_board_items,
    get_cache_status,
    list_registered_boards,
)
from tests.factories import board_registry_item, column_registry_item, registry_data


@pytest.fixture()
def cache(make_cache: Callable[..., MetadataCache]) -> MetadataCache:
    """Install a mock-backed cache as the process singleton."""
    cache = make_cache()
    stephie_mcp.metadata.store._cache = cache
    return cache


def _items_board() -> dict[str, Any]:
    return {
        "id": "100",
        "name": "Accounts",
        "items_page": {
            "items": [
                {
                    "id": "501",
                    "name": "Acme",
                    "created_at": "2025-05-01T10:00:00Z",
                    "updated_at": "2025-05-02T10:00:00Z",
                    "column_values": [
                        {"id": "name", "text": "Acme", "value": None,
                         "column": {"title": "Name", "type": "name"}},
                        {"id": "status", "text": "Active", "value": "{}",
                         "column": {"title": "Status", "type": "status"}},
                    ],
                }
            ]
        },
    }


# ---------------------------------------------------------------------------
# get_dynamic_columns
# ---------------------------------------------------------------------------


@pytest.mark.unit
@pytest.mark.asyncio
async def test_dynamic_columns_prefers_registry(cache: MetadataCache) -> None:
    assert await get_dynamic_columns("100") == ["name", "status"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_dynamic_columns_uses_builtin_defaults(cache: MetadataCache) -> None:
    columns = await get_dynamic_columns("1402911027")

    assert columns == DEFAULT_COLUMNS["1402911027"]
    assert columns is not DEFAULT_COLUMNS["1402911027"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_dynamic_columns_registry_beats_defaults(
    make_cache: Callable[..., MetadataCache], mock_client: MagicMock
) -> None:
    mock_client.execute.return_value = registry_data(
        [board_registry_item("R9", "1402911027", "Accounts")],
        [column_registry_item("text8", ["R9"])],
    )
    stephie_mcp.metadata.store._cache = make_cache()

    assert await get_dynamic_columns("1402911027") == ["text8"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_dynamic_columns_unknown_board_falls_back(cache: MetadataCache) -> None:
    assert await get_dynamic_columns("999") == ["name", "status"]


# ---------------------------------------------------------------------------
# get_board_columns / list_registered_boards / get_cache_status
# ---------------------------------------------------------------------------


@pytest.mark.unit
@pytest.mark.asyncio
async def test_board_columns_reports_source(cache: MetadataCache) -> None:
    registry = await get_board_columns("100")
    default = await get_board_columns("1693359113")
    fallback = await get_board_columns("999")

    assert registry == {
        "board_id": "100",
        "board_name": "Accounts",
        "columns": ["name", "status"],
        "source": "registry",
    }
    assert default["source"] == "default"
    assert default["board_name"] is None
    assert fallback["source"] == "fallback"
    assert fallback["columns"] == ["name", "status"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_registered_boards_sorted_by_name(
    make_cache: Callable[..., MetadataCache], mock_client: MagicMock
) -> None:
    mock_client.execute.return_value = registry_data(
        [
            board_registry_item("R1", "100", "tasks"),
            board_registry_item("R2", "200", "Accounts"),
        ],
        [
            column_registry_item("name", ["R1"]),
            column_registry_item("status", ["R1"]),
            column_registry_item("text8", ["R2"]),
        ],
    )
    stephie_mcp.metadata.store._cache = make_cache()

    boards = await list_registered_boards()

    assert [b["name"] for b in boards] == ["Accounts", "tasks"]
    assert boards[0] == {
        "board_id": "200",
        "name": "Accounts",
        "registry_item_id": "R2",
        "column_count": 1,
    }
    assert boards[1]["column_count"] == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_registered_boards_empty_when_unresolvable(
    cache: MetadataCache, mock_client: MagicMock
) -> None:
    mock_client.execute.side_effect = RuntimeError("down")

    assert await list_registered_boards() == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cache_status_tool(cache: MetadataCache) -> None:
    await cache.sync()

    status = await get_cache_status()

    assert status["boards"] == 1
    assert status["columns"] == 2
    assert status["stale"] is False


# ---------------------------------------------------------------------------
# get_board_items
# ---------------------------------------------------------------------------


@pytest.mark.unit
@pytest.mark.asyncio
async def test_board_items_requests_registered_columns(cache: MetadataCache) -> None:
    client = MagicMock()
    client.get_board_items = AsyncMock(return_value=_items_board())

    with patch("stephie_mcp.tools.boards.get_client", return_value=client):
        result = await get_board_items("100", limit=5)

    client.get_board_items.assert_awaited_once_with(
        "100", ["name", "status"], limit=5, rules=None
    )
    assert result["board_name"] == "Accounts"
    assert result["columns"] == ["name", "status"]
    assert result["items"] == [
        {
            "id": "501",
            "name": "Acme",
            "created_at": "2025-05-01T10:00:00Z",
            "updated_at": "2025-05-02T10:00:00Z",
            "columns": {"Name": "Acme", "Status": "Active"},
        }
    ]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_board_items_search_adds_name_rule(cache: MetadataCache) -> None:
    client = MagicMock()
    client.get_board_items = AsyncMock(return_value={"id": "100", "name": "Accounts"})

    with patch("stephie_mcp.tools.boards.get_client", return_value=client):
        result = await get_board_items("100", search="Acme")

    _, kwargs = client.get_board_items.call_args
    assert kwargs["rules"] == [
        {"column_id": "name", "compare_value": "Acme", "operator": "contains_text"}
    ]
    assert result["items"] == []
