"""Resolve board -> column mappings from the two registry boards.

The Board Registry holds one item per queryable board with the real board
ID in a text column. The Column Registry holds one item per tracked column,
linked to a Board Registry item through a board-relation column. Monday.com
does not join the two, so the join happens here:

    column item --relation--> registry item --board_id field--> real board
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

import httpx

from stephie_mcp.client import MondayAPIError, MondayClient, get_client
from stephie_mcp.config import RegistryLayout
from stephie_mcp.errors import RemoteQueryError
from stephie_mcp.metadata.models import BoardDescriptor, CacheSnapshot

logger = logging.getLogger(__name__)

REGISTRY_QUERY = """
query GetRegistries($boardIds: [ID!]!, $limit: Int!) {
    boards(ids: $boardIds) {
        id
        name
        items_page(limit: $limit) {
            items {
                id
                name
                column_values {
                    id
                    text
                    value
                    ... on BoardRelationValue {
                        linked_item_ids
                    }
                }
            }
        }
    }
}
"""


@dataclass
class ResolveStats:
    """Counters from the most recent join."""

    registry_items: int = 0
    column_items: int = 0
    joined: int = 0
    dropped_no_column_id: int = 0
    dropped_no_link: int = 0
    dropped_unresolved: list[str] = field(default_factory=list)

    @property
    def dropped(self) -> int:
        return self.dropped_no_column_id + self.dropped_no_link + len(self.dropped_unresolved)


def _column(item: dict[str, Any], column_id: str) -> dict[str, Any] | None:
    for col in item.get("column_values") or []:
        if col.get("id") == column_id:
            return col
    return None


def _column_text(item: dict[str, Any], column_id: str) -> str:
    col = _column(item, column_id)
    return ((col or {}).get("text") or "").strip()


def _first_linked_id(col: dict[str, Any] | None) -> str | None:
    """Return the first linked item ID of a board-relation column value."""
    if not col:
        return None
    linked = col.get("linked_item_ids")
    if linked:
        return str(linked[0])
    # Older API versions only expose the raw JSON value.
    raw = col.get("value")
    if not raw:
        return None
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        return None
    pulses = parsed.get("linkedPulseIds") if isinstance(parsed, dict) else None
    if pulses:
        pulse_id = pulses[0].get("linkedPulseId")
        return str(pulse_id) if pulse_id is not None else None
    return None


def _items(board: dict[str, Any] | None) -> list[dict[str, Any]]:
    if not board:
        return []
    return (board.get("items_page") or {}).get("items") or []


class SchemaResolver:
    """Fetch both registries in one round trip and join them client-side."""

    def __init__(
        self,
        layout: RegistryLayout | None = None,
        client_factory: Callable[[], MondayClient] = get_client,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.layout = layout or RegistryLayout()
        self._client_factory = client_factory
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.last_stats = ResolveStats()

    async def fetch(self) -> list[dict[str, Any]]:
        """Run the combined registry query and return the raw board list.

        Raises:
            RemoteQueryError: On transport or GraphQL failures, or when the
                response has no ``boards`` list at all.
        """
        variables = {
            "boardIds": [self.layout.columns_board_id, self.layout.meta_board_id],
            "limit": self.layout.page_limit,
        }
        try:
            data = await self._client_factory().execute(REGISTRY_QUERY, variables)
        except (MondayAPIError, httpx.HTTPError, ValueError) as exc:
            raise RemoteQueryError(f"Registry query failed: {exc}") from exc

        boards = data.get("boards")
        if not isinstance(boards, list):
            raise RemoteQueryError("Registry query returned no boards")
        return boards

    async def resolve(self) -> CacheSnapshot:
        """Fetch the registries and build a fresh :class:`CacheSnapshot`."""
        boards = await self.fetch()
        return self.build_snapshot(boards)

    def build_snapshot(self, boards: list[dict[str, Any]]) -> CacheSnapshot:
        """Join raw registry boards into a snapshot stamped with the current time."""
        layout = self.layout
        by_id = {str(b.get("id")): b for b in boards if b}
        columns_board = by_id.get(layout.columns_board_id)
        meta_board = by_id.get(layout.meta_board_id)
        stats = ResolveStats()
        self.last_stats = stats

        if columns_board is None or meta_board is None:
            logger.warning(
                "Registry boards missing from response (columns=%s, meta=%s); "
                "returning an empty snapshot",
                columns_board is not None,
                meta_board is not None,
            )
            return CacheSnapshot.empty(self._clock())

        # Hop 1: registry item ID -> real board ID
        registry: dict[str, str] = {}
        descriptors: dict[str, BoardDescriptor] = {}
        for item in _items(meta_board):
            stats.registry_items += 1
            board_id = _column_text(item, layout.board_id_column)
            if not board_id:
                continue
            item_id = str(item["id"])
            registry[item_id] = board_id
            descriptors[board_id] = BoardDescriptor(
                name=item.get("name") or "",
                item_id=item_id,
                board_id=board_id,
            )

        # Hop 2: column item -> registry item -> real board ID
        columns: dict[str, list[str]] = {}
        for item in _items(columns_board):
            stats.column_items += 1
            column_id = _column_text(item, layout.column_id_column)
            if not column_id:
                stats.dropped_no_column_id += 1
                continue
            linked_id = _first_linked_id(_column(item, layout.board_relation_column))
            if linked_id is None:
                stats.dropped_no_link += 1
                continue
            board_id = registry.get(linked_id)
            if board_id is None:
                stats.dropped_unresolved.append(column_id)
                continue
            board_columns = columns.setdefault(board_id, [])
            if column_id not in board_columns:
                board_columns.append(column_id)
            stats.joined += 1

        if stats.dropped:
            logger.warning(
                "Dropped %d column registry rows (no column id: %d, no board link: %d, "
                "unresolved link: %d)",
                stats.dropped,
                stats.dropped_no_column_id,
                stats.dropped_no_link,
                len(stats.dropped_unresolved),
                extra={"dropped": stats.dropped},
            )
        if stats.dropped_unresolved:
            logger.debug("Unresolved column ids: %s", ", ".join(stats.dropped_unresolved))

        return CacheSnapshot(
            columns=columns,
            boards=descriptors,
            last_sync=self._clock(),
        )
