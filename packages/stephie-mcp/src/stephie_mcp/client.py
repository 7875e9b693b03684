"""Async GraphQL client for the Monday.com API."""

from __future__ import annotations

import json
import logging
import os
from typing import Any

import httpx

from stephie_mcp.config import Settings

logger = logging.getLogger(__name__)

MONDAY_API_URL = "https://api.monday.com/v2"
API_VERSION = "2024-10"
DEFAULT_TIMEOUT = 30.0


def _render_compare_value(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(_render_compare_value(v) for v in value) + "]"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(str(value))


def build_items_query(
    board_id: str,
    column_ids: list[str],
    limit: int = 10,
    rules: list[dict[str, Any]] | None = None,
) -> str:
    """Render an ``items_page`` query that only asks for *column_ids*.

    Each rule is a dict with ``column_id``, ``compare_value`` and
    ``operator`` (a bare GraphQL enum such as ``contains_text``).
    """
    ids = ", ".join(json.dumps(c) for c in column_ids)
    query_params = ""
    if rules:
        rendered = ", ".join(
            "{ column_id: %s, compare_value: %s, operator: %s }"
            % (
                json.dumps(rule["column_id"]),
                _render_compare_value(rule["compare_value"]),
                rule.get("operator", "any_of"),
            )
            for rule in rules
        )
        query_params = f", query_params: {{ rules: [{rendered}] }}"

    return f"""
    query {{
        boards(ids: [{json.dumps(str(board_id))}]) {{
            id
            name
            items_page(limit: {int(limit)}{query_params}) {{
                items {{
                    id
                    name
                    created_at
                    updated_at
                    column_values(ids: [{ids}]) {{
                        id
                        text
                        value
                        column {{
                            title
                            type
                        }}
                    }}
                }}
            }}
        }}
    }}
    """


class MondayAPIError(Exception):
    """Raised when the Monday.com API returns an error."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class MondayClient:
    """Thin async wrapper around the Monday.com GraphQL endpoint.

    The token comes from the argument or from ``MONDAY_API_TOKEN``
    (``MONDAY_API_KEY`` is accepted for older deployments).
    """

    def __init__(self, api_token: str | None = None, timeout: float = DEFAULT_TIMEOUT) -> None:
        self._token = (
            api_token
            or os.environ.get("MONDAY_API_TOKEN")
            or os.environ.get("MONDAY_API_KEY", "")
        )
        if not self._token:
            raise ValueError(
                "Monday.com API token is required. "
                "Set the MONDAY_API_TOKEN environment variable."
            )
        self._client = httpx.AsyncClient(
            base_url=MONDAY_API_URL,
            headers={
                "Authorization": self._token,
                "Content-Type": "application/json",
                "API-Version": API_VERSION,
            },
            timeout=timeout,
        )

    async def execute(
        self,
        query: str,
        variables: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Run *query* and return the ``data`` portion of the response.

        Raises :class:`MondayAPIError` on GraphQL errors and
        :class:`httpx.HTTPStatusError` on non-2xx responses.
        """
        payload: dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = variables

        response = await self._client.post("", json=payload)
        response.raise_for_status()
        body = response.json()

        if body.get("errors"):
            msgs = "; ".join(e.get("message", str(e)) for e in body["errors"])
            raise MondayAPIError(f"Monday.com API errors: {msgs}", body["errors"])

        if body.get("error_message"):
            raise MondayAPIError(body["error_message"])

        return body.get("data") or {}

    async def get_board_items(
        self,
        board_id: str,
        column_ids: list[str],
        limit: int = 10,
        rules: list[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        """Fetch one page of items restricted to *column_ids*.

        Returns the board dict (``id``, ``name``, ``items_page``).
        """
        query = build_items_query(board_id, column_ids, limit=limit, rules=rules)
        data = await self.execute(query)
        boards = data.get("boards") or []
        if not boards:
            raise MondayAPIError(f"Board {board_id} not found")
        return boards[0]

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()


_client: MondayClient | None = None


def get_client() -> MondayClient:
    """Return the lazily-created module-level :class:`MondayClient`."""
    global _client
    if _client is None:
        _client = MondayClient(api_token=Settings.from_env().monday_api_token or None)
    return _client
