"""Shared test fixtures for the stephie-mcp test suite."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

import stephie_mcp.client
import stephie_mcp.metadata.store
from stephie_mcp.metadata.resolver import SchemaResolver
from stephie_mcp.metadata.store import MetadataCache
from tests.factories import (
    LAYOUT,
    FakeClock,
    board_registry_item,
    column_registry_item,
    registry_data,
)


# ---------------------------------------------------------------------------
# Environment setup: no real API calls or shared cache files
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _mock_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Set safe default environment variables for all tests."""
    monkeypatch.setenv("MONDAY_API_TOKEN", "test-token-do-not-use")
    monkeypatch.setenv("CRON_SECRET", "cron-secret-123")
    monkeypatch.setenv("ADMIN_TOKEN", "admin-token-456")
    monkeypatch.setenv("STEPHIE_CACHE_DIR", str(tmp_path / "cache"))
    monkeypatch.delenv("STEPHIE_ENV", raising=False)
    monkeypatch.delenv("VERCEL", raising=False)


@pytest.fixture(autouse=True)
def _reset_singletons() -> Any:
    """Reset the module-level client and cache singletons between tests."""
    stephie_mcp.client._client = None
    stephie_mcp.metadata.store._cache = None
    yield
    stephie_mcp.client._client = None
    stephie_mcp.metadata.store._cache = None


# ---------------------------------------------------------------------------
# Registry fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def scenario_data() -> dict[str, Any]:
    """Board 100 (registry item R1) with ``name`` and ``status`` columns."""
    return registry_data(
        [board_registry_item("R1", "100", "Accounts")],
        [
            column_registry_item("name", ["R1"]),
            column_registry_item("status", ["R1"]),
        ],
    )


# ---------------------------------------------------------------------------
# Clock and cache fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def mock_client(scenario_data: dict[str, Any]) -> MagicMock:
    """A MondayClient stand-in whose execute() returns the scenario registries."""
    client = MagicMock()
    client.execute = AsyncMock(return_value=scenario_data)
    return client


@pytest.fixture()
def make_cache(
    tmp_path: Path,
    clock: FakeClock,
    mock_client: MagicMock,
) -> Callable[..., MetadataCache]:
    """Factory for a MetadataCache wired to the mock client and fake clock."""

    def _make(cache_dir: Path | None = None, ttl_seconds: float = 30 * 60) -> MetadataCache:
        resolver = SchemaResolver(
            layout=LAYOUT,
            client_factory=lambda: mock_client,
            clock=clock,
        )
        return MetadataCache(
            cache_dir=cache_dir or tmp_path / "cache",
            resolver=resolver,
            ttl_seconds=ttl_seconds,
            clock=clock,
        )

    return _make
