"""Tests for the logging setup."""

from __future__ import annotations

import json
import logging

import pytest

from stephie_mcp.logging_config import JSONFormatter, cache_fields, configure_logging


@pytest.mark.unit
def test_json_formatter_includes_cache_extras() -> None:
    record = logging.LogRecord(
        "stephie_mcp.metadata.store", logging.INFO, __file__, 1,
        "Sync complete in %dms", (12,), None,
    )
    record.duration_ms = 12
    record.boards = 3

    entry = json.loads(JSONFormatter().format(record))

    assert entry["message"] == "Sync complete in 12ms"
    assert entry["level"] == "INFO"
    assert entry["duration_ms"] == 12
    assert entry["boards"] == 3
    assert "board_id" not in entry


@pytest.mark.unit
def test_configure_logging_installs_single_handler() -> None:
    root = logging.getLogger()
    saved = root.handlers[:], root.level
    try:
        configure_logging(verbose=True, json_format=True)
        configure_logging(verbose=True, json_format=True)

        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONFormatter)
        assert root.level == logging.DEBUG
    finally:
        root.handlers[:] = saved[0]
        root.setLevel(saved[1])


@pytest.mark.unit
def test_cache_fields_skips_unset_extras() -> None:
    record = logging.LogRecord(
        "stephie_mcp.metadata.resolver", logging.WARNING, __file__, 1,
        "Dropped rows", (), None,
    )
    record.dropped = 0
    record.board_id = None
    record.correlation_id = "abc"

    assert cache_fields(record) == {"dropped": 0}
