"""Logging setup shared by the CLI, the HTTP app and the stdio MCP server.

Logs always go to stderr: stdout carries the MCP stdio transport.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

# Structured fields the cache attaches through ``extra=``.
CACHE_FIELDS = ("board_id", "duration_ms", "boards", "columns", "dropped")

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
TEXT_DATEFMT = "%Y-%m-%d %H:%M:%S"


def cache_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Return the cache extras set on *record*, skipping absent ones."""
    fields = {}
    for name in CACHE_FIELDS:
        value = getattr(record, name, None)
        if value is not None:
            fields[name] = value
    return fields


class JSONFormatter(logging.Formatter):
    """One JSON object per line, carrying cache extras when present."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: dict[str, Any] = {
            "timestamp": created.isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **cache_fields(record),
        }
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _stderr_handler(level: int, json_format: bool) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    formatter = JSONFormatter() if json_format else logging.Formatter(TEXT_FORMAT, TEXT_DATEFMT)
    handler.setFormatter(formatter)
    return handler


def configure_logging(verbose: bool = False, json_format: bool = False) -> None:
    """Route every logger through one stderr handler.

    Calling it again replaces the handler, so the CLI group and ``main()``
    can both call it safely.

    Args:
        verbose: DEBUG instead of INFO.
        json_format: Emit :class:`JSONFormatter` lines instead of plain text.
    """
    level = logging.DEBUG if verbose else logging.INFO
    root = logging.getLogger()
    root.setLevel(level)
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(_stderr_handler(level, json_format))

    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)
