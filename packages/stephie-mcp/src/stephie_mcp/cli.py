"""CLI entry-point: serve the HTTP app, run the MCP server, manage the cache."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv

# Load .env from the repo root (traverse up from this file), then the cwd.
_REPO_ROOT = Path(__file__).resolve().parents[4]
load_dotenv(_REPO_ROOT / ".env")
load_dotenv()

from stephie_mcp.logging_config import configure_logging  # noqa: E402
from stephie_mcp.metadata.store import get_cache  # noqa: E402
from stephie_mcp.sync_routes import run_sync  # noqa: E402

logger = logging.getLogger(__name__)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.option("--json-logs", is_flag=True, help="Output structured JSON logs.")
def cli(verbose: bool, json_logs: bool) -> None:
    """Monday.com board metadata cache and MCP server."""
    configure_logging(verbose=verbose, json_format=json_logs)


@cli.command()
@click.option("--host", default="0.0.0.0", show_default=True)
@click.option("--port", default=3000, show_default=True, type=int, envvar="PORT")
@click.option("--no-mcp", is_flag=True, help="Serve only health and sync endpoints.")
def serve(host: str, port: int, no_mcp: bool) -> None:
    """Serve health, sync triggers and the MCP SSE transport over HTTP."""
    import uvicorn

    from stephie_mcp.app import create_app

    logger.info("Starting HTTP server on %s:%d", host, port)
    uvicorn.run(create_app(include_mcp=not no_mcp), host=host, port=port, log_level="info")


@cli.command("mcp")
def mcp_stdio() -> None:
    """Run the MCP server over stdio."""
    from stephie_mcp.server import mcp

    mcp.run()


@cli.command()
def sync() -> None:
    """Force a metadata sync and print the resulting counts."""

    async def _sync() -> dict:
        cache = get_cache()
        await cache.initialize()
        return await run_sync(cache)

    try:
        stats = asyncio.run(_sync())
    except Exception as exc:
        raise click.ClickException(f"Sync failed: {exc}") from exc

    click.echo(
        f"Synced {stats['boards']} boards / {stats['columns']} columns "
        f"in {stats['duration_ms']}ms (lastSync {stats['lastSync']})"
    )


@cli.command()
@click.argument("board_id")
def columns(board_id: str) -> None:
    """Print the column IDs registered for BOARD_ID."""

    async def _columns() -> list[str]:
        cache = get_cache()
        await cache.initialize()
        result = await cache.get_columns(board_id)
        await cache.drain()
        return result

    for column_id in asyncio.run(_columns()):
        click.echo(column_id)


@cli.command()
def status() -> None:
    """Show the on-disk cache state without contacting Monday.com."""

    async def _status() -> dict:
        cache = get_cache()
        # initialize() could start a refresh; only read the file.
        await cache.load_from_disk()
        return cache.status()

    try:
        result = asyncio.run(_status())
    except Exception as exc:
        raise click.ClickException(f"Cannot read cache: {exc}") from exc

    click.echo(json.dumps(result, indent=2))
    if not result["boards"]:
        sys.exit(1)


if __name__ == "__main__":
    cli()
