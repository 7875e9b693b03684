"""Two-tier (memory + disk) cache of resolved board metadata.

Readers never see an error from this module: a miss falls through memory,
then disk, then a forced sync, and finally a static column list.

Lifecycle::

    Empty --disk hit--> Warm --TTL elapsed--> Stale --sync ok--> Warm
                                              Stale --sync fails--> Stale

Only one sync runs at a time; concurrent callers await the in-flight one.
Snapshots are replaced wholesale, never patched.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import tempfile
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

from pydantic import ValidationError

from stephie_mcp.config import Settings
from stephie_mcp.errors import PersistenceError
from stephie_mcp.metadata.models import CacheSnapshot
from stephie_mcp.metadata.resolver import SchemaResolver

logger = logging.getLogger(__name__)

CACHE_FILENAME = "metadata.json"
FALLBACK_COLUMNS: tuple[str, ...] = ("name", "status")


def _utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class MetadataCache:
    """Process-local cache of the board -> columns snapshot.

    Args:
        cache_dir: Directory holding ``metadata.json``.
        resolver: The :class:`SchemaResolver` used by :meth:`sync`.
        ttl_seconds: Age after which a snapshot is stale.
        clock: Returns the current aware datetime; injectable for tests.
    """

    def __init__(
        self,
        cache_dir: Path | str,
        resolver: SchemaResolver | None = None,
        ttl_seconds: float = 30 * 60,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.cache_dir = Path(cache_dir)
        self.resolver = resolver or SchemaResolver()
        self.ttl_seconds = ttl_seconds
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._snapshot: CacheSnapshot | None = None
        self._inflight: asyncio.Future[bool] | None = None
        self._background: set[asyncio.Task[bool]] = set()
        self.initialized = False
        self.last_error: str | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> MetadataCache:
        return cls(
            cache_dir=settings.cache_dir,
            resolver=SchemaResolver(layout=settings.registry),
            ttl_seconds=settings.cache_ttl_seconds,
        )

    @property
    def cache_file(self) -> Path:
        return self.cache_dir / CACHE_FILENAME

    @property
    def snapshot(self) -> CacheSnapshot | None:
        """The committed in-memory snapshot, without any fallback."""
        return self._snapshot

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Load the disk snapshot if there is one.

        A stale snapshot is served as-is while a refresh runs in the
        background. A missing file leaves memory empty until the first read.
        """
        try:
            snapshot = await asyncio.to_thread(self._read_disk)
        except PersistenceError as exc:
            logger.error("Failed to initialize cache: %s", exc)
            snapshot = None

        self.initialized = True
        if snapshot is None:
            logger.info("No cache found at %s, will sync on first request", self.cache_file)
            return

        self._snapshot = snapshot
        logger.info(
            "Loaded cache from disk (%d boards)",
            snapshot.board_count,
            extra={"boards": snapshot.board_count},
        )
        if self.is_stale(snapshot):
            logger.warning("Cache is stale, refreshing in background")
            self.refresh_in_background()

    async def get_columns(self, board_id: str) -> list[str]:
        """Return the column IDs registered for *board_id*. Never raises."""
        board_id = str(board_id)
        try:
            snapshot = await self.load_from_disk()
            if snapshot is not None and snapshot.columns.get(board_id):
                self._refresh_if_stale(snapshot)
                return list(snapshot.columns[board_id])

            logger.info("Cache miss for board %s, syncing", board_id, extra={"board_id": board_id})
            await self.sync()
            snapshot = self._snapshot
            if snapshot is not None and snapshot.columns.get(board_id):
                return list(snapshot.columns[board_id])
        except Exception:
            logger.exception("Column lookup failed for board %s", board_id)

        logger.warning(
            "No columns registered for board %s, using fallback", board_id,
            extra={"board_id": board_id},
        )
        return list(FALLBACK_COLUMNS)

    async def get_metadata(self) -> CacheSnapshot | None:
        """Return the whole snapshot, or None if nothing could be resolved."""
        try:
            snapshot = await self.load_from_disk()
            if snapshot is None:
                await self.sync()
                return self._snapshot
            self._refresh_if_stale(snapshot)
            return snapshot
        except Exception:
            logger.exception("Metadata lookup failed")
            return self._snapshot

    async def sync(self) -> bool:
        """Resolve the registries and commit the result to memory and disk.

        Returns True when a new snapshot was committed. On failure the
        previous snapshot is kept and :attr:`last_error` is set. Concurrent
        callers share one in-flight sync.
        """
        inflight = self._inflight
        if inflight is None or inflight.done():
            inflight = asyncio.ensure_future(self._sync_once())
            self._inflight = inflight
            inflight.add_done_callback(self._clear_inflight)
        else:
            logger.debug("Sync already in flight, joining it")
        return await asyncio.shield(inflight)

    def is_stale(self, snapshot: CacheSnapshot | None = None) -> bool:
        """True if the snapshot has no sync time or is older than the TTL."""
        snapshot = snapshot if snapshot is not None else self._snapshot
        if snapshot is None or snapshot.last_sync is None:
            return True
        age = _utc(self._clock()) - _utc(snapshot.last_sync)
        return age.total_seconds() > self.ttl_seconds

    def refresh_in_background(self) -> asyncio.Task[bool]:
        """Schedule :meth:`sync` on the running loop without waiting for it."""
        task = asyncio.get_running_loop().create_task(self.sync())
        self._background.add(task)
        task.add_done_callback(self._background_done)
        return task

    async def drain(self) -> None:
        """Wait for every scheduled background refresh to finish."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    def clear_memory(self) -> None:
        """Drop the in-memory snapshot; the next read goes back to disk."""
        self._snapshot = None

    def status(self) -> dict[str, Any]:
        snapshot = self._snapshot
        return {
            "initialized": self.initialized,
            "boards": snapshot.board_count if snapshot else 0,
            "columns": snapshot.column_count if snapshot else 0,
            "lastSync": snapshot.last_sync_iso() if snapshot else None,
            "stale": self.is_stale(snapshot),
            "syncing": self._inflight is not None and not self._inflight.done(),
            "cacheFile": str(self.cache_file),
            "lastError": self.last_error,
        }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def load_from_disk(self) -> CacheSnapshot | None:
        """Fill an empty memory tier from disk. Never schedules a refresh."""
        if self._snapshot is None:
            try:
                loaded = await asyncio.to_thread(self._read_disk)
            except PersistenceError as exc:
                logger.error("Failed to load cache from disk: %s", exc)
                loaded = None
            # A sync may have committed while the disk read was suspended.
            if self._snapshot is None and loaded is not None:
                self._snapshot = loaded
        return self._snapshot

    def _refresh_if_stale(self, snapshot: CacheSnapshot) -> None:
        if self.is_stale(snapshot) and (self._inflight is None or self._inflight.done()):
            logger.info("Serving stale cache, refreshing in background")
            self.refresh_in_background()

    async def _sync_once(self) -> bool:
        logger.info("Syncing metadata from Monday.com")
        start = time.monotonic()
        try:
            snapshot = await self.resolver.resolve()
        except Exception as exc:
            self.last_error = str(exc) or exc.__class__.__name__
            logger.error("Sync failed, keeping previous snapshot: %s", exc, exc_info=True)
            return False

        self._snapshot = snapshot
        try:
            await asyncio.to_thread(self._write_disk, snapshot)
        except PersistenceError as exc:
            logger.error("Failed to save cache to disk: %s", exc)

        self.last_error = None
        duration_ms = round((time.monotonic() - start) * 1000)
        logger.info(
            "Sync complete in %dms (%d boards, %d columns, %d rows dropped)",
            duration_ms,
            snapshot.board_count,
            snapshot.column_count,
            self.resolver.last_stats.dropped,
            extra={
                "duration_ms": duration_ms,
                "boards": snapshot.board_count,
                "columns": snapshot.column_count,
                "dropped": self.resolver.last_stats.dropped,
            },
        )
        return True

    def _clear_inflight(self, future: asyncio.Future[bool]) -> None:
        if self._inflight is future:
            self._inflight = None

    def _background_done(self, task: asyncio.Task[bool]) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background refresh failed: %s", exc)

    def _read_disk(self) -> CacheSnapshot | None:
        try:
            raw = self.cache_file.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            raise PersistenceError(f"Cannot read {self.cache_file}: {exc}") from exc
        try:
            return CacheSnapshot.model_validate_json(raw)
        except ValidationError as exc:
            raise PersistenceError(f"Corrupt cache file {self.cache_file}: {exc}") from exc

    def _write_disk(self, snapshot: CacheSnapshot) -> None:
        """Write via a temp file and ``os.replace`` so a crash never leaves a torn file."""
        tmp_name: str | None = None
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                dir=self.cache_dir,
                prefix=".metadata-",
                suffix=".tmp",
                delete=False,
                encoding="utf-8",
            ) as fh:
                tmp_name = fh.name
                fh.write(snapshot.to_json())
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self.cache_file)
        except OSError as exc:
            if tmp_name is not None:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_name)
            raise PersistenceError(f"Cannot write {self.cache_file}: {exc}") from exc


_cache: MetadataCache | None = None


def get_cache() -> MetadataCache:
    """Return the process-wide :class:`MetadataCache`, creating it on first use.

    Creation does no I/O; hosts call :meth:`MetadataCache.initialize` from
    their startup hook.
    """
    global _cache
    if _cache is None:
        _cache = MetadataCache.from_settings(Settings.from_env())
    return _cache
