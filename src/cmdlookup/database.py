"""SQLite record store: connection lifecycle, schema bootstrap, TTL cache.

``initialize()`` is the only place where infrastructure failures escape:
it raises ``CommandLookupError(STORE_UNAVAILABLE)`` and the caller is
expected to fall back to the in-memory store. After that, the statement
helpers (``run``/``get``/``all``) propagate ``aiosqlite.Error`` to the store
classes, which log and degrade. The cache and settings helpers degrade
locally, like any other cache: read failures are misses, write failures are
logged and reported as ``False``.

One connection serves every coroutine of the host process, so
``transaction()`` serialises units of work with an ``asyncio.Lock``. Writes
that must not land inside someone else's open transaction go through
``transaction()`` too.
"""

from __future__ import annotations

import asyncio
import shutil
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING, Any

import aiosqlite
import structlog

from cmdlookup.errors import CommandLookupError, ErrorCode
from cmdlookup.models.cache import CacheEntry
from cmdlookup.schema import SCHEMA_STATEMENTS

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

log = structlog.get_logger()

MEMORY_DB_PATH = ":memory:"
LAST_CLEANUP_SETTING = "last_cache_cleanup_at"


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class RunResult:
    """Outcome of a write statement."""

    changes: int
    last_insert_id: int | None


class Database:
    """Owns the aiosqlite connection and the on-disk layout."""

    def __init__(
        self,
        db_path: str,
        *,
        snapshot_path: str | None = None,
        cache_ttl_seconds: int = 86400,
    ) -> None:
        self._db_path = db_path
        self._snapshot_path = snapshot_path
        self._cache_ttl_seconds = cache_ttl_seconds
        self._conn: aiosqlite.Connection | None = None
        self._tx_lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> bool:
        """Open the database and bootstrap the schema. Idempotent.

        Copies the pre-seeded snapshot into place when the destination file
        does not exist yet. Raises ``CommandLookupError`` on any I/O or
        SQLite failure.
        """
        if self._conn is not None:
            return True

        try:
            if self._db_path != MEMORY_DB_PATH:
                self._prepare_file()
            conn = await aiosqlite.connect(self._db_path, isolation_level=None)
            try:
                conn.row_factory = aiosqlite.Row
                await conn.execute("PRAGMA foreign_keys = ON")
                await conn.execute("PRAGMA journal_mode = WAL")
                for statement in SCHEMA_STATEMENTS:
                    await conn.execute(statement)
                await self._migrate(conn)
            except BaseException:
                await conn.close()
                raise
        except (OSError, aiosqlite.Error) as exc:
            log.warning("store_initialize_failed", path=self._db_path, exc_info=True)
            raise CommandLookupError(
                code=ErrorCode.STORE_UNAVAILABLE,
                message=f"Could not open command store at {self._db_path}: {exc}",
            ) from exc

        self._conn = conn
        log.info(
            "store_initialized",
            path=self._db_path,
            statements=len(SCHEMA_STATEMENTS),
        )
        return True

    def _prepare_file(self) -> None:
        path = Path(self._db_path).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        if path.exists() or not self._snapshot_path:
            return
        snapshot = Path(self._snapshot_path).expanduser()
        if not snapshot.is_file():
            return
        shutil.copyfile(snapshot, path)
        log.info("store_snapshot_copied", source=str(snapshot), path=str(path))

    @staticmethod
    async def _migrate(conn: aiosqlite.Connection) -> None:
        # Snapshots built before history events were tracked lack the column.
        async with conn.execute("PRAGMA table_info(command_history)") as cursor:
            columns = {row["name"] for row in await cursor.fetchall()}
        if "event" not in columns:
            await conn.execute(
                "ALTER TABLE command_history ADD COLUMN event TEXT NOT NULL DEFAULT 'lookup'"
            )
            log.info("store_migrated", column="command_history.event")

    async def close(self) -> None:
        if self._conn is None:
            return
        await self._conn.close()
        self._conn = None
        log.info("store_closed", path=self._db_path)

    def _require(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise CommandLookupError(
                code=ErrorCode.STORE_UNAVAILABLE,
                message="Command store is not initialized",
            )
        return self._conn

    # ------------------------------------------------------------------
    # Statement helpers
    # ------------------------------------------------------------------

    async def run(self, sql: str, params: Sequence[Any] = ()) -> RunResult:
        """Execute a write statement."""
        conn = self._require()
        async with conn.execute(sql, params) as cursor:
            return RunResult(changes=cursor.rowcount, last_insert_id=cursor.lastrowid)

    async def get(self, sql: str, params: Sequence[Any] = ()) -> aiosqlite.Row | None:
        """Fetch a single row, or ``None``."""
        conn = self._require()
        async with conn.execute(sql, params) as cursor:
            return await cursor.fetchone()

    async def all(self, sql: str, params: Sequence[Any] = ()) -> list[aiosqlite.Row]:
        """Fetch every row of a query."""
        conn = self._require()
        async with conn.execute(sql, params) as cursor:
            return list(await cursor.fetchall())

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Database]:
        """All-or-nothing unit of work.

        Commits when the block exits normally; any exception rolls the whole
        unit back and is re-raised.
        """
        conn = self._require()
        async with self._tx_lock:
            await conn.execute("BEGIN")
            try:
                yield self
                await conn.execute("COMMIT")
            except BaseException:
                # SQLite may already have rolled back on its own.
                with suppress(aiosqlite.Error):
                    await conn.execute("ROLLBACK")
                raise

    async def get_command_count(self) -> int:
        try:
            row = await self.get("SELECT COUNT(*) AS count FROM commands")
        except (aiosqlite.Error, CommandLookupError):
            log.warning("command_count_error", exc_info=True)
            return 0
        return row["count"] if row is not None else 0

    # ------------------------------------------------------------------
    # TTL cache
    # ------------------------------------------------------------------

    async def add_to_cache(
        self,
        key: str,
        content: str,
        content_type: str = "text/plain",
        ttl_seconds: int | None = None,
    ) -> bool:
        """Write a cache entry, replacing any previous value for ``key``."""
        ttl = self._cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        now = _utcnow()
        try:
            async with self.transaction():
                await self.run(
                    "INSERT INTO api_cache (cache_key, content, content_type, expires_at, created_at) "
                    "VALUES (?, ?, ?, ?, ?) "
                    "ON CONFLICT(cache_key) DO UPDATE SET "
                    "content = excluded.content, content_type = excluded.content_type, "
                    "expires_at = excluded.expires_at, created_at = excluded.created_at",
                    (
                        key,
                        content,
                        content_type,
                        (now + timedelta(seconds=ttl)).isoformat(),
                        now.isoformat(),
                    ),
                )
        except (aiosqlite.Error, CommandLookupError):
            log.warning("cache_write_error", key=key, exc_info=True)
            return False
        return True

    async def get_from_cache(self, key: str) -> CacheEntry | None:
        """Read a cache entry. Expired entries are misses even before a sweep."""
        try:
            row = await self.get(
                "SELECT cache_key, content, content_type, expires_at, created_at "
                "FROM api_cache WHERE cache_key = ? AND expires_at > ?",
                (key, _utcnow().isoformat()),
            )
        except (aiosqlite.Error, CommandLookupError):
            log.warning("cache_read_error", key=key, exc_info=True)
            return None
        if row is None:
            return None
        return CacheEntry(
            key=row["cache_key"],
            content=row["content"],
            content_type=row["content_type"],
            expires_at=datetime.fromisoformat(row["expires_at"]),
            created_at=datetime.fromisoformat(row["created_at"]) if row["created_at"] else None,
        )

    async def clear_expired_cache(self) -> int:
        """Delete entries whose expiry is in the past. Returns the count removed."""
        try:
            async with self.transaction():
                result = await self.run(
                    "DELETE FROM api_cache WHERE expires_at < ?",
                    (_utcnow().isoformat(),),
                )
        except (aiosqlite.Error, CommandLookupError):
            log.warning("cache_cleanup_error", exc_info=True)
            return 0
        log.info("cache_cleanup_complete", deleted=result.changes)
        return result.changes

    # ------------------------------------------------------------------
    # Settings and maintenance
    # ------------------------------------------------------------------

    async def get_setting(self, key: str) -> str | None:
        try:
            row = await self.get("SELECT value FROM app_settings WHERE key = ?", (key,))
        except (aiosqlite.Error, CommandLookupError):
            log.warning("setting_read_error", key=key, exc_info=True)
            return None
        return row["value"] if row is not None else None

    async def set_setting(self, key: str, value: str) -> bool:
        try:
            async with self.transaction():
                await self.run(
                    "INSERT INTO app_settings (key, value, updated_at) VALUES (?, ?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value, "
                    "updated_at = excluded.updated_at",
                    (key, value, _utcnow().isoformat()),
                )
        except (aiosqlite.Error, CommandLookupError):
            log.warning("setting_write_error", key=key, exc_info=True)
            return False
        return True

    async def cleanup_if_due(self, interval_hours: int) -> int | None:
        """Sweep expired cache rows unless a sweep ran within ``interval_hours``.

        Returns the number of rows removed, or ``None`` when skipped. A
        missing or unreadable timestamp counts as due.
        """
        last_run = await self.get_setting(LAST_CLEANUP_SETTING)
        if last_run is not None:
            try:
                elapsed = _utcnow() - datetime.fromisoformat(last_run)
            except ValueError:
                log.warning("cache_cleanup_timestamp_invalid", value=last_run)
            else:
                if elapsed < timedelta(hours=interval_hours):
                    log.debug("cache_cleanup_skipped", reason="not_due")
                    return None

        removed = await self.clear_expired_cache()
        await self.set_setting(LAST_CLEANUP_SETTING, _utcnow().isoformat())
        return removed
