"""Facade and source selection.

Callers see one contract (CommandServiceProtocol) regardless of where the
data comes from:

  HOST:    owns the store. ``open_host_service`` tries the SQLite store
           once; if it cannot be opened the memory store serves the rest
           of the process lifetime. An empty store is seeded on first use.
  DISPLAY: never opens the store. Every call crosses the bridge to the
           host; if the bridge call fails the answer comes from a linear
           scan over the bundled legacy list instead.
"""

from __future__ import annotations

import asyncio
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, TypeVar

import structlog

from cmdlookup.database import Database
from cmdlookup.errors import CommandLookupError
from cmdlookup.memory_store import MemoryCommandStore
from cmdlookup.search import PRIMARY_CONTENT_TYPE
from cmdlookup.seed import load_legacy_commands, load_seed_file
from cmdlookup.sqlite_store import SqliteCommandStore

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable, Sequence

    from cmdlookup.config import Settings
    from cmdlookup.models.command import Command
    from cmdlookup.protocols import BridgeProtocol, CommandServiceProtocol, CommandStoreProtocol

log = structlog.get_logger()

T = TypeVar("T")


class StoreBackend(StrEnum):
    SQLITE = "sqlite"
    MEMORY = "memory"


class ProcessRole(StrEnum):
    HOST = "host"
    DISPLAY = "display"


class HostCommandService:
    """Host-process facade over the store chosen at startup."""

    role = ProcessRole.HOST

    def __init__(
        self,
        store: CommandStoreProtocol,
        backend: StoreBackend,
        *,
        database: Database | None = None,
        seed: Sequence[Command] | None = None,
        default_limit: int = 10,
        max_limit: int = 100,
    ) -> None:
        self._store = store
        self._backend = backend
        self.database = database
        self._seed = seed
        self._default_limit = default_limit
        self._max_limit = max_limit
        self._initialized = False
        self._init_lock = asyncio.Lock()

    @property
    def backend(self) -> StoreBackend:
        return self._backend

    @property
    def store(self) -> CommandStoreProtocol:
        return self._store

    async def initialize(self) -> None:
        """Seed an empty store with the legacy list. Runs once."""
        async with self._init_lock:
            if self._initialized:
                return
            count = await self._store.get_command_count()
            if count == 0:
                seed = list(self._seed) if self._seed is not None else load_legacy_commands()
                imported = await self._store.import_commands(seed)
                log.info(
                    "legacy_import_complete",
                    backend=self._backend,
                    imported=imported,
                    total=len(seed),
                )
            self._initialized = True

    async def close(self) -> None:
        if self.database is not None:
            await self.database.close()

    def _limit(self, limit: int | None) -> int:
        if limit is None:
            return self._default_limit
        return max(1, min(limit, self._max_limit))

    # ------------------------------------------------------------------
    # Facade contract
    # ------------------------------------------------------------------

    async def search_commands(self, query: str, limit: int | None = None) -> list[Command]:
        await self.initialize()
        if not query.strip():
            return await self._store.get_recent_commands(self._limit(limit))
        return await self._store.search_commands(query, self._limit(limit))

    async def get_command_by_name(self, name: str) -> Command | None:
        await self.initialize()
        return await self._store.get_command_by_name(name)

    async def save_command(self, command: Command) -> bool:
        await self.initialize()
        return await self._store.save_command(command)

    async def get_recent_commands(self, limit: int | None = None) -> list[Command]:
        await self.initialize()
        return await self._store.get_recent_commands(self._limit(limit))

    async def get_command_count(self) -> int:
        await self.initialize()
        return await self._store.get_command_count()

    async def log_command_usage(self, command_id: int | None, raw_input: str) -> bool:
        await self.initialize()
        return await self._store.log_command_usage(command_id, raw_input)

    # ------------------------------------------------------------------
    # Host-only extras
    # ------------------------------------------------------------------

    async def get_command_content(
        self, command_id: int, content_type: str = PRIMARY_CONTENT_TYPE
    ) -> str | None:
        await self.initialize()
        return await self._store.get_command_content(command_id, content_type)

    async def save_command_content(
        self,
        command_id: int,
        content: str,
        content_type: str = PRIMARY_CONTENT_TYPE,
        format: str = "markdown",
    ) -> bool:
        await self.initialize()
        return await self._store.save_command_content(command_id, content, content_type, format)

    async def import_commands(self, commands: Iterable[Command]) -> int:
        await self.initialize()
        return await self._store.import_commands(commands)

    async def get_command_names(self) -> list[str]:
        await self.initialize()
        return await self._store.get_command_names()

    async def get_commands_by_category(self, category: str) -> list[Command]:
        await self.initialize()
        return await self._store.get_commands_by_category(category)


class DisplayCommandService:
    """Display-process facade: forwards over the bridge, degrades locally."""

    role = ProcessRole.DISPLAY

    def __init__(
        self,
        bridge: BridgeProtocol,
        *,
        fallback: Sequence[Command] | None = None,
        default_limit: int = 10,
    ) -> None:
        self._bridge = bridge
        self._fallback = list(fallback) if fallback is not None else load_legacy_commands()
        self._default_limit = default_limit

    async def _forward(
        self,
        operation: str,
        call: Callable[[], Awaitable[T]],
        degraded: Callable[[], T],
    ) -> T:
        try:
            return await call()
        except CommandLookupError as exc:
            log.warning(
                "bridge_call_failed",
                operation=operation,
                code=exc.code,
                message=exc.message,
            )
            return degraded()

    async def search_commands(self, query: str, limit: int | None = None) -> list[Command]:
        limit = self._default_limit if limit is None else limit
        return await self._forward(
            "search_commands",
            lambda: self._bridge.search_commands(query, limit),
            lambda: self._local_search(query, limit),
        )

    async def get_command_by_name(self, name: str) -> Command | None:
        return await self._forward(
            "get_command_by_name",
            lambda: self._bridge.get_command_by_name(name),
            lambda: self._local_get(name),
        )

    async def save_command(self, command: Command) -> bool:
        return await self._forward(
            "save_command",
            lambda: self._bridge.save_command(command),
            lambda: False,
        )

    async def get_recent_commands(self, limit: int | None = None) -> list[Command]:
        limit = self._default_limit if limit is None else limit
        return await self._forward(
            "get_recent_commands",
            lambda: self._bridge.get_recent_commands(limit),
            lambda: self._local_search("", limit),
        )

    async def get_command_count(self) -> int:
        return await self._forward(
            "get_command_count",
            self._bridge.get_command_count,
            lambda: len(self._fallback),
        )

    async def log_command_usage(self, command_id: int | None, raw_input: str) -> bool:
        return await self._forward(
            "log_command_usage",
            lambda: self._bridge.log_command_usage(command_id, raw_input),
            lambda: False,
        )

    # ------------------------------------------------------------------
    # Local degraded path
    # ------------------------------------------------------------------

    def _local_search(self, query: str, limit: int) -> list[Command]:
        needle = query.strip().lower()
        matches = [
            c
            for c in self._fallback
            if not needle or needle in c.name.lower() or needle in c.description.lower()
        ]
        return [c.model_copy(deep=True) for c in matches[:limit]]

    def _local_get(self, name: str) -> Command | None:
        key = name.strip().lower()
        for command in self._fallback:
            if command.name.lower() == key:
                return command.model_copy(deep=True)
        return None


def _resolve_seed(settings: Settings, seed: Sequence[Command] | None) -> Sequence[Command] | None:
    if seed is not None or not settings.store.seed_path:
        return seed
    try:
        return load_seed_file(Path(settings.store.seed_path).expanduser())
    except (OSError, ValueError):
        log.warning("seed_file_invalid", path=settings.store.seed_path, exc_info=True)
        return None


async def open_host_service(
    settings: Settings,
    *,
    seed: Sequence[Command] | None = None,
) -> HostCommandService:
    """Select the host backend once and return an initialised facade.

    ``store.backend = "memory"`` skips SQLite entirely. Otherwise a failure
    to open the SQLite store is logged and the memory store is used for the
    rest of the process lifetime.
    """
    store: CommandStoreProtocol
    database: Database | None = None

    if settings.store.backend == StoreBackend.MEMORY:
        log.info("store_backend_selected", backend=StoreBackend.MEMORY, reason="configured")
        store, backend = MemoryCommandStore(), StoreBackend.MEMORY
    else:
        candidate = Database(
            settings.store.db_path,
            snapshot_path=settings.store.snapshot_path,
            cache_ttl_seconds=settings.cache.ttl_seconds,
        )
        try:
            await candidate.initialize()
        except CommandLookupError as exc:
            log.warning(
                "store_unavailable",
                fallback=StoreBackend.MEMORY,
                code=exc.code,
                message=exc.message,
            )
            store, backend = MemoryCommandStore(), StoreBackend.MEMORY
        else:
            database = candidate
            store = SqliteCommandStore(database, prefix_match=settings.search.prefix_match)
            backend = StoreBackend.SQLITE
            log.info("store_backend_selected", backend=backend, path=settings.store.db_path)

    service = HostCommandService(
        store,
        backend,
        database=database,
        seed=_resolve_seed(settings, seed),
        default_limit=settings.search.default_limit,
        max_limit=settings.search.max_limit,
    )
    await service.initialize()
    return service


async def open_command_service(
    role: ProcessRole,
    settings: Settings,
    *,
    bridge: BridgeProtocol | None = None,
) -> CommandServiceProtocol:
    """Build the facade for this process role."""
    if role == ProcessRole.HOST:
        return await open_host_service(settings)
    if bridge is None:
        raise ValueError("The display role needs a bridge to the host process")
    return DisplayCommandService(bridge, default_limit=settings.search.default_limit)
