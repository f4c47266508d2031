"""Engine-backed command store: FTS5 search plus the transactional write path."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from cmdlookup.search import PRIMARY_CONTENT_TYPE, CommandIndex
from cmdlookup.writer import CommandWriter

if TYPE_CHECKING:
    from collections.abc import Iterable

    from cmdlookup.database import Database
    from cmdlookup.models.command import Command

log = structlog.get_logger()


class SqliteCommandStore:
    """SQLite-backed command store implementing CommandStoreProtocol."""

    def __init__(self, database: Database, *, prefix_match: bool = True) -> None:
        self.database = database
        self._index = CommandIndex(database, prefix_match=prefix_match)
        self._writer = CommandWriter(database)

    async def search_commands(self, query: str, limit: int = 10) -> list[Command]:
        return await self._index.search(query, limit)

    async def get_recent_commands(self, limit: int = 10) -> list[Command]:
        return await self._index.get_recent(limit)

    async def get_command_by_name(self, name: str) -> Command | None:
        return await self._index.get_by_name(name)

    async def save_command(self, command: Command) -> bool:
        return await self._writer.save_command(command)

    async def get_command_content(
        self, command_id: int, content_type: str = PRIMARY_CONTENT_TYPE
    ) -> str | None:
        return await self._index.get_content(command_id, content_type)

    async def save_command_content(
        self,
        command_id: int,
        content: str,
        content_type: str = PRIMARY_CONTENT_TYPE,
        format: str = "markdown",
    ) -> bool:
        return await self._writer.save_command_content(command_id, content, content_type, format)

    async def log_command_usage(self, command_id: int | None, raw_input: str) -> bool:
        return await self._writer.log_command_usage(command_id, raw_input)

    async def import_commands(self, commands: Iterable[Command]) -> int:
        """Save each record through the write path. Returns how many succeeded."""
        imported = 0
        failed = 0
        for command in commands:
            if await self._writer.save_command(command):
                imported += 1
            else:
                failed += 1
        log.info("commands_imported", backend="sqlite", imported=imported, failed=failed)
        return imported

    async def get_command_count(self) -> int:
        return await self.database.get_command_count()

    async def get_command_names(self) -> list[str]:
        return await self._index.get_names()

    async def get_commands_by_category(self, category: str) -> list[Command]:
        return await self._index.get_by_category(category)
