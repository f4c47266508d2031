"""In-process command store used when the SQLite engine is unavailable.

Same contract as the engine-backed store, backed by plain ordered
collections. Nothing survives a restart, and nothing is synchronised: the
store assumes one actor at a time.

Search is a case-insensitive substring match over name, summary,
stands_for and examples, returned in insertion order. ``get_recent_commands``
ignores usage history and returns the first records in insertion order.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from cmdlookup.models.command import Command, CommandSource
from cmdlookup.search import PRIMARY_CONTENT_TYPE

if TYPE_CHECKING:
    from collections.abc import Iterable

log = structlog.get_logger()


def _matches(command: Command, needle: str) -> bool:
    return (
        needle in command.name.lower()
        or needle in command.summary.lower()
        or needle in command.stands_for.lower()
        or any(needle in example.lower() for example in command.examples)
    )


class MemoryCommandStore:
    """In-memory command store implementing CommandStoreProtocol."""

    def __init__(self) -> None:
        self._commands: list[Command] = []
        self._content: dict[tuple[int, str], str] = {}
        self._history: list[tuple[int | None, str]] = []

    @property
    def history(self) -> list[tuple[int | None, str]]:
        """Logged ``(command_id, raw_input)`` pairs, oldest first."""
        return list(self._history)

    async def search_commands(self, query: str, limit: int = 10) -> list[Command]:
        needle = query.strip().lower()
        if not needle:
            return await self.get_recent_commands(limit)
        results = [c for c in self._commands if _matches(c, needle)]
        return [c.model_copy(deep=True) for c in results[:limit]]

    async def get_recent_commands(self, limit: int = 10) -> list[Command]:
        return [c.model_copy(deep=True) for c in self._commands[:limit]]

    async def get_command_by_name(self, name: str) -> Command | None:
        index = self._find(name)
        if index is None:
            return None
        return self._commands[index].model_copy(deep=True)

    async def save_command(self, command: Command) -> bool:
        """Upsert by name: updates keep the existing id, inserts take max id + 1.

        An update without a body keeps the stored body.
        """
        index = self._find(command.name)
        update: dict[str, object] = {"source": CommandSource.MEMORY}
        if index is not None:
            previous = self._commands[index]
            command_id = previous.id
            if not command.content:
                update["content"] = previous.content
        else:
            command_id = max((c.id or 0 for c in self._commands), default=0) + 1
        update["id"] = command_id

        stored = command.model_copy(deep=True, update=update)
        if index is not None:
            self._commands[index] = stored
        else:
            self._commands.append(stored)

        if stored.content and command_id is not None:
            self._content[(command_id, PRIMARY_CONTENT_TYPE)] = stored.content
        return True

    async def get_command_content(
        self, command_id: int, content_type: str = PRIMARY_CONTENT_TYPE
    ) -> str | None:
        return self._content.get((command_id, content_type))

    async def save_command_content(
        self,
        command_id: int,
        content: str,
        content_type: str = PRIMARY_CONTENT_TYPE,
        format: str = "markdown",
    ) -> bool:
        self._content[(command_id, content_type)] = content
        if content_type == PRIMARY_CONTENT_TYPE:
            for command in self._commands:
                if command.id == command_id:
                    command.content = content
                    break
        return True

    async def log_command_usage(self, command_id: int | None, raw_input: str) -> bool:
        self._history.append((command_id, raw_input))
        return True

    async def import_commands(self, commands: Iterable[Command]) -> int:
        imported = 0
        for command in commands:
            await self.save_command(command)
            imported += 1
        log.info("commands_imported", backend="memory", imported=imported)
        return imported

    async def get_command_count(self) -> int:
        return len(self._commands)

    async def get_command_names(self) -> list[str]:
        return [c.name for c in self._commands]

    async def get_commands_by_category(self, category: str) -> list[Command]:
        return [c.model_copy(deep=True) for c in self._commands if c.category == category]

    def _find(self, name: str) -> int | None:
        key = name.strip().lower()
        for index, command in enumerate(self._commands):
            if command.name.lower() == key:
                return index
        return None
