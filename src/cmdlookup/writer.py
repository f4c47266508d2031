"""Transactional write path of the engine-backed store.

``save_command`` runs its six steps inside one ``Database.transaction()``:
resolve category, resolve command by name, update-or-insert, replace
examples, upsert the primary content body, append a history row. Any failing
step rolls the whole unit back and the caller sees ``False``.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import aiosqlite
import structlog

from cmdlookup.errors import CommandLookupError, ErrorCode
from cmdlookup.search import PRIMARY_CONTENT_TYPE

if TYPE_CHECKING:
    from cmdlookup.database import Database
    from cmdlookup.models.command import Command

log = structlog.get_logger()

HISTORY_EVENT_SAVE = "save"
HISTORY_EVENT_LOOKUP = "lookup"


def _now() -> str:
    return datetime.now(UTC).isoformat()


class CommandWriter:
    """Write side of the engine-backed store."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def save_command(self, command: Command) -> bool:
        """Upsert a command and its children keyed by name. All-or-nothing."""
        try:
            async with self._db.transaction():
                command_id = await self._write_command(command)
        except (aiosqlite.Error, CommandLookupError):
            log.warning("save_command_failed", name=command.name, exc_info=True)
            return False
        log.debug("command_saved", name=command.name, command_id=command_id)
        return True

    async def save_command_content(
        self,
        command_id: int,
        content: str,
        content_type: str = PRIMARY_CONTENT_TYPE,
        format: str = "markdown",
    ) -> bool:
        try:
            async with self._db.transaction():
                content_type_id = await self._content_type_id(content_type)
                await self._upsert_content(command_id, content_type_id, content, format)
        except (aiosqlite.Error, CommandLookupError):
            log.warning(
                "save_content_failed",
                command_id=command_id,
                content_type=content_type,
                exc_info=True,
            )
            return False
        return True

    async def log_command_usage(self, command_id: int | None, raw_input: str) -> bool:
        """Record that the user looked a command up."""
        try:
            async with self._db.transaction():
                await self._append_history(command_id, raw_input, HISTORY_EVENT_LOOKUP)
        except (aiosqlite.Error, CommandLookupError):
            log.warning("log_usage_failed", command_id=command_id, exc_info=True)
            return False
        return True

    # ------------------------------------------------------------------
    # Steps (caller holds the transaction)
    # ------------------------------------------------------------------

    async def _write_command(self, command: Command) -> int:
        category_id = await self._resolve_category(command.category)

        existing = await self._db.get("SELECT id FROM commands WHERE name = ?", (command.name,))
        if existing is not None:
            command_id: int = existing["id"]
            await self._db.run(
                "UPDATE commands SET summary = ?, stands_for = ?, category_id = ?, updated_at = ? "
                "WHERE id = ?",
                (command.summary, command.stands_for or None, category_id, _now(), command_id),
            )
        else:
            now = _now()
            result = await self._db.run(
                "INSERT INTO commands (name, summary, stands_for, category_id, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (command.name, command.summary, command.stands_for or None, category_id, now, now),
            )
            if result.last_insert_id is None:
                raise CommandLookupError(
                    code=ErrorCode.TRANSACTION_FAILED,
                    message=f"Insert of command '{command.name}' returned no row id",
                )
            command_id = result.last_insert_id

        await self._replace_examples(command_id, command.examples)

        if command.content:
            content_type_id = await self._content_type_id(PRIMARY_CONTENT_TYPE)
            await self._upsert_content(command_id, content_type_id, command.content, "markdown")

        # Saves are logged as their own event kind so they never pass for lookups.
        await self._append_history(command_id, command.name, HISTORY_EVENT_SAVE)
        return command_id

    async def _resolve_category(self, name: str) -> int | None:
        if not name:
            return None
        row = await self._db.get("SELECT id FROM categories WHERE name = ?", (name,))
        if row is not None:
            return row["id"]
        result = await self._db.run(
            "INSERT INTO categories (name, created_at) VALUES (?, ?)", (name, _now())
        )
        return result.last_insert_id

    async def _replace_examples(self, command_id: int, examples: list[str]) -> None:
        await self._db.run("DELETE FROM command_examples WHERE command_id = ?", (command_id,))
        for sort_order, example in enumerate(examples):
            await self._db.run(
                "INSERT INTO command_examples (command_id, example, sort_order) VALUES (?, ?, ?)",
                (command_id, example, sort_order),
            )

    async def _content_type_id(self, name: str) -> int:
        row = await self._db.get("SELECT id FROM content_types WHERE name = ?", (name,))
        if row is None:
            raise CommandLookupError(
                code=ErrorCode.TRANSACTION_FAILED,
                message=f"Unknown content type '{name}'",
            )
        return row["id"]

    async def _upsert_content(
        self, command_id: int, content_type_id: int, content: str, format: str
    ) -> None:
        now = _now()
        await self._db.run(
            "INSERT INTO command_content "
            "(command_id, content_type_id, content, format, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(command_id, content_type_id) DO UPDATE SET "
            "content = excluded.content, format = excluded.format, "
            "updated_at = excluded.updated_at",
            (command_id, content_type_id, content, format, now, now),
        )

    async def _append_history(self, command_id: int | None, raw_input: str, event: str) -> None:
        await self._db.run(
            "INSERT INTO command_history (command_id, raw_input, event, timestamp) "
            "VALUES (?, ?, ?, ?)",
            (command_id, raw_input, event, _now()),
        )
