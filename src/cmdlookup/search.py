"""Full-text search over the command store.

Queries go to the ``command_search`` FTS5 table and are joined back to the
relational rows. Results are ordered by FTS5 ``rank`` (bm25, best first) with
no secondary tie-break. Query failures (including a closed store) are logged
and yield empty results.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

import aiosqlite
import structlog

from cmdlookup.errors import CommandLookupError
from cmdlookup.models.command import Command, CommandSource

if TYPE_CHECKING:
    from collections.abc import Sequence

    from cmdlookup.database import Database

log = structlog.get_logger()

PRIMARY_CONTENT_TYPE = "tldr"

_DISALLOWED_CHARS = re.compile(r'[^\w\s*"\-]')
_WHITESPACE_RUN = re.compile(r"\s+")
_WORD_CHAR = re.compile(r"\w")
_TERM = re.compile(r'"[^"]*"\*?|[^\s"]+')

_COMMAND_COLUMNS = f"""
    c.id,
    c.name,
    c.stands_for,
    c.summary,
    cat.name AS category,
    (SELECT cc.content
       FROM command_content cc
       JOIN content_types ct ON ct.id = cc.content_type_id
      WHERE cc.command_id = c.id AND ct.name = '{PRIMARY_CONTENT_TYPE}'
      LIMIT 1) AS tldr_content
"""

_SEARCH_SQL = f"""
SELECT {_COMMAND_COLUMNS}
FROM command_search
JOIN commands c ON c.id = command_search.rowid
LEFT JOIN categories cat ON cat.id = c.category_id
WHERE command_search MATCH ?
ORDER BY rank
LIMIT ?
"""

# Only explicit lookups count as usage; history rows written by saves don't.
_RECENT_SQL = f"""
SELECT {_COMMAND_COLUMNS}
FROM commands c
LEFT JOIN categories cat ON cat.id = c.category_id
LEFT JOIN (
    SELECT command_id, MAX(timestamp) AS last_used
    FROM command_history
    WHERE event = 'lookup'
    GROUP BY command_id
) h ON h.command_id = c.id
ORDER BY h.last_used IS NULL, h.last_used DESC, c.name COLLATE NOCASE ASC
LIMIT ?
"""

_BY_NAME_SQL = f"""
SELECT {_COMMAND_COLUMNS}
FROM commands c
LEFT JOIN categories cat ON cat.id = c.category_id
WHERE c.name = ?
"""

_BY_CATEGORY_SQL = f"""
SELECT {_COMMAND_COLUMNS}
FROM commands c
JOIN categories cat ON cat.id = c.category_id
WHERE cat.name = ?
ORDER BY c.name COLLATE NOCASE ASC
"""


def sanitize_query(raw: str) -> str:
    """Reduce arbitrary user input to characters FTS5 can parse.

    Steps (order matters):
      1. Trim
      2. Replace everything but word chars, whitespace, ``*``, ``"`` and ``-``
      3. Collapse whitespace runs
    """
    if not raw:
        return ""
    cleaned = _DISALLOWED_CHARS.sub(" ", raw.strip())
    return _WHITESPACE_RUN.sub(" ", cleaned).strip()


def build_match_expression(sanitized: str, *, prefix: bool = True) -> str:
    """Turn a sanitized query into an FTS5 MATCH expression.

    Balanced double quotes mark FTS5 phrases, which are kept as written
    (with an optional trailing ``*``); an odd quote count drops every quote.
    Each bare term is quoted (so ``-`` inside a name like ``git-lfs`` or a
    stray ``AND`` is not read as an operator), a trailing ``*`` keeps its
    prefix meaning, and with ``prefix`` a bare last term always matches as a
    prefix so partially typed names still hit.

    Returns an empty string when no searchable term is left.
    """
    if sanitized.count('"') % 2:
        sanitized = sanitized.replace('"', " ")

    tokens = [t for t in _TERM.findall(sanitized) if _WORD_CHAR.search(t)]
    terms: list[str] = []
    for position, token in enumerate(tokens, start=1):
        if token.startswith('"'):
            terms.append(token)
            continue
        word = token.replace("*", "")
        term = f'"{word}"'
        if token.endswith("*") or (prefix and position == len(tokens)):
            term += "*"
        terms.append(term)
    return " ".join(terms)


class CommandIndex:
    """Read side of the engine-backed store."""

    def __init__(self, database: Database, *, prefix_match: bool = True) -> None:
        self._db = database
        self._prefix_match = prefix_match

    async def search(self, query: str, limit: int = 10) -> list[Command]:
        """Ranked full-text search. An empty effective query lists recent commands."""
        cleaned = sanitize_query(query)
        expression = build_match_expression(cleaned, prefix=self._prefix_match) if cleaned else ""
        if not expression:
            return await self.get_recent(limit)

        try:
            rows = await self._db.all(_SEARCH_SQL, (expression, limit))
            commands = await self._to_commands(rows)
        except (aiosqlite.Error, CommandLookupError):
            log.warning("search_failed", query=query, expression=expression, exc_info=True)
            return []
        log.debug("search_complete", expression=expression, result_count=len(commands))
        return commands

    async def get_recent(self, limit: int = 10) -> list[Command]:
        """Most recently looked-up commands first, then the rest alphabetically."""
        try:
            rows = await self._db.all(_RECENT_SQL, (limit,))
            return await self._to_commands(rows)
        except (aiosqlite.Error, CommandLookupError):
            log.warning("recent_commands_failed", exc_info=True)
            return []

    async def get_by_name(self, name: str) -> Command | None:
        try:
            row = await self._db.get(_BY_NAME_SQL, (name.strip(),))
            if row is None:
                return None
            commands = await self._to_commands([row])
        except (aiosqlite.Error, CommandLookupError):
            log.warning("get_command_failed", name=name, exc_info=True)
            return None
        return commands[0]

    async def get_by_category(self, category: str) -> list[Command]:
        try:
            rows = await self._db.all(_BY_CATEGORY_SQL, (category,))
            return await self._to_commands(rows)
        except (aiosqlite.Error, CommandLookupError):
            log.warning("category_commands_failed", category=category, exc_info=True)
            return []

    async def get_names(self) -> list[str]:
        try:
            rows = await self._db.all("SELECT name FROM commands ORDER BY name COLLATE NOCASE")
        except (aiosqlite.Error, CommandLookupError):
            log.warning("command_names_failed", exc_info=True)
            return []
        return [row["name"] for row in rows]

    async def get_content(
        self, command_id: int, content_type: str = PRIMARY_CONTENT_TYPE
    ) -> str | None:
        try:
            row = await self._db.get(
                "SELECT cc.content FROM command_content cc "
                "JOIN content_types ct ON ct.id = cc.content_type_id "
                "WHERE cc.command_id = ? AND ct.name = ?",
                (command_id, content_type),
            )
        except (aiosqlite.Error, CommandLookupError):
            log.warning(
                "get_content_failed",
                command_id=command_id,
                content_type=content_type,
                exc_info=True,
            )
            return None
        return row["content"] if row is not None else None

    # ------------------------------------------------------------------
    # Row assembly
    # ------------------------------------------------------------------

    async def _to_commands(self, rows: Sequence[aiosqlite.Row]) -> list[Command]:
        if not rows:
            return []
        examples = await self._load_examples([row["id"] for row in rows])
        return [_row_to_command(row, examples.get(row["id"], [])) for row in rows]

    async def _load_examples(self, command_ids: list[int]) -> dict[int, list[str]]:
        placeholders = ", ".join("?" for _ in command_ids)
        rows = await self._db.all(
            f"SELECT command_id, example FROM command_examples "
            f"WHERE command_id IN ({placeholders}) "
            f"ORDER BY command_id, sort_order, id",
            command_ids,
        )
        by_command: dict[int, list[str]] = {}
        for row in rows:
            by_command.setdefault(row["command_id"], []).append(row["example"])
        return by_command


def _row_to_command(row: aiosqlite.Row, examples: list[str]) -> Command:
    """Build a Command; missing optional columns become empty values."""
    return Command(
        id=row["id"],
        name=row["name"],
        stands_for=row["stands_for"] or "",
        summary=row["summary"] or "",
        description=row["summary"] or "",
        category=row["category"] or "",
        examples=examples,
        content=row["tldr_content"],
        source=CommandSource.SQLITE,
    )
