"""Seed data: the bundled legacy command list and the flat import format.

Import records are JSON objects of the shape
``{name, standsFor, summary, description, category, examples, content}``
(as produced by the tldr-pages ingestion step) and map one-to-one onto
``Command``. The bundled list is also what the display process searches
when the host cannot be reached.
"""

from __future__ import annotations

from importlib import resources
from typing import TYPE_CHECKING

import structlog
from pydantic import TypeAdapter

from cmdlookup.models.command import Command, CommandSource

if TYPE_CHECKING:
    from pathlib import Path

log = structlog.get_logger()

_RECORDS = TypeAdapter(list[Command])


def parse_seed_records(payload: bytes | str) -> list[Command]:
    """Validate a JSON array of import records. Raises ``ValueError`` on bad input."""
    commands = _RECORDS.validate_json(payload)
    return [c.model_copy(update={"id": None, "source": CommandSource.LEGACY}) for c in commands]


def load_legacy_commands() -> list[Command]:
    """Return a fresh copy of the bundled legacy command list."""
    payload = resources.files("cmdlookup").joinpath("data/legacy_commands.json").read_bytes()
    return parse_seed_records(payload)


def load_seed_file(path: Path) -> list[Command]:
    """Load import records from ``path``."""
    commands = parse_seed_records(path.read_bytes())
    log.info("seed_file_loaded", path=str(path), records=len(commands))
    return commands
