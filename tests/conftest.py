"""Shared test fixtures for the cmdlookup test suite."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from cmdlookup.database import MEMORY_DB_PATH, Database
from cmdlookup.memory_store import MemoryCommandStore
from cmdlookup.models.command import Command
from cmdlookup.sqlite_store import SqliteCommandStore

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


@pytest.fixture()
def sample_commands() -> list[Command]:
    """Small command set with distinct names, categories and examples."""
    return [
        Command(
            name="tar",
            stands_for="tape archive",
            summary="Archiving utility",
            examples=["tar -cf archive.tar file1 file2", "tar -xf archive.tar"],
            category="common",
            content="# tar\n\n> Archiving utility.",
        ),
        Command(
            name="grep",
            stands_for="global regular expression print",
            summary="Find patterns in files using regular expressions",
            examples=["grep 'pattern' file.txt", "grep -r 'pattern' dir/"],
            category="common",
        ),
        Command(
            name="git-lfs",
            summary="Work with large files in Git repositories",
            examples=["git lfs install", "git lfs track '*.psd'"],
            category="common",
        ),
        Command(
            name="apt",
            summary="Debian package management utility",
            examples=["sudo apt update"],
            category="linux",
        ),
    ]


@pytest.fixture()
async def database() -> AsyncIterator[Database]:
    """Initialised in-memory SQLite record store."""
    db = Database(MEMORY_DB_PATH)
    await db.initialize()
    yield db
    await db.close()


@pytest.fixture()
def sqlite_store(database: Database) -> SqliteCommandStore:
    return SqliteCommandStore(database)


@pytest.fixture()
async def seeded_sqlite_store(
    sqlite_store: SqliteCommandStore, sample_commands: list[Command]
) -> SqliteCommandStore:
    await sqlite_store.import_commands(sample_commands)
    return sqlite_store


@pytest.fixture()
def memory_store() -> MemoryCommandStore:
    return MemoryCommandStore()


@pytest.fixture()
async def seeded_memory_store(
    memory_store: MemoryCommandStore, sample_commands: list[Command]
) -> MemoryCommandStore:
    await memory_store.import_commands(sample_commands)
    return memory_store
