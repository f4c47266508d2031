"""Unit tests for the transactional write path and index consistency."""

from __future__ import annotations

from typing import TYPE_CHECKING

from cmdlookup.models.command import Command

if TYPE_CHECKING:
    from cmdlookup.database import Database
    from cmdlookup.sqlite_store import SqliteCommandStore


async def _history(database: Database) -> list[tuple[int | None, str, str]]:
    rows = await database.all("SELECT command_id, raw_input, event FROM command_history ORDER BY id")
    return [(row["command_id"], row["raw_input"], row["event"]) for row in rows]


class TestSaveCommand:
    async def test_insert_assigns_id(self, sqlite_store: SqliteCommandStore) -> None:
        assert await sqlite_store.save_command(Command(name="tar", summary="Archive")) is True

        stored = await sqlite_store.get_command_by_name("tar")
        assert stored is not None
        assert stored.id is not None
        assert await sqlite_store.get_command_count() == 1

    async def test_update_is_keyed_by_name(self, sqlite_store: SqliteCommandStore) -> None:
        await sqlite_store.save_command(Command(name="tar", summary="Archive"))
        first = await sqlite_store.get_command_by_name("tar")

        await sqlite_store.save_command(Command(name="TAR", summary="Tape archiver"))
        second = await sqlite_store.get_command_by_name("tar")

        assert first is not None and second is not None
        assert second.id == first.id
        assert second.summary == "Tape archiver"
        assert await sqlite_store.get_command_count() == 1

    async def test_examples_replaced_on_update(self, sqlite_store: SqliteCommandStore) -> None:
        await sqlite_store.save_command(Command(name="tar", summary="s", examples=["a", "b"]))
        await sqlite_store.save_command(Command(name="tar", summary="s", examples=["c"]))

        stored = await sqlite_store.get_command_by_name("tar")
        assert stored is not None
        assert stored.examples == ["c"]

    async def test_empty_examples_clear_existing(self, sqlite_store: SqliteCommandStore) -> None:
        await sqlite_store.save_command(Command(name="tar", summary="s", examples=["a"]))
        await sqlite_store.save_command(Command(name="tar", summary="s"))

        stored = await sqlite_store.get_command_by_name("tar")
        assert stored is not None
        assert stored.examples == []

    async def test_category_created_on_demand(
        self, sqlite_store: SqliteCommandStore, database: Database
    ) -> None:
        await sqlite_store.save_command(Command(name="nc", summary="s", category="network"))
        await sqlite_store.save_command(Command(name="ssh", summary="s", category="network"))

        rows = await database.all("SELECT id FROM categories WHERE name = 'network'")
        assert len(rows) == 1
        assert [c.name for c in await sqlite_store.get_commands_by_category("network")] == [
            "nc",
            "ssh",
        ]

    async def test_no_category_reads_back_empty(self, sqlite_store: SqliteCommandStore) -> None:
        await sqlite_store.save_command(Command(name="tar", summary="s"))
        stored = await sqlite_store.get_command_by_name("tar")
        assert stored is not None
        assert stored.category == ""

    async def test_content_kept_when_update_has_none(
        self, sqlite_store: SqliteCommandStore
    ) -> None:
        await sqlite_store.save_command(Command(name="tar", summary="s", content="# tar v1"))
        await sqlite_store.save_command(Command(name="tar", summary="s2"))

        stored = await sqlite_store.get_command_by_name("tar")
        assert stored is not None
        assert stored.content == "# tar v1"

    async def test_content_upserted(self, sqlite_store: SqliteCommandStore) -> None:
        await sqlite_store.save_command(Command(name="tar", summary="s", content="# v1"))
        await sqlite_store.save_command(Command(name="tar", summary="s", content="# v2"))

        stored = await sqlite_store.get_command_by_name("tar")
        assert stored is not None
        assert stored.content == "# v2"

    async def test_save_appends_save_event(
        self, sqlite_store: SqliteCommandStore, database: Database
    ) -> None:
        await sqlite_store.save_command(Command(name="tar", summary="s"))
        stored = await sqlite_store.get_command_by_name("tar")
        assert stored is not None

        assert await _history(database) == [(stored.id, "tar", "save")]

    async def test_failure_rolls_back_every_step(
        self, sqlite_store: SqliteCommandStore, database: Database
    ) -> None:
        # Without the primary content type, step 5 fails after the insert ran.
        await database.run("DELETE FROM content_types WHERE name = 'tldr'")

        saved = await sqlite_store.save_command(
            Command(name="tar", summary="s", examples=["tar -x"], category="archives", content="x")
        )

        assert saved is False
        assert await sqlite_store.get_command_count() == 0
        assert await database.all("SELECT id FROM command_examples") == []
        assert await database.all("SELECT id FROM categories WHERE name = 'archives'") == []
        assert await _history(database) == []
        assert await sqlite_store.search_commands("tar") == []

    async def test_failed_update_keeps_previous_row(
        self, sqlite_store: SqliteCommandStore, database: Database
    ) -> None:
        await sqlite_store.save_command(Command(name="tar", summary="old", examples=["a"]))
        await database.run("DELETE FROM content_types WHERE name = 'tldr'")

        saved = await sqlite_store.save_command(
            Command(name="tar", summary="new", examples=["b"], content="x")
        )

        stored = await sqlite_store.get_command_by_name("tar")
        assert saved is False
        assert stored is not None
        assert stored.summary == "old"
        assert stored.examples == ["a"]


class TestImport:
    async def test_import_counts_successes(
        self, sqlite_store: SqliteCommandStore, sample_commands: list[Command]
    ) -> None:
        assert await sqlite_store.import_commands(sample_commands) == len(sample_commands)
        assert await sqlite_store.get_command_count() == len(sample_commands)

    async def test_import_is_an_upsert(
        self, sqlite_store: SqliteCommandStore, sample_commands: list[Command]
    ) -> None:
        await sqlite_store.import_commands(sample_commands)
        await sqlite_store.import_commands(sample_commands)
        assert await sqlite_store.get_command_count() == len(sample_commands)


class TestContentAndUsage:
    async def test_save_content_by_type(self, sqlite_store: SqliteCommandStore) -> None:
        await sqlite_store.save_command(Command(name="tar", summary="s"))
        tar = await sqlite_store.get_command_by_name("tar")
        assert tar is not None and tar.id is not None

        assert await sqlite_store.save_command_content(tar.id, "TAR(1)", "manpage") is True
        assert await sqlite_store.get_command_content(tar.id, "manpage") == "TAR(1)"

    async def test_unknown_content_type_fails(self, sqlite_store: SqliteCommandStore) -> None:
        await sqlite_store.save_command(Command(name="tar", summary="s"))
        tar = await sqlite_store.get_command_by_name("tar")
        assert tar is not None and tar.id is not None

        assert await sqlite_store.save_command_content(tar.id, "x", "wiki") is False

    async def test_log_usage_writes_lookup_event(
        self, sqlite_store: SqliteCommandStore, database: Database
    ) -> None:
        assert await sqlite_store.log_command_usage(None, "unknown-cmd") is True
        assert await _history(database) == [(None, "unknown-cmd", "lookup")]


class TestIndexConsistency:
    async def test_update_reindexes_summary(self, sqlite_store: SqliteCommandStore) -> None:
        await sqlite_store.save_command(Command(name="tar", summary="walrus"))
        await sqlite_store.save_command(Command(name="tar", summary="penguin"))

        assert await sqlite_store.search_commands("walrus") == []
        assert [c.name for c in await sqlite_store.search_commands("penguin")] == ["tar"]

    async def test_replaced_examples_leave_index(self, sqlite_store: SqliteCommandStore) -> None:
        await sqlite_store.save_command(Command(name="tar", summary="s", examples=["walrus"]))
        await sqlite_store.save_command(Command(name="tar", summary="s", examples=["penguin"]))

        assert await sqlite_store.search_commands("walrus") == []
        assert [c.name for c in await sqlite_store.search_commands("penguin")] == ["tar"]

    async def test_deleted_command_leaves_index(
        self, sqlite_store: SqliteCommandStore, database: Database
    ) -> None:
        await sqlite_store.save_command(Command(name="tar", summary="walrus", examples=["x"]))
        await database.run("DELETE FROM commands WHERE name = 'tar'")

        assert await sqlite_store.search_commands("walrus") == []
        assert await database.all("SELECT id FROM command_examples") == []

    async def test_category_rename_reindexes(
        self, sqlite_store: SqliteCommandStore, database: Database
    ) -> None:
        await sqlite_store.save_command(Command(name="tar", summary="s", category="archives"))
        await database.run("UPDATE categories SET name = 'compression' WHERE name = 'archives'")

        assert [c.name for c in await sqlite_store.search_commands("compression")] == ["tar"]

    async def test_category_delete_nulls_reference(
        self, sqlite_store: SqliteCommandStore, database: Database
    ) -> None:
        await sqlite_store.save_command(Command(name="tar", summary="s", category="archives"))
        async with database.transaction():
            await database.run("DELETE FROM categories WHERE name = 'archives'")

        stored = await sqlite_store.get_command_by_name("tar")
        assert stored is not None
        assert stored.category == ""
        rows = await database.all("SELECT category FROM command_search")
        assert [row["category"] for row in rows] == [None]
