"""End-to-end tests: display facade -> BridgeClient -> bridge app -> host facade."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx

from cmdlookup.bridge import BridgeClient
from cmdlookup.facade import DisplayCommandService
from cmdlookup.models.command import Command, CommandSource

if TYPE_CHECKING:
    from cmdlookup.facade import HostCommandService


class TestDisplayRoundTrip:
    async def test_search_through_bridge(self, display_service: DisplayCommandService) -> None:
        results = await display_service.search_commands("archive")

        assert results[0].name == "tar"
        assert results[0].source == CommandSource.SQLITE
        assert results[0].examples == ["tar -cf archive.tar file1 file2", "tar -xf archive.tar"]

    async def test_lookup_and_usage(
        self, display_service: DisplayCommandService, host_service: HostCommandService
    ) -> None:
        grep = await display_service.get_command_by_name("GREP")
        assert grep is not None

        assert await display_service.log_command_usage(grep.id, "GREP") is True
        recent = await host_service.get_recent_commands(1)
        assert recent[0].name == "grep"

    async def test_save_reaches_host_store(
        self, display_service: DisplayCommandService, host_service: HostCommandService
    ) -> None:
        saved = await display_service.save_command(
            Command(name="rsync", summary="Sync files", examples=["rsync -a src/ dst/"])
        )

        assert saved is True
        assert await display_service.get_command_count() == 5
        assert [c.name for c in await host_service.search_commands("rsync")] == ["rsync"]

    async def test_empty_query_lists_recent(self, display_service: DisplayCommandService) -> None:
        results = await display_service.search_commands("", limit=2)
        assert [c.name for c in results] == ["apt", "git-lfs"]


class TestHostUnreachable:
    async def test_falls_back_to_local_list(self) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with httpx.AsyncClient(
            transport=httpx.MockTransport(refuse), base_url="http://127.0.0.1:8765"
        ) as client:
            service = DisplayCommandService(BridgeClient(client))

            results = await service.search_commands("directory")
            count = await service.get_command_count()
            saved = await service.save_command(Command(name="rsync", summary="s"))

        assert "ls" in [c.name for c in results]
        assert all(c.source == CommandSource.LEGACY for c in results)
        assert count == 20
        assert saved is False
