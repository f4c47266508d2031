"""Integration test fixtures.

Wires the real host facade (in-memory SQLite) behind the bridge app and
connects a real BridgeClient to it through httpx's ASGI transport, so a
display-side call travels the full route without a socket.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest

from cmdlookup.bridge import BridgeClient, build_bridge_app
from cmdlookup.database import MEMORY_DB_PATH, Database
from cmdlookup.facade import DisplayCommandService, HostCommandService, StoreBackend
from cmdlookup.sqlite_store import SqliteCommandStore

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from starlette.types import ASGIApp

    from cmdlookup.models.command import Command


@pytest.fixture()
async def host_service(sample_commands: list[Command]) -> AsyncIterator[HostCommandService]:
    database = Database(MEMORY_DB_PATH)
    await database.initialize()
    service = HostCommandService(
        SqliteCommandStore(database),
        StoreBackend.SQLITE,
        database=database,
        seed=sample_commands,
    )
    await service.initialize()
    yield service
    await service.close()


@pytest.fixture()
def bridge_app(host_service: HostCommandService) -> ASGIApp:
    return build_bridge_app(host_service)


@pytest.fixture()
async def http_client(bridge_app: ASGIApp) -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=bridge_app),
        base_url="http://127.0.0.1:8765",
    ) as client:
        yield client


@pytest.fixture()
def display_service(http_client: httpx.AsyncClient) -> DisplayCommandService:
    return DisplayCommandService(BridgeClient(http_client), fallback=[])
