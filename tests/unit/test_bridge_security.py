"""Tests for BridgeSecurityMiddleware.

Each test exercises the middleware directly via httpx's ASGI transport so no
real server is started. The inner app is a trivial 200-OK app that never
runs if the middleware short-circuits.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest

from cmdlookup.bridge import BridgeSecurityMiddleware

if TYPE_CHECKING:
    from starlette.types import ASGIApp, Receive, Scope, Send


async def _ok_app(scope: Scope, receive: Receive, send: Send) -> None:
    await send({"type": "http.response.start", "status": 200, "headers": []})
    await send({"type": "http.response.body", "body": b"ok"})


def _client(app: ASGIApp) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://localhost",
    )


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


async def test_auth_disabled_allows_any_request() -> None:
    app = BridgeSecurityMiddleware(_ok_app, auth_enabled=False)
    async with _client(app) as client:
        response = await client.post("/db/get-command-count")
    assert response.status_code == 200


async def test_auth_enabled_rejects_missing_key() -> None:
    app = BridgeSecurityMiddleware(_ok_app, auth_enabled=True, auth_key="secret")
    async with _client(app) as client:
        response = await client.post("/db/get-command-count")
    assert response.status_code == 401


async def test_auth_enabled_rejects_wrong_key() -> None:
    app = BridgeSecurityMiddleware(_ok_app, auth_enabled=True, auth_key="secret")
    async with _client(app) as client:
        response = await client.post(
            "/db/get-command-count", headers={"Authorization": "Bearer wrong"}
        )
    assert response.status_code == 401


async def test_auth_enabled_accepts_correct_key() -> None:
    app = BridgeSecurityMiddleware(_ok_app, auth_enabled=True, auth_key="secret")
    async with _client(app) as client:
        response = await client.post(
            "/db/get-command-count", headers={"Authorization": "Bearer secret"}
        )
    assert response.status_code == 200


# ---------------------------------------------------------------------------
# Origin
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "origin",
    ["http://localhost", "http://localhost:5173", "https://127.0.0.1:8765"],
)
async def test_localhost_origins_allowed(origin: str) -> None:
    app = BridgeSecurityMiddleware(_ok_app, auth_enabled=False)
    async with _client(app) as client:
        response = await client.post("/db/get-command-count", headers={"Origin": origin})
    assert response.status_code == 200


@pytest.mark.parametrize(
    "origin",
    ["http://evil.example", "http://localhost.evil.example", "http://192.168.1.10"],
)
async def test_foreign_origins_forbidden(origin: str) -> None:
    app = BridgeSecurityMiddleware(_ok_app, auth_enabled=False)
    async with _client(app) as client:
        response = await client.post("/db/get-command-count", headers={"Origin": origin})
    assert response.status_code == 403


async def test_missing_origin_allowed() -> None:
    app = BridgeSecurityMiddleware(_ok_app, auth_enabled=False)
    async with _client(app) as client:
        response = await client.post("/db/get-command-count")
    assert response.status_code == 200
