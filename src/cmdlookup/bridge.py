"""Remote call boundary between the display process and the host process.

Host side: ``build_bridge_app`` exposes the facade as JSON POST routes under
``/db/``. Every response body is ``{"result": ...}``; a handler whose service
call fails answers with the operation's safe default (``[]``, ``null``, ``0``,
``false``) rather than an error. Malformed requests get HTTP 400 with the
``CommandLookupError`` envelope.

Display side: ``BridgeClient`` posts to those routes over httpx and raises
``CommandLookupError(BRIDGE_FAILED)`` for anything that is not a well-formed
answer, which the display facade turns into its local fallback.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel
from starlette.applications import Starlette
from starlette.datastructures import Headers
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from cmdlookup import __version__
from cmdlookup.errors import CommandLookupError, ErrorCode
from cmdlookup.models.command import Command

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from starlette.requests import Request
    from starlette.types import ASGIApp, Lifespan, Receive, Scope, Send

    from cmdlookup.config import BridgeSettings
    from cmdlookup.protocols import CommandServiceProtocol

log = structlog.get_logger()

_LOCALHOST_ORIGIN = re.compile(r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$")

_COMMANDS = TypeAdapter(list[Command])


# ---------------------------------------------------------------------------
# Wire payloads
# ---------------------------------------------------------------------------


class _Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SearchRequest(_Payload):
    query: str = ""
    limit: int | None = None


class NameRequest(_Payload):
    name: str


class LimitRequest(_Payload):
    limit: int | None = None


class EmptyRequest(_Payload):
    pass


class UsageRequest(_Payload):
    command_id: int | None = None
    raw_input: str


class SaveRequest(_Payload):
    command: Command


def _encode(value: Any) -> Any:
    if isinstance(value, Command):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, list):
        return [_encode(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# Host side
# ---------------------------------------------------------------------------


class BridgeSecurityMiddleware:
    """Pure ASGI middleware guarding the bridge routes.

    Enforces two checks on every HTTP request:
    1. Optional bearer key authentication.
    2. Origin validation (localhost only) to prevent DNS rebinding.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        auth_enabled: bool,
        auth_key: str | None = None,
    ) -> None:
        self.app = app
        self.auth_enabled = auth_enabled
        self.auth_key = auth_key

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http":
            headers = Headers(scope=scope)

            if self.auth_enabled:
                auth_header = headers.get("authorization", "")
                if not auth_header.startswith("Bearer ") or auth_header[7:] != self.auth_key:
                    await Response("Unauthorized", status_code=401)(scope, receive, send)
                    return

            origin = headers.get("origin", "")
            if origin and not _LOCALHOST_ORIGIN.match(origin):
                await Response("Forbidden", status_code=403)(scope, receive, send)
                return

        await self.app(scope, receive, send)


def _endpoint(
    operation: str,
    payload: type[_Payload],
    call: Callable[[CommandServiceProtocol, Any], Awaitable[Any]],
    default: Any,
) -> Callable[[Request], Awaitable[Response]]:
    async def endpoint(request: Request) -> Response:
        try:
            params = payload.model_validate_json(await request.body() or b"{}")
        except ValidationError as exc:
            error = CommandLookupError(
                code=ErrorCode.INVALID_INPUT,
                message=f"Malformed {operation} request: {exc.error_count()} invalid field(s)",
                recoverable=False,
            )
            log.warning(
                "bridge_invalid_request",
                operation=operation,
                errors=exc.errors(include_url=False, include_context=False),
            )
            return JSONResponse(error.to_dict(), status_code=400)

        try:
            result = await call(request.app.state.service, params)
        except Exception:
            log.error("bridge_handler_error", operation=operation, exc_info=True)
            result = default
        return JSONResponse({"result": _encode(result)})

    return endpoint


_ROUTES: tuple[Route, ...] = (
    Route(
        "/db/search-commands",
        _endpoint(
            "search_commands",
            SearchRequest,
            lambda service, p: service.search_commands(p.query, p.limit),
            [],
        ),
        methods=["POST"],
    ),
    Route(
        "/db/get-command-by-name",
        _endpoint(
            "get_command_by_name",
            NameRequest,
            lambda service, p: service.get_command_by_name(p.name),
            None,
        ),
        methods=["POST"],
    ),
    Route(
        "/db/get-recent-commands",
        _endpoint(
            "get_recent_commands",
            LimitRequest,
            lambda service, p: service.get_recent_commands(p.limit),
            [],
        ),
        methods=["POST"],
    ),
    Route(
        "/db/get-command-count",
        _endpoint(
            "get_command_count",
            EmptyRequest,
            lambda service, p: service.get_command_count(),
            0,
        ),
        methods=["POST"],
    ),
    Route(
        "/db/log-command-usage",
        _endpoint(
            "log_command_usage",
            UsageRequest,
            lambda service, p: service.log_command_usage(p.command_id, p.raw_input),
            False,
        ),
        methods=["POST"],
    ),
    Route(
        "/db/save-command",
        _endpoint(
            "save_command",
            SaveRequest,
            lambda service, p: service.save_command(p.command),
            False,
        ),
        methods=["POST"],
    ),
)


def build_bridge_app(
    service: CommandServiceProtocol | None = None,
    *,
    auth_enabled: bool = False,
    auth_key: str | None = None,
    lifespan: Lifespan[Starlette] | None = None,
) -> ASGIApp:
    """Build the host-side ASGI app.

    Pass ``service`` directly, or a ``lifespan`` that stores one on
    ``app.state.service`` before the first request.
    """
    app = Starlette(routes=list(_ROUTES), lifespan=lifespan)
    if service is not None:
        app.state.service = service
    return BridgeSecurityMiddleware(app, auth_enabled=auth_enabled, auth_key=auth_key)


# ---------------------------------------------------------------------------
# Display side
# ---------------------------------------------------------------------------


def build_bridge_http_client(settings: BridgeSettings) -> httpx.AsyncClient:
    """Create the display process's httpx client for the host bridge."""
    headers = {"User-Agent": f"cmdlookup/{__version__}"}
    if settings.auth_enabled and settings.auth_key:
        headers["Authorization"] = f"Bearer {settings.auth_key}"
    return httpx.AsyncClient(
        base_url=f"http://{settings.host}:{settings.port}",
        follow_redirects=False,
        timeout=httpx.Timeout(settings.timeout_seconds),
        headers=headers,
    )


class BridgeClient:
    """BridgeProtocol implementation that talks to the host over HTTP."""

    def __init__(self, http_client: httpx.AsyncClient) -> None:
        self._client = http_client

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _call(self, path: str, payload: dict[str, Any]) -> Any:
        try:
            response = await self._client.post(path, json=payload)
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise CommandLookupError(
                code=ErrorCode.BRIDGE_FAILED,
                message=f"Bridge call to {path} failed: {exc}",
            ) from exc
        if not isinstance(body, dict) or "result" not in body:
            raise CommandLookupError(
                code=ErrorCode.BRIDGE_FAILED,
                message=f"Bridge call to {path} returned an unexpected body",
            )
        return body["result"]

    def _commands(self, path: str, result: Any) -> list[Command]:
        try:
            return _COMMANDS.validate_python(result)
        except ValidationError as exc:
            raise CommandLookupError(
                code=ErrorCode.BRIDGE_FAILED,
                message=f"Bridge call to {path} returned malformed commands",
            ) from exc

    async def search_commands(self, query: str, limit: int = 10) -> list[Command]:
        path = "/db/search-commands"
        return self._commands(path, await self._call(path, {"query": query, "limit": limit}))

    async def get_command_by_name(self, name: str) -> Command | None:
        path = "/db/get-command-by-name"
        result = await self._call(path, {"name": name})
        if result is None:
            return None
        commands = self._commands(path, [result])
        return commands[0]

    async def get_recent_commands(self, limit: int = 10) -> list[Command]:
        path = "/db/get-recent-commands"
        return self._commands(path, await self._call(path, {"limit": limit}))

    async def get_command_count(self) -> int:
        result = await self._call("/db/get-command-count", {})
        if not isinstance(result, int) or isinstance(result, bool):
            raise CommandLookupError(
                code=ErrorCode.BRIDGE_FAILED,
                message="Bridge returned a non-integer command count",
            )
        return result

    async def log_command_usage(self, command_id: int | None, raw_input: str) -> bool:
        result = await self._call(
            "/db/log-command-usage", {"commandId": command_id, "rawInput": raw_input}
        )
        return result is True

    async def save_command(self, command: Command) -> bool:
        result = await self._call(
            "/db/save-command", {"command": command.model_dump(mode="json", by_alias=True)}
        )
        return result is True
