"""Host process entrypoint.

Responsibilities (and nothing more):
- Configure structlog
- Open the host facade and the cache cleanup scheduler in the app lifespan
- Serve the bridge routes over HTTP
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import sys
from contextlib import asynccontextmanager, suppress
from typing import TYPE_CHECKING

import structlog
import uvicorn

from cmdlookup import __version__
from cmdlookup.bridge import build_bridge_app
from cmdlookup.config import Settings
from cmdlookup.facade import open_host_service
from cmdlookup.schedulers import run_cache_cleanup_scheduler

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from starlette.applications import Starlette
    from starlette.types import ASGIApp, Lifespan

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(settings: Settings) -> None:
    """Configure structlog. Called once at startup before any log statements."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.logging.format == "json":
        processors = [*shared_processors, structlog.processors.JSONRenderer()]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


def build_lifespan(settings: Settings) -> Lifespan[Starlette]:
    """Return a Starlette lifespan that owns the host facade."""

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        log.info("host_starting", version=__version__, backend=settings.store.backend)

        service = await open_host_service(settings)
        app.state.service = service

        cache_cleanup_task = asyncio.create_task(
            run_cache_cleanup_scheduler(service.database, settings.cache.cleanup_interval_hours)
        )

        log.info(
            "host_started",
            version=__version__,
            backend=service.backend,
            command_count=await service.get_command_count(),
        )

        try:
            yield
        finally:
            cache_cleanup_task.cancel()
            with suppress(asyncio.CancelledError):
                await cache_cleanup_task
            await service.close()
            log.info("host_stopping")

    return lifespan


def create_app(settings: Settings) -> ASGIApp:
    """Build the secured bridge app for ``settings``."""
    http_log = log.bind(transport="http")

    auth_key: str | None = settings.bridge.auth_key or None

    if settings.bridge.auth_enabled and not auth_key:
        auth_key = secrets.token_urlsafe(32)
        http_log.warning("bridge_auth_key_auto_generated", auth_key=auth_key)

    if not settings.bridge.auth_enabled:
        http_log.warning("bridge_auth_disabled")

    return build_bridge_app(
        auth_enabled=settings.bridge.auth_enabled,
        auth_key=auth_key,
        lifespan=build_lifespan(settings),
    )


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def main() -> None:
    settings = Settings()
    _setup_logging(settings)

    uvicorn.run(
        create_app(settings),
        host=settings.bridge.host,
        port=settings.bridge.port,
        log_config=None,  # structlog handles logging
    )


if __name__ == "__main__":
    main()
