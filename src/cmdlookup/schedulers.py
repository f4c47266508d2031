"""Background scheduler coroutine for the API response cache sweep."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from cmdlookup.database import Database

log = structlog.get_logger()


async def run_cache_cleanup_scheduler(database: Database | None, interval_hours: int) -> None:
    """Sweep expired cache rows at startup, then on the configured interval.

    Does nothing when the host runs on the memory store (``database`` is None).
    """
    if database is None:
        return

    await database.cleanup_if_due(interval_hours)

    while True:
        await asyncio.sleep(interval_hours * 3600)
        await database.cleanup_if_due(interval_hours)
