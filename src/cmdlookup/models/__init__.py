from __future__ import annotations

from cmdlookup.models.cache import CacheEntry
from cmdlookup.models.command import Command, CommandSource

__all__ = [
    # command
    "Command",
    "CommandSource",
    # cache
    "CacheEntry",
]
