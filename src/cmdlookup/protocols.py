"""Protocol interfaces for swappable components.

The facade and the bridge reference these protocols, not the concrete
implementations. This allows:
- The host to pick the SQLite store or the memory store once at startup
- The display side to use any transport that satisfies BridgeProtocol
- Tests to use lightweight in-memory implementations
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Iterable

    from cmdlookup.models.command import Command


class CommandStoreProtocol(Protocol):
    """Interface shared by the engine-backed store and the memory store."""

    async def search_commands(self, query: str, limit: int = 10) -> list[Command]: ...

    async def get_recent_commands(self, limit: int = 10) -> list[Command]: ...

    async def get_command_by_name(self, name: str) -> Command | None: ...

    async def save_command(self, command: Command) -> bool: ...

    async def get_command_content(
        self, command_id: int, content_type: str = "tldr"
    ) -> str | None: ...

    async def save_command_content(
        self,
        command_id: int,
        content: str,
        content_type: str = "tldr",
        format: str = "markdown",
    ) -> bool: ...

    async def log_command_usage(self, command_id: int | None, raw_input: str) -> bool: ...

    async def import_commands(self, commands: Iterable[Command]) -> int: ...

    async def get_command_count(self) -> int: ...

    async def get_command_names(self) -> list[str]: ...

    async def get_commands_by_category(self, category: str) -> list[Command]: ...


class BridgeProtocol(Protocol):
    """Remote call boundary between the display process and the host process.

    Implementations raise ``CommandLookupError(BRIDGE_FAILED)`` when the call
    itself cannot be completed.
    """

    async def search_commands(self, query: str, limit: int = 10) -> list[Command]: ...

    async def get_command_by_name(self, name: str) -> Command | None: ...

    async def get_recent_commands(self, limit: int = 10) -> list[Command]: ...

    async def get_command_count(self) -> int: ...

    async def log_command_usage(self, command_id: int | None, raw_input: str) -> bool: ...

    async def save_command(self, command: Command) -> bool: ...


class CommandServiceProtocol(Protocol):
    """Uniform facade contract, identical in the host and display processes."""

    async def search_commands(self, query: str, limit: int | None = None) -> list[Command]: ...

    async def get_command_by_name(self, name: str) -> Command | None: ...

    async def save_command(self, command: Command) -> bool: ...

    async def get_recent_commands(self, limit: int | None = None) -> list[Command]: ...

    async def get_command_count(self) -> int: ...

    async def log_command_usage(self, command_id: int | None, raw_input: str) -> bool: ...
