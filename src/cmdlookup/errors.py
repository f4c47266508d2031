from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    QUERY_FAILED = "QUERY_FAILED"
    TRANSACTION_FAILED = "TRANSACTION_FAILED"
    BRIDGE_FAILED = "BRIDGE_FAILED"
    INVALID_INPUT = "INVALID_INPUT"


class CommandLookupError(Exception):
    """Raised for expected failure conditions of the lookup store.

    Recovered at well-defined points: the facade factory catches
    STORE_UNAVAILABLE and switches to the memory store, the display facade
    catches BRIDGE_FAILED and degrades to its local seed list. The bridge
    serialises the rest into its error envelope.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        recoverable: bool = True,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.recoverable = recoverable

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "recoverable": self.recoverable,
            }
        }
