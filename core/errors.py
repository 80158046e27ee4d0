"""
Error taxonomy for tool dispatch.

Every per-request failure is one of a closed set of kinds. Handlers and
stores signal a failure either by returning ``ToolResult.fail(...)`` or by
raising ``ToolError`` (or one of the subclasses below, which preset the kind).
The dispatcher converts both into an error envelope — nothing escapes.

Pure module — no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorKind(str, Enum):
    """Closed set of failure kinds surfaced in error envelopes."""

    INVALID_PARAMS = "InvalidParams"
    NOT_FOUND = "NotFound"
    HANDLER_FAILED = "HandlerFailed"
    STORAGE_UNAVAILABLE = "StorageUnavailable"


@dataclass(frozen=True)
class ToolFailure:
    """
    Tagged failure value carried by a result or an error envelope.

    Attributes:
        kind: Which of the closed error kinds this is
        message: Human-readable reason (never generic)
        details: Extra machine-readable detail, e.g. offending field paths
    """

    kind: ErrorKind
    message: str
    details: tuple[str, ...] = ()

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.message}"

    def to_dict(self) -> dict[str, object]:
        return {"kind": self.kind.value, "message": self.message, "details": list(self.details)}


class ToolError(Exception):
    """Raised by handlers and stores to fail a single request with a known kind."""

    kind: ErrorKind = ErrorKind.HANDLER_FAILED

    def __init__(
        self,
        message: str,
        *,
        kind: ErrorKind | None = None,
        details: tuple[str, ...] = (),
    ) -> None:
        super().__init__(message)
        if kind is not None:
            self.kind = kind
        self.message = message
        self.details = details

    @property
    def failure(self) -> ToolFailure:
        return ToolFailure(kind=self.kind, message=self.message, details=self.details)


class NotFoundError(ToolError):
    """A referenced tool, resource, or foreign-keyed record does not exist."""

    kind = ErrorKind.NOT_FOUND


class StorageUnavailableError(ToolError):
    """The Store Adapter could not be reached for this operation."""

    kind = ErrorKind.STORAGE_UNAVAILABLE


class RecordConflictError(ToolError):
    """An insert reused an id that is live or was retired by a delete."""

    kind = ErrorKind.HANDLER_FAILED


class UnknownFieldError(ToolError):
    """A query filter names a field the record type does not have."""

    kind = ErrorKind.INVALID_PARAMS


class StartupError(Exception):
    """Fatal condition detected while bootstrapping a server (exit code 1)."""
