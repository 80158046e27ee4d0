"""
Life-dump MCP — shared URI constants and structured call logging.

Defines:
    - URI patterns for every resource the servers expose
    - McpCallLog dataclass: one structured record per dispatched request

Pure module — no I/O, no side effects.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

# ---------------------------------------------------------------------------
# Resource URI patterns
# ---------------------------------------------------------------------------

# Literal URIs list a whole collection; {placeholder} patterns address one
# record or a sub-collection and are advertised as resource templates.

URI_LOG_ENTRIES = "logs://entries"
URI_LOG_ENTRY = "logs://entries/{id}"
URI_MOODS = "moods://all"
URI_PROJECTS = "projects://all"
URI_PROJECT_TASKS = "projects://{projectId}/tasks"
URI_RULES = "rules://all"

# ---------------------------------------------------------------------------
# Structured logging
# ---------------------------------------------------------------------------


@dataclass
class McpCallLog:
    """
    Structured log record for a single dispatched request.

    Every request produces exactly one McpCallLog at completion. The
    request_id is the client's correlation token, so a log line can be matched
    to the response envelope that carried it.

    Attributes:
        request_id:  Correlation token of the request
        tool_name:   Tool name, or resource URI for resource reads
        kind:        "tool" or "resource"
        success:     Whether the request produced a success envelope
        latency_ms:  Wall-clock duration in milliseconds
        error_kind:  ErrorKind value when success=False, else None
        error:       Error message when success=False, else None
        inputs:      Top-level parameter names supplied (values are not logged)
        timestamp:   Unix timestamp at call completion
    """

    request_id: str
    tool_name: str
    kind: str
    success: bool
    latency_ms: float
    error_kind: str | None = None
    error: str | None = None
    inputs: tuple[str, ...] = ()
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a loggable dict (suitable for structured log sinks)."""
        return {
            "request_id": self.request_id,
            "tool_name": self.tool_name,
            "kind": self.kind,
            "inputs": list(self.inputs),
            "success": self.success,
            "error_kind": self.error_kind,
            "error": self.error,
            "latency_ms": round(self.latency_ms, 2),
            "timestamp": self.timestamp,
        }

    def __str__(self) -> str:
        status = "OK" if self.success else f"ERR:{self.error_kind}:{self.error}"
        return f"[{self.request_id}] {self.kind}:{self.tool_name} {status} {self.latency_ms:.1f}ms"


def make_call_log(
    request_id: str,
    tool_name: str,
    kind: str,
    latency_ms: float,
    *,
    payload: Any = None,
    error_kind: str | None = None,
    error: str | None = None,
) -> McpCallLog:
    """
    Build a McpCallLog from call metadata.

    Only parameter names are kept from the payload — log entries and moods
    are personal data and stay out of the log.

    Pure factory function — no I/O.
    """
    inputs = tuple(sorted(str(k) for k in payload)) if isinstance(payload, dict) else ()
    return McpCallLog(
        request_id=request_id,
        tool_name=tool_name,
        kind=kind,
        success=error_kind is None,
        latency_ms=latency_ms,
        error_kind=error_kind,
        error=error,
        inputs=inputs,
    )
