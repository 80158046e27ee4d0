"""
Tool and resource descriptors plus the handler result type.

Every capability a server exposes is one of:
    ToolDescriptor      named, schema-validated operation with a handler
    ResourceDescriptor  read-only content addressed by a URI pattern

Descriptors are owned by the registry. Handlers are built by the domain
modules (tools/logs.py, tools/moods.py, ...) with their stores injected, so
no handler ever looks up shared state globally.
"""

from __future__ import annotations

import re
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from core.envelopes import ContentBlock, TextBlock
from core.errors import ErrorKind, ToolFailure
from core.schema import ToolParams, json_schema

_PLACEHOLDER = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")


@dataclass(frozen=True)
class ToolResult:
    """
    Result of a handler invocation.

    Attributes:
        content: Ordered content blocks returned to the client
        failure: Set when the handler's own logic failed (tagged error kind)
    """

    content: tuple[ContentBlock, ...] = ()
    failure: ToolFailure | None = None

    @property
    def success(self) -> bool:
        return self.failure is None

    @classmethod
    def ok(cls, *blocks: ContentBlock | str) -> ToolResult:
        """Success result; plain strings become text blocks."""
        return cls(content=tuple(TextBlock(b) if isinstance(b, str) else b for b in blocks))

    @classmethod
    def fail(cls, kind: ErrorKind, message: str, *details: str) -> ToolResult:
        return cls(failure=ToolFailure(kind=kind, message=message, details=details))


ToolHandler = Callable[[Any], Awaitable[ToolResult] | ToolResult]
ResourceResolver = Callable[
    [str, Mapping[str, str]], Awaitable[Iterable[ContentBlock]] | Iterable[ContentBlock]
]


@dataclass(frozen=True)
class ToolDescriptor:
    """
    Tool specification.

    Attributes:
        name: Unique tool identifier within a registry
        description: Human-readable description for the client/LLM
        parameter_schema: ToolParams subclass the payload is validated against
        handler: Called with the validated params; returns a ToolResult
    """

    name: str
    description: str
    parameter_schema: type[ToolParams]
    handler: ToolHandler

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("tool name must not be empty")

    def to_dict(self) -> dict[str, Any]:
        """Serialize for capability negotiation."""
        return {
            "description": self.description,
            "parameterSchema": json_schema(self.parameter_schema),
        }


@dataclass(frozen=True)
class ResourceDescriptor:
    """
    Resource specification.

    ``uri_pattern`` is either a literal URI (``projects://all``) or a template
    whose ``{name}`` placeholders each match one path segment
    (``logs://entries/{id}``). Matched placeholder values are handed to the
    resolver.
    """

    uri_pattern: str
    description: str
    resolver: ResourceResolver
    _regex: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.uri_pattern:
            raise ValueError("uri_pattern must not be empty")
        object.__setattr__(self, "_regex", _compile_pattern(self.uri_pattern))

    @property
    def is_template(self) -> bool:
        return bool(_PLACEHOLDER.search(self.uri_pattern))

    def match(self, uri: str) -> dict[str, str] | None:
        """Placeholder values if ``uri`` matches this pattern, else None."""
        found = self._regex.fullmatch(uri)
        return found.groupdict() if found else None

    def to_dict(self) -> dict[str, Any]:
        return {"description": self.description}


def _compile_pattern(pattern: str) -> re.Pattern[str]:
    parts: list[str] = []
    position = 0
    for placeholder in _PLACEHOLDER.finditer(pattern):
        parts.append(re.escape(pattern[position : placeholder.start()]))
        parts.append(f"(?P<{placeholder.group(1)}>[^/]+)")
        position = placeholder.end()
    parts.append(re.escape(pattern[position:]))
    return re.compile("".join(parts))
