"""
Request/response envelopes and content blocks.

Wire shapes:
    request   {"toolName": str, "params": <json>, "requestId": str}
              {"resourceUri": str, "requestId": str}
    response  {"requestId": str, "content": [<block>, ...], "isError": bool}
    block     {"type": "text", "text": str} | {"type": "resource", "uri": str}

Envelopes are immutable; one request produces exactly one response with the
same ``request_id``.

Pure module — no I/O.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Literal

from core.errors import ErrorKind, ToolError, ToolFailure

RequestKind = Literal["tool", "resource"]


@dataclass(frozen=True)
class TextBlock:
    text: str
    type: Literal["text"] = "text"

    def to_dict(self) -> dict[str, str]:
        return {"type": self.type, "text": self.text}


@dataclass(frozen=True)
class ResourceBlock:
    uri: str
    type: Literal["resource"] = "resource"

    def to_dict(self) -> dict[str, str]:
        return {"type": self.type, "uri": self.uri}


ContentBlock = TextBlock | ResourceBlock


@dataclass(frozen=True)
class RequestEnvelope:
    """
    One inbound request.

    Attributes:
        name: Tool name, or resource URI when kind == "resource"
        payload: Raw, unvalidated parameters (tools only)
        request_id: Opaque correlation token echoed on the response
        kind: "tool" or "resource"
    """

    name: str
    payload: Any
    request_id: str
    kind: RequestKind = "tool"

    @classmethod
    def for_tool(cls, name: str, payload: Any, request_id: str) -> RequestEnvelope:
        return cls(name=name, payload=payload, request_id=request_id, kind="tool")

    @classmethod
    def for_resource(cls, uri: str, request_id: str) -> RequestEnvelope:
        return cls(name=uri, payload=None, request_id=request_id, kind="resource")

    @classmethod
    def from_wire(cls, message: Mapping[str, Any]) -> RequestEnvelope:
        """
        Decode a wire request.

        Raises:
            ToolError: (InvalidParams) if the message is not a well-formed envelope
        """
        if not isinstance(message, Mapping):
            raise ToolError(
                f"Request must be an object, got {type(message).__name__}",
                kind=ErrorKind.INVALID_PARAMS,
                details=("<root>",),
            )
        request_id = message.get("requestId")
        if not isinstance(request_id, str) or not request_id:
            raise ToolError(
                "requestId: must be a non-empty string",
                kind=ErrorKind.INVALID_PARAMS,
                details=("requestId",),
            )
        if "resourceUri" in message:
            uri = message["resourceUri"]
            if not isinstance(uri, str) or not uri:
                raise ToolError(
                    "resourceUri: must be a non-empty string",
                    kind=ErrorKind.INVALID_PARAMS,
                    details=("resourceUri",),
                )
            return cls.for_resource(uri, request_id)
        tool_name = message.get("toolName")
        if not isinstance(tool_name, str) or not tool_name:
            raise ToolError(
                "toolName: must be a non-empty string",
                kind=ErrorKind.INVALID_PARAMS,
                details=("toolName",),
            )
        return cls.for_tool(tool_name, message.get("params"), request_id)


@dataclass(frozen=True)
class ResponseEnvelope:
    """
    The single response to a request.

    ``error`` is set iff ``is_error``; its text is also the first content block
    so clients that only read ``content`` still see the reason.
    """

    request_id: str
    content: tuple[ContentBlock, ...]
    is_error: bool = False
    error: ToolFailure | None = None

    @classmethod
    def success(cls, request_id: str, content: Iterable[ContentBlock]) -> ResponseEnvelope:
        return cls(request_id=request_id, content=tuple(content))

    @classmethod
    def failure(cls, request_id: str, failure: ToolFailure) -> ResponseEnvelope:
        return cls(
            request_id=request_id,
            content=(TextBlock(str(failure)),),
            is_error=True,
            error=failure,
        )

    @property
    def text(self) -> str:
        """All text blocks joined by newlines."""
        return "\n".join(b.text for b in self.content if isinstance(b, TextBlock))

    def to_wire(self) -> dict[str, Any]:
        return {
            "requestId": self.request_id,
            "content": [block.to_dict() for block in self.content],
            "isError": self.is_error,
        }
