"""
Life-dump MCP — logging setup and the stdio transport bridge.

Responsibilities:
    - Configure logging to stderr (NEVER stdout — corrupts stdio transport)
    - Adapt a ``Session`` to the MCP low-level ``Server``:
        list_tools / list_resources / list_resource_templates
            serve the negotiated capability snapshot
        call_tool / read_resource
            build a RequestEnvelope and go through the session's dispatcher

The MCP SDK's own input validation is disabled for tool calls: parameter
validation belongs to the dispatcher so failures carry our error kinds.
Error envelopes are raised back to the SDK as ``ToolCallFailed`` whose text
is ``"[Kind] message"``; the SDK turns that into ``isError: true``.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterable
from typing import Any

import mcp.types as types
from mcp.server.lowlevel import Server
from mcp.server.lowlevel.helper_types import ReadResourceContents
from mcp.server.stdio import stdio_server
from pydantic import AnyUrl

from core.envelopes import ContentBlock, RequestEnvelope, ResourceBlock, ResponseEnvelope
from core.schema import json_schema
from life_mcp.session import Session

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Logging — must go to stderr, NEVER stdout
# ---------------------------------------------------------------------------

# MCP stdio transport uses stdout exclusively for JSON-RPC messages.

_LOG_FORMAT = "%(asctime)s.%(msecs)03d " "[%(name)s] %(levelname)s " "%(message)s"
_LOG_DATE_FORMAT = "%H:%M:%S"


def configure_logging(level: int | str = logging.INFO) -> None:
    """
    Configure root logger to write structured output to stderr.

    Must be called BEFORE the MCP server starts to ensure no
    accidental stdout writes corrupt the stdio transport.

    Args:
        level: Python logging level or its name (default: INFO)
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(fmt=_LOG_FORMAT, datefmt=_LOG_DATE_FORMAT))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    # Silence noisy third-party loggers that write INFO spam
    for name in ("httpx", "httpcore", "openai", "anthropic", "mcp", "sqlalchemy.engine"):
        logging.getLogger(name).setLevel(logging.WARNING)


# ---------------------------------------------------------------------------
# MCP bridge
# ---------------------------------------------------------------------------


class ToolCallFailed(Exception):
    """An error envelope handed back to the MCP SDK."""

    def __init__(self, response: ResponseEnvelope) -> None:
        self.response = response
        super().__init__(response.text)


def to_mcp_content(blocks: Iterable[ContentBlock]) -> list[types.TextContent | types.ResourceLink]:
    out: list[types.TextContent | types.ResourceLink] = []
    for block in blocks:
        if isinstance(block, ResourceBlock):
            out.append(types.ResourceLink(type="resource_link", uri=AnyUrl(block.uri), name=block.uri))
        else:
            out.append(types.TextContent(type="text", text=block.text))
    return out


def _current_request_id(server: Server) -> str:
    try:
        return str(server.request_context.request_id)
    except LookupError:
        return ""


def build_mcp_server(session: Session) -> Server:
    """
    Wrap a negotiated session in an MCP low-level server.

    Raises:
        NegotiationError: If session.handshake() has not been called
    """
    caps = session.capabilities
    server: Server = Server(session.name, version=session.version)

    @server.list_tools()
    async def list_tools() -> list[types.Tool]:
        return [
            types.Tool(
                name=d.name,
                description=d.description,
                inputSchema=json_schema(d.parameter_schema),
            )
            for d in caps.tool_descriptors
        ]

    @server.list_resources()
    async def list_resources() -> list[types.Resource]:
        return [
            types.Resource(uri=AnyUrl(d.uri_pattern), name=d.uri_pattern, description=d.description)
            for d in caps.resource_descriptors
            if not d.is_template
        ]

    @server.list_resource_templates()
    async def list_resource_templates() -> list[types.ResourceTemplate]:
        return [
            types.ResourceTemplate(
                uriTemplate=d.uri_pattern, name=d.uri_pattern, description=d.description
            )
            for d in caps.resource_descriptors
            if d.is_template
        ]

    @server.call_tool(validate_input=False)
    async def call_tool(name: str, arguments: dict[str, Any] | None) -> list[Any]:
        envelope = RequestEnvelope.for_tool(name, arguments or {}, _current_request_id(server))
        response = await session.call(envelope)
        if response.is_error:
            raise ToolCallFailed(response)
        return to_mcp_content(response.content)

    @server.read_resource()
    async def read_resource(uri: AnyUrl) -> list[ReadResourceContents]:
        envelope = RequestEnvelope.for_resource(str(uri), _current_request_id(server))
        response = await session.call(envelope)
        if response.is_error:
            raise ToolCallFailed(response)
        return [
            ReadResourceContents(
                content=block.uri if isinstance(block, ResourceBlock) else block.text,
                mime_type="text/plain",
            )
            for block in response.content
        ]

    return server


async def run_stdio(server: Server) -> None:
    """Serve a built MCP server over stdin/stdout until the client disconnects."""
    logger.info("Serving %s v%s over stdio", server.name, server.version)
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())
