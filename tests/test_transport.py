"""
Tests for life_mcp/transport.py — logging setup and the MCP SDK bridge.

The bridge is exercised through the low-level server's registered request
handlers, so no stdio streams are opened.
"""

import logging
import sys

import mcp.types as types
import pytest

from core.records import LogEntry, MoodEntry
from core.store import InMemoryStore
from life_mcp.negotiation import NegotiationError
from life_mcp.server import build_logs_registry, build_moods_registry
from life_mcp.session import Session
from life_mcp.transport import ToolCallFailed, build_mcp_server, configure_logging


@pytest.fixture
def moods_server():
    session = Session(build_moods_registry(InMemoryStore(MoodEntry)), name="life-dump-moods", version="1.0.0")
    session.handshake()
    return build_mcp_server(session)


async def _call_tool(server, name: str, arguments: dict) -> types.CallToolResult:
    handler = server.request_handlers[types.CallToolRequest]
    request = types.CallToolRequest(
        method="tools/call", params=types.CallToolRequestParams(name=name, arguments=arguments)
    )
    return (await handler(request)).root


class TestConfigureLogging:
    def test_logs_to_stderr(self) -> None:
        configure_logging(logging.DEBUG)
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert root.handlers[0].stream is sys.stderr

    def test_noisy_loggers_silenced(self) -> None:
        configure_logging("INFO")
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("openai").level == logging.WARNING


class TestBuildMcpServer:
    def test_requires_handshake(self) -> None:
        session = Session(build_logs_registry(InMemoryStore(LogEntry)), name="x", version="0")
        with pytest.raises(NegotiationError):
            build_mcp_server(session)

    @pytest.mark.asyncio
    async def test_lists_negotiated_tools(self, moods_server) -> None:
        handler = moods_server.request_handlers[types.ListToolsRequest]
        result = (await handler(types.ListToolsRequest(method="tools/list"))).root
        names = {t.name for t in result.tools}
        assert {"logMood", "getMoods", "registerRule"} <= names
        log_mood = next(t for t in result.tools if t.name == "logMood")
        assert log_mood.inputSchema["required"] == ["mood"]

    @pytest.mark.asyncio
    async def test_lists_literal_resources(self, moods_server) -> None:
        handler = moods_server.request_handlers[types.ListResourcesRequest]
        result = (await handler(types.ListResourcesRequest(method="resources/list"))).root
        assert {str(r.uri) for r in result.resources} == {"moods://all", "rules://all"}

    @pytest.mark.asyncio
    async def test_call_tool_success(self, moods_server) -> None:
        result = await _call_tool(moods_server, "logMood", {"mood": "calm"})
        assert not result.isError
        assert result.content[0].text.startswith('Mood "calm" logged successfully')

    @pytest.mark.asyncio
    async def test_call_tool_error_carries_kind(self, moods_server) -> None:
        result = await _call_tool(moods_server, "logMood", {})
        assert result.isError
        assert result.content[0].text.startswith("[InvalidParams] mood")

    @pytest.mark.asyncio
    async def test_unknown_tool(self, moods_server) -> None:
        result = await _call_tool(moods_server, "doesNotExist", {})
        assert result.isError
        assert result.content[0].text == "[NotFound] Unknown tool 'doesNotExist'"

    @pytest.mark.asyncio
    async def test_read_resource(self, moods_server) -> None:
        await _call_tool(moods_server, "logMood", {"mood": "calm"})
        handler = moods_server.request_handlers[types.ReadResourceRequest]
        request = types.ReadResourceRequest(
            method="resources/read", params=types.ReadResourceRequestParams(uri="moods://all")
        )
        result = (await handler(request)).root
        assert '"mood": "calm"' in result.contents[0].text


class TestToolCallFailed:
    def test_message_is_envelope_text(self) -> None:
        from core.envelopes import ResponseEnvelope
        from core.errors import ErrorKind, ToolFailure

        response = ResponseEnvelope.failure("r", ToolFailure(ErrorKind.NOT_FOUND, "gone"))
        assert str(ToolCallFailed(response)) == "[NotFound] gone"
