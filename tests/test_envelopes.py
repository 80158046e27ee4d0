"""
Tests for core/envelopes.py and core/errors.py — wire shapes and failures.
"""

import pytest

from core.envelopes import (
    RequestEnvelope,
    ResourceBlock,
    ResponseEnvelope,
    TextBlock,
)
from core.errors import ErrorKind, NotFoundError, ToolError, ToolFailure


class TestRequestEnvelope:
    def test_from_wire_tool_request(self) -> None:
        env = RequestEnvelope.from_wire({"toolName": "logMood", "params": {"mood": "ok"}, "requestId": "r1"})
        assert env.kind == "tool"
        assert env.name == "logMood"
        assert env.payload == {"mood": "ok"}
        assert env.request_id == "r1"

    def test_from_wire_resource_request(self) -> None:
        env = RequestEnvelope.from_wire({"resourceUri": "moods://all", "requestId": "r2"})
        assert env.kind == "resource"
        assert env.name == "moods://all"

    @pytest.mark.parametrize(
        ("message", "detail"),
        [
            ({"toolName": "x"}, "requestId"),
            ({"toolName": "x", "requestId": ""}, "requestId"),
            ({"requestId": "r"}, "toolName"),
            ({"resourceUri": 3, "requestId": "r"}, "resourceUri"),
        ],
    )
    def test_malformed_requests(self, message: dict, detail: str) -> None:
        with pytest.raises(ToolError) as exc_info:
            RequestEnvelope.from_wire(message)
        assert exc_info.value.kind is ErrorKind.INVALID_PARAMS
        assert exc_info.value.details == (detail,)

    def test_non_object_request(self) -> None:
        with pytest.raises(ToolError) as exc_info:
            RequestEnvelope.from_wire(["toolName"])  # type: ignore[arg-type]
        assert exc_info.value.details == ("<root>",)


class TestResponseEnvelope:
    def test_success_to_wire(self) -> None:
        resp = ResponseEnvelope.success("r1", [TextBlock("hi"), ResourceBlock("moods://all")])
        assert resp.to_wire() == {
            "requestId": "r1",
            "content": [{"type": "text", "text": "hi"}, {"type": "resource", "uri": "moods://all"}],
            "isError": False,
        }

    def test_failure_carries_kind_in_text(self) -> None:
        resp = ResponseEnvelope.failure("r1", ToolFailure(ErrorKind.NOT_FOUND, "Unknown tool 'x'"))
        assert resp.is_error
        assert resp.error is not None and resp.error.kind is ErrorKind.NOT_FOUND
        assert resp.text == "[NotFound] Unknown tool 'x'"

    def test_text_joins_text_blocks_only(self) -> None:
        resp = ResponseEnvelope.success("r", [TextBlock("a"), ResourceBlock("x://y"), TextBlock("b")])
        assert resp.text == "a\nb"


class TestToolError:
    def test_default_kind_is_handler_failed(self) -> None:
        assert ToolError("boom").failure.kind is ErrorKind.HANDLER_FAILED

    def test_subclass_presets_kind(self) -> None:
        failure = NotFoundError("Project 'p' not found", details=("p",)).failure
        assert failure == ToolFailure(ErrorKind.NOT_FOUND, "Project 'p' not found", ("p",))

    def test_failure_to_dict(self) -> None:
        failure = ToolFailure(ErrorKind.INVALID_PARAMS, "bad", ("mood",))
        assert failure.to_dict() == {"kind": "InvalidParams", "message": "bad", "details": ["mood"]}
