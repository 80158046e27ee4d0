"""
Request dispatcher — the boundary where every per-request failure becomes an
error envelope.

Algorithm for a tool request:
    1. Resolve the tool. Missing → NotFound (validator and handler never run).
    2. Validate the payload. Invalid → InvalidParams with the offending paths.
    3. Invoke the handler. ToolError → its own kind; any other exception →
       HandlerFailed with the exception message; a returned failure is kept.
    4. Wrap the content blocks in a success envelope.

Resource requests skip step 2. Each request yields exactly one envelope whose
request_id equals the request's, and one McpCallLog line.

Requests are not serialized here: concurrent dispatches run interleaved and
rely on the stores for write ordering.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from core.envelopes import ContentBlock, RequestEnvelope, ResourceBlock, ResponseEnvelope, TextBlock
from core.errors import ErrorKind, ToolError, ToolFailure
from core.schema import ValidationError, validate
from life_mcp.registry import Registry
from life_mcp.schemas import make_call_log
from tools.base import ToolResult

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "timeout"


class Dispatcher:
    """
    Routes request envelopes to registered handlers.

    Args:
        registry: Source of tool and resource descriptors (live view)
        handler_timeout: Optional bound in seconds on one async handler
            invocation; expiry gives HandlerFailed("timeout")
    """

    def __init__(self, registry: Registry, *, handler_timeout: float | None = None) -> None:
        self._registry = registry
        self._handler_timeout = handler_timeout

    async def dispatch(self, envelope: RequestEnvelope) -> ResponseEnvelope:
        """Resolve, validate, invoke and envelope one request. Never raises for request faults."""
        t_start = time.perf_counter()
        if envelope.kind == "resource":
            response = await self._read_resource(envelope)
        else:
            response = await self._call_tool(envelope)
        self._log_call(envelope, response, (time.perf_counter() - t_start) * 1000)
        return response

    async def dispatch_message(self, message: Mapping[str, Any]) -> dict[str, Any]:
        """Decode a wire request, dispatch it, and encode the wire response."""
        try:
            envelope = RequestEnvelope.from_wire(message)
        except ToolError as exc:
            request_id = message.get("requestId") if isinstance(message, Mapping) else None
            fallback_id = request_id if isinstance(request_id, str) else ""
            logger.warning("Rejected malformed request envelope: %s", exc.message)
            return ResponseEnvelope.failure(fallback_id, exc.failure).to_wire()
        response = await self.dispatch(envelope)
        return response.to_wire()

    # ------------------------------------------------------------------
    # Tools
    # ------------------------------------------------------------------

    async def _call_tool(self, envelope: RequestEnvelope) -> ResponseEnvelope:
        tool = self._registry.resolve_tool(envelope.name)
        if tool is None:
            return ResponseEnvelope.failure(
                envelope.request_id,
                ToolFailure(ErrorKind.NOT_FOUND, f"Unknown tool {envelope.name!r}", (envelope.name,)),
            )

        try:
            params = validate(tool.parameter_schema, envelope.payload)
        except ValidationError as exc:
            return ResponseEnvelope.failure(
                envelope.request_id,
                ToolFailure(ErrorKind.INVALID_PARAMS, str(exc), exc.paths),
            )

        outcome = await self._invoke(lambda: tool.handler(params))
        if isinstance(outcome, ToolFailure):
            return ResponseEnvelope.failure(envelope.request_id, outcome)
        if not isinstance(outcome, ToolResult):
            return ResponseEnvelope.failure(
                envelope.request_id,
                ToolFailure(
                    ErrorKind.HANDLER_FAILED,
                    f"Tool {tool.name!r} returned {type(outcome).__name__}, expected ToolResult",
                ),
            )
        if outcome.failure is not None:
            return ResponseEnvelope.failure(envelope.request_id, outcome.failure)
        return ResponseEnvelope.success(envelope.request_id, outcome.content)

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------

    async def _read_resource(self, envelope: RequestEnvelope) -> ResponseEnvelope:
        resolved = self._registry.resolve_resource(envelope.name)
        if resolved is None:
            return ResponseEnvelope.failure(
                envelope.request_id,
                ToolFailure(ErrorKind.NOT_FOUND, f"Unknown resource {envelope.name!r}", (envelope.name,)),
            )
        descriptor, params = resolved

        outcome = await self._invoke(lambda: descriptor.resolver(envelope.name, params))
        if isinstance(outcome, ToolFailure):
            return ResponseEnvelope.failure(envelope.request_id, outcome)
        if isinstance(outcome, ToolResult):
            if outcome.failure is not None:
                return ResponseEnvelope.failure(envelope.request_id, outcome.failure)
            return ResponseEnvelope.success(envelope.request_id, outcome.content)
        try:
            blocks = _content_blocks(outcome)
        except TypeError as exc:
            return ResponseEnvelope.failure(
                envelope.request_id, ToolFailure(ErrorKind.HANDLER_FAILED, str(exc))
            )
        return ResponseEnvelope.success(envelope.request_id, blocks)

    # ------------------------------------------------------------------
    # Invocation
    # ------------------------------------------------------------------

    async def _invoke(self, call: Callable[[], Any]) -> Any:
        """Run a handler/resolver; faults come back as a ToolFailure, never raised."""
        try:
            result = call()
            if inspect.isawaitable(result):
                if self._handler_timeout is None:
                    result = await result
                else:
                    try:
                        result = await asyncio.wait_for(result, self._handler_timeout)
                    except TimeoutError:
                        return ToolFailure(ErrorKind.HANDLER_FAILED, TIMEOUT_MESSAGE)
            return result
        except ToolError as exc:
            return exc.failure
        except Exception as exc:
            logger.exception("Handler raised")
            return ToolFailure(ErrorKind.HANDLER_FAILED, str(exc) or type(exc).__name__)

    def _log_call(
        self, envelope: RequestEnvelope, response: ResponseEnvelope, latency_ms: float
    ) -> None:
        error = response.error
        record = make_call_log(
            request_id=envelope.request_id,
            tool_name=envelope.name,
            kind=envelope.kind,
            latency_ms=latency_ms,
            payload=envelope.payload,
            error_kind=error.kind.value if error else None,
            error=error.message if error else None,
        )
        if record.success:
            logger.info("%s", record)
        else:
            logger.error("%s", record)


def _content_blocks(outcome: Any) -> tuple[ContentBlock, ...]:
    if isinstance(outcome, str) or not isinstance(outcome, Iterable):
        raise TypeError(f"Resolver returned {type(outcome).__name__}, expected content blocks")
    blocks = tuple(outcome)
    for block in blocks:
        if not isinstance(block, (TextBlock, ResourceBlock)):
            raise TypeError(f"Resolver returned {type(block).__name__}, expected a content block")
    return blocks
