"""
Session — ties one registry, dispatcher and negotiator to a single client.

The transport calls ``handshake()`` once when the client connects, then
``call()`` / ``handle()`` for each request. Invocations before the handshake
are refused.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from core.envelopes import RequestEnvelope, ResponseEnvelope
from life_mcp.dispatcher import Dispatcher
from life_mcp.negotiation import CapabilityNegotiator, CapabilitySet, NegotiationError
from life_mcp.registry import Registry


class Session:
    """Single active session of a capability server."""

    def __init__(
        self,
        registry: Registry,
        *,
        name: str,
        version: str,
        handler_timeout: float | None = None,
    ) -> None:
        self.name = name
        self.version = version
        self.registry = registry
        self.dispatcher = Dispatcher(registry, handler_timeout=handler_timeout)
        self.negotiator = CapabilityNegotiator(registry)

    def handshake(self) -> dict[str, Any]:
        """Negotiate capabilities and return the payload sent to the client."""
        self.negotiator.negotiate()
        return self.negotiator.payload()

    @property
    def capabilities(self) -> CapabilitySet:
        return self.negotiator.capabilities

    def _require_negotiated(self) -> None:
        if not self.negotiator.negotiated:
            raise NegotiationError("Session has not completed capability negotiation")

    async def call(self, envelope: RequestEnvelope) -> ResponseEnvelope:
        """
        Dispatch one request envelope.

        Raises:
            NegotiationError: If the handshake has not happened
        """
        self._require_negotiated()
        return await self.dispatcher.dispatch(envelope)

    async def handle(self, message: Mapping[str, Any]) -> dict[str, Any]:
        """Wire-level variant of call(): decoded request in, wire response out."""
        self._require_negotiated()
        return await self.dispatcher.dispatch_message(message)
