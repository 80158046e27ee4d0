"""
Capability negotiation — the one-time handshake of a session.

The negotiator snapshots the registry exactly once, before the transport
accepts any invocation. The snapshot is what the client is told exists;
registering or unregistering afterwards does not change it (there is no
re-negotiation notification).

Negotiation payload::

    {
        "tools":     {name: {"description": str, "parameterSchema": {...}}},
        "resources": {uriPattern: {"description": str}}
    }
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from tools.base import ResourceDescriptor, ToolDescriptor

if TYPE_CHECKING:
    from life_mcp.registry import Registry

logger = logging.getLogger(__name__)


class NegotiationError(RuntimeError):
    """Negotiation was repeated, or an invocation arrived before it."""


@dataclass(frozen=True)
class CapabilitySet:
    """
    Immutable snapshot of a registry's tools and resources, in registration order.

    Attributes:
        tool_descriptors: Tools registered at snapshot time
        resource_descriptors: Resources registered at snapshot time
    """

    tool_descriptors: tuple[ToolDescriptor, ...] = ()
    resource_descriptors: tuple[ResourceDescriptor, ...] = ()

    @property
    def tools(self) -> frozenset[str]:
        return frozenset(d.name for d in self.tool_descriptors)

    @property
    def resources(self) -> frozenset[str]:
        return frozenset(d.uri_pattern for d in self.resource_descriptors)

    def to_payload(self) -> dict[str, Any]:
        return {
            "tools": {d.name: d.to_dict() for d in self.tool_descriptors},
            "resources": {d.uri_pattern: d.to_dict() for d in self.resource_descriptors},
        }


class CapabilityNegotiator:
    """Runs the handshake for one session against one registry."""

    def __init__(self, registry: Registry) -> None:
        self._registry = registry
        self._capabilities: CapabilitySet | None = None

    @property
    def negotiated(self) -> bool:
        return self._capabilities is not None

    @property
    def capabilities(self) -> CapabilitySet:
        """
        The negotiated snapshot.

        Raises:
            NegotiationError: If negotiate() has not run yet
        """
        if self._capabilities is None:
            raise NegotiationError("Capabilities have not been negotiated yet")
        return self._capabilities

    def negotiate(self) -> CapabilitySet:
        """
        Snapshot the registry. Must be called exactly once per session.

        Raises:
            NegotiationError: If called a second time
        """
        if self._capabilities is not None:
            raise NegotiationError("Capabilities were already negotiated for this session")
        self._capabilities = self._registry.snapshot_capabilities()
        logger.info(
            "Negotiated %d tools, %d resources",
            len(self._capabilities.tool_descriptors),
            len(self._capabilities.resource_descriptors),
        )
        return self._capabilities

    def payload(self) -> dict[str, Any]:
        return self.capabilities.to_payload()
