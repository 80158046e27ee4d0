"""
Tool, resource and automation-rule registry.

One explicit owned mapping per namespace, guarded by a single lock. No
discovery: every descriptor is registered by the server factory that builds
it, with its stores already injected.

Semantics:
    register(desc)    create, or replace an existing entry with the same key
                      (last write wins). A replaced resource keeps its slot
                      in match order.
    unregister(name)  drop the tool called ``name`` and the resource whose
                      pattern is ``name``; unknown names are a no-op.
    resolve_resource  patterns are tried in registration order, first match wins.
"""

from __future__ import annotations

import logging
import threading

from core.records import AutomationRule
from life_mcp.negotiation import CapabilitySet
from tools.base import ResourceDescriptor, ToolDescriptor

logger = logging.getLogger(__name__)


class Registry:
    """
    Registry for the tools, resources and automation rules of one server.

    Usage:
        registry = Registry()
        registry.register(ToolDescriptor("logMood", "...", LogMoodParams, handler))

        tool = registry.resolve_tool("logMood")
        caps = registry.snapshot_capabilities()
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._tools: dict[str, ToolDescriptor] = {}
        self._resources: dict[str, ResourceDescriptor] = {}
        self._rules: dict[str, AutomationRule] = {}

    # ------------------------------------------------------------------
    # Tools and resources
    # ------------------------------------------------------------------

    def register(self, descriptor: ToolDescriptor | ResourceDescriptor) -> None:
        """
        Register a tool or resource descriptor, replacing any with the same key.

        Raises:
            TypeError: If descriptor is neither a ToolDescriptor nor a ResourceDescriptor
        """
        with self._lock:
            if isinstance(descriptor, ToolDescriptor):
                replaced = descriptor.name in self._tools
                self._tools[descriptor.name] = descriptor
                key = descriptor.name
            elif isinstance(descriptor, ResourceDescriptor):
                replaced = descriptor.uri_pattern in self._resources
                self._resources[descriptor.uri_pattern] = descriptor
                key = descriptor.uri_pattern
            else:
                raise TypeError(
                    f"Expected ToolDescriptor or ResourceDescriptor, got {type(descriptor).__name__}"
                )
        logger.debug("%s %s", "Replaced" if replaced else "Registered", key)

    def unregister(self, name: str) -> None:
        """Remove the tool named ``name`` and the resource with pattern ``name``, if any."""
        with self._lock:
            self._tools.pop(name, None)
            self._resources.pop(name, None)

    def resolve_tool(self, name: str) -> ToolDescriptor | None:
        with self._lock:
            return self._tools.get(name)

    def resolve_resource(self, uri: str) -> tuple[ResourceDescriptor, dict[str, str]] | None:
        """
        Find the first registered resource whose pattern matches ``uri``.

        Returns:
            (descriptor, placeholder values), or None if nothing matches
        """
        with self._lock:
            candidates = list(self._resources.values())
        for descriptor in candidates:
            params = descriptor.match(uri)
            if params is not None:
                return descriptor, params
        return None

    def snapshot_capabilities(self) -> CapabilitySet:
        """Point-in-time copy of the registered tools and resources."""
        with self._lock:
            return CapabilitySet(
                tool_descriptors=tuple(self._tools.values()),
                resource_descriptors=tuple(self._resources.values()),
            )

    def list_tools(self) -> list[str]:
        with self._lock:
            return list(self._tools)

    # ------------------------------------------------------------------
    # Automation rules
    # ------------------------------------------------------------------

    def register_rule(self, rule: AutomationRule) -> bool:
        """
        Create or replace a rule by name.

        Returns:
            True if an existing rule was replaced
        """
        with self._lock:
            replaced = rule.name in self._rules
            self._rules[rule.name] = rule
        logger.info("Rule %s %s", rule.name, "replaced" if replaced else "registered")
        return replaced

    def unregister_rule(self, name: str) -> bool:
        """
        Remove a rule by name; unknown names are a no-op.

        Returns:
            True if a rule was removed
        """
        with self._lock:
            removed = self._rules.pop(name, None)
        return removed is not None

    def rules(self) -> list[AutomationRule]:
        with self._lock:
            return list(self._rules.values())

    def __len__(self) -> int:
        """Return number of registered tools."""
        with self._lock:
            return len(self._tools)

    def __contains__(self, name: str) -> bool:
        """Check if a tool or resource pattern is registered."""
        with self._lock:
            return name in self._tools or name in self._resources
