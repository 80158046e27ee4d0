"""
Automation-rule tools, shared by the moods and projects servers.

Rules are declarative (triggers, actions, conditions as opaque strings) and
live in the server's registry. Only the register / replace / remove
lifecycle is handled here; nothing evaluates them.
"""

from __future__ import annotations

import json
from collections.abc import Mapping

from pydantic import StrictStr

from core.envelopes import ContentBlock, TextBlock
from core.records import AutomationRule
from core.schema import NoParams, NonEmptyStr, ToolParams
from life_mcp.registry import Registry
from life_mcp.schemas import URI_RULES
from tools.base import ResourceDescriptor, ToolDescriptor, ToolResult

PROJECTS_RULE = AutomationRule(
    name="projects",
    description="Project lifecycle automation",
    triggers=("project.created", "project.updated", "project.completed"),
    actions=(
        "notify.project.status_change",
        "update.project.metrics",
        "schedule.project.review",
    ),
    conditions=(
        'project.status === "completed"',
        'project.tags.includes("urgent")',
        'project.metadata.priority === "high"',
    ),
)


class RegisterRuleParams(ToolParams):
    name: NonEmptyStr
    description: StrictStr
    triggers: list[StrictStr]
    actions: list[StrictStr]
    conditions: list[StrictStr]


class RuleNameParams(ToolParams):
    name: NonEmptyStr


class RuleTools:
    """Rule lifecycle handlers bound to one registry."""

    def __init__(self, registry: Registry) -> None:
        self._registry = registry

    def register_rule(self, params: RegisterRuleParams) -> ToolResult:
        rule = AutomationRule(
            name=params.name,
            description=params.description,
            triggers=tuple(params.triggers),
            actions=tuple(params.actions),
            conditions=tuple(params.conditions),
        )
        replaced = self._registry.register_rule(rule)
        return ToolResult.ok(f"Rule {rule.name} {'replaced' if replaced else 'registered'}")

    def unregister_rule(self, params: RuleNameParams) -> ToolResult:
        if self._registry.unregister_rule(params.name):
            return ToolResult.ok(f"Rule {params.name} removed")
        return ToolResult.ok(f"Rule {params.name} was not registered")

    def list_rules(self, params: NoParams) -> ToolResult:
        return ToolResult.ok(self._rules_json())

    def read_rules(self, uri: str, params: Mapping[str, str]) -> list[ContentBlock]:
        return [TextBlock(self._rules_json())]

    def _rules_json(self) -> str:
        return json.dumps([r.to_dict() for r in self._registry.rules()], indent=2)

    def descriptors(self) -> list[ToolDescriptor | ResourceDescriptor]:
        return [
            ToolDescriptor(
                name="registerRule",
                description="Create or replace an automation rule by name",
                parameter_schema=RegisterRuleParams,
                handler=self.register_rule,
            ),
            ToolDescriptor(
                name="unregisterRule",
                description="Remove an automation rule by name (no-op if absent)",
                parameter_schema=RuleNameParams,
                handler=self.unregister_rule,
            ),
            ToolDescriptor(
                name="listRules",
                description="List registered automation rules",
                parameter_schema=NoParams,
                handler=self.list_rules,
            ),
            ResourceDescriptor(
                uri_pattern=URI_RULES,
                description="Registered automation rules as JSON",
                resolver=self.read_rules,
            ),
        ]
