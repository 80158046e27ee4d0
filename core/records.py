"""Persisted record types — pure value objects.

Each record type carries:
    FIELDS          explicit accessor table, wire field name -> getter.
                    Query filters are evaluated through this table only.
    MUTABLE_FIELDS  wire field names an update patch may touch.

Wire field names are camelCase (``projectId``, ``dueDate``) because filters
and patches arrive from clients; attributes stay snake_case.

No I/O, no datetime.now() outside ``utc_now_iso``.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any, ClassVar, Literal

from core.errors import UnknownFieldError

ProjectStatus = Literal["active", "completed", "archived"]
TaskStatus = Literal["todo", "in_progress", "done"]

PROJECT_STATUSES: frozenset[str] = frozenset({"active", "completed", "archived"})
TASK_STATUSES: frozenset[str] = frozenset({"todo", "in_progress", "done"})


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and a Z suffix."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _check_patch(record_name: str, patch: Mapping[str, Any], allowed: frozenset[str]) -> None:
    unknown = sorted(set(patch) - allowed)
    if unknown:
        raise UnknownFieldError(
            f"{record_name} fields {unknown} cannot be updated; updatable: {sorted(allowed)}",
            details=tuple(unknown),
        )


@dataclass(frozen=True)
class LogEntry:
    """A single ingested log entry. Append-only: never patched, only deleted by id.

    Attributes:
        id: Globally unique, never reused even after delete.
        timestamp: ISO-8601 string.
        type: Free-form category (e.g. "meal", "workout").
        data: Arbitrary structured payload.
        metadata: Optional extra mapping.
    """

    id: str
    timestamp: str
    type: str
    data: Mapping[str, Any] = field(default_factory=dict)
    metadata: Mapping[str, Any] | None = None

    FIELDS: ClassVar[Mapping[str, Callable[[LogEntry], Any]]] = {
        "id": lambda r: r.id,
        "timestamp": lambda r: r.timestamp,
        "type": lambda r: r.type,
        "data": lambda r: r.data,
        "metadata": lambda r: r.metadata,
    }
    MUTABLE_FIELDS: ClassVar[frozenset[str]] = frozenset()

    def with_server_fields(self, record_id: str, now: str) -> LogEntry:
        return replace(self, id=self.id or record_id, timestamp=self.timestamp or now)

    def with_patch(self, patch: Mapping[str, Any], now: str) -> LogEntry:
        _check_patch("LogEntry", patch, self.MUTABLE_FIELDS)
        return self

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "timestamp": self.timestamp,
            "type": self.type,
            "data": dict(self.data),
        }
        if self.metadata is not None:
            out["metadata"] = dict(self.metadata)
        return out


@dataclass(frozen=True)
class MoodEntry:
    id: str
    mood: str
    timestamp: str = ""
    metadata: str | None = None

    FIELDS: ClassVar[Mapping[str, Callable[[MoodEntry], Any]]] = {
        "id": lambda r: r.id,
        "mood": lambda r: r.mood,
        "timestamp": lambda r: r.timestamp,
        "metadata": lambda r: r.metadata,
    }
    MUTABLE_FIELDS: ClassVar[frozenset[str]] = frozenset({"mood", "metadata"})

    def __post_init__(self) -> None:
        if not self.mood:
            raise ValueError("mood must not be empty")

    def with_server_fields(self, record_id: str, now: str) -> MoodEntry:
        return replace(self, id=self.id or record_id, timestamp=self.timestamp or now)

    def with_patch(self, patch: Mapping[str, Any], now: str) -> MoodEntry:
        _check_patch("MoodEntry", patch, self.MUTABLE_FIELDS)
        return replace(
            self,
            mood=patch.get("mood", self.mood),
            metadata=patch.get("metadata", self.metadata),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"id": self.id, "mood": self.mood, "timestamp": self.timestamp}
        if self.metadata is not None:
            out["metadata"] = self.metadata
        return out


@dataclass(frozen=True)
class Project:
    id: str
    name: str
    description: str
    status: ProjectStatus = "active"
    created_at: str = ""
    updated_at: str = ""

    FIELDS: ClassVar[Mapping[str, Callable[[Project], Any]]] = {
        "id": lambda r: r.id,
        "name": lambda r: r.name,
        "description": lambda r: r.description,
        "status": lambda r: r.status,
        "createdAt": lambda r: r.created_at,
        "updatedAt": lambda r: r.updated_at,
    }
    MUTABLE_FIELDS: ClassVar[frozenset[str]] = frozenset({"name", "description", "status"})

    def __post_init__(self) -> None:
        if self.status not in PROJECT_STATUSES:
            raise ValueError(
                f"status must be one of {sorted(PROJECT_STATUSES)}, got {self.status!r}"
            )

    def with_server_fields(self, record_id: str, now: str) -> Project:
        return replace(
            self,
            id=self.id or record_id,
            created_at=self.created_at or now,
            updated_at=self.updated_at or now,
        )

    def with_patch(self, patch: Mapping[str, Any], now: str) -> Project:
        _check_patch("Project", patch, self.MUTABLE_FIELDS)
        return replace(
            self,
            name=patch.get("name", self.name),
            description=patch.get("description", self.description),
            status=patch.get("status", self.status),
            updated_at=now,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass(frozen=True)
class Task:
    id: str
    project_id: str
    title: str
    description: str | None = None
    status: TaskStatus = "todo"
    due_date: str | None = None
    created_at: str = ""
    updated_at: str = ""

    FIELDS: ClassVar[Mapping[str, Callable[[Task], Any]]] = {
        "id": lambda r: r.id,
        "projectId": lambda r: r.project_id,
        "title": lambda r: r.title,
        "description": lambda r: r.description,
        "status": lambda r: r.status,
        "dueDate": lambda r: r.due_date,
        "createdAt": lambda r: r.created_at,
        "updatedAt": lambda r: r.updated_at,
    }
    MUTABLE_FIELDS: ClassVar[frozenset[str]] = frozenset(
        {"title", "description", "status", "dueDate"}
    )

    def __post_init__(self) -> None:
        if self.status not in TASK_STATUSES:
            raise ValueError(f"status must be one of {sorted(TASK_STATUSES)}, got {self.status!r}")

    def with_server_fields(self, record_id: str, now: str) -> Task:
        return replace(
            self,
            id=self.id or record_id,
            created_at=self.created_at or now,
            updated_at=self.updated_at or now,
        )

    def with_patch(self, patch: Mapping[str, Any], now: str) -> Task:
        _check_patch("Task", patch, self.MUTABLE_FIELDS)
        return replace(
            self,
            title=patch.get("title", self.title),
            description=patch.get("description", self.description),
            status=patch.get("status", self.status),
            due_date=patch.get("dueDate", self.due_date),
            updated_at=now,
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "projectId": self.project_id,
            "title": self.title,
            "status": self.status,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.description is not None:
            out["description"] = self.description
        if self.due_date is not None:
            out["dueDate"] = self.due_date
        return out


@dataclass(frozen=True)
class AutomationRule:
    """Declarative automation rule managed by the registry.

    Evaluation happens elsewhere; only the register / replace / remove
    lifecycle lives here.
    """

    name: str
    description: str
    triggers: tuple[str, ...] = ()
    actions: tuple[str, ...] = ()
    conditions: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("rule name must not be empty")

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "triggers": list(self.triggers),
            "actions": list(self.actions),
            "conditions": list(self.conditions),
        }
