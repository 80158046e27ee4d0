"""
Schema validation for tool parameters.

Each tool declares its parameter schema as a pydantic model deriving from
``ToolParams``. ``validate()`` turns an untyped payload into that model or
raises ``ValidationError`` naming every offending field path.

Rules:
    - Scalars use pydantic's Strict* types: no silent coercion ("5" stays a
      string and fails an int field).
    - Unknown fields are rejected (extra="forbid").
    - Optional fields default to absent; ``present_fields()`` drops them
      instead of reporting null.

Pure module — no I/O, no side effects.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime
from typing import Annotated, Any, TypeVar

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, StrictStr
from pydantic import ValidationError as PydanticValidationError

ROOT_PATH = "<root>"


class ToolParams(BaseModel):
    """Base class for all tool parameter schemas."""

    model_config = ConfigDict(extra="forbid", frozen=True)


P = TypeVar("P", bound=ToolParams)


def _check_iso_date(value: str) -> str:
    """Accept any ISO-8601 date or datetime; always return extended-format text.

    Basic-format input (``20250303``) is rewritten so the first ten
    characters are always ``YYYY-MM-DD`` and text comparison orders by date.
    """
    try:
        if "T" not in value:
            return date.fromisoformat(value).isoformat()
        parsed = datetime.fromisoformat(value)
    except ValueError as exc:
        raise ValueError(f"{value!r} is not an ISO-8601 date") from exc
    if value[:10] == parsed.date().isoformat() and value[10] == "T":
        return value
    return parsed.isoformat()


NonEmptyStr = Annotated[StrictStr, Field(min_length=1)]
"""A string with at least one character."""

IsoDate = Annotated[StrictStr, AfterValidator(_check_iso_date)]
"""An ISO-8601 date (``2025-03-01``) or datetime (``2025-03-01T09:00:00``), kept as extended-format text."""


@dataclass(frozen=True)
class FieldIssue:
    """One offending field: dotted path plus reason."""

    path: str
    reason: str

    def __str__(self) -> str:
        return f"{self.path}: {self.reason}"


class ValidationError(Exception):
    """Payload does not satisfy a tool's parameter schema."""

    def __init__(self, issues: tuple[FieldIssue, ...]) -> None:
        self.issues = issues
        super().__init__("; ".join(str(i) for i in issues))

    @property
    def paths(self) -> tuple[str, ...]:
        return tuple(i.path for i in self.issues)


def _format_path(loc: tuple[int | str, ...]) -> str:
    return ".".join(str(part) for part in loc) or ROOT_PATH


def _reason(error: Mapping[str, Any]) -> str:
    if error["type"] == "missing":
        return "is required"
    if error["type"] == "extra_forbidden":
        return "is not a recognised parameter"
    return str(error["msg"])


def validate(schema: type[P], raw_payload: Any) -> P:
    """
    Validate a raw payload against a parameter schema.

    Args:
        schema: ToolParams subclass describing the parameters
        raw_payload: Untyped payload from the request envelope (None = no params)

    Returns:
        Instance of ``schema`` holding the typed parameters

    Raises:
        ValidationError: With one FieldIssue per offending field
    """
    if raw_payload is None:
        raw_payload = {}
    if not isinstance(raw_payload, Mapping):
        raise ValidationError(
            (FieldIssue(ROOT_PATH, f"expected an object, got {type(raw_payload).__name__}"),)
        )
    try:
        return schema.model_validate(dict(raw_payload))
    except PydanticValidationError as exc:
        issues = tuple(
            FieldIssue(path=_format_path(tuple(err["loc"])), reason=_reason(err))
            for err in exc.errors()
        )
        raise ValidationError(issues) from None


def present_fields(params: ToolParams) -> dict[str, Any]:
    """Fields the client actually supplied with a non-null value."""
    return params.model_dump(exclude_none=True, exclude_unset=True)


def json_schema(schema: type[ToolParams]) -> dict[str, Any]:
    """JSON schema advertised to clients for a parameter model."""
    return schema.model_json_schema()


class NoParams(ToolParams):
    """Schema for tools that take no parameters."""
