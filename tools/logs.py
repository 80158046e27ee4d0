"""
Log-ingestion tools — append-only LogEntry store plus optional AI processing.

Tools:
    insertLog   store an entry (id / timestamp assigned when omitted), then
                ask the AI provider to process it
    queryLogs   equality filter over entry fields, insertion order
    deleteLog   remove an entry by id (the id is retired, never reused)

Resources:
    logs://entries        every entry as JSON
    logs://entries/{id}   one entry as JSON

The AI provider is optional. When it fails, the entry stays stored and the
request reports HandlerFailed naming the stored id.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from pydantic import StrictStr

from core.envelopes import ContentBlock, TextBlock
from core.errors import NotFoundError, ToolError
from core.generation.base import GenerationProvider, GenerationRequest, Message
from core.records import LogEntry
from core.schema import IsoDate, NonEmptyStr, ToolParams, present_fields
from core.store import Store
from life_mcp.schemas import URI_LOG_ENTRIES, URI_LOG_ENTRY
from tools.base import ResourceDescriptor, ToolDescriptor, ToolResult

logger = logging.getLogger(__name__)

_AI_PROMPT = "Process this log entry: {entry}"


class InsertLogParams(ToolParams):
    type: NonEmptyStr
    data: dict[StrictStr, Any]
    metadata: dict[StrictStr, Any] | None = None
    id: NonEmptyStr | None = None
    timestamp: IsoDate | None = None


class QueryLogsParams(ToolParams):
    filter: dict[StrictStr, Any] | None = None


class DeleteLogParams(ToolParams):
    id: NonEmptyStr


def _entries_json(entries: list[LogEntry]) -> str:
    return json.dumps([e.to_dict() for e in entries], indent=2, default=str)


class LogTools:
    """
    Handlers for the log-ingestion server.

    Args:
        store: Store Adapter holding LogEntry records
        provider: Optional AI collaborator run after each insert
    """

    def __init__(self, store: Store[LogEntry], provider: GenerationProvider | None = None) -> None:
        self._store = store
        self._provider = provider

    async def insert_log(self, params: InsertLogParams) -> ToolResult:
        supplied = present_fields(params)
        entry = await self._store.insert(
            LogEntry(
                id=supplied.get("id", ""),
                timestamp=supplied.get("timestamp", ""),
                type=params.type,
                data=params.data,
                metadata=supplied.get("metadata"),
            )
        )
        logger.info("Stored log entry %s (type=%s)", entry.id, entry.type)

        blocks: list[ContentBlock | str] = [f"Log entry {entry.id} stored"]
        if self._provider is not None:
            blocks.append(await self._process(entry))
        return ToolResult.ok(*blocks)

    async def _process(self, entry: LogEntry) -> str:
        request = GenerationRequest(
            messages=(
                Message(role="user", content=_AI_PROMPT.format(entry=json.dumps(entry.to_dict()))),
            )
        )
        try:
            response = await self._provider.generate(request)  # type: ignore[union-attr]
        except Exception as exc:
            raise ToolError(
                f"Log entry {entry.id} was stored, but AI processing failed: {exc}"
            ) from exc
        return response.content

    async def query_logs(self, params: QueryLogsParams) -> ToolResult:
        entries = await self._store.query(params.filter or {})
        return ToolResult.ok(f"Found {len(entries)} log entries", _entries_json(entries))

    async def delete_log(self, params: DeleteLogParams) -> ToolResult:
        if not await self._store.delete(params.id):
            raise NotFoundError(f"Log entry {params.id!r} not found", details=(params.id,))
        return ToolResult.ok(f"Log entry {params.id} deleted")

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------

    async def read_entries(self, uri: str, params: Mapping[str, str]) -> list[ContentBlock]:
        return [TextBlock(_entries_json(await self._store.query({})))]

    async def read_entry(self, uri: str, params: Mapping[str, str]) -> list[ContentBlock]:
        entry = await self._store.get(params["id"])
        if entry is None:
            raise NotFoundError(f"Log entry {params['id']!r} not found", details=(params["id"],))
        return [TextBlock(json.dumps(entry.to_dict(), indent=2, default=str))]

    def descriptors(self) -> list[ToolDescriptor | ResourceDescriptor]:
        return [
            ToolDescriptor(
                name="insertLog",
                description=(
                    "Insert a new log entry. id and timestamp are assigned by the server "
                    "when omitted; the entry is then processed by the AI assistant."
                ),
                parameter_schema=InsertLogParams,
                handler=self.insert_log,
            ),
            ToolDescriptor(
                name="queryLogs",
                description=(
                    "Query logs with an equality filter over entry fields "
                    "(id, timestamp, type, data, metadata). No filter returns every entry."
                ),
                parameter_schema=QueryLogsParams,
                handler=self.query_logs,
            ),
            ToolDescriptor(
                name="deleteLog",
                description="Delete a log entry by id. Deleted ids are never reused.",
                parameter_schema=DeleteLogParams,
                handler=self.delete_log,
            ),
            ResourceDescriptor(
                uri_pattern=URI_LOG_ENTRIES,
                description="All log entries as JSON, in insertion order",
                resolver=self.read_entries,
            ),
            ResourceDescriptor(
                uri_pattern=URI_LOG_ENTRY,
                description="A single log entry as JSON",
                resolver=self.read_entry,
            ),
        ]
