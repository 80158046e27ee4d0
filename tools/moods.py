"""
Mood-tracking tools.

Tools:
    logMood    record a mood with optional free-text metadata
    getMoods   list every mood entry, oldest first

Resources:
    moods://all   every mood entry as JSON
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping

from pydantic import StrictStr

from core.envelopes import ContentBlock, TextBlock
from core.records import MoodEntry
from core.schema import NoParams, NonEmptyStr, ToolParams
from core.store import Store
from life_mcp.schemas import URI_MOODS
from tools.base import ResourceDescriptor, ToolDescriptor, ToolResult

logger = logging.getLogger(__name__)


class LogMoodParams(ToolParams):
    mood: NonEmptyStr
    metadata: StrictStr | None = None


def _format_mood(entry: MoodEntry) -> str:
    line = f"- {entry.mood} ({entry.timestamp})"
    if entry.metadata:
        line += f": {entry.metadata}"
    return line


class MoodTools:
    """Handlers for the mood-tracking server."""

    def __init__(self, store: Store[MoodEntry]) -> None:
        self._store = store

    async def log_mood(self, params: LogMoodParams) -> ToolResult:
        entry = await self._store.insert(
            MoodEntry(id="", mood=params.mood, metadata=params.metadata)
        )
        logger.info("Logged mood %s (%s)", entry.id, entry.mood)
        return ToolResult.ok(f'Mood "{entry.mood}" logged successfully (ID: {entry.id})')

    async def get_moods(self, params: NoParams) -> ToolResult:
        entries = await self._store.query({})
        if not entries:
            return ToolResult.ok("No mood entries found")
        listing = "\n".join(_format_mood(e) for e in entries)
        return ToolResult.ok(f"Retrieved {len(entries)} mood entries:\n\n{listing}")

    async def read_all(self, uri: str, params: Mapping[str, str]) -> list[ContentBlock]:
        entries = await self._store.query({})
        return [TextBlock(json.dumps([e.to_dict() for e in entries], indent=2))]

    def descriptors(self) -> list[ToolDescriptor | ResourceDescriptor]:
        return [
            ToolDescriptor(
                name="logMood",
                description="Log a mood entry with optional metadata",
                parameter_schema=LogMoodParams,
                handler=self.log_mood,
            ),
            ToolDescriptor(
                name="getMoods",
                description="Retrieve all mood entries, oldest first",
                parameter_schema=NoParams,
                handler=self.get_moods,
            ),
            ResourceDescriptor(
                uri_pattern=URI_MOODS,
                description="All mood entries as JSON",
                resolver=self.read_all,
            ),
        ]
