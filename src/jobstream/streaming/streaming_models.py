"""State carried through one translated agent stream."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class EventType(StrEnum):
    """Event names emitted by the vendor agent stream."""

    SYSTEM = "system"
    MESSAGE = "message"
    DELTA = "delta"


class ResourceType(StrEnum):
    """Media kind produced by a tool call job."""

    IMAGE = "image"
    VIDEO = "video"


@dataclass(frozen=True, slots=True)
class StreamEvent:
    """One decoded Server-Sent-Events record.

    ``payload`` is the parsed JSON value, or the raw data string when the
    record body is not JSON (``[DONE]`` and diagnostic lines).
    """

    event_type: str
    payload: Any

    @property
    def is_json_object(self) -> bool:
        return isinstance(self.payload, dict)


@dataclass(frozen=True, slots=True)
class ResultDescriptor:
    """Job reference embedded in a tool result payload."""

    submit_id: str
    resource_type: ResourceType | None = None


@dataclass(slots=True)
class ToolCallExtra:
    submit_id: str | None = None
    resource_type: ResourceType | None = None


@dataclass(slots=True)
class ToolCallRecord:
    """Agent tool invocation observed mid-stream."""

    id: str
    name: str
    arguments_raw: str = ""
    index: int = 0
    extra: ToolCallExtra = field(default_factory=ToolCallExtra)
    resolved: bool = False

    @property
    def is_correlated(self) -> bool:
        return bool(self.extra.submit_id)

    def to_delta(self) -> dict[str, Any]:
        """Return the OpenAI ``tool_calls`` entry announcing this call."""

        return {
            "index": self.index,
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments_raw},
        }


@dataclass(slots=True)
class StreamSession:
    """Mutable per-connection state shared by translator and orchestrator."""

    completion_id: str
    model: str
    started: bool = False
    finished: bool = False
    stop_sent: bool = False
    agent_finished: bool = False
    connection_closed: bool = False
    has_processed_tools: bool = False
    current_tool_call_id: str | None = None
    expected_tool_count: int = 0
    received_tool_results: int = 0
    pending_tool_calls: list[ToolCallRecord] = field(default_factory=list)
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)

    def find_tool_call(self, tool_call_id: str) -> ToolCallRecord | None:
        for record in self.pending_tool_calls:
            if record.id == tool_call_id:
                return record
        return None

    @property
    def unresolved_tool_calls(self) -> list[ToolCallRecord]:
        return [record for record in self.pending_tool_calls if not record.resolved]


__all__ = [
    "EventType",
    "ResourceType",
    "ResultDescriptor",
    "StreamEvent",
    "StreamSession",
    "ToolCallExtra",
    "ToolCallRecord",
]
