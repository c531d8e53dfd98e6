"""Translation of vendor agent events into chat completion chunks."""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from .streaming_models import (
    EventType,
    ResourceType,
    ResultDescriptor,
    StreamEvent,
    StreamSession,
)
from .streaming_sink import ChunkSink
from .streaming_tools import ToolCallOrchestrator

logger = logging.getLogger(__name__)

TOOL_CALL_PATH = re.compile(r"^/message/tool_calls/(\d+)$")
CONTENT_PARTS_PATH = re.compile(r"^/message/content/content_parts(?:/\d+)?(?:/text)?$")

_JOB_ID_MARKER = "submit_id"
_HISTORY_MARKER = "history"


def looks_like_tool_result(text: str) -> bool:
    """Heuristic: raw tool result blobs mention a job id and a history record.

    Such text is machine-readable metadata and is kept out of the visible
    stream.
    """

    return _JOB_ID_MARKER in text and _HISTORY_MARKER in text


def match_tool_call_index(path: str | None) -> int | None:
    """Return the array index captured from a ``/message/tool_calls/<n>`` path."""

    if not path:
        return None
    match = TOOL_CALL_PATH.match(path)
    if match is None:
        return None
    return int(match.group(1))


def _parse_resource_type(value: Any) -> ResourceType | None:
    if not isinstance(value, str):
        return None
    lowered = value.lower()
    if "video" in lowered:
        return ResourceType.VIDEO
    if "image" in lowered:
        return ResourceType.IMAGE
    return None


def parse_result_descriptor(value: Any) -> ResultDescriptor | None:
    """Extract the ``submit_id`` and resource type from a tool result.

    ``value`` may be a JSON string or an already decoded object; the job id
    is looked up at the top level and under ``data``.
    """

    if isinstance(value, str):
        if _JOB_ID_MARKER not in value:
            return None
        try:
            value = json.loads(value)
        except ValueError:
            return None
    if not isinstance(value, dict):
        return None

    candidates = [value]
    if isinstance(value.get("data"), dict):
        candidates.append(value["data"])
    for candidate in candidates:
        submit_id = candidate.get(_JOB_ID_MARKER)
        if isinstance(submit_id, (str, int)) and str(submit_id):
            resource_type = _parse_resource_type(
                candidate.get("resource_type") or candidate.get("type") or value.get("resource_type")
            )
            return ResultDescriptor(submit_id=str(submit_id), resource_type=resource_type)
    return None


def _content_text(payload: dict[str, Any]) -> str:
    content = payload.get("content")
    if not isinstance(content, dict):
        return ""
    parts = content.get("content_parts")
    if not isinstance(parts, list):
        return ""
    texts = [part.get("text") for part in parts if isinstance(part, dict)]
    return "".join(text for text in texts if isinstance(text, str) and text)


class StreamTranslator:
    """Apply decoded events to a :class:`StreamSession` in arrival order."""

    def __init__(
        self,
        session: StreamSession,
        sink: ChunkSink,
        orchestrator: ToolCallOrchestrator,
    ) -> None:
        self.session = session
        self.sink = sink
        self.orchestrator = orchestrator

    def handle(self, event: StreamEvent) -> None:
        if self.session.finished:
            return
        payload = event.payload
        if not isinstance(payload, dict):
            logger.debug("translator.event.skipped", extra={"event": event.event_type})
            return
        if event.event_type == EventType.SYSTEM:
            self._on_system(payload)
        elif event.event_type == EventType.MESSAGE:
            self._on_message(payload)
        elif event.event_type == EventType.DELTA:
            self._on_delta(payload)

    def _on_system(self, payload: dict[str, Any]) -> None:
        if payload.get("type") == "stream_complete":
            logger.info("translator.stream_complete", extra={"completion_id": self.session.completion_id})
            self.orchestrator.on_agent_finished()

    def _on_message(self, payload: dict[str, Any]) -> None:
        session = self.session
        status = payload.get("status")
        if not session.started and status == "in_progress":
            self.sink.write_chunk(session, {"role": "assistant", "content": ""})
            session.started = True

        author = payload.get("author")
        is_tool = isinstance(author, dict) and author.get("role") == "tool"
        text = _content_text(payload)

        if is_tool:
            metadata = payload.get("metadata")
            tool_call_id = metadata.get("tool_call_id") if isinstance(metadata, dict) else None
            session.current_tool_call_id = tool_call_id or None
            descriptor = parse_result_descriptor(text) if text else None
            if descriptor is not None:
                self.orchestrator.correlate(session.current_tool_call_id, descriptor)

        self._emit_text(text)

        if status == "finished_successfully" and not is_tool and not session.stop_sent:
            self.sink.write_chunk(session, {}, "stop")
            session.stop_sent = True
            self.orchestrator.on_agent_finished()

    def _on_delta(self, payload: dict[str, Any]) -> None:
        op = payload.get("op")
        path = payload.get("path")
        value = payload.get("value")

        index = match_tool_call_index(path)
        if index is not None:
            if op == "add":
                self._on_tool_call_added(index, value)
            return

        if op == "replace" and isinstance(path, str) and CONTENT_PARTS_PATH.match(path):
            descriptor = parse_result_descriptor(value)
            if descriptor is not None:
                self.orchestrator.correlate(self.session.current_tool_call_id, descriptor)
                return

        if op == "append" and isinstance(value, str):
            self._emit_text(value)

    def _on_tool_call_added(self, index: int, value: Any) -> None:
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except ValueError:
                logger.warning("translator.tool_call.invalid", extra={"index": index})
                return
        if not isinstance(value, dict):
            return
        func = value.get("func") or value.get("function")
        name = func.get("name") if isinstance(func, dict) else None
        tool_call_id = value.get("id")
        if not tool_call_id or not name:
            logger.warning("translator.tool_call.incomplete", extra={"index": index})
            return
        arguments = func.get("arguments") or ""
        if not isinstance(arguments, str):
            arguments = json.dumps(arguments, ensure_ascii=False)
        record = self.orchestrator.register_tool_call(index, str(tool_call_id), str(name), arguments)
        if record is not None:
            self.sink.write_chunk(self.session, {"tool_calls": [record.to_delta()]})

    def _emit_text(self, text: str) -> None:
        if not text:
            return
        if looks_like_tool_result(text):
            logger.debug("translator.tool_result.suppressed", extra={"length": len(text)})
            return
        self.sink.write_chunk(self.session, {"content": text})


__all__ = [
    "CONTENT_PARTS_PATH",
    "StreamTranslator",
    "TOOL_CALL_PATH",
    "looks_like_tool_result",
    "match_tool_call_index",
    "parse_result_descriptor",
]
