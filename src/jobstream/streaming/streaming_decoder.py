"""Incremental Server-Sent-Events decoder for raw upstream byte chunks."""

from __future__ import annotations

import codecs
import json
import logging
import re
from typing import Any

from .streaming_models import StreamEvent

logger = logging.getLogger(__name__)

_LINE_END = re.compile(r"\r\n|\r|\n")
_DEFAULT_EVENT = "message"


class EventStreamDecoder:
    """Turn arbitrary byte chunks into :class:`StreamEvent` records.

    A chunk may end in the middle of a multi-byte character or in the middle
    of a line; both remainders are carried to the next :meth:`feed` call and
    released by :meth:`flush` once the connection ends. Framing follows the
    SSE grammar: ``event:`` names the record, ``data:`` lines are joined with
    newlines and a blank line dispatches. The decoder attaches no meaning to
    ``[DONE]``.
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""
        self._event_type = ""
        self._data_lines: list[str] = []

    def feed(self, data: bytes) -> list[StreamEvent]:
        text = self._decoder.decode(data)
        return self._consume(text, final=False)

    def flush(self) -> list[StreamEvent]:
        """Release decoder remainders and the trailing undispatched record."""

        events = self._consume(self._decoder.decode(b"", final=True), final=True)
        if self._buffer:
            line, self._buffer = self._buffer, ""
            self._process_line(line, events)
        self._dispatch(events)
        return events

    def _consume(self, text: str, *, final: bool) -> list[StreamEvent]:
        events: list[StreamEvent] = []
        if text:
            self._buffer += text
        while True:
            match = _LINE_END.search(self._buffer)
            if match is None:
                break
            # a trailing "\r" may be the first half of "\r\n"
            if not final and match.group() == "\r" and match.end() == len(self._buffer):
                break
            line = self._buffer[: match.start()]
            self._buffer = self._buffer[match.end() :]
            self._process_line(line, events)
        return events

    def _process_line(self, line: str, events: list[StreamEvent]) -> None:
        if not line:
            self._dispatch(events)
            return
        if line.startswith(":"):
            return
        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if name == "event":
            self._event_type = value
        elif name == "data":
            self._data_lines.append(value)

    def _dispatch(self, events: list[StreamEvent]) -> None:
        if not self._data_lines:
            self._event_type = ""
            return
        data = "\n".join(self._data_lines)
        event_type = self._event_type or _DEFAULT_EVENT
        self._data_lines = []
        self._event_type = ""
        events.append(StreamEvent(event_type=event_type, payload=parse_payload(data)))


def parse_payload(data: str) -> Any:
    """Parse a record body as JSON, returning the raw string on failure."""

    try:
        return json.loads(data)
    except ValueError:
        logger.debug("sse.payload.not_json", extra={"length": len(data)})
        return data


__all__ = ["EventStreamDecoder", "parse_payload"]
