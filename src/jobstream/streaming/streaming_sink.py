"""Output channel between stream producers and the HTTP response."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

from .streaming_chunks import SSE_DONE, build_chunk, format_sse
from .streaming_models import StreamSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class _Failure:
    error: BaseException


_END = object()


class ChunkSink:
    """Queue of framed units consumed by exactly one reader.

    The sink is closed either by :func:`finalize_stream` (clean end, the
    terminal marker is the last unit) or by :meth:`fail` (the reader gets the
    error and no marker). Writes after closing are dropped.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._closed = False
        self.units_written = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, unit: str) -> bool:
        if self._closed:
            logger.debug("sink.write.dropped", extra={"length": len(unit)})
            return False
        self._queue.put_nowait(unit)
        self.units_written += 1
        return True

    def write_chunk(
        self,
        session: StreamSession,
        delta: dict[str, Any],
        finish_reason: str | None = None,
    ) -> bool:
        if session.finished:
            logger.debug("sink.chunk.after_finish", extra={"completion_id": session.completion_id})
            return False
        chunk = build_chunk(session.completion_id, session.model, delta, finish_reason)
        return self.write(format_sse(chunk))

    def fail(self, error: BaseException) -> None:
        """Close the sink abnormally; the reader re-raises ``error``."""

        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_Failure(error))

    def _close_with(self, terminal: str) -> None:
        self.write(terminal)
        self._closed = True
        self._queue.put_nowait(_END)

    async def __aiter__(self) -> AsyncIterator[str]:
        while True:
            item = await self._queue.get()
            if item is _END:
                return
            if isinstance(item, _Failure):
                raise item.error
            yield item


def finalize_stream(session: StreamSession, sink: ChunkSink) -> bool:
    """Write the terminal marker once and mark the session finished.

    This is the only place that writes ``[DONE]``. Returns ``False`` when the
    session had already been finalized or the sink had failed.
    """

    if session.finished:
        return False
    session.finished = True
    if sink.closed:
        logger.info("stream.finalize.sink_closed", extra={"completion_id": session.completion_id})
        return False
    sink._close_with(SSE_DONE)
    logger.info(
        "stream.finalized",
        extra={
            "completion_id": session.completion_id,
            "tool_calls": len(session.pending_tool_calls),
        },
    )
    return True


__all__ = ["ChunkSink", "finalize_stream"]
