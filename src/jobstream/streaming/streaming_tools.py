"""Resolution of agent tool calls whose results are asynchronous media jobs.

Tool calls are announced on the agent stream long before their media exists.
The orchestrator records them, binds each to the job that will produce its
result, polls those jobs with :class:`AdaptivePoller` one after another and
splices the rendered media back into the same output stream. It also owns
the decision of when the terminal marker may be written.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from ..exceptions import GatewayError, PollCancelledError
from ..polling.polling_models import JobHandle, JobKind, PollSettings
from ..polling.polling_poller import AdaptivePoller, StatusProbe
from .streaming_chunks import render_media
from .streaming_models import (
    ResourceType,
    ResultDescriptor,
    StreamSession,
    ToolCallRecord,
)
from .streaming_sink import ChunkSink, finalize_stream

logger = logging.getLogger(__name__)

ProbeFactory = Callable[[str, ResourceType], StatusProbe]


def infer_resource_type(record: ToolCallRecord) -> ResourceType:
    """Resource type of a record: correlated value first, then the tool name."""

    if record.extra.resource_type is not None:
        return record.extra.resource_type
    if "video" in record.name.lower():
        return ResourceType.VIDEO
    return ResourceType.IMAGE


class ToolCallOrchestrator:
    """Track, correlate and resolve tool calls for one stream session."""

    def __init__(
        self,
        session: StreamSession,
        sink: ChunkSink,
        *,
        probe_factory: ProbeFactory,
        poll_settings: Mapping[ResourceType, PollSettings],
        debounce_seconds: float = 0.1,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.session = session
        self.sink = sink
        self._probe_factory = probe_factory
        self._poll_settings = dict(poll_settings)
        self._debounce_seconds = max(0.0, debounce_seconds)
        self._sleep = sleep
        self._clock = clock
        self._task: asyncio.Task[None] | None = None
        self.log = logger

    @property
    def busy(self) -> bool:
        return self._task is not None and not self._task.done()

    def register_tool_call(
        self,
        index: int,
        tool_call_id: str,
        name: str,
        arguments_raw: str = "",
    ) -> ToolCallRecord | None:
        """Record a newly announced tool call; duplicates return ``None``."""

        session = self.session
        if session.find_tool_call(tool_call_id) is not None:
            self.log.debug("tools.add.duplicate", extra={"tool_call_id": tool_call_id})
            return None
        record = ToolCallRecord(
            id=tool_call_id,
            name=name,
            arguments_raw=arguments_raw,
            index=index,
        )
        session.pending_tool_calls.append(record)
        session.expected_tool_count += 1
        self.log.info(
            "tools.add",
            extra={"tool_call_id": tool_call_id, "tool": name, "index": index},
        )
        return record

    def correlate(self, tool_call_id: str | None, descriptor: ResultDescriptor) -> None:
        """Bind a result job to a known tool call and maybe trigger resolution."""

        session = self.session
        record = session.find_tool_call(tool_call_id) if tool_call_id else None
        if record is None:
            self.log.warning(
                "tools.correlate.unknown",
                extra={"tool_call_id": tool_call_id, "submit_id": descriptor.submit_id},
            )
            return
        if descriptor.resource_type is not None:
            record.extra.resource_type = descriptor.resource_type
        if record.extra.submit_id is not None:
            return
        record.extra.submit_id = descriptor.submit_id
        session.received_tool_results += 1
        self.log.info(
            "tools.correlate",
            extra={
                "tool_call_id": record.id,
                "submit_id": descriptor.submit_id,
                "received": session.received_tool_results,
                "expected": session.expected_tool_count,
            },
        )
        if 0 < session.expected_tool_count == session.received_tool_results:
            if not session.has_processed_tools:
                self.dispatch(self._debounce_seconds)
            elif not self.busy:
                self._start(self._debounce_seconds, reason="follow_up")

    def dispatch(self, delay: float = 0.0) -> bool:
        """Start resolution once per session; later calls are no-ops."""

        session = self.session
        if session.has_processed_tools:
            return False
        session.has_processed_tools = True
        self._start(delay, reason="dispatch")
        return True

    def _start(self, delay: float, *, reason: str) -> None:
        session = self.session
        self.log.info(
            "tools.dispatch",
            extra={
                "completion_id": session.completion_id,
                "reason": reason,
                "tool_calls": len(session.pending_tool_calls),
                "unresolved": len(session.unresolved_tool_calls),
            },
        )
        self._task = asyncio.create_task(self._run(delay))

    def on_agent_finished(self) -> None:
        session = self.session
        session.agent_finished = True
        if not self.busy and any(record.is_correlated for record in session.unresolved_tool_calls):
            session.has_processed_tools = True
            self._start(0.0, reason="agent_finished")
            return
        self.maybe_finalize()

    def maybe_finalize(self) -> bool:
        """Finalize when nothing is pending and no resolution is running."""

        if self.busy or self.session.unresolved_tool_calls:
            return False
        return finalize_stream(self.session, self.sink)

    async def on_connection_end(self) -> None:
        """Drain tool resolution after the upstream closed, then finalize."""

        session = self.session
        session.connection_closed = True
        try:
            pending = session.unresolved_tool_calls
            if pending and not self.busy:
                if session.agent_finished or any(record.is_correlated for record in pending):
                    session.has_processed_tools = True
                    self._start(0.0, reason="connection_end")
                else:
                    self.log.warning(
                        "tools.unresolved_at_close",
                        extra={
                            "completion_id": session.completion_id,
                            "unresolved": len(session.unresolved_tool_calls),
                        },
                    )
            if self._task is not None:
                await self._task
        finally:
            finalize_stream(session, self.sink)

    async def aclose(self) -> None:
        """Abort in-flight polls and the resolution task."""

        self.session.cancel_event.set()
        task = self._task
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except (asyncio.CancelledError, PollCancelledError):
            self.log.info("tools.cancelled", extra={"completion_id": self.session.completion_id})

    async def _run(self, delay: float) -> None:
        if delay > 0:
            await asyncio.sleep(delay)
        await self._resolve_all()
        session = self.session
        if session.connection_closed or (session.agent_finished and not session.unresolved_tool_calls):
            finalize_stream(session, self.sink)

    async def _resolve_all(self) -> None:
        # the list may grow while earlier calls are polled
        session = self.session
        position = 0
        while position < len(session.pending_tool_calls):
            record = session.pending_tool_calls[position]
            position += 1
            if record.resolved:
                continue
            # uncorrelated calls wait for their result until the upstream closes
            if not record.is_correlated and not session.connection_closed:
                continue
            try:
                await self._resolve_one(record)
            finally:
                record.resolved = True

    async def _resolve_one(self, record: ToolCallRecord) -> None:
        submit_id = record.extra.submit_id
        if not submit_id:
            self.log.warning(
                "tools.resolve.skipped",
                extra={"tool_call_id": record.id, "reason": "missing submit_id"},
            )
            return

        resource_type = infer_resource_type(record)
        settings = self._poll_settings[resource_type]
        poller = AdaptivePoller(
            settings,
            kind=JobKind.TOOL_RESULT,
            clock=self._clock,
            sleep=self._sleep,
            cancel_event=self.session.cancel_event,
        )
        handle = JobHandle(
            submit_id=submit_id,
            kind=JobKind.TOOL_RESULT,
            expected_item_count=settings.expected_item_count,
        )
        try:
            outcome = await poller.poll(self._probe_factory(submit_id, resource_type), handle=handle)
        except PollCancelledError:
            raise
        except GatewayError as exc:
            self.log.error(
                "tools.resolve.failed",
                extra={
                    "tool_call_id": record.id,
                    "submit_id": submit_id,
                    "category": exc.category,
                    "detail": exc.message,
                },
            )
            return
        except Exception:
            self.log.exception(
                "tools.resolve.failed",
                extra={"tool_call_id": record.id, "submit_id": submit_id, "category": "unexpected"},
            )
            return

        urls = [str(item) for item in outcome.items if item]
        if not urls:
            self.log.warning("tools.resolve.empty", extra={"tool_call_id": record.id, "submit_id": submit_id})
            return
        self.sink.write_chunk(self.session, {"content": render_media(resource_type, urls)})
        self.log.info(
            "tools.resolve.done",
            extra={
                "tool_call_id": record.id,
                "submit_id": submit_id,
                "resource_type": resource_type.value,
                "items": len(urls),
                "exit_reason": outcome.exit_reason.value,
            },
        )


__all__ = ["ProbeFactory", "ToolCallOrchestrator", "infer_resource_type"]
