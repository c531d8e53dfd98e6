"""Wiring of decoder, translator and tool orchestrator for one connection."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping
from typing import Any

from ..exceptions import GatewayError, StreamAbnormalTerminationError
from ..polling.polling_models import PollSettings
from .streaming_decoder import EventStreamDecoder
from .streaming_models import ResourceType, StreamSession
from .streaming_sink import ChunkSink
from .streaming_tools import ProbeFactory, ToolCallOrchestrator
from .streaming_translator import StreamTranslator

logger = logging.getLogger(__name__)


class AgentStreamPipeline:
    """Translate one upstream byte stream into framed chat completion units.

    Iterating the pipeline starts a producer task that reads ``source``;
    the consumer receives units through a :class:`ChunkSink`. Leaving the
    iteration early (caller disconnect) cancels the producer, closes the
    upstream connection and aborts in-flight tool polls.
    """

    def __init__(
        self,
        source: AsyncIterator[bytes],
        session: StreamSession,
        *,
        probe_factory: ProbeFactory,
        poll_settings: Mapping[ResourceType, PollSettings],
        debounce_seconds: float = 0.1,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ) -> None:
        self.session = session
        self.sink = ChunkSink()
        self.decoder = EventStreamDecoder()
        self.orchestrator = ToolCallOrchestrator(
            session,
            self.sink,
            probe_factory=probe_factory,
            poll_settings=poll_settings,
            debounce_seconds=debounce_seconds,
            sleep=sleep,
        )
        self.translator = StreamTranslator(session, self.sink, self.orchestrator)
        self._source = source

    async def __aiter__(self) -> AsyncIterator[str]:
        producer = asyncio.create_task(self._produce())
        try:
            async for unit in self.sink:
                yield unit
        finally:
            if not producer.done():
                producer.cancel()
            await self.orchestrator.aclose()
            try:
                await producer
            except asyncio.CancelledError:
                logger.info("pipeline.cancelled", extra={"completion_id": self.session.completion_id})

    async def _produce(self) -> None:
        try:
            await self._pump()
        except GatewayError as exc:
            logger.warning(
                "pipeline.upstream_error",
                extra={"completion_id": self.session.completion_id, "category": exc.category, "detail": exc.message},
            )
            self.sink.fail(StreamAbnormalTerminationError(exc.message))
        except Exception as exc:
            logger.exception("pipeline.failed", extra={"completion_id": self.session.completion_id})
            self.sink.fail(StreamAbnormalTerminationError(str(exc) or type(exc).__name__))
        finally:
            await self._close_source()

    async def _pump(self) -> None:
        async for data in self._source:
            for event in self.decoder.feed(data):
                self.translator.handle(event)
        for event in self.decoder.flush():
            self.translator.handle(event)
        logger.info(
            "pipeline.upstream_closed",
            extra={
                "completion_id": self.session.completion_id,
                "agent_finished": self.session.agent_finished,
                "tool_calls": len(self.session.pending_tool_calls),
            },
        )
        await self.orchestrator.on_connection_end()

    async def _close_source(self) -> None:
        aclose = getattr(self._source, "aclose", None)
        if aclose is not None:
            await aclose()


__all__ = ["AgentStreamPipeline"]
