"""Chat completions backed by image generation or the agent stream."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterable, Mapping, Sequence
from typing import Any

from ..chat.chat_messages import build_conversation_body, last_user_content, parse_model
from ..config import AppConfig
from ..exceptions import InvalidRequestError
from ..streaming.streaming_chunks import (
    aggregate_chunks,
    aggregate_stream,
    build_chunk,
    new_completion_id,
    render_images,
)
from ..streaming.streaming_models import ResourceType, StreamSession
from ..streaming.streaming_pipeline import AgentStreamPipeline
from ..streaming.streaming_sink import ChunkSink, finalize_stream
from ..upstream.upstream_base import JobBackend
from ..upstream.upstream_context import RequestContext
from .media_generation import MediaGenerationService

logger = logging.getLogger(__name__)

Messages = Sequence[Mapping[str, Any]]


class ChatService:
    """Route chat requests to image generation or the agent conversation."""

    def __init__(
        self,
        backend: JobBackend,
        config: AppConfig,
        media: MediaGenerationService,
    ) -> None:
        self._backend = backend
        self._config = config
        self._media = media

    def is_agent_model(self, model: str | None) -> bool:
        return bool(model) and model.split(":", 1)[0].startswith(self._config.agent_model)

    async def create_completion(
        self,
        context: RequestContext,
        model: str | None,
        messages: Messages,
    ) -> dict[str, Any]:
        """Return a ``chat.completion`` object."""

        self._ensure_messages(messages)
        if self.is_agent_model(model):
            resolved_model = model or self._config.agent_model
            return await aggregate_stream(
                self.agent_stream(context, resolved_model, messages),
                model=resolved_model,
            )

        resolved_model = model or self._config.default_image_model
        urls = await self._generate_for_chat(context, resolved_model, messages)
        completion_id = new_completion_id()
        chunk = build_chunk(completion_id, resolved_model, {"role": "assistant", "content": render_images(urls)}, "stop")
        return aggregate_chunks([chunk], model=resolved_model, completion_id=completion_id)

    async def stream_completion(
        self,
        context: RequestContext,
        model: str | None,
        messages: Messages,
    ) -> AsyncIterable[str]:
        """Return framed ``chat.completion.chunk`` units ending with ``[DONE]``.

        Image generation completes before the stream is returned so that
        failures surface as HTTP errors rather than truncated streams.
        """

        self._ensure_messages(messages)
        if self.is_agent_model(model):
            return self.agent_stream(context, model or self._config.agent_model, messages)

        resolved_model = model or self._config.default_image_model
        urls = await self._generate_for_chat(context, resolved_model, messages)
        session = StreamSession(completion_id=new_completion_id(), model=resolved_model)
        sink = ChunkSink()
        for position, url in enumerate(urls):
            finish_reason = "stop" if position == len(urls) - 1 else None
            sink.write_chunk(
                session,
                {"role": "assistant", "content": f"![image_{position}]({url})\n"},
                finish_reason,
            )
        session.stop_sent = bool(urls)
        finalize_stream(session, sink)
        return sink

    def agent_stream(
        self,
        context: RequestContext,
        model: str,
        messages: Messages,
    ) -> AgentStreamPipeline:
        body = build_conversation_body(messages)
        session = StreamSession(completion_id=new_completion_id(), model=model)
        logger.info(
            "chat.agent.start",
            extra={"completion_id": session.completion_id, "conversation_id": body["conversation_id"]},
        )

        def probe_factory(submit_id: str, resource_type: ResourceType):
            return self._media.status_probe(context, submit_id, resource_type)

        return AgentStreamPipeline(
            self._backend.open_event_stream(context, body),
            session,
            probe_factory=probe_factory,
            poll_settings=self._config.tool_poll_settings(),
            debounce_seconds=self._config.tool_debounce_seconds,
        )

    async def _generate_for_chat(
        self,
        context: RequestContext,
        model: str,
        messages: Messages,
    ) -> list[str]:
        size = parse_model(model)
        content = last_user_content(messages)
        return await self._media.generate_images(
            context,
            size.model,
            content.text,
            width=size.width,
            height=size.height,
            image_url=content.image_url,
        )

    @staticmethod
    def _ensure_messages(messages: Messages) -> None:
        if not messages:
            raise InvalidRequestError("messages must not be empty")


__all__ = ["ChatService"]
