"""OpenAI-compatible chat completion route."""

from __future__ import annotations

import logging
from typing import Annotated, Any, Union

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from ..services.chat_service import ChatService
from ..upstream.upstream_context import RequestContext
from .api_dependencies import get_chat_service, get_request_context
from .api_schemas import ChatCompletionRequest

logger = logging.getLogger(__name__)

SSE_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive"}
SSE_MEDIA_TYPE = "text/event-stream"

router = APIRouter(prefix="/v1/chat", tags=["chat"])


@router.post("/completions", response_model=None)
async def create_chat_completion(
    payload: ChatCompletionRequest,
    context: Annotated[RequestContext, Depends(get_request_context)],
    service: Annotated[ChatService, Depends(get_chat_service)],
) -> Union[StreamingResponse, dict[str, Any]]:
    """Create a chat completion, streamed when ``stream`` is set."""

    logger.info(
        "api.chat.completions",
        extra={"model": payload.model, "stream": payload.stream, "messages": len(payload.messages)},
    )
    if payload.stream:
        units = await service.stream_completion(context, payload.model, payload.messages)
        return StreamingResponse(units, media_type=SSE_MEDIA_TYPE, headers=SSE_HEADERS)
    return await service.create_completion(context, payload.model, payload.messages)


__all__ = ["SSE_HEADERS", "SSE_MEDIA_TYPE", "router"]
