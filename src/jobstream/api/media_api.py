"""Image and video generation routes."""

from __future__ import annotations

import asyncio
import logging
from typing import Annotated, Any, Union

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from ..services.media_generation import MediaGenerationService
from ..streaming.streaming_chunks import format_sse, media_payload, new_completion_id
from ..streaming.streaming_models import StreamSession
from ..streaming.streaming_sink import ChunkSink, finalize_stream
from ..upstream.upstream_context import RequestContext
from .api_dependencies import get_media_service, get_request_context
from .api_schemas import ImageGenerationRequest, ResponseFormat, VideoGenerationRequest
from .chat_api import SSE_HEADERS, SSE_MEDIA_TYPE

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["media"])


async def _render_data(
    service: MediaGenerationService,
    urls: list[str],
    response_format: ResponseFormat,
) -> list[dict[str, str]]:
    if response_format == "b64_json":
        encoded = await asyncio.gather(*(service.fetch_base64(url) for url in urls))
        return [{"b64_json": value} for value in encoded]
    return [{"url": url} for url in urls]


def _stream_payload(payload: dict[str, Any], model: str) -> StreamingResponse:
    session = StreamSession(completion_id=new_completion_id(), model=model)
    sink = ChunkSink()
    sink.write(format_sse(payload))
    finalize_stream(session, sink)
    return StreamingResponse(sink, media_type=SSE_MEDIA_TYPE, headers=SSE_HEADERS)


@router.post("/images/generations", response_model=None)
async def create_images(
    payload: ImageGenerationRequest,
    context: Annotated[RequestContext, Depends(get_request_context)],
    service: Annotated[MediaGenerationService, Depends(get_media_service)],
) -> Union[StreamingResponse, dict[str, Any]]:
    """Generate images and return their URLs or base64 bodies."""

    logger.info(
        "api.images.generations",
        extra={"model": payload.model, "stream": payload.stream, "format": payload.response_format},
    )
    urls = await service.generate_images(
        context,
        payload.model,
        payload.prompt,
        width=payload.width,
        height=payload.height,
        image_url=payload.image_url,
        sample_strength=payload.sample_strength,
        negative_prompt=payload.negative_prompt,
    )
    body = media_payload(await _render_data(service, urls, payload.response_format))
    if payload.stream:
        return _stream_payload(body, payload.model or "")
    return body


@router.post("/videos/generations", response_model=None)
async def create_videos(
    payload: VideoGenerationRequest,
    context: Annotated[RequestContext, Depends(get_request_context)],
    service: Annotated[MediaGenerationService, Depends(get_media_service)],
) -> Union[StreamingResponse, dict[str, Any]]:
    """Generate a video from a first frame image."""

    logger.info(
        "api.videos.generations",
        extra={"model": payload.model, "stream": payload.stream, "format": payload.response_format},
    )
    urls = await service.generate_video(
        context,
        payload.model,
        payload.prompt,
        first_frame_image=payload.first_frame_url,
        aspect_ratio=payload.aspect_ratio,
        duration_seconds=payload.duration,
        fps=payload.fps,
    )
    body = media_payload(await _render_data(service, urls, payload.response_format))
    if payload.stream:
        return _stream_payload(body, payload.model or "")
    return body


__all__ = ["router"]
