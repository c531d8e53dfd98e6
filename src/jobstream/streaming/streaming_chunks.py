"""OpenAI-compatible chat completion payloads and their SSE framing."""

from __future__ import annotations

import json
import time
import uuid
from collections.abc import AsyncIterable, Iterable, Sequence
from typing import Any

from .streaming_models import ResourceType

CHUNK_OBJECT = "chat.completion.chunk"
COMPLETION_OBJECT = "chat.completion"
DONE_MARKER = "[DONE]"
SSE_DONE = f"data: {DONE_MARKER}\n\n"


def new_completion_id() -> str:
    return f"chatcmpl-{uuid.uuid4().hex}"


def build_chunk(
    completion_id: str,
    model: str,
    delta: dict[str, Any],
    finish_reason: str | None = None,
    *,
    index: int = 0,
) -> dict[str, Any]:
    return {
        "id": completion_id,
        "object": CHUNK_OBJECT,
        "model": model,
        "choices": [{"index": index, "delta": delta, "finish_reason": finish_reason}],
    }


def format_sse(payload: dict[str, Any]) -> str:
    """Frame one JSON payload as a ``data:`` unit."""

    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


def render_images(urls: Sequence[str]) -> str:
    return "".join(f"![image_{position}]({url})\n" for position, url in enumerate(urls))


def render_video(url: str) -> str:
    return f'<video src="{url}" controls></video>\n[Download video]({url})\n'


def render_media(resource_type: ResourceType, urls: Sequence[str]) -> str:
    """Render generated media as inline markdown references."""

    if resource_type is ResourceType.VIDEO:
        return "".join(render_video(url) for url in urls)
    return render_images(urls)


def build_usage(completion_text: str) -> dict[str, int]:
    completion_tokens = len(completion_text) or 1
    return {
        "prompt_tokens": 1,
        "completion_tokens": completion_tokens,
        "total_tokens": completion_tokens + 1,
    }


def aggregate_chunks(
    chunks: Iterable[dict[str, Any]],
    *,
    model: str,
    completion_id: str | None = None,
) -> dict[str, Any]:
    """Fold streamed chunks into a single ``chat.completion`` object.

    Content deltas are concatenated in order; ``tool_calls`` entries are
    deduplicated by ``id`` keeping the first announcement.
    """

    content_parts: list[str] = []
    tool_calls: list[dict[str, Any]] = []
    seen_tool_ids: set[str] = set()
    resolved_id = completion_id

    for chunk in chunks:
        resolved_id = resolved_id or chunk.get("id")
        for choice in chunk.get("choices") or ():
            delta = choice.get("delta") or {}
            content = delta.get("content")
            if isinstance(content, str) and content:
                content_parts.append(content)
            for call in delta.get("tool_calls") or ():
                call_id = call.get("id")
                if call_id in seen_tool_ids:
                    continue
                if call_id:
                    seen_tool_ids.add(call_id)
                tool_calls.append(call)

    content = "".join(content_parts)
    message: dict[str, Any] = {"role": "assistant", "content": content}
    if tool_calls:
        message["tool_calls"] = tool_calls
    return {
        "id": resolved_id or new_completion_id(),
        "object": COMPLETION_OBJECT,
        "model": model,
        "choices": [{"index": 0, "message": message, "finish_reason": "stop"}],
        "usage": build_usage(content),
        "created": int(time.time()),
    }


def parse_sse_unit(unit: str) -> dict[str, Any] | None:
    """Return the chunk carried by one framed unit, ``None`` for the marker."""

    payload = unit.strip()
    if payload.startswith("data:"):
        payload = payload[len("data:") :].strip()
    if not payload or payload == DONE_MARKER:
        return None
    try:
        chunk = json.loads(payload)
    except ValueError:
        return None
    return chunk if isinstance(chunk, dict) else None


async def aggregate_stream(
    units: AsyncIterable[str],
    *,
    model: str,
    completion_id: str | None = None,
) -> dict[str, Any]:
    """Consume a framed chunk stream and return its aggregate form."""

    chunks: list[dict[str, Any]] = []
    async for unit in units:
        chunk = parse_sse_unit(unit)
        if chunk is not None:
            chunks.append(chunk)
    return aggregate_chunks(chunks, model=model, completion_id=completion_id)


def media_payload(data: Sequence[dict[str, str]]) -> dict[str, Any]:
    """Return the images/videos endpoint body ``{created, data}``."""

    return {"created": int(time.time()), "data": list(data)}


__all__ = [
    "CHUNK_OBJECT",
    "COMPLETION_OBJECT",
    "DONE_MARKER",
    "SSE_DONE",
    "aggregate_chunks",
    "aggregate_stream",
    "build_chunk",
    "build_usage",
    "format_sse",
    "media_payload",
    "new_completion_id",
    "parse_sse_unit",
    "render_images",
    "render_media",
    "render_video",
]
