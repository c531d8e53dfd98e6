"""OpenAI chat message parsing and conversion to agent messages."""

from __future__ import annotations

import math
import re
import time
import uuid
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

_K_SIZE = re.compile(r"^(\d+)k$", re.IGNORECASE)
_WH_SIZE = re.compile(r"(\d+)\D+(\d+)")
_DEFAULT_DIMENSION = 1024


@dataclass(frozen=True, slots=True)
class ParsedContent:
    text: str
    image_url: str | None = None


@dataclass(frozen=True, slots=True)
class ModelSize:
    model: str
    width: int
    height: int


def parse_message_content(content: Any) -> ParsedContent:
    """Extract text and the first ``image_url`` from an OpenAI message body."""

    if isinstance(content, str):
        return ParsedContent(text=content)
    if isinstance(content, list):
        texts: list[str] = []
        image_url: str | None = None
        for part in content:
            if not isinstance(part, Mapping):
                continue
            if part.get("type") == "text" and isinstance(part.get("text"), str):
                texts.append(part["text"])
            elif image_url is None and part.get("type") == "image_url":
                image = part.get("image_url")
                if isinstance(image, Mapping) and isinstance(image.get("url"), str):
                    image_url = image["url"]
        return ParsedContent(text="".join(texts), image_url=image_url)
    if isinstance(content, Mapping) and isinstance(content.get("content"), str):
        return ParsedContent(text=content["content"])
    return ParsedContent(text="")


def _even(value: int) -> int:
    return math.ceil(value / 2) * 2


def parse_model(model: str) -> ModelSize:
    """Split ``name[:size]`` into a model name and output dimensions.

    ``size`` is either ``<n>k`` (square, ``n * 1024``) or ``<w>x<h>`` with
    both sides rounded up to even numbers. Without a size, 4.0 models
    default to 4096, 3.x models to 2048 and everything else to 1024.
    """

    name, _, size = model.partition(":")
    if not size:
        if "4.0" in name:
            dimension = 4096
        elif "3." in name:
            dimension = 2048
        else:
            dimension = _DEFAULT_DIMENSION
        return ModelSize(model=name, width=dimension, height=dimension)

    k_match = _K_SIZE.match(size)
    if k_match:
        dimension = int(k_match.group(1)) * 1024
        return ModelSize(model=name, width=dimension, height=dimension)

    wh_match = _WH_SIZE.search(size)
    if wh_match is None:
        return ModelSize(model=name, width=_DEFAULT_DIMENSION, height=_DEFAULT_DIMENSION)
    return ModelSize(
        model=name,
        width=_even(int(wh_match.group(1))),
        height=_even(int(wh_match.group(2))),
    )


def last_user_content(messages: Sequence[Mapping[str, Any]]) -> ParsedContent:
    for message in reversed(messages):
        if str(message.get("role", "")).lower() == "user":
            return parse_message_content(message.get("content"))
    if messages:
        return parse_message_content(messages[-1].get("content"))
    return ParsedContent(text="")


def _agent_message(role: str, text: str, conversation_id: str, created_ms: int) -> dict[str, Any]:
    return {
        "author": {"role": role},
        "id": str(uuid.uuid4()),
        "content": {"content_parts": [{"text": text}]},
        "metadata": {
            "is_visually_hidden_from_conversation": False,
            "conversation_id": conversation_id,
            "parent_message_id": "",
        },
        "create_time": created_ms,
        "tools": [],
    }


def build_agent_messages(
    messages: Sequence[Mapping[str, Any]],
    conversation_id: str,
    *,
    clock: Callable[[], float] = time.time,
) -> list[dict[str, Any]]:
    """Convert OpenAI messages to agent messages.

    System prompts are merged into the first user message; a conversation
    without messages starts with a greeting.
    """

    created_ms = int(clock()) * 1000
    system_prompt = ""
    converted: list[dict[str, Any]] = []
    for message in messages:
        role = str(message.get("role", "")).lower()
        text = parse_message_content(message.get("content")).text
        if not text:
            continue
        if role == "system":
            system_prompt = f"{system_prompt}\n{text}" if system_prompt else text
        elif role in {"user", "assistant"}:
            converted.append(_agent_message(role, text, conversation_id, created_ms))

    if system_prompt:
        first_user = next((item for item in converted if item["author"]["role"] == "user"), None)
        if first_user is not None:
            part = first_user["content"]["content_parts"][0]
            part["text"] = f"{system_prompt}\n\n{part['text']}"
        else:
            converted.insert(0, _agent_message("user", system_prompt, conversation_id, created_ms))

    if not converted:
        converted.append(_agent_message("user", "Hello", conversation_id, created_ms))
    return converted


def build_conversation_body(
    messages: Sequence[Mapping[str, Any]],
    conversation_id: str | None = None,
) -> dict[str, Any]:
    resolved_id = conversation_id or str(uuid.uuid4())
    return {
        "conversation_id": resolved_id,
        "messages": build_agent_messages(messages, resolved_id),
        "version": "3.0.0",
    }


__all__ = [
    "ModelSize",
    "ParsedContent",
    "build_agent_messages",
    "build_conversation_body",
    "last_user_content",
    "parse_message_content",
    "parse_model",
]
