"""Chat request parsing helpers."""

from .chat_messages import (
    ModelSize,
    ParsedContent,
    build_agent_messages,
    build_conversation_body,
    last_user_content,
    parse_message_content,
    parse_model,
)

__all__ = [
    "ModelSize",
    "ParsedContent",
    "build_agent_messages",
    "build_conversation_body",
    "last_user_content",
    "parse_message_content",
    "parse_model",
]
