"""Agent stream decoding, translation and tool-call resolution."""

from .streaming_chunks import (
    SSE_DONE,
    aggregate_chunks,
    aggregate_stream,
    build_chunk,
    format_sse,
    media_payload,
    render_media,
)
from .streaming_decoder import EventStreamDecoder
from .streaming_models import (
    EventType,
    ResourceType,
    ResultDescriptor,
    StreamEvent,
    StreamSession,
    ToolCallExtra,
    ToolCallRecord,
)
from .streaming_pipeline import AgentStreamPipeline
from .streaming_sink import ChunkSink, finalize_stream
from .streaming_tools import ToolCallOrchestrator
from .streaming_translator import (
    StreamTranslator,
    looks_like_tool_result,
    parse_result_descriptor,
)

__all__ = [
    "AgentStreamPipeline",
    "ChunkSink",
    "EventStreamDecoder",
    "EventType",
    "ResourceType",
    "ResultDescriptor",
    "SSE_DONE",
    "StreamEvent",
    "StreamSession",
    "StreamTranslator",
    "ToolCallExtra",
    "ToolCallOrchestrator",
    "ToolCallRecord",
    "aggregate_chunks",
    "aggregate_stream",
    "build_chunk",
    "finalize_stream",
    "format_sse",
    "looks_like_tool_result",
    "media_payload",
    "parse_result_descriptor",
    "render_media",
]
