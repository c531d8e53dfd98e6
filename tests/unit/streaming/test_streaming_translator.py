from __future__ import annotations

import json

import pytest

from src.jobstream.polling.polling_codes import StatusCode
from src.jobstream.polling.polling_models import PollSample, PollSettings
from src.jobstream.streaming.streaming_chunks import SSE_DONE
from src.jobstream.streaming.streaming_decoder import EventStreamDecoder
from src.jobstream.streaming.streaming_models import (
    ResourceType,
    ResultDescriptor,
    StreamEvent,
    StreamSession,
)
from src.jobstream.streaming.streaming_sink import ChunkSink
from src.jobstream.streaming.streaming_tools import ToolCallOrchestrator
from src.jobstream.streaming.streaming_translator import (
    StreamTranslator,
    looks_like_tool_result,
    match_tool_call_index,
    parse_result_descriptor,
)
from tests.mocks.backends import (
    STREAM_COMPLETE,
    ScriptedProbe,
    assistant_message,
    data_units,
    sse,
    tool_call_add,
    tool_result_message,
)

pytestmark = pytest.mark.unit


class _Harness:
    def __init__(self, probes: dict[str, ScriptedProbe] | None = None) -> None:
        self.session = StreamSession(completion_id="chatcmpl-t", model="agent")
        self.sink = ChunkSink()
        self.probes = probes or {}
        settings = PollSettings(base_interval_ms=0)
        self.orchestrator = ToolCallOrchestrator(
            self.session,
            self.sink,
            probe_factory=lambda submit_id, resource_type: self.probes[submit_id],
            poll_settings={ResourceType.IMAGE: settings, ResourceType.VIDEO: settings},
            debounce_seconds=0,
        )
        self.translator = StreamTranslator(self.session, self.sink, self.orchestrator)
        self.decoder = EventStreamDecoder()

    def send(self, *records: bytes) -> None:
        for record in records:
            for event in self.decoder.feed(record):
                self.translator.handle(event)

    async def close(self) -> list[str]:
        await self.orchestrator.on_connection_end()
        return [unit async for unit in self.sink]


def _deltas(units: list[str]) -> list[dict]:
    return [chunk["choices"][0]["delta"] for chunk in data_units(units)]


@pytest.mark.asyncio
async def test_role_chunk_is_emitted_once_before_text() -> None:
    harness = _Harness()

    harness.send(assistant_message("Hel"), assistant_message("lo"))
    units = await harness.close()

    assert _deltas(units) == [
        {"role": "assistant", "content": ""},
        {"content": "Hel"},
        {"content": "lo"},
    ]
    assert units[-1] == SSE_DONE


@pytest.mark.asyncio
async def test_tool_result_like_text_is_suppressed() -> None:
    harness = _Harness()

    harness.send(
        assistant_message('{"submit_id": "s1", "history_record_id": "h1"}'),
        sse("delta", {"op": "append", "path": "/message/content", "value": "visible"}),
    )
    units = await harness.close()

    assert {"content": "visible"} in _deltas(units)
    assert all("submit_id" not in unit for unit in units)


@pytest.mark.asyncio
async def test_tool_call_announced_once_per_id() -> None:
    harness = _Harness()

    harness.send(
        tool_call_add(0, "tc1", arguments='{"prompt": "cat"}'),
        tool_call_add(0, "tc1", arguments='{"prompt": "cat"}'),
    )

    assert harness.session.expected_tool_count == 1
    units = await harness.close()
    tool_deltas = [delta for delta in _deltas(units) if "tool_calls" in delta]
    assert tool_deltas == [
        {
            "tool_calls": [
                {
                    "index": 0,
                    "id": "tc1",
                    "type": "function",
                    "function": {"name": "generate_image", "arguments": '{"prompt": "cat"}'},
                }
            ]
        }
    ]


@pytest.mark.asyncio
async def test_stop_chunk_is_sent_once() -> None:
    harness = _Harness()

    harness.send(
        assistant_message("done", status="finished_successfully"),
        assistant_message("again", status="finished_successfully"),
    )
    units = await harness.close()

    finish_reasons = [chunk["choices"][0]["finish_reason"] for chunk in data_units(units)]
    assert finish_reasons.count("stop") == 1
    assert units.count(SSE_DONE) == 1
    assert harness.session.stop_sent


@pytest.mark.asyncio
async def test_stream_complete_without_tools_finalizes_and_ignores_rest() -> None:
    harness = _Harness()

    harness.send(assistant_message("hi"), STREAM_COMPLETE)
    assert harness.session.finished
    harness.send(assistant_message("ignored"))
    units = await harness.close()

    assert units.count(SSE_DONE) == 1
    assert {"content": "ignored"} not in _deltas(units)


@pytest.mark.asyncio
async def test_tool_message_correlates_result_with_current_call() -> None:
    probe = ScriptedProbe([PollSample(StatusCode.SUCCESS, items=("https://cdn/1.webp",))])
    harness = _Harness({"s1": probe})

    harness.send(tool_call_add(0, "tc1"), tool_result_message("tc1", "s1"))

    record = harness.session.find_tool_call("tc1")
    assert record is not None
    assert record.extra.submit_id == "s1"
    assert harness.session.current_tool_call_id == "tc1"
    assert harness.session.has_processed_tools

    harness.send(STREAM_COMPLETE)
    units = await harness.close()

    assert {"content": "![image_0](https://cdn/1.webp)\n"} in _deltas(units)
    assert units.count(SSE_DONE) == 1


@pytest.mark.asyncio
async def test_content_parts_replace_correlates_descriptor() -> None:
    harness = _Harness({"s9": ScriptedProbe([PollSample(StatusCode.SUCCESS, items=("u",))])})

    harness.send(
        tool_call_add(0, "tc1"),
        sse("message", {"author": {"role": "tool"}, "metadata": {"tool_call_id": "tc1"}}),
        sse(
            "delta",
            {
                "op": "replace",
                "path": "/message/content/content_parts/0",
                "value": json.dumps({"data": {"submit_id": "s9", "type": "video"}}),
            },
        ),
    )

    record = harness.session.find_tool_call("tc1")
    assert record is not None
    assert record.extra.submit_id == "s9"
    assert record.extra.resource_type is ResourceType.VIDEO
    await harness.close()


@pytest.mark.asyncio
async def test_non_object_payloads_are_skipped() -> None:
    harness = _Harness()

    harness.translator.handle(StreamEvent(event_type="message", payload="[DONE]"))
    harness.translator.handle(StreamEvent(event_type="unknown", payload={"status": "in_progress"}))

    assert not harness.session.started
    assert harness.sink.units_written == 0


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("/message/tool_calls/0", 0),
        ("/message/tool_calls/12", 12),
        ("/message/tool_calls/1/function", None),
        ("/message/content", None),
        (None, None),
    ],
)
def test_match_tool_call_index(path: str | None, expected: int | None) -> None:
    assert match_tool_call_index(path) == expected


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ('{"submit_id": "s1"}', ResultDescriptor("s1")),
        ({"submit_id": 42, "resource_type": "image"}, ResultDescriptor("42", ResourceType.IMAGE)),
        ({"data": {"submit_id": "s2", "type": "video_generation"}}, ResultDescriptor("s2", ResourceType.VIDEO)),
        ("plain text", None),
        ("submit_id but not json", None),
        ({"history_record_id": "h"}, None),
        (["submit_id"], None),
    ],
)
def test_parse_result_descriptor(value: object, expected: ResultDescriptor | None) -> None:
    assert parse_result_descriptor(value) == expected


def test_tool_result_heuristic() -> None:
    assert looks_like_tool_result('{"submit_id": "1", "history_id": "2"}')
    assert not looks_like_tool_result("your submit_id is ready")
    assert not looks_like_tool_result("plain answer")
