from __future__ import annotations

import asyncio

import pytest

from src.jobstream.polling.polling_codes import StatusCode
from src.jobstream.polling.polling_models import PollSample, PollSettings
from src.jobstream.streaming.streaming_chunks import SSE_DONE, render_video
from src.jobstream.streaming.streaming_models import (
    ResourceType,
    ResultDescriptor,
    StreamSession,
    ToolCallExtra,
    ToolCallRecord,
)
from src.jobstream.streaming.streaming_sink import ChunkSink
from src.jobstream.streaming.streaming_tools import ToolCallOrchestrator, infer_resource_type
from tests.mocks.backends import ScriptedProbe, data_units, processing

pytestmark = pytest.mark.unit


def _success(*urls: str) -> ScriptedProbe:
    return ScriptedProbe([processing(), PollSample(StatusCode.SUCCESS, items=urls)])


def _orchestrator(
    probes: dict[str, ScriptedProbe],
    *,
    base_interval_ms: int = 0,
    requested: list[tuple[str, ResourceType]] | None = None,
) -> ToolCallOrchestrator:
    settings = PollSettings(base_interval_ms=base_interval_ms, max_poll_count=20)

    def factory(submit_id: str, resource_type: ResourceType) -> ScriptedProbe:
        if requested is not None:
            requested.append((submit_id, resource_type))
        return probes[submit_id]

    return ToolCallOrchestrator(
        StreamSession(completion_id="chatcmpl-o", model="agent"),
        ChunkSink(),
        probe_factory=factory,
        poll_settings={ResourceType.IMAGE: settings, ResourceType.VIDEO: settings},
        debounce_seconds=0,
    )


async def _drain(orchestrator: ToolCallOrchestrator) -> list[str]:
    return [unit async for unit in orchestrator.sink]


def _contents(units: list[str]) -> list[str]:
    deltas = [chunk["choices"][0]["delta"] for chunk in data_units(units)]
    return [delta["content"] for delta in deltas if "content" in delta]


@pytest.mark.asyncio
async def test_no_tool_calls_finalizes_on_agent_finish() -> None:
    orchestrator = _orchestrator({})

    orchestrator.on_agent_finished()
    await orchestrator.on_connection_end()

    assert await _drain(orchestrator) == [SSE_DONE]


@pytest.mark.asyncio
async def test_single_tool_call_resolves_before_done() -> None:
    orchestrator = _orchestrator({"s1": _success("https://cdn/tc1.webp")})
    orchestrator.register_tool_call(0, "tc1", "generate_image")

    orchestrator.correlate("tc1", ResultDescriptor("s1"))
    orchestrator.on_agent_finished()
    assert not orchestrator.session.finished

    await orchestrator.on_connection_end()
    units = await _drain(orchestrator)

    assert _contents(units) == ["![image_0](https://cdn/tc1.webp)\n"]
    assert units.count(SSE_DONE) == 1
    assert units[-1] == SSE_DONE


@pytest.mark.asyncio
async def test_many_tool_calls_with_one_failure_emit_single_done() -> None:
    probes = {
        "s1": _success("https://cdn/1.webp"),
        "s2": ScriptedProbe([PollSample(StatusCode.FAILED, fail_code="2038")]),
        "s3": _success("https://cdn/3a.webp", "https://cdn/3b.webp"),
    }
    orchestrator = _orchestrator(probes)
    for position, name in enumerate(("tc1", "tc2", "tc3")):
        orchestrator.register_tool_call(position, name, "generate_image")
    for position, name in enumerate(("tc1", "tc2", "tc3"), start=1):
        orchestrator.correlate(name, ResultDescriptor(f"s{position}"))

    orchestrator.on_agent_finished()
    await orchestrator.on_connection_end()
    units = await _drain(orchestrator)

    assert _contents(units) == [
        "![image_0](https://cdn/1.webp)\n",
        "![image_0](https://cdn/3a.webp)\n![image_1](https://cdn/3b.webp)\n",
    ]
    assert units.count(SSE_DONE) == 1
    assert all(record.resolved for record in orchestrator.session.pending_tool_calls)


@pytest.mark.asyncio
async def test_unexpected_error_in_one_call_does_not_stop_the_rest() -> None:
    probes = {
        "s1": ScriptedProbe([ValueError("bad status")]),
        "s2": _success("https://cdn/u2.webp"),
    }
    orchestrator = _orchestrator(probes)
    orchestrator.register_tool_call(0, "tc1", "generate_image")
    orchestrator.register_tool_call(1, "tc2", "generate_image")
    orchestrator.correlate("tc1", ResultDescriptor("s1"))
    orchestrator.correlate("tc2", ResultDescriptor("s2"))

    orchestrator.on_agent_finished()
    await orchestrator.on_connection_end()
    units = await _drain(orchestrator)

    assert _contents(units) == ["![image_0](https://cdn/u2.webp)\n"]
    assert units.count(SSE_DONE) == 1
    assert all(record.resolved for record in orchestrator.session.pending_tool_calls)


@pytest.mark.asyncio
async def test_tool_call_added_after_first_batch_is_resolved_before_done() -> None:
    orchestrator = _orchestrator({"s1": _success("u1"), "s2": _success("u2")})
    orchestrator.register_tool_call(0, "tc1", "generate_image")
    orchestrator.correlate("tc1", ResultDescriptor("s1"))

    await asyncio.sleep(0.05)
    assert not orchestrator.busy
    assert not orchestrator.session.finished

    orchestrator.register_tool_call(1, "tc2", "generate_image")
    orchestrator.correlate("tc2", ResultDescriptor("s2"))
    orchestrator.on_agent_finished()
    await orchestrator.on_connection_end()
    units = await _drain(orchestrator)

    assert _contents(units) == ["![image_0](u1)\n", "![image_0](u2)\n"]
    assert units.count(SSE_DONE) == 1
    assert units[-1] == SSE_DONE


@pytest.mark.asyncio
async def test_agent_finish_waits_for_uncorrelated_call() -> None:
    orchestrator = _orchestrator({"s1": _success("u1"), "s2": _success("u2")})
    orchestrator.register_tool_call(0, "tc1", "generate_image")
    orchestrator.correlate("tc1", ResultDescriptor("s1"))
    await asyncio.sleep(0.05)

    orchestrator.register_tool_call(1, "tc2", "generate_image")
    orchestrator.on_agent_finished()
    await asyncio.sleep(0.05)
    assert not orchestrator.session.finished

    orchestrator.correlate("tc2", ResultDescriptor("s2"))
    await orchestrator.on_connection_end()
    units = await _drain(orchestrator)

    assert _contents(units) == ["![image_0](u1)\n", "![image_0](u2)\n"]
    assert units.count(SSE_DONE) == 1


@pytest.mark.asyncio
async def test_dispatch_waits_for_every_expected_result() -> None:
    orchestrator = _orchestrator({"s1": _success("a"), "s2": _success("b")})
    orchestrator.register_tool_call(0, "tc1", "generate_image")
    orchestrator.register_tool_call(1, "tc2", "generate_image")

    orchestrator.correlate("tc1", ResultDescriptor("s1"))
    assert not orchestrator.session.has_processed_tools

    orchestrator.correlate("tc2", ResultDescriptor("s2"))
    assert orchestrator.session.has_processed_tools
    assert orchestrator.dispatch() is False

    await orchestrator.on_connection_end()
    assert _contents(await _drain(orchestrator)) == ["![image_0](a)\n", "![image_0](b)\n"]


@pytest.mark.asyncio
async def test_repeated_and_unknown_correlations_are_not_counted() -> None:
    orchestrator = _orchestrator({"s1": _success("a")})
    orchestrator.register_tool_call(0, "tc1", "generate_image")
    orchestrator.register_tool_call(1, "tc2", "generate_image")

    orchestrator.correlate("tc1", ResultDescriptor("s1"))
    orchestrator.correlate("tc1", ResultDescriptor("s1-again"))
    orchestrator.correlate("missing", ResultDescriptor("s7"))
    orchestrator.correlate(None, ResultDescriptor("s8"))

    session = orchestrator.session
    assert session.received_tool_results == 1
    assert session.find_tool_call("tc1").extra.submit_id == "s1"
    assert not session.has_processed_tools
    await orchestrator.aclose()


@pytest.mark.asyncio
async def test_connection_end_after_agent_finish_resolves_pending_calls() -> None:
    orchestrator = _orchestrator({"s1": _success("https://cdn/late.webp")})
    orchestrator.register_tool_call(0, "tc1", "generate_image")
    orchestrator.register_tool_call(1, "tc2", "generate_image")
    orchestrator.correlate("tc1", ResultDescriptor("s1"))

    orchestrator.on_agent_finished()
    assert not orchestrator.session.finished

    await orchestrator.on_connection_end()
    units = await _drain(orchestrator)

    assert _contents(units) == ["![image_0](https://cdn/late.webp)\n"]
    assert units.count(SSE_DONE) == 1


@pytest.mark.asyncio
async def test_connection_end_before_agent_finish_still_terminates() -> None:
    orchestrator = _orchestrator({})
    orchestrator.register_tool_call(0, "tc1", "generate_image")

    await orchestrator.on_connection_end()

    assert await _drain(orchestrator) == [SSE_DONE]
    assert not orchestrator.session.has_processed_tools


@pytest.mark.asyncio
async def test_video_results_use_video_rendering() -> None:
    requested: list[tuple[str, ResourceType]] = []
    orchestrator = _orchestrator({"v1": _success("https://cdn/v.mp4")}, requested=requested)
    orchestrator.register_tool_call(0, "tc1", "generate_video")

    orchestrator.correlate("tc1", ResultDescriptor("v1"))
    await orchestrator.on_connection_end()

    assert requested == [("v1", ResourceType.VIDEO)]
    assert _contents(await _drain(orchestrator)) == [render_video("https://cdn/v.mp4")]


@pytest.mark.asyncio
async def test_aclose_aborts_in_flight_poll() -> None:
    probe = ScriptedProbe([processing()])
    orchestrator = _orchestrator({"s1": probe}, base_interval_ms=60_000)
    orchestrator.register_tool_call(0, "tc1", "generate_image")
    orchestrator.correlate("tc1", ResultDescriptor("s1"))

    await asyncio.sleep(0.05)
    assert orchestrator.busy

    await asyncio.wait_for(orchestrator.aclose(), timeout=2)

    assert not orchestrator.busy
    assert probe.calls == 1
    assert orchestrator.session.cancel_event.is_set()
    assert not orchestrator.session.finished


@pytest.mark.parametrize(
    ("record", "expected"),
    [
        (ToolCallRecord(id="a", name="generate_video"), ResourceType.VIDEO),
        (ToolCallRecord(id="b", name="draw"), ResourceType.IMAGE),
        (
            ToolCallRecord(id="c", name="draw", extra=ToolCallExtra(resource_type=ResourceType.VIDEO)),
            ResourceType.VIDEO,
        ),
    ],
)
def test_infer_resource_type(record: ToolCallRecord, expected: ResourceType) -> None:
    assert infer_resource_type(record) is expected
