"""Deterministic job backend fakes for unit, service and route tests."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Mapping, Sequence
from typing import Any

from src.jobstream.polling.polling_codes import StatusCode
from src.jobstream.polling.polling_models import PollSample
from src.jobstream.upstream.upstream_base import JobBackend, JobSpec, JobStatusReport
from src.jobstream.upstream.upstream_context import Region, RequestContext

CDN_BASE_URL = "https://cdn.jobstream.test"


def make_context(token: str = "token-1") -> RequestContext:
    return RequestContext(
        token=token,
        region=Region.INTERNATIONAL,
        base_url="https://upstream.test",
        agent_base_url="https://agent.test",
    )


def image_item(name: str) -> dict[str, Any]:
    return {"image": {"large_images": [{"image_url": f"{CDN_BASE_URL}/{name}.webp"}]}}


def video_item(name: str) -> dict[str, Any]:
    return {"video": {"transcoded_video": {"origin": {"video_url": f"{CDN_BASE_URL}/{name}.mp4"}}}}


def sse(event: str, payload: Any) -> bytes:
    """Frame one agent stream record."""

    data = payload if isinstance(payload, str) else json.dumps(payload, ensure_ascii=False)
    return f"event: {event}\ndata: {data}\n\n".encode("utf-8")


def tool_call_add(index: int, tool_call_id: str, name: str = "generate_image", arguments: str = "{}") -> bytes:
    value = json.dumps({"id": tool_call_id, "func": {"name": name, "arguments": arguments}})
    return sse("delta", {"op": "add", "path": f"/message/tool_calls/{index}", "value": value})


def tool_result_message(tool_call_id: str, submit_id: str, resource_type: str = "image") -> bytes:
    text = json.dumps({"submit_id": submit_id, "resource_type": resource_type, "history_record_id": "h-1"})
    return sse(
        "message",
        {
            "author": {"role": "tool"},
            "metadata": {"tool_call_id": tool_call_id},
            "status": "finished_successfully",
            "content": {"content_parts": [{"text": text}]},
        },
    )


def assistant_message(text: str, status: str = "in_progress") -> bytes:
    return sse(
        "message",
        {
            "author": {"role": "assistant"},
            "status": status,
            "content": {"content_parts": [{"text": text}] if text else []},
        },
    )


STREAM_COMPLETE = sse("system", {"type": "stream_complete"})


def data_units(units: Sequence[str]) -> list[dict[str, Any]]:
    """Decode framed units into chunk dicts, skipping the terminal marker."""

    chunks: list[dict[str, Any]] = []
    for unit in units:
        body = unit[len("data: ") :].strip()
        if body != "[DONE]":
            chunks.append(json.loads(body))
    return chunks


class SleepRecorder:
    """Awaitable sleep replacement that records durations and advances a clock."""

    def __init__(self, clock: "FakeClock | None" = None) -> None:
        self.calls: list[float] = []
        self._clock = clock

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        if self._clock is not None:
            self._clock.advance(seconds)


class FakeClock:
    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedProbe:
    """Status probe replaying samples; the last entry repeats forever."""

    def __init__(self, script: Sequence[PollSample | BaseException]) -> None:
        self._script = list(script)
        self.calls = 0

    async def __call__(self) -> PollSample:
        self.calls += 1
        step = self._script[min(self.calls, len(self._script)) - 1]
        if isinstance(step, BaseException):
            raise step
        return step


def processing(*items: Any) -> PollSample:
    return PollSample(status_code=StatusCode.PROCESSING, items=tuple(items))


class FakeJobBackend(JobBackend):
    """In-memory backend with scripted status reports and stream chunks."""

    def __init__(
        self,
        *,
        reports: Mapping[str, Sequence[JobStatusReport | BaseException]] | None = None,
        stream_chunks: Sequence[bytes] = (),
        stream_error: BaseException | None = None,
        submit_ids: Sequence[str] = ("submit-1",),
        credit: int = 10,
    ) -> None:
        self.reports = {key: list(value) for key, value in (reports or {}).items()}
        self.stream_chunks = list(stream_chunks)
        self.stream_error = stream_error
        self.submit_ids = list(submit_ids)
        self.submitted: list[JobSpec] = []
        self.status_calls: list[str] = []
        self.stream_bodies: list[Mapping[str, Any]] = []
        self.stream_closed = False
        self.credit = credit
        self.credit_calls = 0
        self.received = 0

    async def submit_job(self, context: RequestContext, spec: JobSpec) -> str:
        self.submitted.append(spec)
        position = min(len(self.submitted), len(self.submit_ids)) - 1
        return self.submit_ids[position]

    async def query_job_status(self, context: RequestContext, submit_id: str) -> JobStatusReport:
        self.status_calls.append(submit_id)
        script = self.reports.get(submit_id)
        if not script:
            raise AssertionError(f"no status scripted for {submit_id}")
        calls = self.status_calls.count(submit_id)
        step = script[min(calls, len(script)) - 1]
        if isinstance(step, BaseException):
            raise step
        return step

    async def get_credit(self, context: RequestContext) -> int:
        self.credit_calls += 1
        return self.credit

    async def receive_credit(self, context: RequestContext) -> int:
        self.received += 1
        self.credit += 66
        return self.credit

    async def open_event_stream(
        self,
        context: RequestContext,
        body: Mapping[str, Any],
    ) -> AsyncIterator[bytes]:
        self.stream_bodies.append(body)
        try:
            for chunk in self.stream_chunks:
                yield chunk
            if self.stream_error is not None:
                raise self.stream_error
        finally:
            self.stream_closed = True


__all__ = [
    "CDN_BASE_URL",
    "FakeClock",
    "FakeJobBackend",
    "STREAM_COMPLETE",
    "ScriptedProbe",
    "SleepRecorder",
    "assistant_message",
    "data_units",
    "image_item",
    "make_context",
    "processing",
    "sse",
    "tool_call_add",
    "tool_result_message",
    "video_item",
]
