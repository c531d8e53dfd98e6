"""httpx implementation of :class:`JobBackend`."""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass, field
from typing import Any

import httpx

from ..exceptions import (
    GenerationFailedError,
    QuotaExhaustedError,
    TransientNotFoundError,
    TransportError,
)
from ..polling.polling_codes import StatusCode
from ..polling.polling_models import JobKind
from .upstream_base import JobBackend, JobSpec, JobStatusReport
from .upstream_context import RequestContext

logger = logging.getLogger(__name__)

SUBMIT_PATH = "/mweb/v1/aigc_draft/generate"
HISTORY_PATH = "/mweb/v1/get_history_by_ids"
AGENT_PATH = "/mweb/v1/creation_agent/v2/conversation"
CREDIT_HISTORY_PATH = "/commerce/v1/benefits/user_credit_history"
CREDIT_RECEIVE_PATH = "/commerce/v1/benefits/credit_receive"
CREDIT_TIME_ZONE = "Asia/Shanghai"

ASSISTANT_ID = 513641
DRAFT_VERSION = "3.0.2"
WEB_VERSION = "7.5.0"
DA_VERSION = "3.1.3"

_QUOTA_RET = "5000"


def check_result(payload: Any) -> Any:
    """Unwrap the ``{ret, errmsg, data}`` envelope of upstream responses."""

    if not isinstance(payload, dict):
        return payload
    ret = payload.get("ret")
    try:
        int(str(ret))
    except ValueError:
        return payload
    ret = str(ret)
    if ret == "0":
        data = payload.get("data")
        return data if data is not None else payload
    message = payload.get("errmsg") or "unknown error"
    if ret == _QUOTA_RET:
        raise QuotaExhaustedError(f"insufficient credits: {message}")
    raise GenerationFailedError(f"upstream request failed (ret={ret}): {message}")


def build_draft_content(spec: JobSpec) -> dict[str, Any]:
    """Return the draft document describing the generation request."""

    component: dict[str, Any] = {
        "type": "video_base_component" if spec.kind is JobKind.VIDEO else "image_base_component",
        "id": str(uuid.uuid4()),
        "generate_type": "gen_video" if spec.kind is JobKind.VIDEO else "generate",
        "prompt": spec.prompt,
        "negative_prompt": spec.negative_prompt,
        "model": spec.model,
    }
    if spec.kind is JobKind.VIDEO:
        component["video_gen_inputs"] = {
            "first_frame_image": spec.image_url,
            "video_aspect_ratio": spec.aspect_ratio,
            "duration_ms": (spec.duration_seconds or 5) * 1000,
            "fps": spec.fps,
        }
    else:
        component["large_image_info"] = {"width": spec.width, "height": spec.height}
        if spec.image_url:
            component["blend"] = {"image_url": spec.image_url, "strength": spec.sample_strength}
    return {
        "type": "draft",
        "id": str(uuid.uuid4()),
        "min_version": DRAFT_VERSION,
        "main_component_id": component["id"],
        "component_list": [component],
    }


@dataclass(slots=True)
class HttpJobBackend(JobBackend):
    """Talk to the generation service over HTTP."""

    timeout_seconds: float = 45.0
    log: logging.Logger = field(default_factory=lambda: logger)

    async def submit_job(self, context: RequestContext, spec: JobSpec) -> str:
        submit_id = str(uuid.uuid4())
        body = {
            "submit_id": submit_id,
            "extend": {"root_model": spec.model},
            "draft_content": json.dumps(build_draft_content(spec), ensure_ascii=False),
            "http_common_info": {"aid": ASSISTANT_ID},
        }
        data = await self._post_json(context, context.base_url + SUBMIT_PATH, body)
        aigc_data = data.get("aigc_data") if isinstance(data, dict) else None
        if not isinstance(aigc_data, dict):
            raise GenerationFailedError("upstream did not acknowledge the job")
        resolved = str(aigc_data.get("submit_id") or submit_id)
        self.log.info(
            "upstream.submit",
            extra={"submit_id": resolved, "kind": spec.kind.value, "model": spec.model},
        )
        return resolved

    async def query_job_status(self, context: RequestContext, submit_id: str) -> JobStatusReport:
        body = {"submit_ids": [submit_id], "http_common_info": {"aid": ASSISTANT_ID}}
        data = await self._post_json(context, context.base_url + HISTORY_PATH, body)
        entry = data.get(submit_id) if isinstance(data, dict) else None
        if not isinstance(entry, dict):
            raise TransientNotFoundError(f"job record {submit_id} not found")
        try:
            status_code = int(entry.get("status", StatusCode.PROCESSING))
        except (TypeError, ValueError) as exc:
            raise GenerationFailedError(f"job {submit_id} reported an invalid status") from exc
        fail_code = entry.get("fail_code")
        items = entry.get("item_list") or []
        return JobStatusReport(
            status_code=status_code,
            fail_code=str(fail_code) if fail_code not in (None, "", 0, "0") else None,
            fail_message=entry.get("fail_msg") or None,
            items=tuple(item for item in items if isinstance(item, dict)),
        )

    async def get_credit(self, context: RequestContext) -> int:
        body = {"count": 20, "cursor": "0"}
        data = await self._post_json(context, context.base_url + CREDIT_HISTORY_PATH, body)
        total = data.get("total_credit") if isinstance(data, dict) else None
        if isinstance(total, bool) or not isinstance(total, (int, float)):
            raise GenerationFailedError("credit balance missing from upstream response")
        self.log.info("upstream.credit", extra={"total_credit": total})
        return int(total)

    async def receive_credit(self, context: RequestContext) -> int:
        body = {"time_zone": CREDIT_TIME_ZONE}
        data = await self._post_json(context, context.base_url + CREDIT_RECEIVE_PATH, body)
        if not isinstance(data, dict):
            raise GenerationFailedError("credit claim was not acknowledged")
        try:
            total = int(data.get("cur_total_credits", 0))
        except (TypeError, ValueError) as exc:
            raise GenerationFailedError("credit claim returned an invalid balance") from exc
        self.log.info(
            "upstream.credit.received",
            extra={"received": data.get("receive_quota"), "total_credit": total},
        )
        return total

    async def open_event_stream(
        self,
        context: RequestContext,
        body: Mapping[str, Any],
    ) -> AsyncIterator[bytes]:
        url = context.agent_base_url + AGENT_PATH
        headers = {**self._headers(context), "Accept": "text/event-stream"}
        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout_seconds, read=None)) as client:
                async with client.stream(
                    "POST",
                    url,
                    headers=headers,
                    params=self._params(context),
                    json=dict(body),
                ) as response:
                    if response.status_code >= 400:
                        await response.aread()
                        raise self._status_error(response, label="agent stream")
                    self.log.info("upstream.stream.open", extra={"status": response.status_code})
                    async for chunk in response.aiter_bytes():
                        yield chunk
        except httpx.HTTPError as exc:
            raise TransportError(f"agent stream interrupted: {exc}") from exc

    async def _post_json(self, context: RequestContext, url: str, body: Mapping[str, Any]) -> Any:
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.post(
                    url,
                    headers=self._headers(context),
                    params=self._params(context),
                    json=dict(body),
                )
        except httpx.HTTPError as exc:
            raise TransportError(f"upstream request to {url} failed: {exc}") from exc
        if response.status_code >= 400:
            raise self._status_error(response, label=url)
        try:
            payload = response.json()
        except ValueError as exc:
            raise GenerationFailedError("upstream returned a non-JSON body") from exc
        return check_result(payload)

    def _status_error(self, response: httpx.Response, *, label: str) -> Exception:
        self.log.warning(
            "upstream.http_error",
            extra={"label": label, "status": response.status_code},
        )
        if response.status_code >= 500 or response.status_code == 429:
            return TransportError(f"{label} responded with status {response.status_code}")
        return GenerationFailedError(f"{label} responded with status {response.status_code}")

    @staticmethod
    def _headers(context: RequestContext) -> dict[str, str]:
        token = context.token
        return {
            "Content-Type": "application/json",
            "Cookie": f"sessionid={token}; sessionid_ss={token}; sid_tt={token}",
        }

    @staticmethod
    def _params(context: RequestContext) -> dict[str, Any]:
        return {
            "aid": ASSISTANT_ID,
            "device_platform": "web",
            "region": context.region.value,
            "web_version": WEB_VERSION,
            "da_version": DA_VERSION,
        }


__all__ = ["HttpJobBackend", "build_draft_content", "check_result"]
