"""Direct image and video generation on top of the shared poller."""

from __future__ import annotations

import asyncio
import base64
import logging
import re
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import httpx

from ..config import AppConfig
from ..exceptions import InvalidRequestError, TransportError
from ..polling.polling_models import JobHandle, JobKind, PollOutcome, PollSample, PollSettings
from ..polling.polling_poller import AdaptivePoller, StatusProbe
from ..streaming.streaming_models import ResourceType
from ..upstream.upstream_base import JobBackend, JobSpec
from ..upstream.upstream_context import RequestContext
from ..upstream.upstream_retry import call_with_retries

logger = logging.getLogger(__name__)

VALID_ASPECT_RATIOS = ("21:9", "16:9", "4:3", "1:1", "3:4", "9:16")
VALID_DURATIONS = (5, 10)
DEFAULT_ASPECT_RATIO = "16:9"
DEFAULT_DURATION = 5
REFERENCE_IMAGE_MODELS = frozenset({"jimeng-3.0", "jimeng-4.0"})

_ASPECT_FLAG = re.compile(r"-ar\s+([\d:]+)", re.IGNORECASE)
_DURATION_FLAG = re.compile(r"-d\s+(\d+)", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class VideoPromptParams:
    prompt: str
    aspect_ratio: str = DEFAULT_ASPECT_RATIO
    duration_seconds: int = DEFAULT_DURATION


def parse_video_prompt(prompt: str) -> VideoPromptParams:
    """Strip ``-ar <ratio>`` and ``-d <seconds>`` flags from a video prompt.

    Unsupported flag values fall back to the defaults with a warning.
    """

    aspect_ratio = DEFAULT_ASPECT_RATIO
    duration = DEFAULT_DURATION
    cleaned = prompt

    aspect_match = _ASPECT_FLAG.search(prompt)
    if aspect_match:
        if aspect_match.group(1) in VALID_ASPECT_RATIOS:
            aspect_ratio = aspect_match.group(1)
        else:
            logger.warning("video.prompt.invalid_aspect_ratio", extra={"value": aspect_match.group(1)})
        cleaned = _ASPECT_FLAG.sub("", cleaned)

    duration_match = _DURATION_FLAG.search(prompt)
    if duration_match:
        if int(duration_match.group(1)) in VALID_DURATIONS:
            duration = int(duration_match.group(1))
        else:
            logger.warning("video.prompt.invalid_duration", extra={"value": duration_match.group(1)})
        cleaned = _DURATION_FLAG.sub("", cleaned)

    return VideoPromptParams(
        prompt=" ".join(cleaned.split()),
        aspect_ratio=aspect_ratio,
        duration_seconds=duration,
    )


def _dig(item: Mapping[str, Any], *path: Any) -> Any:
    current: Any = item
    for key in path:
        if isinstance(key, int):
            if not isinstance(current, list) or len(current) <= key:
                return None
        elif not isinstance(current, Mapping):
            return None
        current = current[key] if isinstance(key, int) else current.get(key)
    return current


def extract_image_url(item: Mapping[str, Any]) -> str | None:
    """Large image URL of a history item, falling back to its cover URL."""

    url = _dig(item, "image", "large_images", 0, "image_url")
    if url:
        return str(url)
    cover = _dig(item, "common_attr", "cover_url")
    return str(cover) if cover else None


def extract_video_url(item: Mapping[str, Any]) -> str | None:
    url = _dig(item, "video", "transcoded_video", "origin", "video_url")
    return str(url) if url else None


def extract_urls(resource_type: ResourceType, items: Sequence[Mapping[str, Any]]) -> list[str]:
    extractor = extract_video_url if resource_type is ResourceType.VIDEO else extract_image_url
    urls = (extractor(item) for item in items)
    return [url for url in urls if url]


class MediaGenerationService:
    """Submit generation jobs and wait for their media URLs."""

    def __init__(
        self,
        backend: JobBackend,
        config: AppConfig,
        *,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._backend = backend
        self._config = config
        self._sleep = sleep
        self._clock = clock

    def resolve_image_model(self, model: str | None) -> str:
        models = self._config.image_models
        return models.get(model or "", models.get(self._config.default_image_model, model or ""))

    def resolve_video_model(self, model: str | None) -> str:
        models = self._config.video_models
        return models.get(model or "", models.get(self._config.default_video_model, model or ""))

    def status_probe(
        self,
        context: RequestContext,
        submit_id: str,
        resource_type: ResourceType,
    ) -> StatusProbe:
        """Return a probe that reports URLs extracted from the job history."""

        config = self._config

        async def check() -> PollSample:
            report = await call_with_retries(
                lambda: self._backend.query_job_status(context, submit_id),
                attempts=config.transport_retry_attempts,
                delay_seconds=config.transport_retry_delay_seconds,
                label="query_job_status",
                sleep=self._sleep,
            )
            return PollSample(
                status_code=report.status_code,
                fail_code=report.fail_code,
                fail_message=report.fail_message,
                items=tuple(extract_urls(resource_type, report.items)),
            )

        return check

    async def generate_images(
        self,
        context: RequestContext,
        model: str | None,
        prompt: str,
        *,
        width: int = 1024,
        height: int = 1024,
        image_url: str | None = None,
        sample_strength: float = 0.5,
        negative_prompt: str = "",
        cancel_event: asyncio.Event | None = None,
    ) -> list[str]:
        if not prompt and not image_url:
            raise InvalidRequestError("prompt must not be empty")
        if image_url and (model or self._config.default_image_model) not in REFERENCE_IMAGE_MODELS:
            raise InvalidRequestError(
                f"model {model or self._config.default_image_model} does not accept a reference image, "
                f"use one of: {', '.join(sorted(REFERENCE_IMAGE_MODELS))}"
            )
        spec = JobSpec(
            kind=JobKind.IMAGE,
            model=self.resolve_image_model(model),
            prompt=prompt,
            width=width,
            height=height,
            image_url=image_url,
            sample_strength=sample_strength,
            negative_prompt=negative_prompt,
        )
        settings = self._config.poll_settings(JobKind.IMAGE)
        outcome = await self._run_job(context, spec, settings, ResourceType.IMAGE, cancel_event)
        return [str(url) for url in outcome.items]

    async def generate_video(
        self,
        context: RequestContext,
        model: str | None,
        prompt: str,
        *,
        first_frame_image: str | None,
        aspect_ratio: str | None = None,
        duration_seconds: int | None = None,
        fps: int = 24,
        cancel_event: asyncio.Event | None = None,
    ) -> list[str]:
        if not first_frame_image:
            raise InvalidRequestError("first_frame_image is required for video generation")
        params = parse_video_prompt(prompt)
        final_ratio = aspect_ratio or params.aspect_ratio
        final_duration = duration_seconds or params.duration_seconds
        if final_ratio not in VALID_ASPECT_RATIOS:
            raise InvalidRequestError(
                f"invalid aspect ratio {final_ratio}, supported: {', '.join(VALID_ASPECT_RATIOS)}"
            )
        if final_duration not in VALID_DURATIONS:
            raise InvalidRequestError(
                f"invalid duration {final_duration}, supported: {', '.join(map(str, VALID_DURATIONS))}"
            )
        spec = JobSpec(
            kind=JobKind.VIDEO,
            model=self.resolve_video_model(model),
            prompt=params.prompt,
            image_url=first_frame_image,
            aspect_ratio=final_ratio,
            duration_seconds=final_duration,
            fps=fps,
        )
        settings = self._config.poll_settings(JobKind.VIDEO)
        outcome = await self._run_job(context, spec, settings, ResourceType.VIDEO, cancel_event)
        return [str(url) for url in outcome.items]

    async def fetch_base64(self, url: str) -> str:
        """Download ``url`` and return its base64 encoded body."""

        try:
            async with httpx.AsyncClient(timeout=self._config.upstream_timeout_seconds) as client:
                response = await client.get(url)
        except httpx.HTTPError as exc:
            raise TransportError(f"media download failed: {exc}") from exc
        if response.status_code >= 400:
            raise TransportError(f"media download failed with status {response.status_code}")
        return base64.b64encode(response.content).decode("ascii")

    async def _ensure_credit(self, context: RequestContext) -> None:
        config = self._config
        balance = await call_with_retries(
            lambda: self._backend.get_credit(context),
            attempts=config.transport_retry_attempts,
            delay_seconds=config.transport_retry_delay_seconds,
            label="get_credit",
            sleep=self._sleep,
        )
        if balance > 0:
            return
        balance = await self._backend.receive_credit(context)
        logger.info("media.credit.received", extra={"total_credit": balance})

    async def _run_job(
        self,
        context: RequestContext,
        spec: JobSpec,
        settings: PollSettings,
        resource_type: ResourceType,
        cancel_event: asyncio.Event | None,
    ) -> PollOutcome:
        config = self._config
        await self._ensure_credit(context)
        submit_id = await call_with_retries(
            lambda: self._backend.submit_job(context, spec),
            attempts=config.transport_retry_attempts,
            delay_seconds=config.transport_retry_delay_seconds,
            label="submit_job",
            sleep=self._sleep,
        )
        handle = JobHandle(submit_id=submit_id, kind=spec.kind, expected_item_count=settings.expected_item_count)
        poller = AdaptivePoller(
            settings,
            kind=spec.kind,
            clock=self._clock,
            sleep=self._sleep,
            cancel_event=cancel_event,
        )
        outcome = await poller.poll(self.status_probe(context, submit_id, resource_type), handle=handle)
        logger.info(
            "media.generated",
            extra={
                "submit_id": submit_id,
                "kind": spec.kind.value,
                "items": outcome.item_count,
                "exit_reason": outcome.exit_reason.value,
            },
        )
        return outcome


__all__ = [
    "MediaGenerationService",
    "REFERENCE_IMAGE_MODELS",
    "VALID_ASPECT_RATIOS",
    "VALID_DURATIONS",
    "VideoPromptParams",
    "extract_image_url",
    "extract_urls",
    "extract_video_url",
    "parse_video_prompt",
]
