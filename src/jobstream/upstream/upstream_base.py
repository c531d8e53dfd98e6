"""Abstract job backend consumed by the generation services."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from ..polling.polling_models import JobKind
from .upstream_context import RequestContext


@dataclass(frozen=True, slots=True)
class JobSpec:
    """Description of one generation job to submit."""

    kind: JobKind
    model: str
    prompt: str
    width: int = 1024
    height: int = 1024
    image_url: str | None = None
    aspect_ratio: str | None = None
    duration_seconds: int | None = None
    fps: int = 24
    sample_strength: float = 0.5
    negative_prompt: str = ""


@dataclass(frozen=True, slots=True)
class JobStatusReport:
    """Raw result of one status query."""

    status_code: int
    fail_code: str | None = None
    fail_message: str | None = None
    items: tuple[Mapping[str, Any], ...] = field(default=())


class JobBackend(ABC):
    """Base interface for the remote generation service."""

    @abstractmethod
    async def submit_job(self, context: RequestContext, spec: JobSpec) -> str:
        """Submit ``spec`` and return its opaque submit id."""

    @abstractmethod
    async def query_job_status(self, context: RequestContext, submit_id: str) -> JobStatusReport:
        """Return the current job state.

        Raises :class:`~jobstream.exceptions.TransientNotFoundError` while the
        job record is not materialized yet.
        """

    @abstractmethod
    async def get_credit(self, context: RequestContext) -> int:
        """Return the account's total credit balance."""

    @abstractmethod
    async def receive_credit(self, context: RequestContext) -> int:
        """Claim the daily credit grant and return the new balance."""

    @abstractmethod
    def open_event_stream(
        self,
        context: RequestContext,
        body: Mapping[str, Any],
    ) -> AsyncIterator[bytes]:
        """Open the agent conversation stream and yield raw byte chunks."""


__all__ = ["JobBackend", "JobSpec", "JobStatusReport"]
