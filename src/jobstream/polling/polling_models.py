"""Data structures for remote job polling."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class JobKind(StrEnum):
    """Kinds of remote asynchronous work."""

    IMAGE = "image"
    VIDEO = "video"
    TOOL_RESULT = "tool_result"


class ExitReason(StrEnum):
    """Why a polling session stopped."""

    SUCCESS = "success"
    EXPECTED_COUNT_REACHED = "expected_count_reached"
    COUNT_STABLE = "count_stable"
    POLL_LIMIT_EXCEEDED = "poll_limit_exceeded"
    TIME_LIMIT_WITH_PARTIAL = "time_limit_with_partial"


@dataclass(frozen=True, slots=True)
class JobHandle:
    """Identifies one remote unit of work owned by a single poller."""

    submit_id: str
    kind: JobKind = JobKind.IMAGE
    expected_item_count: int = 1

    def __post_init__(self) -> None:
        if not self.submit_id:
            raise ValueError("submit_id must be a non-empty string")
        if self.expected_item_count < 1:
            raise ValueError("expected_item_count must be positive")


@dataclass(frozen=True, slots=True)
class PollSample:
    """One observation of remote job state."""

    status_code: int
    fail_code: str | None = None
    fail_message: str | None = None
    items: tuple[Any, ...] = ()

    @property
    def item_count(self) -> int:
        return len(self.items)


@dataclass(frozen=True, slots=True)
class PollOutcome:
    """Terminal result of a polling session."""

    final_status: int
    fail_code: str | None
    item_count: int
    elapsed_seconds: float
    poll_count: int
    exit_reason: ExitReason
    items: tuple[Any, ...] = field(default=())


@dataclass(frozen=True, slots=True)
class PollSettings:
    """Tuning knobs for :class:`~jobstream.polling.polling_poller.AdaptivePoller`."""

    expected_item_count: int = 1
    max_poll_count: int = 900
    base_interval_ms: int = 5_000
    stable_rounds: int = 5
    timeout_seconds: float = 900.0
    not_found_grace_polls: int = 10

    def __post_init__(self) -> None:
        if self.expected_item_count < 1:
            raise ValueError("expected_item_count must be positive")
        if self.max_poll_count < 1:
            raise ValueError("max_poll_count must be positive")
        if self.base_interval_ms < 0:
            raise ValueError("base_interval_ms must not be negative")
        if self.stable_rounds < 1:
            raise ValueError("stable_rounds must be positive")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        if self.not_found_grace_polls < 1:
            raise ValueError("not_found_grace_polls must be positive")


__all__ = [
    "ExitReason",
    "JobHandle",
    "JobKind",
    "PollOutcome",
    "PollSample",
    "PollSettings",
]
