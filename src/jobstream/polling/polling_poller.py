"""Adaptive, cancellation-aware polling of remote asynchronous jobs.

The poller is the single waiting primitive of the gateway: direct media
generation and tool-call result resolution both drive a caller supplied
status probe through :meth:`AdaptivePoller.poll`. Sleep durations follow the
current remote status (later pipeline stages are slower, a completed record
is re-checked quickly), and the loop stops on the first of: success,
classified failure, expected item count, a stable item count, the poll
ceiling or the time budget.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from ..exceptions import (
    ContentFilteredError,
    GenerationFailedError,
    PollCancelledError,
    PollTimeoutError,
    QuotaExhaustedError,
    TransientNotFoundError,
)
from .polling_classifier import Classification, OutcomeKind, classify
from .polling_codes import StatusCode, status_name
from .polling_models import (
    ExitReason,
    JobHandle,
    JobKind,
    PollOutcome,
    PollSample,
    PollSettings,
)

logger = logging.getLogger(__name__)

StatusProbe = Callable[[], Awaitable[PollSample]]

_INTERVAL_FACTORS: dict[int, float] = {
    StatusCode.PROCESSING: 1.0,
    StatusCode.POST_PROCESSING: 1.2,
    StatusCode.FINALIZING: 1.5,
    StatusCode.COMPLETED: 0.5,
    StatusCode.SUCCESS: 0.0,
    StatusCode.FAILED: 0.0,
}
_LATE_STAGE_STATUSES = frozenset(
    {StatusCode.POST_PROCESSING, StatusCode.FINALIZING, StatusCode.COMPLETED, StatusCode.SUCCESS}
)
_FAILURE_ERRORS = {
    OutcomeKind.CONTENT_FILTERED: ContentFilteredError,
    OutcomeKind.QUOTA_EXHAUSTED: QuotaExhaustedError,
    OutcomeKind.FATAL: GenerationFailedError,
}


def next_interval_seconds(status_code: int, base_interval_ms: int) -> float:
    """Return the sleep before the next probe for the observed status."""

    factor = _INTERVAL_FACTORS.get(status_code, 1.0)
    return base_interval_ms * factor / 1000.0


class AdaptivePoller:
    """Drive a status probe until a terminal condition is reached.

    One instance owns one job; create a new poller per :class:`JobHandle`.
    ``cancel_event`` is checked at the top of every iteration and wakes the
    inter-poll sleep, so a cancelled session stops within one probe.
    """

    def __init__(
        self,
        settings: PollSettings,
        *,
        kind: JobKind = JobKind.IMAGE,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
        cancel_event: asyncio.Event | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        self.settings = settings
        self.kind = kind
        self._clock = clock or time.monotonic
        self._sleep = sleep
        self._cancel_event = cancel_event
        self.log = log or logger

    async def poll(self, check: StatusProbe, *, handle: JobHandle | None = None) -> PollOutcome:
        """Poll ``check`` and return the terminal :class:`PollOutcome`.

        Raises :class:`ContentFilteredError`, :class:`QuotaExhaustedError` or
        :class:`GenerationFailedError` for classified failures,
        :class:`PollTimeoutError` when polling stops without items and
        :class:`PollCancelledError` when the session is cancelled.
        """

        settings = self.settings
        label = handle.submit_id if handle else "-"
        started_at = self._clock()
        poll_count = 0
        stable_rounds = 0
        last_count = 0
        last_items: tuple[Any, ...] = ()

        self.log.info(
            "poller.start",
            extra={
                "submit_id": label,
                "kind": self.kind.value,
                "max_poll_count": settings.max_poll_count,
                "expected_item_count": settings.expected_item_count,
            },
        )

        while True:
            self._raise_if_cancelled(label, poll_count)
            poll_count += 1
            sample = await self._probe(check, poll_count=poll_count, last_items=last_items, label=label)
            elapsed = self._clock() - started_at

            if sample.item_count == last_count:
                stable_rounds += 1
            else:
                stable_rounds = 0
                last_count = sample.item_count
            last_items = sample.items

            classification = classify(sample.status_code, sample.fail_code, sample.fail_message)
            self.log.info(
                "poller.sample",
                extra={
                    "submit_id": label,
                    "poll": poll_count,
                    "status": status_name(sample.status_code),
                    "fail_code": sample.fail_code,
                    "items": sample.item_count,
                    "stable_rounds": stable_rounds,
                    "elapsed_seconds": round(elapsed, 3),
                },
            )

            reason = self._exit_reason(
                sample,
                classification,
                poll_count=poll_count,
                stable_rounds=stable_rounds,
                elapsed=elapsed,
                label=label,
            )
            if reason is not None:
                return self._finish(sample, reason, poll_count=poll_count, elapsed=elapsed, label=label)

            if sample.status_code not in _INTERVAL_FACTORS:
                self.log.warning(
                    "poller.unknown_status",
                    extra={"submit_id": label, "status": status_name(sample.status_code)},
                )
            await self._pause(next_interval_seconds(sample.status_code, settings.base_interval_ms))

    async def _probe(
        self,
        check: StatusProbe,
        *,
        poll_count: int,
        last_items: tuple[Any, ...],
        label: str,
    ) -> PollSample:
        try:
            return await check()
        except TransientNotFoundError as exc:
            grace = self.settings.not_found_grace_polls
            if poll_count < grace:
                self.log.warning(
                    "poller.record_not_found",
                    extra={"submit_id": label, "poll": poll_count, "grace_polls": grace},
                )
                return PollSample(status_code=StatusCode.PROCESSING, items=last_items)
            raise GenerationFailedError(
                f"job record {label} not found after {poll_count} polls"
            ) from exc

    def _exit_reason(
        self,
        sample: PollSample,
        classification: Classification,
        *,
        poll_count: int,
        stable_rounds: int,
        elapsed: float,
        label: str,
    ) -> ExitReason | None:
        settings = self.settings
        items = sample.item_count

        if classification.kind is OutcomeKind.SUCCESS:
            return ExitReason.SUCCESS
        if classification.is_failure:
            self.log.error(
                "poller.failed",
                extra={
                    "submit_id": label,
                    "fail_code": sample.fail_code,
                    "outcome": classification.kind.value,
                    "detail": classification.message,
                },
            )
            error_cls = _FAILURE_ERRORS[classification.kind]
            raise error_cls(classification.message)
        if items >= settings.expected_item_count and sample.status_code in _LATE_STAGE_STATUSES:
            return ExitReason.EXPECTED_COUNT_REACHED
        if stable_rounds >= settings.stable_rounds and items > 0:
            return ExitReason.COUNT_STABLE
        if poll_count >= settings.max_poll_count:
            return ExitReason.POLL_LIMIT_EXCEEDED
        if elapsed >= settings.timeout_seconds:
            if items > 0:
                return ExitReason.TIME_LIMIT_WITH_PARTIAL
            raise PollTimeoutError(
                f"job {label} produced no results within {settings.timeout_seconds:g}s "
                f"(last status {status_name(sample.status_code)})"
            )
        return None

    def _finish(
        self,
        sample: PollSample,
        reason: ExitReason,
        *,
        poll_count: int,
        elapsed: float,
        label: str,
    ) -> PollOutcome:
        if sample.item_count == 0 and reason is not ExitReason.SUCCESS:
            self.log.warning(
                "poller.exhausted",
                extra={"submit_id": label, "reason": reason.value, "poll": poll_count},
            )
            raise PollTimeoutError(
                f"job {label} stopped ({reason.value}) without results, "
                f"last status {status_name(sample.status_code)}"
            )
        self.log.info(
            "poller.done",
            extra={
                "submit_id": label,
                "reason": reason.value,
                "items": sample.item_count,
                "poll": poll_count,
                "elapsed_seconds": round(elapsed, 3),
            },
        )
        return PollOutcome(
            final_status=sample.status_code,
            fail_code=sample.fail_code,
            item_count=sample.item_count,
            elapsed_seconds=elapsed,
            poll_count=poll_count,
            exit_reason=reason,
            items=sample.items,
        )

    def _raise_if_cancelled(self, label: str, poll_count: int) -> None:
        if self._cancel_event is not None and self._cancel_event.is_set():
            self.log.info("poller.cancelled", extra={"submit_id": label, "poll": poll_count})
            raise PollCancelledError(f"polling of job {label} was cancelled")

    async def _pause(self, seconds: float) -> None:
        if seconds <= 0:
            return
        if self._sleep is not None:
            await self._sleep(seconds)
            return
        if self._cancel_event is None:
            await asyncio.sleep(seconds)
            return
        try:
            await asyncio.wait_for(self._cancel_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return


__all__ = ["AdaptivePoller", "StatusProbe", "next_interval_seconds"]
