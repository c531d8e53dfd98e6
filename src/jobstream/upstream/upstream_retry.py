"""Bounded retries for transport-class failures at the upstream boundary."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from ..exceptions import TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _wrap_sleep(sleep: Callable[[float], Any] | None) -> Callable[[float], Awaitable[None]]:
    if sleep is None:
        return asyncio.sleep

    async def _async_sleep(seconds: float) -> None:
        result = sleep(seconds)
        if inspect.isawaitable(result):
            await result

    return _async_sleep


async def call_with_retries(
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: int = 3,
    delay_seconds: float = 5.0,
    label: str = "upstream",
    sleep: Callable[[float], Any] | None = None,
) -> T:
    """Run ``operation`` retrying only :class:`TransportError`.

    Classified provider failures (content filtered, quota exhausted) and
    missing records propagate on the first occurrence.
    """

    pause = _wrap_sleep(sleep)
    total = max(1, attempts)
    for attempt in range(1, total + 1):
        try:
            return await operation()
        except TransportError as exc:
            if attempt >= total:
                logger.error(
                    "upstream.retry.exhausted",
                    extra={"label": label, "attempts": attempt, "detail": exc.message},
                )
                raise
            logger.warning(
                "upstream.retry",
                extra={"label": label, "attempt": attempt, "detail": exc.message},
            )
            await pause(max(0.0, delay_seconds))
    raise RuntimeError(f"{label} retries exhausted without exception")


__all__ = ["call_with_retries"]
