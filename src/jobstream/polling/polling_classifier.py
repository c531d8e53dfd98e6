"""Pure mapping from a remote status observation to an abstract outcome."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from .polling_codes import (
    CONTENT_FILTER_CODES,
    QUOTA_EXHAUSTED_CODES,
    StatusCode,
    describe_fail_code,
)


class OutcomeKind(StrEnum):
    CONTINUE = "continue"
    SUCCESS = "success"
    CONTENT_FILTERED = "content_filtered"
    QUOTA_EXHAUSTED = "quota_exhausted"
    FATAL = "fatal"


@dataclass(frozen=True, slots=True)
class Classification:
    """Result of :func:`classify`; ``message`` is set for failure kinds."""

    kind: OutcomeKind
    message: str | None = None

    @property
    def is_failure(self) -> bool:
        return self.kind in {
            OutcomeKind.CONTENT_FILTERED,
            OutcomeKind.QUOTA_EXHAUSTED,
            OutcomeKind.FATAL,
        }


_SUCCESS_STATUSES = frozenset({StatusCode.SUCCESS, StatusCode.COMPLETED})


def classify(
    status_code: int,
    fail_code: str | None = None,
    fail_message: str | None = None,
) -> Classification:
    """Classify one status sample. Never raises."""

    if status_code in _SUCCESS_STATUSES:
        return Classification(OutcomeKind.SUCCESS)
    if status_code != StatusCode.FAILED:
        return Classification(OutcomeKind.CONTINUE)

    code = str(fail_code) if fail_code is not None else None
    message = describe_fail_code(code, fail_message)
    if code in CONTENT_FILTER_CODES:
        return Classification(OutcomeKind.CONTENT_FILTERED, message)
    if code in QUOTA_EXHAUSTED_CODES:
        return Classification(OutcomeKind.QUOTA_EXHAUSTED, message)
    return Classification(OutcomeKind.FATAL, message)


__all__ = ["Classification", "OutcomeKind", "classify"]
