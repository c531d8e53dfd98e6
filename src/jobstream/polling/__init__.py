"""Status classification and adaptive polling of remote jobs."""

from .polling_classifier import Classification, OutcomeKind, classify
from .polling_codes import StatusCode, describe_fail_code, status_name
from .polling_models import (
    ExitReason,
    JobHandle,
    JobKind,
    PollOutcome,
    PollSample,
    PollSettings,
)
from .polling_poller import AdaptivePoller

__all__ = [
    "AdaptivePoller",
    "Classification",
    "ExitReason",
    "JobHandle",
    "JobKind",
    "OutcomeKind",
    "PollOutcome",
    "PollSample",
    "PollSettings",
    "StatusCode",
    "classify",
    "describe_fail_code",
    "status_name",
]
