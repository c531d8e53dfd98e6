"""Domain level exceptions shared by the polling and streaming layers."""

from __future__ import annotations

__all__ = [
    "GatewayError",
    "InvalidRequestError",
    "TransientNotFoundError",
    "ContentFilteredError",
    "QuotaExhaustedError",
    "GenerationFailedError",
    "PollTimeoutError",
    "PollCancelledError",
    "TransportError",
    "StreamAbnormalTerminationError",
]


class GatewayError(Exception):
    """Base class for application specific errors.

    ``category`` is a stable machine-readable identifier surfaced to
    non-streaming callers next to the human-readable message.
    """

    category = "gateway_error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.category)
        self.message = message or self.category


class InvalidRequestError(GatewayError):
    """Raised when caller input cannot be turned into a job."""

    category = "invalid_request"


class TransientNotFoundError(GatewayError):
    """Raised by a status probe while the remote job record is not materialized."""

    category = "not_found"


class ContentFilteredError(GatewayError):
    """Raised when the provider rejects a job for a policy violation."""

    category = "content_filtered"


class QuotaExhaustedError(GatewayError):
    """Raised when the account balance cannot cover the job."""

    category = "quota_exhausted"


class GenerationFailedError(GatewayError):
    """Raised for any other fatal provider failure."""

    category = "generation_failed"


class PollTimeoutError(GatewayError):
    """Raised when polling stops without producing a single item."""

    category = "poll_timeout"


class PollCancelledError(GatewayError):
    """Raised when the owning session cancels an in-flight poll loop."""

    category = "cancelled"


class TransportError(GatewayError):
    """Raised when the upstream cannot be reached; retryable at call sites."""

    category = "transport_error"


class StreamAbnormalTerminationError(GatewayError):
    """Raised to streaming consumers when the upstream connection breaks."""

    category = "stream_aborted"
