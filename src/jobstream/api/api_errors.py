"""Error payloads and exception handlers of the HTTP edge."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping

from fastapi import Request, status
from fastapi.responses import JSONResponse

from ..exceptions import GatewayError

logger = logging.getLogger(__name__)

HTTP_499_CLIENT_CLOSED_REQUEST = 499

_CATEGORY_STATUS: dict[str, int] = {
    "invalid_request": status.HTTP_400_BAD_REQUEST,
    "content_filtered": status.HTTP_400_BAD_REQUEST,
    "quota_exhausted": status.HTTP_402_PAYMENT_REQUIRED,
    "generation_failed": status.HTTP_502_BAD_GATEWAY,
    "not_found": status.HTTP_502_BAD_GATEWAY,
    "transport_error": status.HTTP_502_BAD_GATEWAY,
    "stream_aborted": status.HTTP_502_BAD_GATEWAY,
    "poll_timeout": status.HTTP_504_GATEWAY_TIMEOUT,
    "cancelled": HTTP_499_CLIENT_CLOSED_REQUEST,
}


@dataclass(slots=True)
class ApiError(Exception):
    """Error rendered as ``{"error": {"code", "message"}}``."""

    status_code: int
    code: str
    message: str
    headers: Mapping[str, str] | None = None

    def to_response(self) -> JSONResponse:
        """Render the error body with its status and headers."""

        return JSONResponse(
            status_code=self.status_code,
            content={"error": {"code": self.code, "message": self.message}},
            headers=dict(self.headers or {}),
        )


def from_gateway_error(exc: GatewayError) -> ApiError:
    """Map a domain error to its HTTP status and stable category code."""

    status_code = _CATEGORY_STATUS.get(exc.category, status.HTTP_500_INTERNAL_SERVER_ERROR)
    return ApiError(status_code, exc.category, exc.message)


async def api_error_handler(_: Request, exc: ApiError) -> JSONResponse:
    """Render a raised :class:`ApiError`."""

    return exc.to_response()


async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    """Convert :class:`GatewayError` exceptions into JSON payloads."""

    error = from_gateway_error(exc)
    logger.warning(
        "api.gateway_error",
        extra={"path": request.url.path, "category": exc.category, "status": error.status_code},
    )
    return error.to_response()


def unauthorized_error(message: str) -> ApiError:
    """401 error for a missing or unusable ``Authorization`` header."""

    return ApiError(status.HTTP_401_UNAUTHORIZED, "unauthorized", message)


__all__ = [
    "ApiError",
    "api_error_handler",
    "from_gateway_error",
    "gateway_error_handler",
    "unauthorized_error",
]
