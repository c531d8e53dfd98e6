"""FastAPI dependency providers bound to ``app.state``."""

from __future__ import annotations

from typing import Annotated, Optional

from fastapi import Depends, Header, Request

from ..config import AppConfig
from ..exceptions import InvalidRequestError
from ..logging import bind_request_context
from ..services.chat_service import ChatService
from ..services.media_generation import MediaGenerationService
from ..upstream.upstream_context import RequestContext
from .api_errors import unauthorized_error


def get_config(request: Request) -> AppConfig:
    try:
        return request.app.state.config  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover - defensive path
        raise RuntimeError("AppConfig is not configured") from exc


def get_chat_service(request: Request) -> ChatService:
    try:
        return request.app.state.chat_service  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover - defensive path
        raise RuntimeError("ChatService is not configured") from exc


def get_media_service(request: Request) -> MediaGenerationService:
    try:
        return request.app.state.media_service  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover - defensive path
        raise RuntimeError("MediaGenerationService is not configured") from exc


def get_request_context(
    config: Annotated[AppConfig, Depends(get_config)],
    authorization: Annotated[Optional[str], Header()] = None,
) -> RequestContext:
    """Build the read-only upstream context from the ``Authorization`` header."""

    try:
        context = RequestContext.from_authorization(authorization, config)
    except InvalidRequestError as exc:
        raise unauthorized_error(exc.message) from exc
    bind_request_context(region=context.region.value)
    return context


__all__ = [
    "get_chat_service",
    "get_config",
    "get_media_service",
    "get_request_context",
]
