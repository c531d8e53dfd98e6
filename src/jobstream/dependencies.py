"""Dependency wiring helpers."""

from __future__ import annotations

from fastapi import FastAPI

from .api.api_errors import ApiError, api_error_handler, gateway_error_handler
from .api.chat_api import router as chat_router
from .api.media_api import router as media_router
from .api.models_api import router as models_router
from .config import AppConfig
from .exceptions import GatewayError
from .services.chat_service import ChatService
from .services.media_generation import MediaGenerationService
from .upstream.upstream_base import JobBackend
from .upstream.upstream_client import HttpJobBackend


def include_routers(app: FastAPI, config: AppConfig, backend: JobBackend | None = None) -> None:
    """Mount routers, error handlers and attach services."""
    job_backend = backend or HttpJobBackend(timeout_seconds=config.upstream_timeout_seconds)
    media_service = MediaGenerationService(job_backend, config)
    chat_service = ChatService(job_backend, config, media_service)

    app.state.config = config
    app.state.backend = job_backend
    app.state.media_service = media_service
    app.state.chat_service = chat_service

    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(GatewayError, gateway_error_handler)

    app.include_router(chat_router)
    app.include_router(media_router)
    app.include_router(models_router)
