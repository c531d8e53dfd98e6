"""FastAPI application entry point."""

from __future__ import annotations

import uvicorn
from fastapi import FastAPI

from .config import AppConfig
from .dependencies import include_routers
from .logging import configure_logging
from .upstream.upstream_base import JobBackend


def create_app(config: AppConfig | None = None, backend: JobBackend | None = None) -> FastAPI:
    """Build FastAPI instance with configured dependencies."""
    configure_logging()
    cfg = config or AppConfig.build_default()
    app = FastAPI(title="jobstream")
    include_routers(app, cfg, backend)
    return app


def run() -> None:
    """Serve the gateway with uvicorn."""
    cfg = AppConfig.build_default()
    uvicorn.run(create_app(cfg), host=cfg.host, port=cfg.port)


if __name__ == "__main__":  # pragma: no cover - manual launch
    run()
