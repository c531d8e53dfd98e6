from __future__ import annotations

from typing import Callable

import pytest

from src.jobstream.config import AppConfig
from tests.mocks.backends import FakeJobBackend


def fast_config(**overrides) -> AppConfig:
    """Configuration without inter-poll and retry delays."""

    values = {
        "image_poll_interval_ms": 0,
        "video_poll_interval_ms": 0,
        "tool_image_poll_interval_ms": 0,
        "tool_video_poll_interval_ms": 0,
        "tool_debounce_ms": 0,
        "transport_retry_delay_seconds": 0,
    }
    values.update(overrides)
    return AppConfig(**values)


@pytest.fixture
def api_client() -> Callable[..., "TestClient"]:
    """Build a ``TestClient`` around an app wired to a fake backend."""

    pytest.importorskip("fastapi")
    from fastapi.testclient import TestClient

    from src.jobstream.main import create_app

    def factory(backend: FakeJobBackend | None = None, **overrides) -> TestClient:
        app = create_app(fast_config(**overrides), backend=backend or FakeJobBackend())
        return TestClient(app)

    return factory
