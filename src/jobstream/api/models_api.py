"""Model listing route."""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends

from ..config import AppConfig
from .api_dependencies import get_config

router = APIRouter(prefix="/v1", tags=["models"])


@router.get("/models")
async def list_models(config: Annotated[AppConfig, Depends(get_config)]) -> dict[str, Any]:
    """List the public model names accepted by the gateway."""

    names = [*config.image_models, *config.video_models, config.agent_model]
    return {
        "object": "list",
        "data": [{"id": name, "object": "model", "owned_by": "jobstream"} for name in names],
    }


__all__ = ["router"]
