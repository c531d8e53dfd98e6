"""Pydantic request models of the OpenAI-compatible endpoints."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

ResponseFormat = Literal["url", "b64_json"]


def extract_image_reference(value: Any) -> Optional[str]:
    """Accept a URL string, ``{type: image_url, image_url: {url}}``, ``{url}`` or a list."""

    if not value:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return extract_image_reference(value[0])
    if isinstance(value, dict):
        image = value.get("image_url")
        if value.get("type") == "image_url" and isinstance(image, dict) and isinstance(image.get("url"), str):
            return image["url"]
        if isinstance(value.get("url"), str):
            return value["url"]
    return None


class ChatCompletionRequest(BaseModel):
    """Body of ``POST /v1/chat/completions``."""

    model_config = ConfigDict(extra="allow")

    model: Optional[str] = Field(default=None, description="Image model (optionally ``name:size``) or agent model.")
    messages: List[Dict[str, Any]] = Field(..., description="OpenAI style conversation messages.")
    stream: bool = Field(default=False, description="Return ``text/event-stream`` chunks.")


class ImageGenerationRequest(BaseModel):
    """Body of ``POST /v1/images/generations``."""

    model_config = ConfigDict(extra="allow")

    model: Optional[str] = None
    prompt: str = Field(..., description="Generation prompt.")
    negative_prompt: str = ""
    width: int = Field(default=1024, ge=64, le=8192)
    height: int = Field(default=1024, ge=64, le=8192)
    sample_strength: float = Field(default=0.5, ge=0.0, le=1.0)
    image: Any = Field(default=None, description="Optional reference image for blending.")
    response_format: ResponseFormat = "url"
    stream: bool = False

    @property
    def image_url(self) -> Optional[str]:
        return extract_image_reference(self.image)


class VideoGenerationRequest(BaseModel):
    """Body of ``POST /v1/videos/generations``."""

    model_config = ConfigDict(extra="allow")

    model: Optional[str] = None
    prompt: str = Field(..., description="Prompt, may carry ``-ar <ratio>`` and ``-d <seconds>`` flags.")
    first_frame_image: Any = Field(default=None, description="First frame image reference.")
    aspect_ratio: Optional[str] = None
    duration: Optional[int] = Field(default=None, description="Clip length in seconds (5 or 10).")
    fps: int = Field(default=24, ge=1, le=60, description="Frames per second of the rendered clip.")
    response_format: ResponseFormat = "url"
    stream: bool = False

    @property
    def first_frame_url(self) -> Optional[str]:
        return extract_image_reference(self.first_frame_image)


__all__ = [
    "ChatCompletionRequest",
    "ImageGenerationRequest",
    "VideoGenerationRequest",
    "extract_image_reference",
]
