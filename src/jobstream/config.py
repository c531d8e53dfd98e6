"""Application configuration for the jobstream gateway.

Defaults mirror the latencies observed on the generation backend: image
batches settle within minutes, video jobs poll less often and tool results
spawned by the agent are expected to settle quickly. Every value can be
overridden through ``JOBSTREAM_*`` environment variables or a ``.env`` file.
"""

from __future__ import annotations

from typing import Dict

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .polling.polling_models import JobKind, PollSettings
from .streaming.streaming_models import ResourceType


def _default_image_models() -> Dict[str, str]:
    return {
        "jimeng-4.0": "high_aes_general_v40",
        "jimeng-3.1": "high_aes_general_v30l_art:general_v3.0_18b",
        "jimeng-3.0": "high_aes_general_v30l:general_v3.0_18b",
        "jimeng-2.1": "high_aes_general_v21_L:general_v2.1_L",
    }


def _default_video_models() -> Dict[str, str]:
    return {
        "jimeng-video-3.0": "dreamina_ic_generate_video_model_vgfm_3.0",
        "jimeng-video-3.0-pro": "dreamina_ic_generate_video_model_vgfm_3.0_pro",
    }


class AppConfig(BaseSettings):
    """Pydantic settings container for the gateway."""

    model_config = SettingsConfigDict(
        env_prefix="JOBSTREAM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    upstream_base_url: str = Field(
        default="https://mweb-api-sg.capcut.com",
        description="Base URL of the job submission and history endpoints.",
    )
    upstream_cn_base_url: str = Field(
        default="https://jimeng.jianying.com",
        description="Base URL used for tokens carrying the ``:cn`` region suffix.",
    )
    agent_base_url: str = Field(
        default="https://mweb-api-sg.capcut.com",
        description="Host serving the agent conversation event stream.",
    )
    upstream_timeout_seconds: float = Field(
        default=45.0,
        ge=0.1,
        description="Timeout applied to individual upstream requests in seconds.",
    )
    transport_retry_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts for job submission and status probes on transport failures.",
    )
    transport_retry_delay_seconds: float = Field(
        default=5.0,
        ge=0.0,
        description="Fixed delay between transport retry attempts in seconds.",
    )

    image_expected_items: int = Field(
        default=4,
        ge=1,
        description="Images expected from one generation batch.",
    )
    image_max_poll_count: int = Field(default=900, ge=1, description="Poll ceiling for image jobs.")
    image_poll_interval_ms: int = Field(
        default=5_000,
        ge=0,
        description="Base interval between image job status probes (ms).",
    )
    image_stable_rounds: int = Field(
        default=5,
        ge=1,
        description="Unchanged item counts after which an image job is declared settled.",
    )
    image_timeout_seconds: float = Field(
        default=900.0,
        gt=0.0,
        description="Overall time budget for an image job in seconds.",
    )

    video_max_poll_count: int = Field(default=300, ge=1, description="Poll ceiling for video jobs.")
    video_poll_interval_ms: int = Field(
        default=2_000,
        ge=0,
        description="Base interval between video job status probes (ms).",
    )
    video_stable_rounds: int = Field(default=5, ge=1, description="Stability rounds for video jobs.")
    video_timeout_seconds: float = Field(
        default=900.0,
        gt=0.0,
        description="Overall time budget for a video job in seconds.",
    )

    tool_image_max_poll_count: int = Field(
        default=120,
        ge=1,
        description="Poll ceiling for image jobs spawned by agent tool calls.",
    )
    tool_image_poll_interval_ms: int = Field(
        default=1_000,
        ge=0,
        description="Base interval for tool image job probes (ms).",
    )
    tool_video_max_poll_count: int = Field(
        default=300,
        ge=1,
        description="Poll ceiling for video jobs spawned by agent tool calls.",
    )
    tool_video_poll_interval_ms: int = Field(
        default=2_000,
        ge=0,
        description="Base interval for tool video job probes (ms).",
    )
    tool_stable_rounds: int = Field(default=5, ge=1, description="Stability rounds for tool jobs.")
    tool_timeout_seconds: float = Field(
        default=600.0,
        gt=0.0,
        description="Time budget for a single tool job in seconds.",
    )
    tool_debounce_ms: int = Field(
        default=100,
        ge=0,
        description="Delay before resolving tool calls once all results are correlated (ms).",
    )

    not_found_grace_polls: int = Field(
        default=10,
        ge=1,
        description="Polls during which a missing job record is tolerated.",
    )

    default_image_model: str = Field(default="jimeng-3.1", description="Model used when none is requested.")
    default_video_model: str = Field(default="jimeng-video-3.0", description="Default video model.")
    agent_model: str = Field(
        default="agent",
        description="Chat model name routed to the agent conversation stream.",
    )
    image_models: Dict[str, str] = Field(
        default_factory=_default_image_models,
        description="Mapping of public image model names to upstream model identifiers.",
    )
    video_models: Dict[str, str] = Field(
        default_factory=_default_video_models,
        description="Mapping of public video model names to upstream model identifiers.",
    )

    host: str = Field(default="0.0.0.0", description="Bind address for the HTTP server.")
    port: int = Field(default=5100, ge=1, le=65535, description="Bind port for the HTTP server.")

    @classmethod
    def build_default(cls) -> "AppConfig":
        """Construct configuration from the environment."""

        return cls()

    def poll_settings(self, kind: JobKind, *, expected_item_count: int | None = None) -> PollSettings:
        """Return poller settings for a direct generation job."""

        if kind is JobKind.VIDEO:
            return PollSettings(
                expected_item_count=expected_item_count or 1,
                max_poll_count=self.video_max_poll_count,
                base_interval_ms=self.video_poll_interval_ms,
                stable_rounds=self.video_stable_rounds,
                timeout_seconds=self.video_timeout_seconds,
                not_found_grace_polls=self.not_found_grace_polls,
            )
        return PollSettings(
            expected_item_count=expected_item_count or self.image_expected_items,
            max_poll_count=self.image_max_poll_count,
            base_interval_ms=self.image_poll_interval_ms,
            stable_rounds=self.image_stable_rounds,
            timeout_seconds=self.image_timeout_seconds,
            not_found_grace_polls=self.not_found_grace_polls,
        )

    def tool_poll_settings(self) -> Dict[ResourceType, PollSettings]:
        """Return poller settings for tool call results keyed by resource type."""

        return {
            ResourceType.IMAGE: PollSettings(
                expected_item_count=1,
                max_poll_count=self.tool_image_max_poll_count,
                base_interval_ms=self.tool_image_poll_interval_ms,
                stable_rounds=self.tool_stable_rounds,
                timeout_seconds=self.tool_timeout_seconds,
                not_found_grace_polls=self.not_found_grace_polls,
            ),
            ResourceType.VIDEO: PollSettings(
                expected_item_count=1,
                max_poll_count=self.tool_video_max_poll_count,
                base_interval_ms=self.tool_video_poll_interval_ms,
                stable_rounds=self.tool_stable_rounds,
                timeout_seconds=self.tool_timeout_seconds,
                not_found_grace_polls=self.not_found_grace_polls,
            ),
        }

    @property
    def tool_debounce_seconds(self) -> float:
        return self.tool_debounce_ms / 1000.0


__all__ = ["AppConfig"]
