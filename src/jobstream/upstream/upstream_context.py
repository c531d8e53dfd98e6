"""Per-request upstream context parsed from the caller credentials."""

from __future__ import annotations

import random
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import StrEnum

from ..config import AppConfig
from ..exceptions import InvalidRequestError

_CN_SUFFIX = ":cn"


class Region(StrEnum):
    INTERNATIONAL = "intl"
    CN = "cn"


def split_tokens(authorization: str) -> list[str]:
    """Split ``Bearer a,b,c`` into its non-empty tokens."""

    value = authorization.strip()
    if value.lower().startswith("bearer "):
        value = value[len("bearer ") :]
    return [token.strip() for token in value.split(",") if token.strip()]


@dataclass(frozen=True, slots=True)
class RequestContext:
    """Read-only upstream credentials and hosts for one request."""

    token: str
    region: Region
    base_url: str
    agent_base_url: str

    @classmethod
    def from_authorization(
        cls,
        authorization: str | None,
        config: AppConfig,
        *,
        choose: Callable[[Sequence[str]], str] = random.choice,
    ) -> "RequestContext":
        """Pick one token from the header; a ``:cn`` suffix selects the CN region."""

        if not authorization:
            raise InvalidRequestError("Authorization header is required")
        tokens = split_tokens(authorization)
        if not tokens:
            raise InvalidRequestError("Authorization header carries no token")
        token = choose(tokens)
        if token.lower().endswith(_CN_SUFFIX):
            return cls(
                token=token[: -len(_CN_SUFFIX)],
                region=Region.CN,
                base_url=config.upstream_cn_base_url,
                agent_base_url=config.upstream_cn_base_url,
            )
        return cls(
            token=token,
            region=Region.INTERNATIONAL,
            base_url=config.upstream_base_url,
            agent_base_url=config.agent_base_url,
        )


__all__ = ["Region", "RequestContext", "split_tokens"]
