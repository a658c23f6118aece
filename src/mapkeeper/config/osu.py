"""osu! API configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import require_env_vars
from .http_resilience import (
    CacheConfig,
    RateLimit,
    ResilienceConfig,
    RetryPolicy,
    http_cache_from_env,
)

OSU_BASE_URL = "https://osu.ppy.sh"
OSU_API_PATH = "/api/v2"
OSU_TOKEN_PATH = "/oauth/token"
OSU_BEATMAPSET_URL = f"{OSU_BASE_URL}/beatmapsets"
OSU_TIMEOUT_SECONDS = 30.0
# The bulk beatmap lookup accepts at most this many ids per request.
OSU_MAX_IDS_PER_REQUEST = 50
OSU_RATE_LIMIT_WARN_BELOW = 10


@dataclass(frozen=True, slots=True)
class OsuConfig:
    """Holds osu! API credentials and transport settings."""

    client_id: str
    client_secret: str
    resilience: ResilienceConfig
    scope: str = "public"


def default_osu_resilience(*, cache: CacheConfig | None = None) -> ResilienceConfig:
    return ResilienceConfig(
        name="osu",
        base_url=OSU_BASE_URL,
        timeout_seconds=OSU_TIMEOUT_SECONDS,
        retry=RetryPolicy(total=4),
        # osu! asks API consumers to stay well below 60 requests per minute.
        ratelimit=RateLimit(max_calls=1, per_seconds=1.0),
        cache=cache,
        default_headers={"Accept": "application/json", "User-Agent": "mapkeeper"},
    )


def get_osu_config(*, resilience: ResilienceConfig | None = None) -> OsuConfig:
    values = require_env_vars(("OSU_CLIENT_ID", "OSU_CLIENT_SECRET"))
    return OsuConfig(
        client_id=values["OSU_CLIENT_ID"],
        client_secret=values["OSU_CLIENT_SECRET"],
        resilience=resilience or default_osu_resilience(cache=http_cache_from_env()),
    )
