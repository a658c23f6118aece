"""Transport settings for the HTTP clients mapkeeper talks to."""

from __future__ import annotations

import os
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

import httpx

from .errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Mapping
    from pathlib import Path

type ResponseHook = Callable[[httpx.Response], Awaitable[None]]
type ShouldCacheHook = Callable[[object], bool]

HTTP_CACHE_ENV = "MAPKEEPER_HTTP_CACHE"
HTTP_CACHE_TTL_ENV = "MAPKEEPER_HTTP_CACHE_TTL"
DEFAULT_HTTP_CACHE_TTL_SECONDS = 24 * 60 * 60.0

_CACHE_OFF = frozenset({"", "0", "off", "false", "no", "none"})


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    total: int = 4
    backoff_factor: float = 0.5
    max_backoff_wait: float = 60.0
    respect_retry_after_header: bool = True
    methods: frozenset[str] = frozenset({"GET", "POST"})
    statuses: frozenset[int] = frozenset({429, 500, 502, 503, 504})
    exceptions: tuple[type[httpx.HTTPError], ...] = (
        httpx.TimeoutException,
        httpx.NetworkError,
        httpx.RemoteProtocolError,
    )
    jitter: float = 1.0


@dataclass(slots=True, frozen=True)
class RateLimit:
    max_calls: int
    per_seconds: float


@dataclass(slots=True, frozen=True)
class CacheConfig:
    """Response cache in front of the retry transport.

    ``path`` only matters for the sqlite backend and defaults to ``http_cache.db``
    in the data directory. ``should_cache`` sees the decoded JSON body.
    """

    backend: Literal["sqlite", "memory"] = "sqlite"
    path: Path | None = None
    ttl_seconds: float | None = DEFAULT_HTTP_CACHE_TTL_SECONDS
    should_cache: ShouldCacheHook | None = None


@dataclass(slots=True, frozen=True)
class ResilienceConfig:
    name: str
    base_url: str | None = None
    timeout_seconds: float = 30.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    ratelimit: RateLimit | None = None
    cache: CacheConfig | None = None
    response_hooks: tuple[ResponseHook, ...] = ()
    default_headers: Mapping[str, str] | None = None


def http_cache_from_env() -> CacheConfig | None:
    """Read ``MAPKEEPER_HTTP_CACHE`` (sqlite, memory or off) and its TTL in seconds."""

    backend = os.getenv(HTTP_CACHE_ENV, "").strip().lower()
    if backend in _CACHE_OFF:
        return None
    if backend not in {"sqlite", "memory"}:
        raise ConfigurationError(
            f"{HTTP_CACHE_ENV} must be 'sqlite', 'memory' or 'off', got {backend!r}"
        )

    ttl_text = os.getenv(HTTP_CACHE_TTL_ENV, "").strip()
    try:
        ttl = float(ttl_text) if ttl_text else DEFAULT_HTTP_CACHE_TTL_SECONDS
    except ValueError as exc:
        raise ConfigurationError(f"{HTTP_CACHE_TTL_ENV} must be a number of seconds") from exc
    if ttl <= 0:
        raise ConfigurationError(f"{HTTP_CACHE_TTL_ENV} must be positive")

    return CacheConfig(backend="sqlite" if backend == "sqlite" else "memory", ttl_seconds=ttl)
