"""httpx client with retries, a client-side rate limit and an optional response cache."""

from __future__ import annotations

import json
from logging import getLogger
from typing import TYPE_CHECKING, TypedDict, Unpack

import httpx
from aiolimiter import AsyncLimiter
from hishel import AsyncSqliteStorage, FilterPolicy
from hishel import Response as HishelCacheResponse
from hishel._policies import BaseFilter
from hishel.httpx import AsyncCacheClient
from httpx_retries import Retry, RetryTransport

from mapkeeper.config.storage import get_http_cache_path

if TYPE_CHECKING:
    from collections.abc import Mapping
    from types import TracebackType

    from httpx._types import HeaderTypes, QueryParamTypes, RequestData

    from mapkeeper.config.http_resilience import (
        CacheConfig,
        ResilienceConfig,
        ResponseHook,
        RetryPolicy,
        ShouldCacheHook,
    )

log = getLogger(__name__)


class RequestOptions(TypedDict, total=False):
    params: QueryParamTypes
    data: RequestData
    headers: HeaderTypes


class _ClientOptions(TypedDict):
    base_url: str
    timeout: float
    headers: Mapping[str, str]
    event_hooks: dict[str, list[ResponseHook]]
    transport: httpx.AsyncBaseTransport


def build_retry(policy: RetryPolicy) -> Retry:
    return Retry(
        total=policy.total,
        backoff_factor=policy.backoff_factor,
        max_backoff_wait=policy.max_backoff_wait,
        respect_retry_after_header=policy.respect_retry_after_header,
        allowed_methods=sorted(policy.methods),
        status_forcelist=sorted(policy.statuses),
        retry_on_exceptions=policy.exceptions,
        backoff_jitter=policy.jitter,
    )


class _JsonBodyFilter(BaseFilter[HishelCacheResponse]):
    """Admit a response into the cache only when its JSON body passes ``predicate``."""

    def __init__(self, predicate: ShouldCacheHook) -> None:
        self._predicate = predicate

    def needs_body(self) -> bool:
        return True

    def apply(self, item: HishelCacheResponse, body: bytes | None) -> bool:  # noqa: ARG002
        if not body:
            return False
        try:
            payload = json.loads(body)
        except ValueError:
            return False
        return bool(self._predicate(payload))


def cache_storage(cache: CacheConfig) -> AsyncSqliteStorage:
    if cache.backend == "memory":
        database_path = ":memory:"
    else:
        database_path = str(cache.path or get_http_cache_path())
    return AsyncSqliteStorage(database_path=database_path, default_ttl=cache.ttl_seconds)


def cache_policy(cache: CacheConfig) -> FilterPolicy | None:
    if cache.should_cache is None:
        return None
    return FilterPolicy(response_filters=[_JsonBodyFilter(cache.should_cache)])


def _build_http_client(
    config: ResilienceConfig,
    transport: httpx.AsyncBaseTransport,
) -> httpx.AsyncClient:
    options: _ClientOptions = {
        "base_url": config.base_url or "",
        "timeout": config.timeout_seconds,
        "headers": dict(config.default_headers or {}),
        "event_hooks": {"response": list(config.response_hooks)},
        "transport": transport,
    }
    if config.cache is None:
        return httpx.AsyncClient(**options)

    log.info("HTTP cache for %s: %s backend", config.name, config.cache.backend)
    return AsyncCacheClient(
        **options,
        storage=cache_storage(config.cache),
        policy=cache_policy(config.cache),
    )


class ResilientClient:
    """One pooled client per remote, shared by every concurrent caller.

    ``transport`` replaces the network transport underneath the retry layer.
    """

    def __init__(
        self,
        config: ResilienceConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._limiter = (
            AsyncLimiter(config.ratelimit.max_calls, config.ratelimit.per_seconds)
            if config.ratelimit is not None
            else None
        )
        retrying = RetryTransport(transport=transport, retry=build_retry(config.retry))
        self._client = _build_http_client(config, retrying)

    async def __aenter__(self) -> ResilientClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(
        self,
        method: str,
        url: str,
        **options: Unpack[RequestOptions],
    ) -> httpx.Response:
        if self._limiter is None:
            return await self._client.request(method, url, **options)
        async with self._limiter:
            return await self._client.request(method, url, **options)

    async def get(self, url: str, **options: Unpack[RequestOptions]) -> httpx.Response:
        return await self.request("GET", url, **options)

    async def post(self, url: str, **options: Unpack[RequestOptions]) -> httpx.Response:
        return await self.request("POST", url, **options)
