"""HTTP client for the osu! API v2."""

from __future__ import annotations

from dataclasses import replace
from logging import getLogger
from typing import TYPE_CHECKING

import httpx

from mapkeeper.adapters.http_resilience import ResilientClient
from mapkeeper.config.osu import (
    OSU_API_PATH,
    OSU_BASE_URL,
    OSU_MAX_IDS_PER_REQUEST,
    OSU_RATE_LIMIT_WARN_BELOW,
    OSU_TOKEN_PATH,
)
from mapkeeper.domain.ports import RemoteAuthorityError

from .schema import TokenResponse
from .translator import parse_beatmaps

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from types import TracebackType

    from mapkeeper.config.http_resilience import ResilienceConfig
    from mapkeeper.config.osu import OsuConfig
    from mapkeeper.domain.model import RemoteBeatmap

log = getLogger(__name__)


async def log_rate_limit(response: httpx.Response) -> None:
    """Report the remaining request budget osu! sends back with every response."""

    remaining = response.headers.get("X-RateLimit-Remaining", "")
    if not remaining.isdigit():
        return
    if int(remaining) < OSU_RATE_LIMIT_WARN_BELOW:
        log.warning("osu! rate limit nearly used up: %s requests left", remaining)
    else:
        log.debug("osu! rate limit: %s requests left", remaining)


def is_cacheable_lookup(payload: object) -> bool:
    # Token responses and empty lookups stay out of the HTTP cache.
    return isinstance(payload, dict) and bool(payload.get("beatmaps"))  # pyright: ignore[reportUnknownMemberType]


class OsuApiClient:
    """Client-credentials session against the osu! API.

    One underlying HTTP client (and so one rate limiter) is shared by every request
    made through this instance until :meth:`aclose`. The client reports the osu!
    rate-limit headers, and an enabled HTTP cache only keeps beatmap lookups.
    """

    def __init__(
        self,
        *,
        config: OsuConfig,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    ) -> None:
        self._config = config
        self._resilience = _session_resilience(config.resilience)
        self._client_factory = client_factory or ResilientClient
        self._client: ResilientClient | None = None
        self._token: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None

    async def __aenter__(self) -> OsuApiClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _http(self) -> ResilientClient:
        if self._client is None:
            self._client = self._client_factory(self._resilience)
        return self._client

    def _url(self, path: str) -> str:
        base_url = (self._resilience.base_url or OSU_BASE_URL).rstrip("/")
        return f"{base_url}{path}"

    async def authenticate(self) -> bool:
        data = {
            "client_id": self._config.client_id,
            "client_secret": self._config.client_secret,
            "grant_type": "client_credentials",
            "scope": self._config.scope,
        }
        try:
            response = await self._http().post(self._url(OSU_TOKEN_PATH), data=data)
        except httpx.HTTPError as exc:
            log.error("osu! token request failed: %s", exc)
            return False

        if response.is_error:
            log.error("osu! token request rejected with HTTP %s", response.status_code)
            return False

        try:
            token = TokenResponse.model_validate(response.json())
        except ValueError as exc:
            log.error("Unexpected osu! token payload: %s", exc)
            return False

        self._token = token.access_token
        log.info("Authenticated against the osu! API")
        return True

    async def fetch_by_ids(self, ids: Sequence[int]) -> list[RemoteBeatmap]:
        if self._token is None:
            raise RemoteAuthorityError("Not authenticated against the osu! API")

        beatmaps: list[RemoteBeatmap] = []
        for start in range(0, len(ids), OSU_MAX_IDS_PER_REQUEST):
            chunk = ids[start : start + OSU_MAX_IDS_PER_REQUEST]
            beatmaps.extend(await self._fetch_chunk(chunk, token=self._token))
        return beatmaps

    async def _fetch_chunk(self, ids: Sequence[int], *, token: str) -> list[RemoteBeatmap]:
        if not ids:
            return []
        params = httpx.QueryParams([("ids[]", str(beatmap_id)) for beatmap_id in ids])
        headers = {"Authorization": f"Bearer {token}"}
        try:
            response = await self._http().get(
                self._url(f"{OSU_API_PATH}/beatmaps"),
                params=params,
                headers=headers,
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            raise RemoteAuthorityError(f"osu! beatmap lookup failed: {exc}") from exc
        except ValueError as exc:
            raise RemoteAuthorityError("osu! beatmap lookup returned invalid JSON") from exc

        if not isinstance(payload, dict) or "beatmaps" not in payload:
            raise RemoteAuthorityError("Unexpected osu! beatmap lookup payload")

        try:
            return parse_beatmaps(payload)
        except ValueError as exc:
            raise RemoteAuthorityError(f"Unexpected osu! beatmap payload: {exc}") from exc


def _session_resilience(resilience: ResilienceConfig) -> ResilienceConfig:
    cache = resilience.cache
    if cache is not None and cache.should_cache is None:
        cache = replace(cache, should_cache=is_cacheable_lookup)
    return replace(
        resilience,
        cache=cache,
        response_hooks=(*resilience.response_hooks, log_rate_limit),
    )
