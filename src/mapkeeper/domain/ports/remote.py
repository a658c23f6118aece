"""Ports for the remote authority and the lookup cache."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from mapkeeper.domain.model import RemoteBeatmap


class AuthenticationError(RuntimeError):
    """Raised when the remote authority rejects our credentials."""


class RemoteAuthorityError(RuntimeError):
    """Raised when the remote authority returns an unusable response."""


@runtime_checkable
class RemoteAuthority(Protocol):
    """Bulk lookup of beatmaps by online id."""

    async def authenticate(self) -> bool: ...

    async def fetch_by_ids(self, ids: Sequence[int]) -> list[RemoteBeatmap]:
        """Return the beatmaps the remote knows; unknown ids are simply absent."""
        ...


@runtime_checkable
class LookupCachePort(Protocol):
    """Keyed store of remote lookups; ``None`` records mean "not found"."""

    def __contains__(self, beatmap_id: object) -> bool: ...

    def __len__(self) -> int: ...

    def contains(self, beatmap_id: int) -> bool: ...

    def try_get(self, beatmap_id: int) -> tuple[RemoteBeatmap | None, bool]: ...

    def put(self, beatmap_id: int, record: RemoteBeatmap | None) -> bool: ...

    def save(self) -> None: ...
