"""Records returned by the remote authority."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime  # noqa: TC003


@dataclass(frozen=True, slots=True, kw_only=True)
class RemoteBeatmapSet:
    id: int
    status: str = ""
    ranked_date: datetime | None = None
    submitted_date: datetime | None = None
    last_updated: datetime | None = None
    title: str = ""
    artist: str = ""
    creator: str = ""


@dataclass(frozen=True, slots=True, kw_only=True)
class RemoteBeatmap:
    """One beatmap as the remote authority knows it.

    A record without ``beatmapset`` is not usable for reconciliation and is handled
    exactly like an id the remote does not know.
    """

    id: int
    checksum: str | None = None
    beatmapset: RemoteBeatmapSet | None = None
