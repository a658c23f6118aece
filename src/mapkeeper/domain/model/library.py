"""Local library records as read from the client database.

Records are immutable snapshots: the audit reads them, the executor only refers
to them by id when it mutates the store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from types import MappingProxyType
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from .enums import BeatmapStatus

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

UNKNOWN_TEXT = "[Unknown]"


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True, kw_only=True)
class Beatmap:
    """A single difficulty inside a beatmap set."""

    id: UUID = field(default_factory=uuid4)
    online_id: int = 0
    difficulty_name: str = ""
    md5_hash: str = ""
    star_rating: float = 0.0
    length: float = 0.0
    bpm: float = 0.0
    status: BeatmapStatus = BeatmapStatus.UNKNOWN

    def __str__(self) -> str:
        return f"{self.difficulty_name} [{self.star_rating:.2f}*]"


@dataclass(frozen=True, slots=True, kw_only=True)
class BeatmapSet:
    """A beatmap set and its child references.

    ``beatmap_ids`` lists every child reference in collection order, dead ones
    included. ``beatmaps`` holds the children that actually exist, in the same order.
    """

    id: UUID = field(default_factory=uuid4)
    online_id: int = 0
    status: BeatmapStatus = BeatmapStatus.UNKNOWN
    title: str = UNKNOWN_TEXT
    artist: str = UNKNOWN_TEXT
    creator: str = UNKNOWN_TEXT
    date_ranked: datetime | None = None
    date_submitted: datetime | None = None
    date_added: datetime = field(default_factory=_utcnow)
    beatmap_ids: tuple[UUID, ...] = ()
    beatmaps: tuple[Beatmap, ...] = ()

    @property
    def has_valid_online_id(self) -> bool:
        return self.online_id > 0

    @property
    def first_valid_map_id(self) -> int:
        """Online id of the first child that has one; it stands in for the whole set."""

        for beatmap in self.beatmaps:
            if beatmap.online_id > 0:
                return beatmap.online_id
        return 0

    @property
    def has_zero_star_ratings(self) -> bool:
        return any(beatmap.star_rating == 0 for beatmap in self.beatmaps)

    @property
    def needs_dates(self) -> bool:
        return self.date_ranked is None or self.date_submitted is None

    def beatmap_by_online_id(self, online_id: int) -> Beatmap | None:
        return next((b for b in self.beatmaps if b.online_id == online_id), None)

    def __str__(self) -> str:
        return f"{self.artist} - {self.title} (by {self.creator}) [ID: {self.online_id}]"


@dataclass(frozen=True, slots=True)
class LibrarySnapshot:
    """Every set plus the full index of standalone beatmap records."""

    sets: tuple[BeatmapSet, ...] = ()
    beatmaps: Mapping[UUID, Beatmap] = field(
        default_factory=lambda: MappingProxyType({})
    )

    @classmethod
    def from_sets(
        cls,
        sets: Iterable[BeatmapSet],
        *,
        extra_beatmaps: Iterable[Beatmap] = (),
    ) -> LibrarySnapshot:
        """Build a snapshot whose index holds the live children plus ``extra_beatmaps``."""

        set_tuple = tuple(sets)
        index: dict[UUID, Beatmap] = {}
        for beatmap_set in set_tuple:
            for beatmap in beatmap_set.beatmaps:
                index[beatmap.id] = beatmap
        for beatmap in extra_beatmaps:
            index[beatmap.id] = beatmap
        return cls(sets=set_tuple, beatmaps=MappingProxyType(index))
