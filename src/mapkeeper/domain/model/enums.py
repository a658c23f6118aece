"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import IntEnum


class BeatmapStatus(IntEnum):
    """Lifecycle state of a beatmap set, valued as the client database stores it."""

    LOCAL = -4
    UNKNOWN = -3
    GRAVEYARD = -2
    WIP = -1
    PENDING = 0
    RANKED = 1
    APPROVED = 2
    QUALIFIED = 3
    LOVED = 4

    @classmethod
    def parse(cls, value: str | None) -> BeatmapStatus:
        """Map an API status string onto a domain state, falling back to ``UNKNOWN``."""

        if not value:
            return cls.UNKNOWN
        return _STATUS_BY_API_NAME.get(value.strip().lower(), cls.UNKNOWN)

    @classmethod
    def coerce(cls, value: int) -> BeatmapStatus:
        """Return the member for a stored integer, ``UNKNOWN`` for values we do not model."""

        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


_STATUS_BY_API_NAME: dict[str, BeatmapStatus] = {
    "ranked": BeatmapStatus.RANKED,
    "approved": BeatmapStatus.APPROVED,
    "qualified": BeatmapStatus.QUALIFIED,
    "loved": BeatmapStatus.LOVED,
    "graveyard": BeatmapStatus.GRAVEYARD,
    "wip": BeatmapStatus.WIP,
    "pending": BeatmapStatus.PENDING,
}
