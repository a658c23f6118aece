"""Domain model for the beatmap library and its remote counterpart."""

from __future__ import annotations

from .enums import BeatmapStatus
from .library import UNKNOWN_TEXT, Beatmap, BeatmapSet, LibrarySnapshot
from .remote import RemoteBeatmap, RemoteBeatmapSet

__all__ = [
    "UNKNOWN_TEXT",
    "Beatmap",
    "BeatmapSet",
    "BeatmapStatus",
    "LibrarySnapshot",
    "RemoteBeatmap",
    "RemoteBeatmapSet",
]
