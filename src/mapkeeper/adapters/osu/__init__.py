"""Public interface for the osu! API adapter."""

from __future__ import annotations

from .client import OsuApiClient
from .schema import BeatmapsResponse, OsuBeatmap, OsuBeatmapset, TokenResponse
from .translator import parse_beatmaps, to_remote_beatmap

__all__ = [
    "BeatmapsResponse",
    "OsuApiClient",
    "OsuBeatmap",
    "OsuBeatmapset",
    "TokenResponse",
    "parse_beatmaps",
    "to_remote_beatmap",
]
