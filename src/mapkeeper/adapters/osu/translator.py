"""Translate osu! API payloads into remote domain records."""

from __future__ import annotations

from mapkeeper.domain.model import RemoteBeatmap, RemoteBeatmapSet

from .schema import BeatmapsResponse, OsuBeatmap, OsuBeatmapset


def _to_remote_set(payload: OsuBeatmapset) -> RemoteBeatmapSet:
    return RemoteBeatmapSet(
        id=payload.id,
        status=payload.status or "",
        ranked_date=payload.ranked_date,
        submitted_date=payload.submitted_date,
        last_updated=payload.last_updated,
        title=payload.title or "",
        artist=payload.artist or "",
        creator=payload.creator or "",
    )


def to_remote_beatmap(payload: OsuBeatmap) -> RemoteBeatmap:
    beatmapset = _to_remote_set(payload.beatmapset) if payload.beatmapset is not None else None
    return RemoteBeatmap(id=payload.id, checksum=payload.checksum, beatmapset=beatmapset)


def parse_beatmaps(payload: object) -> list[RemoteBeatmap]:
    """Validate a bulk lookup response and return its beatmaps."""

    response = BeatmapsResponse.model_validate(payload)
    return [to_remote_beatmap(beatmap) for beatmap in response.beatmaps]
