"""Pydantic models describing the osu! API v2 payloads we consume."""

from __future__ import annotations

import logging
from datetime import datetime  # noqa: TC003
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, field_validator

log = logging.getLogger(__name__)


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class OsuBaseModel(BaseModel):
    model_config = ConfigDict(extra="allow")
    _logged_extra_keys: ClassVar[set[str]] = set()

    def model_post_init(self, _context: object, /) -> None:
        extras = self.__pydantic_extra__
        if not extras:
            return
        new_keys = set(extras).difference(self._logged_extra_keys)
        if not new_keys:
            return
        self._logged_extra_keys.update(new_keys)
        log.debug(
            "osu! %s: unmodeled keys: %s",
            type(self).__name__,
            ", ".join(sorted(new_keys)),
        )


class OsuBeatmapset(OsuBaseModel):
    id: int
    status: str | None = None
    ranked_date: datetime | None = None
    submitted_date: datetime | None = None
    last_updated: datetime | None = None
    title: str | None = None
    artist: str | None = None
    creator: str | None = None

    _normalize_dates = field_validator(
        "ranked_date", "submitted_date", "last_updated", mode="before"
    )(_blank_to_none)


class OsuBeatmap(OsuBaseModel):
    id: int
    beatmapset_id: int | None = None
    checksum: str | None = None
    version: str | None = None
    mode: str | None = None
    status: str | None = None
    difficulty_rating: float | None = None
    beatmapset: OsuBeatmapset | None = None


class BeatmapsResponse(OsuBaseModel):
    beatmaps: list[OsuBeatmap]


class TokenResponse(OsuBaseModel):
    access_token: str
    token_type: str = "Bearer"
    expires_in: int | None = None
