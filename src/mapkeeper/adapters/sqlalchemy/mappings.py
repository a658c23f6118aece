"""SQLAlchemy table metadata for the client library database."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    Column,
    DateTime,
    Dialect,
    Float,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    TypeDecorator,
    Uuid,
)

from mapkeeper.domain.model import BeatmapStatus

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

UUIDColumnType = Uuid[uuid.UUID]


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


class BeatmapStatusType(TypeDecorator[BeatmapStatus]):
    """Stores the client's integer status; unknown integers read back as ``UNKNOWN``."""

    impl = Integer
    cache_ok = True

    def process_bind_param(self, value: BeatmapStatus | int | None, dialect: Dialect) -> int | None:
        _ = dialect
        if value is None:
            return None
        return int(value)

    def process_result_value(self, value: int | None, dialect: Dialect) -> BeatmapStatus:
        _ = dialect
        if value is None:
            return BeatmapStatus.UNKNOWN
        return BeatmapStatus.coerce(value)


metadata = MetaData(
    naming_convention={
        "ix": "ix_%(column_0_label)s",
        "uq": "uq_%(table_name)s_%(column_0_label)s",
        "ck": "ck_%(table_name)s_%(constraint_name)s",
        "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
        "pk": "pk_%(table_name)s",
    }
)

# Core tables -----------------------------------------------------------------

beatmap_set_table = Table(
    "beatmap_set",
    metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("online_id", Integer, nullable=False, default=0),
    Column("status", BeatmapStatusType(), nullable=False, default=BeatmapStatus.UNKNOWN),
    Column("title", String, nullable=False, default=""),
    Column("artist", String, nullable=False, default=""),
    Column("creator", String, nullable=False, default=""),
    Column("date_ranked", UTCDateTime(), nullable=True),
    Column("date_submitted", UTCDateTime(), nullable=True),
    Column("date_added", UTCDateTime(), nullable=False),
)

beatmap_table = Table(
    "beatmap",
    metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("online_id", Integer, nullable=False, default=0),
    Column("difficulty_name", String, nullable=False, default=""),
    Column("md5_hash", String, nullable=False, default=""),
    Column("star_rating", Float, nullable=False, default=0.0),
    Column("length", Float, nullable=False, default=0.0),
    Column("bpm", Float, nullable=False, default=0.0),
    Column("status", BeatmapStatusType(), nullable=False, default=BeatmapStatus.UNKNOWN),
)

# Ordered child references. ``beatmap_id`` has no foreign key; a reference may
# point at a beatmap that no longer exists.
beatmap_set_beatmap_table = Table(
    "beatmap_set_beatmap",
    metadata,
    Column(
        "set_id",
        UUIDColumnType,
        ForeignKey("beatmap_set.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("position", Integer, primary_key=True),
    Column("beatmap_id", UUIDColumnType, nullable=False),
    Index("ix_beatmap_set_beatmap_beatmap_id", "beatmap_id"),
)


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the library metadata."""

    log.info("Creating all tables")
    metadata.create_all(engine)
