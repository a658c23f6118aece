"""Reads and transactional writes over the library tables."""

from __future__ import annotations

from collections import defaultdict
from logging import getLogger
from types import MappingProxyType
from typing import TYPE_CHECKING

from sqlalchemy import delete, select, update

from mapkeeper.domain.model import Beatmap, BeatmapSet, LibrarySnapshot
from mapkeeper.domain.reconciliation.diagnostics import (
    dead_references,
    is_reverse_orphan,
    orphaned_ids,
    referenced_ids,
)

from .mappings import beatmap_set_beatmap_table, beatmap_set_table, beatmap_table

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping, Sequence
    from datetime import datetime
    from uuid import UUID

    from sqlalchemy import Row
    from sqlalchemy.orm import Session

    from mapkeeper.domain.model import BeatmapStatus

log = getLogger(__name__)

# Keeps IN clauses well under SQLite's bound parameter limit.
_IN_CHUNK = 500


def _chunks[T](items: Sequence[T], size: int = _IN_CHUNK) -> Iterator[Sequence[T]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def _beatmap_from_row(row: Row[tuple[object, ...]]) -> Beatmap:
    return Beatmap(
        id=row.id,
        online_id=row.online_id,
        difficulty_name=row.difficulty_name,
        md5_hash=row.md5_hash,
        star_rating=row.star_rating,
        length=row.length,
        bpm=row.bpm,
        status=row.status,
    )


def _set_from_row(
    row: Row[tuple[object, ...]],
    references: Sequence[UUID],
    index: Mapping[UUID, Beatmap],
) -> BeatmapSet:
    return BeatmapSet(
        id=row.id,
        online_id=row.online_id,
        status=row.status,
        title=row.title,
        artist=row.artist,
        creator=row.creator,
        date_ranked=row.date_ranked,
        date_submitted=row.date_submitted,
        date_added=row.date_added,
        beatmap_ids=tuple(references),
        beatmaps=tuple(index[ref] for ref in references if ref in index),
    )


class SqlAlchemyLibraryReader:
    def __init__(self, session: Session) -> None:
        self.session = session

    def load_snapshot(self) -> LibrarySnapshot:
        index = {
            beatmap.id: beatmap
            for beatmap in map(_beatmap_from_row, self.session.execute(select(beatmap_table)))
        }

        references: dict[UUID, list[UUID]] = defaultdict(list)
        link_stmt = select(
            beatmap_set_beatmap_table.c.set_id,
            beatmap_set_beatmap_table.c.beatmap_id,
        ).order_by(beatmap_set_beatmap_table.c.set_id, beatmap_set_beatmap_table.c.position)
        for set_id, beatmap_id in self.session.execute(link_stmt):
            references[set_id].append(beatmap_id)

        set_stmt = select(beatmap_set_table).order_by(beatmap_set_table.c.online_id)
        sets = tuple(
            _set_from_row(row, references.get(row.id, ()), index)
            for row in self.session.execute(set_stmt)
        )
        return LibrarySnapshot(sets=sets, beatmaps=MappingProxyType(index))

    def find_set(self, set_id: UUID) -> BeatmapSet | None:
        row = self.session.execute(
            select(beatmap_set_table).where(beatmap_set_table.c.id == set_id)
        ).one_or_none()
        if row is None:
            return None

        references = list(
            self.session.scalars(
                select(beatmap_set_beatmap_table.c.beatmap_id)
                .where(beatmap_set_beatmap_table.c.set_id == set_id)
                .order_by(beatmap_set_beatmap_table.c.position)
            )
        )
        index: dict[UUID, Beatmap] = {}
        for chunk in _chunks(references):
            for beatmap_row in self.session.execute(
                select(beatmap_table).where(beatmap_table.c.id.in_(chunk))
            ):
                beatmap = _beatmap_from_row(beatmap_row)
                index[beatmap.id] = beatmap
        return _set_from_row(row, references, index)

    def find_beatmap(self, beatmap_id: UUID) -> Beatmap | None:
        row = self.session.execute(
            select(beatmap_table).where(beatmap_table.c.id == beatmap_id)
        ).one_or_none()
        return _beatmap_from_row(row) if row is not None else None


class SqlAlchemyWriteContext:
    """Mutations inside one session transaction; counts every modification it makes."""

    def __init__(self, session: Session) -> None:
        self.session = session
        self._modified = 0

    @property
    def modified_count(self) -> int:
        return self._modified

    def delete_orphaned_beatmaps(self) -> int:
        beatmap_ids = list(self.session.scalars(select(beatmap_table.c.id)))
        referenced = referenced_ids(
            [self.session.scalars(select(beatmap_set_beatmap_table.c.beatmap_id))]
        )
        orphans = orphaned_ids(beatmap_ids, referenced)
        for chunk in _chunks(orphans):
            self.session.execute(delete(beatmap_table).where(beatmap_table.c.id.in_(chunk)))

        if orphans:
            log.info("Deleted %s orphaned beatmaps", len(orphans))
        self._modified += len(orphans)
        return len(orphans)

    def clean_reverse_orphans(self) -> int:
        """Drop dead references; delete sets whose references are all dead.

        Returns the number of dead references removed.
        """

        known_ids = set(self.session.scalars(select(beatmap_table.c.id)))
        references: dict[UUID, list[UUID]] = defaultdict(list)
        link_stmt = select(
            beatmap_set_beatmap_table.c.set_id,
            beatmap_set_beatmap_table.c.beatmap_id,
        ).order_by(beatmap_set_beatmap_table.c.set_id, beatmap_set_beatmap_table.c.position)
        for set_id, beatmap_id in self.session.execute(link_stmt):
            references[set_id].append(beatmap_id)

        removed = 0
        deleted_sets = 0
        for set_id, set_references in references.items():
            dead = dead_references(set_references, known_ids)
            if not dead:
                continue
            if is_reverse_orphan(len(set_references), len(dead)):
                self._delete_links(set_id)
                self.session.execute(
                    delete(beatmap_set_table).where(beatmap_set_table.c.id == set_id)
                )
                deleted_sets += 1
            else:
                for chunk in _chunks(dead):
                    self.session.execute(
                        delete(beatmap_set_beatmap_table)
                        .where(beatmap_set_beatmap_table.c.set_id == set_id)
                        .where(beatmap_set_beatmap_table.c.beatmap_id.in_(chunk))
                    )
            removed += len(dead)

        if removed:
            log.info(
                "Removed %s dead beatmap references and %s empty sets", removed, deleted_sets
            )
        self._modified += removed
        return removed

    def delete_set(self, set_id: UUID) -> bool:
        """Delete a set and every child that no other set still references."""

        if not self._set_exists(set_id):
            return False

        children = list(
            self.session.scalars(
                select(beatmap_set_beatmap_table.c.beatmap_id).where(
                    beatmap_set_beatmap_table.c.set_id == set_id
                )
            )
        )
        self._delete_links(set_id)
        self.session.execute(delete(beatmap_set_table).where(beatmap_set_table.c.id == set_id))

        still_referenced: set[UUID] = set()
        for chunk in _chunks(children):
            still_referenced.update(
                self.session.scalars(
                    select(beatmap_set_beatmap_table.c.beatmap_id).where(
                        beatmap_set_beatmap_table.c.beatmap_id.in_(chunk)
                    )
                )
            )
        unreferenced = [child for child in children if child not in still_referenced]
        for chunk in _chunks(unreferenced):
            self.session.execute(delete(beatmap_table).where(beatmap_table.c.id.in_(chunk)))

        self._modified += 1
        return True

    def update_set_status(self, set_id: UUID, status: BeatmapStatus) -> bool:
        if not self._set_exists(set_id):
            return False

        self.session.execute(
            update(beatmap_set_table).where(beatmap_set_table.c.id == set_id).values(status=status)
        )
        children = select(beatmap_set_beatmap_table.c.beatmap_id).where(
            beatmap_set_beatmap_table.c.set_id == set_id
        )
        self.session.execute(
            update(beatmap_table).where(beatmap_table.c.id.in_(children)).values(status=status)
        )
        self._modified += 1
        return True

    def update_set_dates(
        self,
        set_id: UUID,
        ranked_date: datetime | None,
        submitted_date: datetime | None,
    ) -> bool:
        """Fill whichever of the two dates is absent; present dates are never replaced."""

        row = self.session.execute(
            select(beatmap_set_table.c.date_ranked, beatmap_set_table.c.date_submitted).where(
                beatmap_set_table.c.id == set_id
            )
        ).one_or_none()
        if row is None:
            return False

        values: dict[str, datetime] = {}
        if ranked_date is not None and row.date_ranked is None:
            values["date_ranked"] = ranked_date
        if submitted_date is not None and row.date_submitted is None:
            values["date_submitted"] = submitted_date
        if values:
            self.session.execute(
                update(beatmap_set_table).where(beatmap_set_table.c.id == set_id).values(**values)
            )
        self._modified += 1
        return True

    def _set_exists(self, set_id: UUID) -> bool:
        stmt = select(beatmap_set_table.c.id).where(beatmap_set_table.c.id == set_id)
        return self.session.execute(stmt).scalar_one_or_none() is not None

    def _delete_links(self, set_id: UUID) -> None:
        self.session.execute(
            delete(beatmap_set_beatmap_table).where(beatmap_set_beatmap_table.c.set_id == set_id)
        )
