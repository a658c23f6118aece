"""Structural integrity scan over a library snapshot.

The helpers here define orphans, dead references and reverse orphans. The store's
cleanup step uses the same helpers, so the reported counts match what gets fixed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable
    from uuid import UUID

    from mapkeeper.domain.model import LibrarySnapshot


@dataclass(frozen=True, slots=True)
class DiagnosticResult:
    orphaned_beatmaps: int = 0
    reverse_orphan_sets: int = 0
    dead_references: int = 0

    @property
    def has_issues(self) -> bool:
        return self.orphaned_beatmaps > 0 or self.reverse_orphan_sets > 0 or self.dead_references > 0

    def report_lines(self) -> list[str]:
        lines: list[str] = []
        if self.orphaned_beatmaps > 0:
            lines.append(
                f"Found {self.orphaned_beatmaps} orphaned beatmaps "
                "(will be cleaned up during execution)."
            )
        if self.reverse_orphan_sets > 0 or self.dead_references > 0:
            lines.append(
                f"Found {self.reverse_orphan_sets} empty sets and {self.dead_references} dead "
                "beatmap references (will be cleaned up during execution)."
            )
        return lines


def referenced_ids(references: Iterable[Iterable[UUID]]) -> set[UUID]:
    """Union of all child references across sets."""

    referenced: set[UUID] = set()
    for set_references in references:
        referenced.update(set_references)
    return referenced


def orphaned_ids(beatmap_ids: Iterable[UUID], referenced: Collection[UUID]) -> list[UUID]:
    return [beatmap_id for beatmap_id in beatmap_ids if beatmap_id not in referenced]


def dead_references(references: Iterable[UUID], known_ids: Collection[UUID]) -> list[UUID]:
    """References of one set that point at no existing beatmap."""

    return [beatmap_id for beatmap_id in references if beatmap_id not in known_ids]


def is_reverse_orphan(reference_count: int, dead_count: int) -> bool:
    """A set with references, every one of them dead."""

    return dead_count > 0 and dead_count == reference_count


def scan(snapshot: LibrarySnapshot) -> DiagnosticResult:
    """Count orphaned beatmaps, reverse-orphan sets and dead references."""

    known_ids = snapshot.beatmaps.keys()
    referenced = referenced_ids(beatmap_set.beatmap_ids for beatmap_set in snapshot.sets)
    orphans = len(orphaned_ids(known_ids, referenced))

    reverse_orphans = 0
    dead_total = 0
    for beatmap_set in snapshot.sets:
        dead = dead_references(beatmap_set.beatmap_ids, known_ids)
        dead_total += len(dead)
        if is_reverse_orphan(len(beatmap_set.beatmap_ids), len(dead)):
            reverse_orphans += 1

    return DiagnosticResult(
        orphaned_beatmaps=orphans,
        reverse_orphan_sets=reverse_orphans,
        dead_references=dead_total,
    )
