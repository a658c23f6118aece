"""Action plan produced by the audit and consumed by the executor.

The plan is append-only while the audit runs (several workers add to it) and
read-only afterwards. Read views are sorted by set id so two audits of the same
library produce equal plans regardless of batch completion order.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime

    from mapkeeper.domain.model import BeatmapSet, BeatmapStatus

    from .diagnostics import DiagnosticResult


class ActionKind(StrEnum):
    """Action kinds in reporting order."""

    DELETE = "delete"
    CONTENT_UPDATE = "content_update"
    STATUS_FIX = "status_fix"
    DATE_BACKFILL = "date_backfill"
    LOCAL_DATE_STUB = "local_date_stub"


@dataclass(frozen=True, slots=True)
class StatusFix:
    beatmap_set: BeatmapSet
    new_status: BeatmapStatus


@dataclass(frozen=True, slots=True)
class DateBackfill:
    """Remote dates for a set missing at least one of them locally.

    Both remote values are carried; the store only fills the ones that are absent.
    """

    beatmap_set: BeatmapSet
    ranked_date: datetime | None
    submitted_date: datetime | None


def _set_key(beatmap_set: BeatmapSet) -> str:
    return str(beatmap_set.id)


class ActionPlan:
    """Concurrency-safe accumulator of classified actions."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._deletes: list[BeatmapSet] = []
        self._content_updates: list[BeatmapSet] = []
        self._status_fixes: list[StatusFix] = []
        self._date_backfills: list[DateBackfill] = []
        self._local_date_stubs: list[BeatmapSet] = []

    # accumulation -------------------------------------------------------------

    def add_delete(self, beatmap_set: BeatmapSet) -> None:
        with self._lock:
            self._deletes.append(beatmap_set)

    def add_content_update(self, beatmap_set: BeatmapSet) -> None:
        with self._lock:
            self._content_updates.append(beatmap_set)

    def add_status_fix(self, beatmap_set: BeatmapSet, new_status: BeatmapStatus) -> None:
        with self._lock:
            self._status_fixes.append(StatusFix(beatmap_set, new_status))

    def add_date_backfill(
        self,
        beatmap_set: BeatmapSet,
        ranked_date: datetime | None,
        submitted_date: datetime | None,
    ) -> None:
        with self._lock:
            self._date_backfills.append(DateBackfill(beatmap_set, ranked_date, submitted_date))

    def add_local_date_stub(self, beatmap_set: BeatmapSet) -> None:
        with self._lock:
            self._local_date_stubs.append(beatmap_set)

    # read views ---------------------------------------------------------------

    @property
    def deletes(self) -> tuple[BeatmapSet, ...]:
        with self._lock:
            return tuple(sorted(self._deletes, key=_set_key))

    @property
    def content_updates(self) -> tuple[BeatmapSet, ...]:
        with self._lock:
            return tuple(sorted(self._content_updates, key=_set_key))

    @property
    def status_fixes(self) -> tuple[StatusFix, ...]:
        with self._lock:
            return tuple(sorted(self._status_fixes, key=lambda fix: _set_key(fix.beatmap_set)))

    @property
    def date_backfills(self) -> tuple[DateBackfill, ...]:
        with self._lock:
            return tuple(
                sorted(self._date_backfills, key=lambda backfill: _set_key(backfill.beatmap_set))
            )

    @property
    def local_date_stubs(self) -> tuple[BeatmapSet, ...]:
        with self._lock:
            return tuple(sorted(self._local_date_stubs, key=_set_key))

    def counts(self) -> dict[ActionKind, int]:
        with self._lock:
            return {
                ActionKind.DELETE: len(self._deletes),
                ActionKind.CONTENT_UPDATE: len(self._content_updates),
                ActionKind.STATUS_FIX: len(self._status_fixes),
                ActionKind.DATE_BACKFILL: len(self._date_backfills),
                ActionKind.LOCAL_DATE_STUB: len(self._local_date_stubs),
            }

    @property
    def total_actions(self) -> int:
        return sum(self.counts().values())

    @property
    def is_empty(self) -> bool:
        return self.total_actions == 0

    def summary_lines(self, diagnostics: DiagnosticResult | None = None) -> list[str]:
        counts = self.counts()
        lines = ["--- ACTION PLAN ---"]
        structural = 0
        if diagnostics is not None and (
            diagnostics.orphaned_beatmaps > 0 or diagnostics.reverse_orphan_sets > 0
        ):
            structural = diagnostics.orphaned_beatmaps + diagnostics.reverse_orphan_sets
            lines.append(f"[ORPHANS]  Orphaned beatmaps:    {diagnostics.orphaned_beatmaps}")
            lines.append(
                f"[REVERSE]  Reverse orphans:      {diagnostics.reverse_orphan_sets} sets, "
                f"{diagnostics.dead_references} dead refs"
            )
        lines.extend(
            [
                f"[DELETE]   Broken/ghost sets:    {counts[ActionKind.DELETE]}",
                f"[UPDATE]   Outdated sets:        {counts[ActionKind.CONTENT_UPDATE]}",
                f"[FIX]      Status fixes:         {counts[ActionKind.STATUS_FIX]}",
                f"[BACKFILL] Date backfills:       {counts[ActionKind.DATE_BACKFILL]}",
                f"[LOCAL]    Local sets (dates):   {counts[ActionKind.LOCAL_DATE_STUB]}",
                "-------------------------",
                f"Total actions: {sum(counts.values()) + structural}",
            ]
        )
        return lines

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ActionPlan):
            return NotImplemented
        return (
            self.deletes == other.deletes
            and self.content_updates == other.content_updates
            and self.status_fixes == other.status_fixes
            and self.date_backfills == other.date_backfills
            and self.local_date_stubs == other.local_date_stubs
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        counts = ", ".join(f"{kind}={count}" for kind, count in self.counts().items())
        return f"ActionPlan({counts})"
