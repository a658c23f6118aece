"""Apply an action plan to a copy of the library in one write transaction."""

from __future__ import annotations

import shutil
from datetime import UTC, datetime
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

    from mapkeeper.domain.ports import LibraryStore, WriteContext

    from .plan import ActionPlan

log = getLogger(__name__)

DEFAULT_BEATMAPSET_URL = "https://osu.ppy.sh/beatmapsets"


class PlanExecutionError(RuntimeError):
    """Raised when the executor is asked to do something it must not do."""


def _utcnow() -> datetime:
    return datetime.now(UTC)


class PlanExecutor:
    """Copy the source library, then apply structural cleanup and the plan to the copy."""

    def __init__(
        self,
        open_store: Callable[[Path], LibraryStore],
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._open_store = open_store
        self._clock = clock

    def apply(self, source_path: Path | str, target_path: Path | str, plan: ActionPlan) -> int:
        """Return the number of modifications written to ``target_path``.

        ``source_path`` is only ever read. If the transaction fails, the exception
        propagates and ``target_path`` must be discarded.
        """

        source = Path(source_path)
        target = Path(target_path)
        if not source.is_file():
            raise PlanExecutionError(f"Source library not found: {source}")
        if source.resolve() == target.resolve():
            raise PlanExecutionError("Refusing to modify the source library in place")

        log.info("Copying library: %s -> %s", source.name, target.name)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, target)

        with self._open_store(target) as store:
            modified = store.execute_write(lambda ctx: self._write(ctx, plan))

        log.info("Total modifications: %s", modified)
        return modified

    def _write(self, ctx: WriteContext, plan: ActionPlan) -> int:
        # Structural cleanup first: a plan entry may name a set that is itself a
        # reverse orphan, and deleting it must not happen before the cleanup pass.
        log.info("Cleaning orphaned beatmaps...")
        ctx.delete_orphaned_beatmaps()

        log.info("Cleaning reverse orphans...")
        ctx.clean_reverse_orphans()

        deletes = plan.deletes
        if deletes:
            log.info("Deleting %s ghost/broken sets...", len(deletes))
            for beatmap_set in deletes:
                ctx.delete_set(beatmap_set.id)

        content_updates = plan.content_updates
        if content_updates:
            log.info("Deleting %s outdated sets (ready for re-download)...", len(content_updates))
            for beatmap_set in content_updates:
                ctx.delete_set(beatmap_set.id)

        status_fixes = plan.status_fixes
        if status_fixes:
            log.info("Fixing %s status mismatches...", len(status_fixes))
            for fix in status_fixes:
                ctx.update_set_status(fix.beatmap_set.id, fix.new_status)

        date_backfills = plan.date_backfills
        if date_backfills:
            log.info("Backfilling %s date entries...", len(date_backfills))
            for backfill in date_backfills:
                ctx.update_set_dates(
                    backfill.beatmap_set.id,
                    backfill.ranked_date,
                    backfill.submitted_date,
                )

        local_stubs = plan.local_date_stubs
        if local_stubs:
            log.info("Setting placeholder dates for %s local sets...", len(local_stubs))
            now = self._clock()
            for beatmap_set in local_stubs:
                ctx.update_set_dates(beatmap_set.id, now, now)

        return ctx.modified_count


def extract_reacquisition_ids(plan: ActionPlan) -> list[int]:
    """Sorted distinct online set ids that must be downloaded again."""

    return sorted(
        {beatmap_set.online_id for beatmap_set in plan.content_updates if beatmap_set.online_id > 0}
    )


def generate_download_list(
    plan: ActionPlan,
    output_path: Path | str,
    *,
    base_url: str = DEFAULT_BEATMAPSET_URL,
) -> list[int]:
    """Write one set URL per line for every id to re-acquire; return the ids."""

    ids = extract_reacquisition_ids(plan)
    if not ids:
        return ids

    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    prefix = base_url.rstrip("/")
    path.write_text("".join(f"{prefix}/{online_id}\n" for online_id in ids), encoding="utf-8")
    log.info("%s sets saved to %s", len(ids), path)
    return ids
