"""Audit of the local library against the remote authority.

Sets are processed in fixed-size batches by a bounded number of concurrent
workers. Each batch asks the remote at most once, for every representative map id
the cache does not know yet, and then classifies each set into the action plan.
Remote answers (including "not found") go into the lookup cache, so an id is never
asked for twice, in this run or the next.
"""

from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

from mapkeeper.domain.model import BeatmapStatus
from mapkeeper.domain.ports import AuthenticationError, RemoteAuthorityError

from .plan import ActionPlan

if TYPE_CHECKING:
    from collections.abc import Collection, Iterator, Sequence

    from mapkeeper.domain.model import BeatmapSet, RemoteBeatmap
    from mapkeeper.domain.ports import LookupCachePort, RemoteAuthority

log = getLogger(__name__)

DEFAULT_BATCH_SIZE = 50
DEFAULT_MAX_WORKERS = 4
DEFAULT_SAVE_EVERY_BATCHES = 10
DEFAULT_PROGRESS_EVERY = 100


@dataclass(frozen=True, slots=True)
class AuditSettings:
    batch_size: int = DEFAULT_BATCH_SIZE
    max_workers: int = DEFAULT_MAX_WORKERS
    save_every_batches: int = DEFAULT_SAVE_EVERY_BATCHES
    progress_every: int = DEFAULT_PROGRESS_EVERY

    def __post_init__(self) -> None:
        if self.batch_size <= 0:
            raise ValueError("batch_size must be positive")
        if self.max_workers <= 0:
            raise ValueError("max_workers must be positive")
        if self.save_every_batches <= 0:
            raise ValueError("save_every_batches must be positive")
        if self.progress_every <= 0:
            raise ValueError("progress_every must be positive")


class LookupOutcome(StrEnum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class LookupResult:
    """Per-id answer of one bulk lookup. Only ``FOUND`` carries a record."""

    beatmap_id: int
    outcome: LookupOutcome
    record: RemoteBeatmap | None = None


class _Progress:
    """Shared counters updated as batches finish, in whatever order they finish."""

    def __init__(self, *, save_every: int) -> None:
        self._lock = threading.Lock()
        self._save_every = save_every
        self._processed = 0
        self._batches_since_save = 0

    def advance(self, count: int) -> tuple[int, bool]:
        """Record a finished batch; return the processed total and whether a save is due."""

        with self._lock:
            self._processed += count
            self._batches_since_save += 1
            save_due = self._batches_since_save >= self._save_every
            if save_due:
                self._batches_since_save = 0
            return self._processed, save_due


def _chunk(sets: Sequence[BeatmapSet], size: int) -> Iterator[Sequence[BeatmapSet]]:
    for start in range(0, len(sets), size):
        yield sets[start : start + size]


class AuditOrchestrator:
    """Classify every set of a library snapshot into an :class:`ActionPlan`."""

    def __init__(
        self,
        remote: RemoteAuthority,
        cache: LookupCachePort,
        *,
        failed_ids: Collection[int] = frozenset(),
        settings: AuditSettings | None = None,
    ) -> None:
        self._remote = remote
        self._cache = cache
        self._failed_ids = frozenset(failed_ids)
        self._settings = settings or AuditSettings()

    def audit(self, sets: Sequence[BeatmapSet]) -> ActionPlan:
        return asyncio.run(self.audit_async(sets))

    async def audit_async(self, sets: Sequence[BeatmapSet]) -> ActionPlan:
        if not await self._remote.authenticate():
            raise AuthenticationError("Remote authority rejected the configured credentials")

        settings = self._settings
        plan = ActionPlan()
        batches = list(_chunk(sets, settings.batch_size))
        total = len(sets)

        if batches:
            workers = min(settings.max_workers, len(batches))
            log.info(
                "Scanning %s sets in %s batches with %sx concurrency",
                total,
                len(batches),
                workers,
            )
            semaphore = asyncio.Semaphore(workers)
            progress = _Progress(save_every=settings.save_every_batches)

            async def run_batch(batch: Sequence[BeatmapSet]) -> None:
                async with semaphore:
                    await self._process_batch(batch, plan)
                processed, save_due = progress.advance(len(batch))
                if save_due:
                    await asyncio.to_thread(self._cache.save)
                if processed % settings.progress_every == 0 or processed == total:
                    log.info("Progress: %s / %s (%.0f%%)", processed, total, 100 * processed / total)

            await asyncio.gather(*(run_batch(batch) for batch in batches))

        await asyncio.to_thread(self._cache.save)
        log.info("Scan complete: %r", plan)
        return plan

    async def _process_batch(self, batch: Sequence[BeatmapSet], plan: ActionPlan) -> None:
        pending: list[BeatmapSet] = []
        needed: list[int] = []
        seen: set[int] = set()

        for beatmap_set in batch:
            if beatmap_set.online_id in self._failed_ids:
                plan.add_delete(beatmap_set)
                continue
            pending.append(beatmap_set)

            lookup_id = beatmap_set.first_valid_map_id
            if lookup_id > 0 and lookup_id not in seen:
                seen.add(lookup_id)
                if not self._cache.contains(lookup_id):
                    needed.append(lookup_id)

        if needed:
            for result in await self._lookup(needed):
                self._cache.put(result.beatmap_id, result.record)

        for beatmap_set in pending:
            lookup_id = beatmap_set.first_valid_map_id
            if lookup_id > 0:
                self._classify_linked(beatmap_set, lookup_id, plan)
            else:
                self._classify_unlinked(beatmap_set, plan)

    async def _lookup(self, ids: Sequence[int]) -> list[LookupResult]:
        try:
            records = await self._remote.fetch_by_ids(ids)
        except RemoteAuthorityError as exc:
            log.warning("Lookup of %s ids failed, treating them as not found: %s", len(ids), exc)
            return [LookupResult(beatmap_id, LookupOutcome.ERROR) for beatmap_id in ids]

        by_id = {record.id: record for record in records}
        results: list[LookupResult] = []
        for beatmap_id in ids:
            record = by_id.get(beatmap_id)
            if record is None:
                results.append(LookupResult(beatmap_id, LookupOutcome.NOT_FOUND))
            else:
                results.append(LookupResult(beatmap_id, LookupOutcome.FOUND, record))
        return results

    def _classify_linked(self, beatmap_set: BeatmapSet, lookup_id: int, plan: ActionPlan) -> None:
        record, found = self._cache.try_get(lookup_id)
        if not found or record is None or record.beatmapset is None:
            plan.add_delete(beatmap_set)
            return

        online_set = record.beatmapset
        online_status = BeatmapStatus.parse(online_set.status)
        if beatmap_set.status != online_status:
            log.info(
                "%s (%s) %s => %s",
                beatmap_set.online_id,
                beatmap_set.title,
                beatmap_set.status.name,
                online_status.name,
            )
            plan.add_status_fix(beatmap_set, online_status)

        ranked = online_set.ranked_date if beatmap_set.date_ranked is None else None
        submitted = online_set.submitted_date if beatmap_set.date_submitted is None else None
        if ranked is not None or submitted is not None:
            plan.add_date_backfill(beatmap_set, ranked, submitted)

        matching = beatmap_set.beatmap_by_online_id(record.id)
        if matching is not None and matching.md5_hash != record.checksum:
            plan.add_content_update(beatmap_set)

    def _classify_unlinked(self, beatmap_set: BeatmapSet, plan: ActionPlan) -> None:
        if beatmap_set.has_zero_star_ratings:
            plan.add_delete(beatmap_set)
        elif beatmap_set.has_valid_online_id and beatmap_set.needs_dates:
            # The set is known remotely but none of its maps are; re-acquire it.
            plan.add_content_update(beatmap_set)
        elif beatmap_set.needs_dates:
            plan.add_local_date_stub(beatmap_set)
