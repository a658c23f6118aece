"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING

from mapkeeper.adapters.failed_ids import clear_failed_ids, load_failed_ids
from mapkeeper.adapters.lookup_cache import LookupCache
from mapkeeper.adapters.osu import OsuApiClient
from mapkeeper.adapters.sqlalchemy import open_library
from mapkeeper.config import get_osu_config, get_storage_config
from mapkeeper.config.osu import OSU_BEATMAPSET_URL
from mapkeeper.domain.ports import LibraryStore, RemoteAuthority
from mapkeeper.domain.reconciliation import (
    AuditOrchestrator,
    PlanExecutor,
    generate_download_list,
    scan,
)

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence
    from uuid import UUID

    from mapkeeper.config import StorageConfig
    from mapkeeper.domain.model import Beatmap, BeatmapSet, LibrarySnapshot
    from mapkeeper.domain.ports import LookupCachePort
    from mapkeeper.domain.reconciliation import ActionPlan, AuditSettings, DiagnosticResult

type RemoteFactory = Callable[[], AbstractAsyncContextManager[RemoteAuthority]]
type StoreOpener = Callable[[Path], LibraryStore]

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ScanResult:
    library_path: Path
    snapshot: LibrarySnapshot
    diagnostics: DiagnosticResult
    plan: ActionPlan

    def summary_lines(self) -> list[str]:
        return self.plan.summary_lines(self.diagnostics)

    @property
    def has_work(self) -> bool:
        return self.diagnostics.has_issues or not self.plan.is_empty


@dataclass(frozen=True, slots=True)
class ApplyResult:
    target_path: Path
    modified: int
    reacquisition_ids: list[int]
    download_list_path: Path | None


@dataclass(frozen=True, slots=True)
class BeatmapInspection:
    beatmap: Beatmap
    parents: tuple[BeatmapSet, ...]

    @property
    def is_orphan(self) -> bool:
        return not self.parents


def _default_remote_factory() -> OsuApiClient:
    return OsuApiClient(config=get_osu_config())


def _resolve_library_path(library_path: Path | str | None, storage: StorageConfig) -> Path:
    if library_path is not None:
        return Path(library_path)
    return storage.library_path(ensure=False)


async def _audit(
    sets: Sequence[BeatmapSet],
    *,
    remote_factory: RemoteFactory,
    cache: LookupCachePort,
    failed_ids: Collection[int],
    settings: AuditSettings | None,
) -> ActionPlan:
    async with remote_factory() as remote:
        orchestrator = AuditOrchestrator(remote, cache, failed_ids=failed_ids, settings=settings)
        return await orchestrator.audit_async(sets)


def scan_library(
    *,
    library_path: Path | str | None = None,
    storage: StorageConfig | None = None,
    remote_factory: RemoteFactory | None = None,
    open_store: StoreOpener = open_library,
    settings: AuditSettings | None = None,
) -> ScanResult:
    """Read the library, report structural problems and audit it against the osu! API.

    Nothing is written except the lookup cache.
    """

    effective_storage = storage or get_storage_config()
    source = _resolve_library_path(library_path, effective_storage)
    log.info("Reading library %s", source)

    with open_store(source) as store:
        snapshot = store.load_snapshot()

    diagnostics = scan(snapshot)
    for line in diagnostics.report_lines():
        log.warning(line)

    cache = LookupCache(effective_storage.lookup_cache_path())
    failed_ids = load_failed_ids(effective_storage.failed_ids_path(ensure=False))

    plan = asyncio.run(
        _audit(
            snapshot.sets,
            remote_factory=remote_factory or _default_remote_factory,
            cache=cache,
            failed_ids=failed_ids,
            settings=settings,
        )
    )
    return ScanResult(library_path=source, snapshot=snapshot, diagnostics=diagnostics, plan=plan)


def apply_plan(
    scan_result: ScanResult,
    *,
    output_path: Path | str | None = None,
    storage: StorageConfig | None = None,
    executor: PlanExecutor | None = None,
    beatmapset_url: str = OSU_BEATMAPSET_URL,
) -> ApplyResult:
    """Write the plan to a copy of the scanned library and list sets to download again."""

    effective_storage = storage or get_storage_config()
    target = Path(output_path) if output_path is not None else effective_storage.output_library_path()
    effective_executor = executor or PlanExecutor(open_library)

    modified = effective_executor.apply(scan_result.library_path, target, scan_result.plan)

    download_path = effective_storage.download_list_path()
    ids = generate_download_list(scan_result.plan, download_path, base_url=beatmapset_url)
    clear_failed_ids(effective_storage.failed_ids_path(ensure=False))

    log.info("Finished: %s modifications written to %s", modified, target)
    return ApplyResult(
        target_path=target,
        modified=modified,
        reacquisition_ids=ids,
        download_list_path=download_path if ids else None,
    )


def inspect_set(
    set_id: UUID,
    *,
    library_path: Path | str | None = None,
    storage: StorageConfig | None = None,
    open_store: StoreOpener = open_library,
) -> BeatmapSet | None:
    source = _resolve_library_path(library_path, storage or get_storage_config())
    with open_store(source) as store:
        return store.find_set_by_id(set_id)


def inspect_beatmap(
    beatmap_id: UUID,
    *,
    library_path: Path | str | None = None,
    storage: StorageConfig | None = None,
    open_store: StoreOpener = open_library,
) -> BeatmapInspection | None:
    source = _resolve_library_path(library_path, storage or get_storage_config())
    with open_store(source) as store:
        beatmap = store.find_beatmap_by_id(beatmap_id)
        if beatmap is None:
            return None
        parents = tuple(
            beatmap_set
            for beatmap_set in store.load_snapshot().sets
            if beatmap_id in beatmap_set.beatmap_ids
        )
    return BeatmapInspection(beatmap=beatmap, parents=parents)
