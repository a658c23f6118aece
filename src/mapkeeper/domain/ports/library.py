"""Ports for reading and mutating the local library store."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime
    from types import TracebackType
    from uuid import UUID

    from mapkeeper.domain.model import Beatmap, BeatmapSet, BeatmapStatus, LibrarySnapshot
    from mapkeeper.domain.reconciliation.diagnostics import DiagnosticResult


@runtime_checkable
class WriteContext(Protocol):
    """Mutations available inside one exclusive write transaction."""

    @property
    def modified_count(self) -> int: ...

    def delete_orphaned_beatmaps(self) -> int: ...

    def clean_reverse_orphans(self) -> int: ...

    def delete_set(self, set_id: UUID) -> bool: ...

    def update_set_status(self, set_id: UUID, status: BeatmapStatus) -> bool: ...

    def update_set_dates(
        self,
        set_id: UUID,
        ranked_date: datetime | None,
        submitted_date: datetime | None,
    ) -> bool: ...


@runtime_checkable
class LibraryStore(Protocol):
    """Read access plus a transactional write primitive over the local library."""

    def load_all_sets(self) -> list[BeatmapSet]: ...

    def load_snapshot(self) -> LibrarySnapshot: ...

    def find_set_by_id(self, set_id: UUID) -> BeatmapSet | None: ...

    def find_beatmap_by_id(self, beatmap_id: UUID) -> Beatmap | None: ...

    def run_diagnostics(self) -> DiagnosticResult: ...

    def execute_write[T](self, action: Callable[[WriteContext], T]) -> T: ...

    def close(self) -> None: ...

    def __enter__(self) -> LibraryStore: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...
