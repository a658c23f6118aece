"""SQLite-backed library store with a single transactional write primitive."""

from __future__ import annotations

from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import Session, sessionmaker

from mapkeeper.domain.reconciliation.diagnostics import scan

from .mappings import create_all_tables, metadata
from .repositories import SqlAlchemyLibraryReader, SqlAlchemyWriteContext

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType
    from uuid import UUID

    from sqlalchemy.engine import Engine

    from mapkeeper.domain.model import Beatmap, BeatmapSet, LibrarySnapshot
    from mapkeeper.domain.ports import LibraryStore, WriteContext
    from mapkeeper.domain.reconciliation.diagnostics import DiagnosticResult

log = getLogger(__name__)


class LibraryStoreError(RuntimeError):
    """Raised when a library file cannot be opened as a library store."""


def database_uri(path: Path | str) -> str:
    return f"sqlite:///{Path(path)}"


class SqlAlchemyLibraryStore:
    """Library store over one SQLite file.

    Reads open a short-lived session each; :meth:`execute_write` runs the given
    action inside one transaction that commits on success and rolls back on error.
    """

    def __init__(
        self,
        path: Path | str,
        *,
        create: bool = False,
        engine: Engine | None = None,
    ) -> None:
        self.path = Path(path)
        if engine is None:
            if not create and not self.path.is_file():
                raise LibraryStoreError(f"Library not found: {self.path}")
            engine = create_engine(database_uri(self.path), future=True)
        self._engine = engine

        if create:
            create_all_tables(engine)
        else:
            missing = set(metadata.tables).difference(inspect(engine).get_table_names())
            if missing:
                engine.dispose()
                raise LibraryStoreError(
                    f"{self.path} is not a library database (missing tables: "
                    f"{', '.join(sorted(missing))})"
                )

        self._session_factory: sessionmaker[Session] = sessionmaker(
            bind=engine, expire_on_commit=False
        )

    @property
    def engine(self) -> Engine:
        return self._engine

    def __enter__(self) -> SqlAlchemyLibraryStore:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        self.close()
        return False

    def close(self) -> None:
        self._engine.dispose()

    def load_snapshot(self) -> LibrarySnapshot:
        with self._session_factory() as session:
            snapshot = SqlAlchemyLibraryReader(session).load_snapshot()
        log.info("Loaded %s sets and %s beatmaps", len(snapshot.sets), len(snapshot.beatmaps))
        return snapshot

    def load_all_sets(self) -> list[BeatmapSet]:
        return list(self.load_snapshot().sets)

    def find_set_by_id(self, set_id: UUID) -> BeatmapSet | None:
        with self._session_factory() as session:
            return SqlAlchemyLibraryReader(session).find_set(set_id)

    def find_beatmap_by_id(self, beatmap_id: UUID) -> Beatmap | None:
        with self._session_factory() as session:
            return SqlAlchemyLibraryReader(session).find_beatmap(beatmap_id)

    def run_diagnostics(self) -> DiagnosticResult:
        return scan(self.load_snapshot())

    def execute_write[T](self, action: Callable[[WriteContext], T]) -> T:
        with self._session_factory() as session:
            try:
                with session.begin():
                    return action(SqlAlchemyWriteContext(session))
            except Exception:
                log.error("Write transaction failed; all changes rolled back")
                raise


def open_library(path: Path | str) -> SqlAlchemyLibraryStore:
    return SqlAlchemyLibraryStore(path)


if TYPE_CHECKING:
    _store_check: LibraryStore = SqlAlchemyLibraryStore("client.db")
