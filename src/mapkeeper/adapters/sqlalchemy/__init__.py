"""SQLAlchemy adapter package for the client library database."""

from __future__ import annotations

from .mappings import (
    beatmap_set_beatmap_table,
    beatmap_set_table,
    beatmap_table,
    create_all_tables,
    metadata,
)
from .repositories import SqlAlchemyLibraryReader, SqlAlchemyWriteContext
from .unit_of_work import LibraryStoreError, SqlAlchemyLibraryStore, open_library

__all__ = [
    "LibraryStoreError",
    "SqlAlchemyLibraryReader",
    "SqlAlchemyLibraryStore",
    "SqlAlchemyWriteContext",
    "beatmap_set_beatmap_table",
    "beatmap_set_table",
    "beatmap_table",
    "create_all_tables",
    "metadata",
    "open_library",
]
