"""Data storage configuration helpers."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

APP_DIR_NAME: Final[str] = "mapkeeper"
LIBRARY_FILENAME: Final[str] = "client.db"
OUTPUT_LIBRARY_FILENAME: Final[str] = "client_modified.db"
LOOKUP_CACHE_FILENAME: Final[str] = "lookup_cache.json"
DOWNLOAD_LIST_FILENAME: Final[str] = "downloads.txt"
FAILED_IDS_FILENAME: Final[str] = "failed_downloads.txt"
HTTP_CACHE_FILENAME: Final[str] = "http_cache.db"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    data_dir: Path
    library_filename: str = LIBRARY_FILENAME
    output_library_filename: str = OUTPUT_LIBRARY_FILENAME
    lookup_cache_filename: str = LOOKUP_CACHE_FILENAME
    download_list_filename: str = DOWNLOAD_LIST_FILENAME
    failed_ids_filename: str = FAILED_IDS_FILENAME
    http_cache_filename: str = HTTP_CACHE_FILENAME

    def resolve_data_dir(self) -> Path:
        return self.data_dir.expanduser().resolve()

    def ensure_data_dir(self) -> Path:
        data_dir = self.resolve_data_dir()
        data_dir.mkdir(parents=True, exist_ok=True)
        return data_dir

    def _path(self, filename: str, *, ensure: bool) -> Path:
        base = self.ensure_data_dir() if ensure else self.resolve_data_dir()
        return base / filename

    def library_path(self, *, ensure: bool = True) -> Path:
        return self._path(self.library_filename, ensure=ensure)

    def output_library_path(self, *, ensure: bool = True) -> Path:
        return self._path(self.output_library_filename, ensure=ensure)

    def lookup_cache_path(self, *, ensure: bool = True) -> Path:
        return self._path(self.lookup_cache_filename, ensure=ensure)

    def download_list_path(self, *, ensure: bool = True) -> Path:
        return self._path(self.download_list_filename, ensure=ensure)

    def failed_ids_path(self, *, ensure: bool = True) -> Path:
        return self._path(self.failed_ids_filename, ensure=ensure)

    def http_cache_path(self, *, ensure: bool = True) -> Path:
        return self._path(self.http_cache_filename, ensure=ensure)


def _default_data_dir() -> Path:
    if os.name == "nt":
        base = os.getenv("LOCALAPPDATA")
        base_path = Path(base) if base else (Path.home() / "AppData" / "Local")
    else:
        base = os.getenv("XDG_DATA_HOME")
        base_path = Path(base) if base else (Path.home() / ".local" / "share")
    return (base_path / APP_DIR_NAME).expanduser().resolve()


def get_storage_config() -> StorageConfig:
    env_dir = os.getenv("MAPKEEPER_DATA_DIR")
    data_dir = Path(env_dir) if env_dir else _default_data_dir()
    return StorageConfig(data_dir=data_dir)


def get_http_cache_path() -> Path:
    return get_storage_config().http_cache_path()
