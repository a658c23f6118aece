from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from mapkeeper.config import StorageConfig

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("MAPKEEPER_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.delenv("OSU_CLIENT_ID", raising=False)
    monkeypatch.delenv("OSU_CLIENT_SECRET", raising=False)
    monkeypatch.delenv("MAPKEEPER_HTTP_CACHE", raising=False)
    monkeypatch.delenv("MAPKEEPER_HTTP_CACHE_TTL", raising=False)


@pytest.fixture
def storage(tmp_path: Path) -> StorageConfig:
    return StorageConfig(data_dir=tmp_path / "data")
