from __future__ import annotations

from typing import TYPE_CHECKING

from mapkeeper.adapters.failed_ids import clear_failed_ids, load_failed_ids

if TYPE_CHECKING:
    from pathlib import Path


def test_load_failed_ids_skips_noise(tmp_path: Path) -> None:
    path = tmp_path / "failed_downloads.txt"
    path.write_text("123\n\n  456  \nnot-a-number\n-5\n0\n123\n", encoding="utf-8")

    assert load_failed_ids(path) == frozenset({123, 456})


def test_missing_file_yields_no_ids(tmp_path: Path) -> None:
    assert load_failed_ids(tmp_path / "absent.txt") == frozenset()


def test_clear_failed_ids(tmp_path: Path) -> None:
    path = tmp_path / "failed_downloads.txt"
    path.write_text("1\n", encoding="utf-8")

    assert clear_failed_ids(path)
    assert not path.exists()
    assert not clear_failed_ids(path)
