from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

import pytest

from mapkeeper.adapters.lookup_cache import LookupCache
from tests.helpers.library import RANKED_AT, make_remote

if TYPE_CHECKING:
    from pathlib import Path


def test_put_keeps_the_first_answer() -> None:
    cache = LookupCache()
    first = make_remote(100, checksum="first")

    assert cache.put(100, first)
    assert not cache.put(100, make_remote(100, checksum="second"))
    assert not cache.put(100, None)

    assert cache.try_get(100) == (first, True)
    assert 100 in cache
    assert cache.contains(100)
    assert len(cache) == 1


def test_unknown_and_sentinel_entries_are_distinguished() -> None:
    cache = LookupCache()
    cache.put(200, None)

    assert cache.try_get(200) == (None, True)
    assert cache.try_get(300) == (None, False)
    assert 300 not in cache


def test_save_then_load_restores_records_and_sentinels(tmp_path: Path) -> None:
    path = tmp_path / "lookup_cache.json"
    cache = LookupCache(path)
    record = make_remote(100, set_id=7, status="loved")
    cache.put(100, record)
    cache.put(200, None)

    cache.save()
    reloaded = LookupCache(path)

    assert len(reloaded) == 2
    restored, found = reloaded.try_get(100)
    assert found
    assert restored == record
    assert restored is not None
    assert restored.beatmapset is not None
    assert restored.beatmapset.ranked_date == RANKED_AT
    assert reloaded.try_get(200) == (None, True)


def test_missing_file_starts_empty_with_warning(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.WARNING):
        cache = LookupCache(tmp_path / "absent.json")

    assert len(cache) == 0
    assert "No lookup cache at" in caplog.text


def test_corrupt_file_starts_empty_with_warning(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    path = tmp_path / "lookup_cache.json"
    path.write_text("{not json", encoding="utf-8")

    with caplog.at_level(logging.WARNING):
        cache = LookupCache(path)

    assert len(cache) == 0
    assert "Failed to load lookup cache" in caplog.text


def test_load_does_not_override_entries_already_in_memory(tmp_path: Path) -> None:
    path = tmp_path / "lookup_cache.json"
    stored = LookupCache(path)
    stored.put(100, None)
    stored.save()

    cache = LookupCache(path, autoload=False)
    live = make_remote(100)
    cache.put(100, live)
    cache.load()

    assert cache.try_get(100) == (live, True)


def test_failed_save_logs_and_continues(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    path = tmp_path / "occupied"
    path.mkdir()
    cache = LookupCache(path, autoload=False)
    cache.put(1, None)

    with caplog.at_level(logging.WARNING):
        cache.save()

    assert "Failed to save lookup cache" in caplog.text
    assert path.is_dir()


def test_clear_empties_the_cache() -> None:
    cache = LookupCache()
    cache.put(1, None)

    cache.clear()

    assert len(cache) == 0


def test_concurrent_puts_and_saves_keep_first_writer(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    path = tmp_path / "lookup_cache.json"
    cache = LookupCache(path, autoload=False)
    writers = 8
    ids = range(1, 201)
    start = threading.Barrier(writers + 1)
    done = threading.Event()
    won: dict[int, list[int]] = {writer: [] for writer in range(writers)}

    def write(writer: int) -> None:
        start.wait()
        for beatmap_id in ids:
            record = make_remote(beatmap_id, checksum=f"writer-{writer}")
            if cache.put(beatmap_id, record):
                won[writer].append(beatmap_id)
            assert cache.try_get(beatmap_id)[1]

    def save_repeatedly() -> None:
        start.wait()
        while not done.is_set():
            cache.save()

    threads = [threading.Thread(target=write, args=(writer,)) for writer in range(writers)]
    saver = threading.Thread(target=save_repeatedly)
    with caplog.at_level(logging.WARNING):
        saver.start()
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        done.set()
        saver.join()
        cache.save()

    winners = [beatmap_id for claimed in won.values() for beatmap_id in claimed]
    assert sorted(winners) == list(ids)
    assert len(cache) == len(ids)
    for writer, claimed in won.items():
        for beatmap_id in claimed:
            record, found = cache.try_get(beatmap_id)
            assert found
            assert record is not None
            assert record.checksum == f"writer-{writer}"
    assert "Failed to save lookup cache" not in caplog.text

    reloaded = LookupCache(path)
    assert len(reloaded) == len(ids)
    assert all(reloaded.try_get(i) == cache.try_get(i) for i in ids)
