from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest

from mapkeeper.adapters.sqlalchemy import open_library
from mapkeeper.domain.model import BeatmapStatus
from mapkeeper.domain.reconciliation import (
    ActionPlan,
    PlanExecutionError,
    PlanExecutor,
    extract_reacquisition_ids,
    generate_download_list,
    scan,
)
from tests.helpers.library import RANKED_AT, SUBMITTED_AT, make_beatmap, make_set, seed_library

if TYPE_CHECKING:
    from pathlib import Path

    from mapkeeper.domain.model import BeatmapSet

NOW = datetime(2024, 6, 1, 9, 0, tzinfo=UTC)


def _executor() -> PlanExecutor:
    return PlanExecutor(open_library, clock=lambda: NOW)


def _sets_by_online_id(path: Path) -> dict[int, BeatmapSet]:
    with open_library(path) as store:
        return {beatmap_set.online_id: beatmap_set for beatmap_set in store.load_all_sets()}


def test_apply_cleans_structure_and_applies_every_action(tmp_path: Path) -> None:
    shared = make_beatmap(500, status=BeatmapStatus.PENDING)
    healthy = make_set(1, beatmaps=[make_beatmap(100)])
    ghost = make_set(2, beatmaps=[make_beatmap(200), shared])
    outdated = make_set(3, beatmaps=[make_beatmap(300)])
    wrong_status = make_set(
        4,
        beatmaps=[make_beatmap(400, status=BeatmapStatus.PENDING), shared],
        status=BeatmapStatus.PENDING,
    )
    undated = make_set(5, beatmaps=[make_beatmap(450)], date_ranked=None, date_submitted=None)
    local_only = make_set(0, beatmaps=[make_beatmap(0)], date_ranked=None, date_submitted=None)
    reverse_orphan = make_set(7, dead_references=2)
    partially_dead = make_set(8, beatmaps=[make_beatmap(800)], dead_references=1)
    orphan = make_beatmap(999)
    source = seed_library(
        tmp_path / "client.db",
        [healthy, ghost, outdated, wrong_status, undated, local_only, reverse_orphan, partially_dead],
        extra_beatmaps=[orphan],
    )
    target = tmp_path / "client_modified.db"

    plan = ActionPlan()
    plan.add_delete(ghost)
    plan.add_content_update(outdated)
    plan.add_status_fix(wrong_status, BeatmapStatus.RANKED)
    plan.add_date_backfill(undated, RANKED_AT, SUBMITTED_AT)
    plan.add_local_date_stub(local_only)

    modified = _executor().apply(source, target, plan)

    # 1 orphan + 3 dead references + 5 plan actions
    assert modified == 9
    result = _sets_by_online_id(target)
    assert set(result) == {0, 1, 4, 5, 8}
    assert result[4].status is BeatmapStatus.RANKED
    assert all(beatmap.status is BeatmapStatus.RANKED for beatmap in result[4].beatmaps)
    assert shared.id in {beatmap.id for beatmap in result[4].beatmaps}
    assert result[5].date_ranked == RANKED_AT
    assert result[5].date_submitted == SUBMITTED_AT
    assert result[0].date_ranked == NOW
    assert result[0].date_submitted == NOW
    assert len(result[8].beatmap_ids) == 1

    with open_library(target) as store:
        assert not scan(store.load_snapshot()).has_issues


def test_apply_never_touches_the_source(tmp_path: Path) -> None:
    doomed = make_set(1, beatmaps=[make_beatmap(100)])
    source = seed_library(tmp_path / "client.db", [doomed, make_set(2, dead_references=1)])
    before = source.read_bytes()
    plan = ActionPlan()
    plan.add_delete(doomed)

    _executor().apply(source, tmp_path / "out.db", plan)

    assert source.read_bytes() == before
    assert set(_sets_by_online_id(source)) == {1, 2}


def test_backfill_never_replaces_existing_dates(tmp_path: Path) -> None:
    original_ranked = datetime(2019, 1, 1, tzinfo=UTC)
    beatmap_set = make_set(
        1, beatmaps=[make_beatmap(100)], date_ranked=original_ranked, date_submitted=None
    )
    source = seed_library(tmp_path / "client.db", [beatmap_set])
    target = tmp_path / "out.db"
    plan = ActionPlan()
    plan.add_date_backfill(beatmap_set, RANKED_AT, SUBMITTED_AT)

    _executor().apply(source, target, plan)

    result = _sets_by_online_id(target)[1]
    assert result.date_ranked == original_ranked
    assert result.date_submitted == SUBMITTED_AT


def test_failure_rolls_back_every_change(tmp_path: Path) -> None:
    doomed = make_set(1, beatmaps=[make_beatmap(100)])
    local_only = make_set(0, beatmaps=[make_beatmap(0)], date_ranked=None)
    source = seed_library(tmp_path / "client.db", [doomed, local_only])
    target = tmp_path / "out.db"
    plan = ActionPlan()
    plan.add_delete(doomed)
    plan.add_local_date_stub(local_only)

    def broken_clock() -> datetime:
        raise RuntimeError("clock exploded")

    with pytest.raises(RuntimeError, match="clock exploded"):
        PlanExecutor(open_library, clock=broken_clock).apply(source, target, plan)

    assert set(_sets_by_online_id(target)) == {0, 1}


def test_missing_sets_are_skipped(tmp_path: Path) -> None:
    source = seed_library(tmp_path / "client.db", [make_set(1, beatmaps=[make_beatmap(100)])])
    plan = ActionPlan()
    plan.add_delete(make_set(99))
    plan.add_status_fix(make_set(98), BeatmapStatus.LOVED)

    modified = _executor().apply(source, tmp_path / "out.db", plan)

    assert modified == 0


def test_refuses_to_write_the_source(tmp_path: Path) -> None:
    source = seed_library(tmp_path / "client.db", [])

    with pytest.raises(PlanExecutionError):
        _executor().apply(source, source, ActionPlan())


def test_refuses_missing_source(tmp_path: Path) -> None:
    with pytest.raises(PlanExecutionError):
        _executor().apply(tmp_path / "nope.db", tmp_path / "out.db", ActionPlan())


def test_reacquisition_ids_are_sorted_distinct_and_positive() -> None:
    plan = ActionPlan()
    for online_id in (30, 10, 30, 0, 20):
        plan.add_content_update(make_set(online_id))
    plan.add_delete(make_set(40))

    assert extract_reacquisition_ids(plan) == [10, 20, 30]


def test_download_list_writes_one_url_per_line(tmp_path: Path) -> None:
    plan = ActionPlan()
    plan.add_content_update(make_set(20))
    plan.add_content_update(make_set(10))
    path = tmp_path / "downloads.txt"

    ids = generate_download_list(plan, path)

    assert ids == [10, 20]
    assert path.read_text(encoding="utf-8").splitlines() == [
        "https://osu.ppy.sh/beatmapsets/10",
        "https://osu.ppy.sh/beatmapsets/20",
    ]


def test_download_list_not_written_when_empty(tmp_path: Path) -> None:
    path = tmp_path / "downloads.txt"

    assert generate_download_list(ActionPlan(), path) == []
    assert not path.exists()
