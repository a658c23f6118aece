from __future__ import annotations

import pytest

from mapkeeper.domain.model import BeatmapStatus
from mapkeeper.domain.ports import AuthenticationError
from mapkeeper.domain.reconciliation import AuditOrchestrator, AuditSettings
from tests.helpers.library import (
    RANKED_AT,
    SUBMITTED_AT,
    FakeRemoteAuthority,
    InMemoryLookupCache,
    failing_remote,
    make_beatmap,
    make_remote,
    make_set,
)


def _orchestrator(
    remote: FakeRemoteAuthority,
    cache: InMemoryLookupCache | None = None,
    **kwargs: object,
) -> AuditOrchestrator:
    return AuditOrchestrator(remote, cache if cache is not None else InMemoryLookupCache(), **kwargs)  # pyright: ignore[reportArgumentType]


def test_status_mismatch_and_missing_dates_are_fixed() -> None:
    local = make_set(
        1,
        beatmaps=[make_beatmap(100)],
        status=BeatmapStatus.PENDING,
        date_ranked=None,
        date_submitted=None,
    )
    remote = FakeRemoteAuthority([make_remote(100, status="ranked")])

    plan = _orchestrator(remote).audit([local])

    assert [fix.new_status for fix in plan.status_fixes] == [BeatmapStatus.RANKED]
    assert len(plan.date_backfills) == 1
    backfill = plan.date_backfills[0]
    assert backfill.ranked_date == RANKED_AT
    assert backfill.submitted_date == SUBMITTED_AT
    assert plan.deletes == ()
    assert plan.content_updates == ()


def test_checksum_mismatch_schedules_content_update() -> None:
    local = make_set(1, beatmaps=[make_beatmap(100, md5_hash="old-hash")])
    remote = FakeRemoteAuthority([make_remote(100, checksum="new-hash")])

    plan = _orchestrator(remote).audit([local])

    assert plan.content_updates == (local,)
    assert plan.status_fixes == ()
    assert plan.date_backfills == ()


def test_failed_download_id_is_deleted_without_lookup() -> None:
    local = make_set(42, beatmaps=[make_beatmap(100)])
    remote = FakeRemoteAuthority([make_remote(100)])

    plan = _orchestrator(remote, failed_ids={42}).audit([local])

    assert plan.deletes == (local,)
    assert remote.calls == []


def test_unknown_id_is_deleted_and_remembered() -> None:
    local = make_set(1, beatmaps=[make_beatmap(100)])
    cache = InMemoryLookupCache()

    first = _orchestrator(FakeRemoteAuthority(), cache).audit([local])
    second_remote = FakeRemoteAuthority([make_remote(100)])
    second = _orchestrator(second_remote, cache).audit([local])

    assert first.deletes == (local,)
    assert cache.try_get(100) == (None, True)
    assert second_remote.calls == []
    assert second == first


def test_record_without_set_is_deleted() -> None:
    local = make_set(1, beatmaps=[make_beatmap(100)])
    remote = FakeRemoteAuthority([make_remote(100, with_set=False)])

    plan = _orchestrator(remote).audit([local])

    assert plan.deletes == (local,)


def test_repeat_audits_with_same_inputs_are_equal() -> None:
    sets = [
        make_set(i, beatmaps=[make_beatmap(1000 + i)], status=BeatmapStatus.PENDING)
        for i in range(1, 12)
    ]
    records = [make_remote(1000 + i, set_id=i) for i in range(1, 12) if i % 3]

    first = _orchestrator(FakeRemoteAuthority(records)).audit(sets)
    second = _orchestrator(FakeRemoteAuthority(records)).audit(sets)

    assert first == second
    assert len(first.deletes) == 3


def test_lookup_errors_degrade_to_delete() -> None:
    local = make_set(1, beatmaps=[make_beatmap(100)])
    cache = InMemoryLookupCache()

    plan = _orchestrator(failing_remote(), cache).audit([local])

    assert plan.deletes == (local,)
    assert cache.try_get(100) == (None, True)


def test_rejected_credentials_stop_the_audit() -> None:
    remote = FakeRemoteAuthority(authenticated=False)

    with pytest.raises(AuthenticationError):
        _orchestrator(remote).audit([make_set(1, beatmaps=[make_beatmap(100)])])

    assert remote.calls == []


def test_shared_lookup_ids_are_fetched_once() -> None:
    first = make_set(1, beatmaps=[make_beatmap(100)])
    second = make_set(2, beatmaps=[make_beatmap(100)])
    remote = FakeRemoteAuthority([make_remote(100)])

    _orchestrator(remote).audit([first, second])

    assert remote.calls == [[100]]


def test_cached_records_are_not_fetched_again() -> None:
    local = make_set(1, beatmaps=[make_beatmap(100)])
    cache = InMemoryLookupCache({100: make_remote(100)})
    remote = FakeRemoteAuthority()

    plan = _orchestrator(remote, cache).audit([local])

    assert remote.calls == []
    assert plan.is_empty


def test_lookup_uses_first_child_with_online_id() -> None:
    local = make_set(1, beatmaps=[make_beatmap(0), make_beatmap(200), make_beatmap(300)])
    remote = FakeRemoteAuthority([make_remote(200)])

    _orchestrator(remote).audit([local])

    assert remote.calls == [[200]]


@pytest.mark.parametrize(
    ("beatmap_set_kwargs", "expected_kind"),
    [
        ({"online_id": 0, "star_rating": 0.0, "date_ranked": None}, "delete"),
        ({"online_id": 55, "star_rating": 5.0, "date_ranked": None}, "content_update"),
        ({"online_id": 0, "star_rating": 5.0, "date_ranked": None}, "local_date_stub"),
        ({"online_id": 0, "star_rating": 5.0, "date_ranked": RANKED_AT}, None),
    ],
)
def test_sets_without_valid_map_id(
    beatmap_set_kwargs: dict[str, object],
    expected_kind: str | None,
) -> None:
    local = make_set(
        beatmap_set_kwargs["online_id"],  # pyright: ignore[reportArgumentType]
        beatmaps=[make_beatmap(0, star_rating=beatmap_set_kwargs["star_rating"])],  # pyright: ignore[reportArgumentType]
        date_ranked=beatmap_set_kwargs["date_ranked"],  # pyright: ignore[reportArgumentType]
    )
    remote = FakeRemoteAuthority()

    plan = _orchestrator(remote).audit([local])

    counts = {kind.value: count for kind, count in plan.counts().items() if count}
    assert counts == ({expected_kind: 1} if expected_kind else {})
    assert remote.calls == []


def test_present_dates_are_not_backfilled() -> None:
    local = make_set(1, beatmaps=[make_beatmap(100)], date_submitted=None)
    remote = FakeRemoteAuthority([make_remote(100)])

    plan = _orchestrator(remote).audit([local])

    backfill = plan.date_backfills[0]
    assert backfill.ranked_date is None
    assert backfill.submitted_date == SUBMITTED_AT


def test_batches_and_periodic_saves() -> None:
    sets = [make_set(i, beatmaps=[make_beatmap(100 + i)]) for i in range(5)]
    remote = FakeRemoteAuthority([make_remote(100 + i) for i in range(5)])
    cache = InMemoryLookupCache()
    settings = AuditSettings(batch_size=2, max_workers=2, save_every_batches=1, progress_every=1)

    plan = _orchestrator(remote, cache, settings=settings).audit(sets)

    assert plan.is_empty
    assert sorted(len(call) for call in remote.calls) == [1, 2, 2]
    assert sorted(remote.requested_ids) == [100, 101, 102, 103, 104]
    assert cache.saves == 4
    assert len(cache) == 5


def test_empty_library_still_authenticates_and_saves() -> None:
    remote = FakeRemoteAuthority()
    cache = InMemoryLookupCache()

    plan = _orchestrator(remote, cache).audit([])

    assert plan.is_empty
    assert remote.auth_calls == 1
    assert cache.saves == 1


@pytest.mark.parametrize(
    "field",
    ["batch_size", "max_workers", "save_every_batches", "progress_every"],
)
def test_settings_reject_non_positive_values(field: str) -> None:
    with pytest.raises(ValueError, match=field):
        AuditSettings(**{field: 0})  # pyright: ignore[reportArgumentType]
