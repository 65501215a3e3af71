from __future__ import annotations

import random
import sqlite3
import threading
from pathlib import Path

import pytest

import api.engine.lottery_service_v1 as lottery_service
from api.engine.constants import LiveStateConflictError, LotteryStoreError, SelectionInputError
from api.engine.live_notify_v1 import LiveStateNotifier
from api.engine.lottery_service_v1 import (
    draw_v1,
    get_live_state_v1,
    list_draw_history_v1,
    preview_v1,
    reset_draw_history_v1,
)
from tests.lottery_fixture_harness import create_lottery_fixture_db, read_live_state_row


@pytest.fixture
def fixture_db(tmp_path: Path) -> Path:
    return create_lottery_fixture_db(tmp_path / "service")


def _filled_ids(result: dict) -> list:
    return [slot["applicant_id"] for slot in result["winners"] if slot["filled"]]


def _execute(db_path: Path, sql: str) -> None:
    con = sqlite3.connect(str(db_path))
    try:
        con.execute(sql)
        con.commit()
    finally:
        con.close()


def test_preview_announces_cats_without_applicant_data(fixture_db: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def _forbidden(*args, **kwargs):
        raise AssertionError("preview must not read applicant data")

    monkeypatch.setattr(lottery_service, "fetch_applications", _forbidden)
    monkeypatch.setattr(lottery_service, "fetch_applicants_by_ids", _forbidden)
    notifier = LiveStateNotifier()

    state = preview_v1([5, 11], db_path=fixture_db, notifier=notifier)

    assert state["phase"] == "preview"
    assert state["selected_cat_ids"] == [5, 11]
    assert [row["cat_name"] for row in state["results"]] == ["Mochi", "Tiger"]
    for row in state["results"]:
        assert [slot["revealed"] for slot in row["winners"]] == [False, False, False]
    assert state["revision"] == 1
    assert notifier.revision == 1
    assert get_live_state_v1(db_path=fixture_db)["live_state_hash_v1"] == state["live_state_hash_v1"]


def test_repeated_preview_differs_only_in_revision_and_time(fixture_db: Path) -> None:
    first = preview_v1([5, 11], db_path=fixture_db, notifier=LiveStateNotifier())
    second = preview_v1([5, 11], db_path=fixture_db, notifier=LiveStateNotifier())

    assert second["revision"] == first["revision"] + 1
    volatile = {"revision", "updated_at"}
    assert {k: v for k, v in first.items() if k not in volatile} == {
        k: v for k, v in second.items() if k not in volatile
    }


def test_draw_publishes_results_and_records_history(fixture_db: Path) -> None:
    notifier = LiveStateNotifier()
    state = draw_v1([5, 11], db_path=fixture_db, notifier=notifier, rng=random.Random(11))

    assert state["phase"] == "drawn"
    assert state["batch_id"].startswith("draw_")
    cat5, cat11 = state["results"]
    assert sorted(_filled_ids(cat5)) == ["u1", "u2"]
    assert cat5["note"] == "insufficient applicants (2 of 3 filled)"
    assert cat11["note"] == "no applicants"
    assert _filled_ids(cat11) == []
    assert notifier.revision == state["revision"]

    stored = get_live_state_v1(db_path=fixture_db)
    assert stored["results"] == state["results"]
    history = list_draw_history_v1(db_path=fixture_db)
    assert len(history) == 1
    assert history[0]["batch_id"] == state["batch_id"]
    assert sorted(history[0]["winner_applicant_ids"]) == ["u1", "u2"]


def test_invalid_selection_rejected_before_store_access(tmp_path: Path) -> None:
    missing = tmp_path / "does_not_exist.sqlite"
    with pytest.raises(SelectionInputError):
        draw_v1([], db_path=missing)
    with pytest.raises(SelectionInputError):
        preview_v1(["x"], db_path=missing)
    with pytest.raises(SelectionInputError):
        preview_v1([2**70], db_path=missing)
    with pytest.raises(SelectionInputError):
        draw_v1(["\u00b2"], db_path=missing)
    assert not missing.exists()


def test_read_failure_aborts_batch_and_keeps_previous_state(fixture_db: Path) -> None:
    preview_v1([5], db_path=fixture_db, notifier=LiveStateNotifier())
    before = read_live_state_row(fixture_db)
    _execute(fixture_db, "DROP TABLE applications")

    notifier = LiveStateNotifier()
    with pytest.raises(LotteryStoreError) as err:
        draw_v1([5], db_path=fixture_db, notifier=notifier)

    assert err.value.code == "STORE_READ_FAILED"
    assert str(err.value).startswith("read applications failed: ")
    assert "no such table" in str(err.value)
    assert read_live_state_row(fixture_db) == before
    assert notifier.revision == 0


def test_write_failure_rolls_back_live_state(fixture_db: Path) -> None:
    before = read_live_state_row(fixture_db)
    _execute(fixture_db, "DROP TABLE draw_wins")

    with pytest.raises(LotteryStoreError) as err:
        draw_v1([5], db_path=fixture_db, notifier=LiveStateNotifier(), rng=random.Random(1))

    assert err.value.code == "STORE_WRITE_FAILED"
    assert read_live_state_row(fixture_db) == before


def test_expected_revision_mismatch_is_a_conflict(fixture_db: Path) -> None:
    preview_v1([5], db_path=fixture_db, notifier=LiveStateNotifier())

    with pytest.raises(LiveStateConflictError) as err:
        draw_v1([5], expected_revision=0, db_path=fixture_db, notifier=LiveStateNotifier())

    assert err.value.actual_revision == 1
    assert get_live_state_v1(db_path=fixture_db)["phase"] == "preview"


def test_prior_winners_excluded_only_when_enabled(fixture_db: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    draw_v1([5], db_path=fixture_db, notifier=LiveStateNotifier(), rng=random.Random(2))

    again = draw_v1([5], exclude_prior_winners=False, db_path=fixture_db, notifier=LiveStateNotifier())
    assert sorted(_filled_ids(again["results"][0])) == ["u1", "u2"]

    excluded = draw_v1([5], exclude_prior_winners=True, db_path=fixture_db, notifier=LiveStateNotifier())
    assert excluded["results"][0]["note"] == "no applicants"

    monkeypatch.setenv("CAT_LOTTERY_EXCLUDE_PRIOR_WINNERS", "yes")
    from_env = draw_v1([5], db_path=fixture_db, notifier=LiveStateNotifier())
    assert from_env["results"][0]["status"] == "NO_APPLICANTS"

    reset_draw_history_v1(db_path=fixture_db)
    after_reset = draw_v1([5], db_path=fixture_db, notifier=LiveStateNotifier())
    assert sorted(_filled_ids(after_reset["results"][0])) == ["u1", "u2"]


def test_concurrent_admin_actions_are_serialized(fixture_db: Path) -> None:
    notifier = LiveStateNotifier()
    revisions = []
    errors = []

    def _run(seed: int) -> None:
        try:
            state = draw_v1([5, 11], db_path=fixture_db, notifier=notifier, rng=random.Random(seed))
            revisions.append(state["revision"])
        except Exception as exc:
            errors.append(exc)

    threads = [threading.Thread(target=_run, args=(seed,)) for seed in range(6)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert errors == []
    assert sorted(revisions) == [1, 2, 3, 4, 5, 6]
    assert get_live_state_v1(db_path=fixture_db)["revision"] == 6
