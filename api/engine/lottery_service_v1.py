from __future__ import annotations

import logging
import os
import sqlite3
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from api.engine.batch_draw_v1 import run_batch_draw_v1
from api.engine.constants import ENGINE_VERSION, LiveStateConflictError, LotteryStoreError
from api.engine.fair_selector_v1 import RandomSource
from api.engine.live_notify_v1 import LiveStateNotifier, live_state_notifier
from api.engine.live_state_v1 import read_live_revision_v1, read_live_state_v1, replace_live_state_v1, utc_now_iso
from api.engine.result_projection_v1 import project_drawn_v1, project_preview_v1
from api.engine.selection_input_v1 import normalize_selected_cat_ids_v1
from api.engine.win_history_v1 import (
    clear_draw_history_v1,
    compute_batch_id_v1,
    get_prior_winner_ids_v1,
    list_draw_batches_v1,
    save_draw_batch_v1,
)
from engine.db import connect, fetch_applicants_by_ids, fetch_applications, fetch_cats_by_ids, list_cats

logger = logging.getLogger(__name__)

_TRUTHY_VALUES = {"1", "true", "yes", "on"}

# One admin action at a time inside this process; the revision CAS covers other writers.
_LIVE_STATE_LOCK = threading.Lock()


def exclude_prior_winners_default() -> bool:
    raw = os.getenv("CAT_LOTTERY_EXCLUDE_PRIOR_WINNERS")
    if not isinstance(raw, str):
        return False
    return raw.strip().lower() in _TRUTHY_VALUES


def _read(operation: str, fn: Callable[[], Any]) -> Any:
    try:
        return fn()
    except sqlite3.Error as exc:
        raise LotteryStoreError(operation, exc) from exc


def _check_expected_revision(con: sqlite3.Connection, expected_revision: Optional[int]) -> int:
    current = _read("read live_state", lambda: read_live_revision_v1(con))
    if expected_revision is not None and int(expected_revision) != current:
        raise LiveStateConflictError(expected_revision=int(expected_revision), actual_revision=current)
    return current


def _commit_live_state(
    con: sqlite3.Connection,
    write: Callable[[], Dict[str, Any]],
) -> Dict[str, Any]:
    try:
        stamped = write()
        con.commit()
    except LiveStateConflictError:
        con.rollback()
        raise
    except sqlite3.Error as exc:
        con.rollback()
        raise LotteryStoreError("update live_state", exc, write=True) from exc
    return stamped


def preview_v1(
    selected_cat_ids: Any,
    *,
    expected_revision: Optional[int] = None,
    db_path: str | Path | None = None,
    notifier: LiveStateNotifier | None = None,
) -> Dict[str, Any]:
    """
    Announce the selected cats on the display without drawing.

    Reads cat metadata only; no applicant data is touched and no randomness is
    used. Returns the stored live state.
    """
    cat_ids = normalize_selected_cat_ids_v1(selected_cat_ids)
    feed = notifier if notifier is not None else live_state_notifier

    with _LIVE_STATE_LOCK:
        con = _read("open database", lambda: connect(db_path))
        try:
            current_revision = _check_expected_revision(con, expected_revision)
            cats_by_id = _read("read cats", lambda: fetch_cats_by_ids(con, cat_ids))
            state = project_preview_v1(cat_ids, cats_by_id)
            stamped = _commit_live_state(
                con,
                lambda: replace_live_state_v1(con, state, expected_revision=current_revision),
            )
        except LiveStateConflictError as exc:
            logger.warning("preview rejected: %s", exc)
            raise
        except LotteryStoreError:
            logger.exception("preview failed; live state left unchanged")
            raise
        finally:
            con.close()

    logger.info("preview published revision=%s cats=%s", stamped["revision"], len(cat_ids))
    feed.publish(stamped["revision"])
    return stamped


def draw_v1(
    selected_cat_ids: Any,
    *,
    exclude_prior_winners: Optional[bool] = None,
    expected_revision: Optional[int] = None,
    rng: RandomSource | None = None,
    db_path: str | Path | None = None,
    notifier: LiveStateNotifier | None = None,
) -> Dict[str, Any]:
    """
    Run one batch draw and publish it as the live state.

    Either the live state and the win-history rows are committed together, or
    nothing is written and the previous live state stays on the display. With
    ``exclude_prior_winners`` unset, CAT_LOTTERY_EXCLUDE_PRIOR_WINNERS decides
    whether winners of earlier batches are out of this one.
    """
    cat_ids = normalize_selected_cat_ids_v1(selected_cat_ids)
    feed = notifier if notifier is not None else live_state_notifier
    use_history = exclude_prior_winners_default() if exclude_prior_winners is None else bool(exclude_prior_winners)

    with _LIVE_STATE_LOCK:
        con = _read("open database", lambda: connect(db_path))
        try:
            current_revision = _check_expected_revision(con, expected_revision)
            cats_by_id = _read("read cats", lambda: fetch_cats_by_ids(con, cat_ids))
            applications = _read("read applications", lambda: fetch_applications(con))
            applicants_by_id = _read("read applicants", lambda: fetch_applicants_by_ids(con))
            prior_winner_ids: List[str] = (
                _read("read draw_wins", lambda: get_prior_winner_ids_v1(con)) if use_history else []
            )

            batch = run_batch_draw_v1(
                cat_ids,
                cats_by_id,
                applications,
                applicants_by_id=applicants_by_id,
                prior_winner_ids=prior_winner_ids,
                rng=rng,
            )

            created_at = utc_now_iso()
            batch_id = compute_batch_id_v1(cat_ids, current_revision, created_at)
            state = project_drawn_v1(cat_ids, batch["results"], cats_by_id, applicants_by_id, batch_id=batch_id)

            def _write() -> Dict[str, Any]:
                stamped_state = replace_live_state_v1(
                    con,
                    state,
                    expected_revision=current_revision,
                    updated_at=created_at,
                )
                save_draw_batch_v1(
                    con,
                    batch_id=batch_id,
                    created_at=created_at,
                    selected_cat_ids=cat_ids,
                    results=batch["results"],
                    exclude_prior_winners=use_history,
                    engine_version=ENGINE_VERSION,
                )
                return stamped_state

            stamped = _commit_live_state(con, _write)
        except LiveStateConflictError as exc:
            logger.warning("draw rejected: %s", exc)
            raise
        except LotteryStoreError:
            logger.exception("draw aborted; live state left unchanged")
            raise
        finally:
            con.close()

    logger.info(
        "draw published revision=%s batch_id=%s cats=%s winners=%s exclude_prior_winners=%s",
        stamped["revision"],
        batch_id,
        len(cat_ids),
        len(batch["excluded_applicant_ids"]),
        use_history,
    )
    feed.publish(stamped["revision"])
    return stamped


def get_live_state_v1(db_path: str | Path | None = None) -> Dict[str, Any]:
    con = _read("open database", lambda: connect(db_path))
    try:
        return _read("read live_state", lambda: read_live_state_v1(con))
    finally:
        con.close()


def list_cats_v1(active_only: bool = False, db_path: str | Path | None = None) -> List[Dict[str, Any]]:
    con = _read("open database", lambda: connect(db_path))
    try:
        return _read("read cats", lambda: list_cats(con, active_only=active_only))
    finally:
        con.close()


def list_draw_history_v1(limit: int = 50, db_path: str | Path | None = None) -> List[Dict[str, Any]]:
    con = _read("open database", lambda: connect(db_path))
    try:
        return _read("read draw_batches", lambda: list_draw_batches_v1(con, limit=limit))
    finally:
        con.close()


def reset_draw_history_v1(db_path: str | Path | None = None) -> Dict[str, int]:
    """Forget all earlier winners, e.g. before a new event. The live state is left as it is."""
    with _LIVE_STATE_LOCK:
        con = _read("open database", lambda: connect(db_path))
        try:
            counts = clear_draw_history_v1(con)
            con.commit()
        except sqlite3.Error as exc:
            con.rollback()
            raise LotteryStoreError("clear draw history", exc, write=True) from exc
        finally:
            con.close()

    logger.info("draw history cleared batches=%s wins=%s", counts["batches_deleted"], counts["wins_deleted"])
    return counts
