from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from typing import Any, Dict

from api.engine.constants import LIVE_STATE_PHASES, LIVE_STATE_SCHEMA_VERSION, PHASE_PREVIEW, LiveStateConflictError
from api.engine.result_projection_v1 import compute_live_state_hash_v1
from api.engine.utils import parse_json_blob, stable_json_dumps

LIVE_STATE_ROW_ID = 1


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def _empty_live_state() -> Dict[str, Any]:
    state: Dict[str, Any] = {
        "schema_version": LIVE_STATE_SCHEMA_VERSION,
        "phase": PHASE_PREVIEW,
        "selected_cat_ids": [],
        "batch_id": None,
        "results": [],
    }
    state["live_state_hash_v1"] = compute_live_state_hash_v1(state)
    state["revision"] = 0
    state["updated_at"] = None
    return state


def read_live_state_v1(con: sqlite3.Connection) -> Dict[str, Any]:
    row = con.execute(
        """
        SELECT phase, selected_cat_ids_json, results_json, batch_id, live_state_hash_v1, revision, updated_at
        FROM live_state
        WHERE id = ?
        """,
        (LIVE_STATE_ROW_ID,),
    ).fetchone()
    if row is None:
        return _empty_live_state()

    selected = parse_json_blob(row["selected_cat_ids_json"], default=[])
    results = parse_json_blob(row["results_json"], default=[])
    state: Dict[str, Any] = {
        "schema_version": LIVE_STATE_SCHEMA_VERSION,
        "phase": row["phase"] if row["phase"] in LIVE_STATE_PHASES else PHASE_PREVIEW,
        "selected_cat_ids": [int(x) for x in selected if isinstance(x, int) and not isinstance(x, bool)]
        if isinstance(selected, list)
        else [],
        "batch_id": row["batch_id"] if isinstance(row["batch_id"], str) else None,
        "results": results if isinstance(results, list) else [],
    }
    stored_hash = row["live_state_hash_v1"]
    state["live_state_hash_v1"] = stored_hash if isinstance(stored_hash, str) else compute_live_state_hash_v1(state)
    state["revision"] = int(row["revision"] or 0)
    state["updated_at"] = row["updated_at"]
    return state


def read_live_revision_v1(con: sqlite3.Connection) -> int:
    row = con.execute("SELECT revision FROM live_state WHERE id = ?", (LIVE_STATE_ROW_ID,)).fetchone()
    return int(row["revision"] or 0) if row is not None else 0


def replace_live_state_v1(
    con: sqlite3.Connection,
    state: Dict[str, Any],
    expected_revision: int,
    updated_at: str | None = None,
) -> Dict[str, Any]:
    """
    Overwrite the singleton record if it is still at ``expected_revision``.

    The whole record is replaced; there are no partial updates. Does not commit;
    the caller owns the transaction so the write can share it with other rows.
    Raises LiveStateConflictError when another writer got there first.
    """
    phase = state.get("phase")
    if phase not in LIVE_STATE_PHASES:
        raise ValueError(f"unknown live state phase: {phase!r}")

    stamped = dict(state)
    stamped["schema_version"] = LIVE_STATE_SCHEMA_VERSION
    stamped["live_state_hash_v1"] = compute_live_state_hash_v1(stamped)
    stamped["revision"] = int(expected_revision) + 1
    stamped["updated_at"] = updated_at if isinstance(updated_at, str) and updated_at != "" else utc_now_iso()

    cur = con.execute(
        """
        UPDATE live_state
        SET phase = ?,
            selected_cat_ids_json = ?,
            results_json = ?,
            batch_id = ?,
            live_state_hash_v1 = ?,
            revision = ?,
            updated_at = ?
        WHERE id = ? AND revision = ?
        """,
        (
            phase,
            stable_json_dumps(list(stamped.get("selected_cat_ids") or [])),
            stable_json_dumps(list(stamped.get("results") or [])),
            stamped.get("batch_id"),
            stamped["live_state_hash_v1"],
            stamped["revision"],
            stamped["updated_at"],
            LIVE_STATE_ROW_ID,
            int(expected_revision),
        ),
    )
    if cur.rowcount != 1:
        raise LiveStateConflictError(
            expected_revision=int(expected_revision),
            actual_revision=read_live_revision_v1(con),
        )
    return stamped
