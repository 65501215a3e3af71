import sqlite3
from typing import Any, Dict, List, Sequence

from api.engine.batch_draw_v1 import winner_ids_from_results
from api.engine.utils import parse_json_blob, sha256_hex, stable_json_dumps


def compute_batch_id_v1(selected_cat_ids: Sequence[int], expected_revision: int, created_at: str) -> str:
    payload = {
        "selected_cat_ids": [int(x) for x in selected_cat_ids],
        "expected_revision": int(expected_revision),
        "created_at": str(created_at),
    }
    return "draw_" + sha256_hex(stable_json_dumps(payload))[:16]


def save_draw_batch_v1(
    con: sqlite3.Connection,
    batch_id: str,
    created_at: str,
    selected_cat_ids: Sequence[int],
    results: Sequence[Dict[str, Any]],
    exclude_prior_winners: bool,
    engine_version: str | None = None,
) -> Dict[str, Any]:
    """Record one committed draw. Runs inside the caller's transaction."""
    con.execute(
        """
        INSERT INTO draw_batches (
          batch_id,
          created_at,
          engine_version,
          selected_cat_ids_json,
          exclude_prior_winners,
          results_json
        ) VALUES (?, ?, ?, ?, ?, ?)
        """,
        (
            batch_id,
            created_at,
            engine_version,
            stable_json_dumps([int(x) for x in selected_cat_ids]),
            1 if exclude_prior_winners else 0,
            stable_json_dumps(list(results)),
        ),
    )

    win_rows = []
    for result in results:
        if not isinstance(result, dict):
            continue
        cat_id = int(result.get("cat_id"))
        for slot in result.get("winners") or []:
            if not isinstance(slot, dict) or not slot.get("filled"):
                continue
            applicant_id = slot.get("applicant_id")
            if not isinstance(applicant_id, str):
                continue
            win_rows.append((batch_id, cat_id, str(slot.get("rank")), applicant_id))

    if win_rows:
        con.executemany(
            "INSERT INTO draw_wins (batch_id, cat_id, rank, applicant_id) VALUES (?, ?, ?, ?)",
            win_rows,
        )

    return {
        "batch_id": batch_id,
        "created_at": created_at,
        "win_count": len(win_rows),
    }


def get_prior_winner_ids_v1(con: sqlite3.Connection) -> List[str]:
    rows = con.execute("SELECT DISTINCT applicant_id FROM draw_wins ORDER BY applicant_id ASC").fetchall()
    return [str(row["applicant_id"]) for row in rows]


def list_draw_batches_v1(con: sqlite3.Connection, limit: int = 50) -> List[Dict[str, Any]]:
    limit_safe = max(1, int(limit))
    rows = con.execute(
        """
        SELECT batch_id, created_at, engine_version, selected_cat_ids_json, exclude_prior_winners, results_json
        FROM draw_batches
        ORDER BY created_at DESC, batch_id DESC
        LIMIT ?
        """,
        (limit_safe,),
    ).fetchall()

    out: List[Dict[str, Any]] = []
    for row in rows:
        results = parse_json_blob(row["results_json"], default=[])
        results = results if isinstance(results, list) else []
        selected = parse_json_blob(row["selected_cat_ids_json"], default=[])
        out.append(
            {
                "batch_id": row["batch_id"],
                "created_at": row["created_at"],
                "engine_version": row["engine_version"],
                "selected_cat_ids": selected if isinstance(selected, list) else [],
                "exclude_prior_winners": bool(row["exclude_prior_winners"]),
                "winner_applicant_ids": winner_ids_from_results(results),
                "results": results,
            }
        )
    return out


def clear_draw_history_v1(con: sqlite3.Connection) -> Dict[str, int]:
    wins_deleted = con.execute("DELETE FROM draw_wins").rowcount
    batches_deleted = con.execute("DELETE FROM draw_batches").rowcount
    return {
        "batches_deleted": int(batches_deleted),
        "wins_deleted": int(wins_deleted),
    }
