import json
import os
import sqlite3
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

REPO_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_DB_RELATIVE_PATH = Path("data") / "cat_lottery.sqlite"
DB_PATH = (REPO_ROOT / DEFAULT_DB_RELATIVE_PATH).resolve()
SCHEMA_SQL_PATH = REPO_ROOT / "schemas" / "schema.sql"


def resolve_db_path() -> Path:
    env_db_path = os.getenv("CAT_LOTTERY_DB_PATH")
    if isinstance(env_db_path, str) and env_db_path.strip() != "":
        candidate = Path(env_db_path.strip()).expanduser()
        if not candidate.is_absolute():
            candidate = (REPO_ROOT / candidate).resolve()
    else:
        candidate = DB_PATH

    if not candidate.is_file():
        raise RuntimeError(
            "Cat lottery database file not found at "
            f"'{candidate}'. Set CAT_LOTTERY_DB_PATH or run scripts/init_lottery_db.py "
            "to create ./data/cat_lottery.sqlite."
        )
    return candidate


def _parse_json_list(raw: Any) -> List[Any]:
    if isinstance(raw, list):
        return raw
    if not isinstance(raw, str):
        return []
    try:
        parsed = json.loads(raw)
    except Exception:
        return []
    return parsed if isinstance(parsed, list) else []


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "y"}
    return False


def _coerce_cat_ids(values: Iterable[Any]) -> List[int]:
    out: List[int] = []
    for value in values:
        if isinstance(value, bool):
            continue
        if isinstance(value, int):
            out.append(int(value))
        elif isinstance(value, float) and value.is_integer():
            out.append(int(value))
        elif isinstance(value, str):
            token = value.strip()
            digits = token[1:] if token.startswith("-") else token
            if digits.isascii() and digits.isdigit():
                out.append(int(token))
    return out


def connect(db_path: str | Path | None = None) -> sqlite3.Connection:
    path = Path(db_path) if db_path is not None else resolve_db_path()
    con = sqlite3.connect(str(path))
    con.row_factory = sqlite3.Row
    return con


def ensure_schema(con: sqlite3.Connection) -> None:
    con.executescript(SCHEMA_SQL_PATH.read_text(encoding="utf-8"))


def _cat_row(row: sqlite3.Row) -> Dict[str, Any]:
    image_url = row["image_url"]
    return {
        "id": int(row["id"]),
        "name": str(row["name"]),
        "popular": _coerce_bool(row["popular"]),
        "active": _coerce_bool(row["active"]),
        "image_url": image_url if isinstance(image_url, str) and image_url != "" else None,
    }


def fetch_cats_by_ids(con: sqlite3.Connection, cat_ids: Iterable[int]) -> Dict[int, Dict[str, Any]]:
    ids = sorted(set(int(cat_id) for cat_id in cat_ids))
    if not ids:
        return {}
    placeholders = ",".join("?" for _ in ids)
    rows = con.execute(
        f"SELECT id, name, popular, active, image_url FROM cats WHERE id IN ({placeholders})",
        tuple(ids),
    ).fetchall()
    return {int(row["id"]): _cat_row(row) for row in rows}


def list_cats(con: sqlite3.Connection, active_only: bool = False) -> List[Dict[str, Any]]:
    if active_only:
        rows = con.execute(
            "SELECT id, name, popular, active, image_url FROM cats WHERE active = 1 ORDER BY id ASC"
        ).fetchall()
    else:
        rows = con.execute(
            "SELECT id, name, popular, active, image_url FROM cats ORDER BY id ASC"
        ).fetchall()
    return [_cat_row(row) for row in rows]


def fetch_applications(con: sqlite3.Connection, cat_id: Optional[int] = None) -> List[Dict[str, Any]]:
    """
    Applications in arrival order. ``choices`` is decoded from JSON; rows with
    unreadable choices come back with an empty list rather than failing the read.
    """
    rows = con.execute(
        "SELECT id, applicant_id, choices_json FROM applications ORDER BY id ASC"
    ).fetchall()

    applications: List[Dict[str, Any]] = []
    for row in rows:
        choices = _coerce_cat_ids(_parse_json_list(row["choices_json"]))
        if cat_id is not None and int(cat_id) not in choices:
            continue
        applications.append(
            {
                "id": int(row["id"]),
                "applicant_id": str(row["applicant_id"]),
                "choices": choices,
            }
        )
    return applications


def fetch_applicants_by_ids(
    con: sqlite3.Connection,
    applicant_ids: Optional[Iterable[str]] = None,
) -> Dict[str, Dict[str, Any]]:
    if applicant_ids is None:
        rows = con.execute("SELECT id, name, phone, township FROM applicants").fetchall()
    else:
        ids = sorted(set(str(applicant_id) for applicant_id in applicant_ids))
        if not ids:
            return {}
        rows = []
        # sqlite caps bound parameters per statement
        for start in range(0, len(ids), 500):
            chunk = ids[start : start + 500]
            placeholders = ",".join("?" for _ in chunk)
            rows.extend(
                con.execute(
                    f"SELECT id, name, phone, township FROM applicants WHERE id IN ({placeholders})",
                    tuple(chunk),
                ).fetchall()
            )

    out: Dict[str, Dict[str, Any]] = {}
    for row in rows:
        phone = row["phone"]
        township = row["township"]
        out[str(row["id"])] = {
            "id": str(row["id"]),
            "name": str(row["name"]),
            "phone": phone if isinstance(phone, str) and phone != "" else None,
            "township": township if isinstance(township, str) and township != "" else None,
        }
    return out
