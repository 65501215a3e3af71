from __future__ import annotations

import os
import sqlite3
from pathlib import Path

import pytest


def _schema_sql_path() -> Path:
    return Path(__file__).resolve().parents[1] / "schemas" / "schema.sql"


def _is_valid_sqlite_db(path: str) -> bool:
    try:
        if not path:
            return False
        if not os.path.isfile(path):
            return False
        with open(path, "rb") as f:
            header = f.read(16)
        return header.startswith(b"SQLite format 3")
    except Exception:
        return False


@pytest.fixture
def lottery_test_db_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    env_db_path = os.getenv("CAT_LOTTERY_DB_PATH", "")
    if _is_valid_sqlite_db(env_db_path):
        # Suites that seed their own fixture DB point CAT_LOTTERY_DB_PATH at it.
        yield Path(env_db_path)
        return

    db_path = tmp_path / "cat_lottery_test.sqlite"

    con = sqlite3.connect(str(db_path))
    try:
        con.executescript(_schema_sql_path().read_text(encoding="utf-8"))
        con.commit()
    finally:
        con.close()

    monkeypatch.setenv("CAT_LOTTERY_DB_PATH", str(db_path))
    yield db_path


@pytest.fixture(autouse=True)
def _use_lottery_test_db_path(lottery_test_db_path: Path) -> None:
    _ = lottery_test_db_path
