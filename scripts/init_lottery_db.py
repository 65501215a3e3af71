from __future__ import annotations

import argparse
import logging
import sqlite3
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from engine.db import DB_PATH, ensure_schema

logger = logging.getLogger("init_lottery_db")


def init_db(db_path: Path) -> Path:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    con = sqlite3.connect(str(db_path))
    try:
        ensure_schema(con)
        con.commit()
    finally:
        con.close()
    return db_path


def main() -> int:
    logging.basicConfig(level=logging.INFO)
    ap = argparse.ArgumentParser(description="Create or upgrade the cat lottery sqlite database")
    ap.add_argument("--db", default=str(DB_PATH), help="Path to cat_lottery.sqlite")
    args = ap.parse_args()

    db_path = init_db(Path(args.db).expanduser().resolve())
    logger.info("schema applied to %s", db_path)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
