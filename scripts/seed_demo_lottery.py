from __future__ import annotations

import argparse
import json
import logging
import random
import sqlite3
import sys
from pathlib import Path
from typing import Dict, List

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from engine.db import DB_PATH, ensure_schema

logger = logging.getLogger("seed_demo_lottery")

DEMO_CATS = [
    (1, "Mochi", True),
    (2, "Milk Tea", True),
    (3, "Tiger", True),
    (4, "Pudding", False),
    (5, "Cocoa", False),
    (6, "Blackie", False),
    (7, "Snowball", False),
    (8, "QQ", False),
    (9, "Bun", False),
    (10, "Peanut", False),
]
DEMO_TOWNSHIPS = ["North", "East", "South", "West", "Harbor"]


def build_demo_rows(seed: int | None, applicant_count: int = 40) -> Dict[str, List[tuple]]:
    # Demo data only; draws use the engine's own random source.
    rng = random.Random(seed)

    applicants = []
    for i in range(1, applicant_count + 1):
        no = f"{i:02d}"
        applicants.append(
            (
                f"applicant-{no}",
                f"Resident {no}",
                f"09{rng.randrange(10**8):08d}",
                rng.choice(DEMO_TOWNSHIPS),
            )
        )

    choices_by_applicant: Dict[str, List[int]] = {row[0]: [] for row in applicants}
    for cat_id, _, _ in DEMO_CATS:
        count = 12 + rng.randrange(11)
        for applicant in rng.sample(applicants, count):
            choices_by_applicant[applicant[0]].append(cat_id)

    applications = [
        (applicant_id, json.dumps(sorted(choices)))
        for applicant_id, choices in choices_by_applicant.items()
        if choices
    ]
    rng.shuffle(applications)

    return {
        "cats": [(cat_id, name, 1 if popular else 0) for cat_id, name, popular in DEMO_CATS],
        "applicants": applicants,
        "applications": applications,
    }


def seed_db(db_path: Path, seed: int | None, reset: bool) -> Dict[str, int]:
    rows = build_demo_rows(seed)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    con = sqlite3.connect(str(db_path))
    try:
        ensure_schema(con)
        if reset:
            for table in ("draw_wins", "draw_batches", "applications", "applicants", "cats"):
                con.execute(f"DELETE FROM {table}")
        con.executemany("INSERT OR REPLACE INTO cats (id, name, popular, active) VALUES (?, ?, ?, 1)", rows["cats"])
        con.executemany(
            "INSERT OR REPLACE INTO applicants (id, name, phone, township) VALUES (?, ?, ?, ?)",
            rows["applicants"],
        )
        con.executemany("INSERT INTO applications (applicant_id, choices_json) VALUES (?, ?)", rows["applications"])
        con.commit()
    finally:
        con.close()
    return {key: len(value) for key, value in rows.items()}


def main() -> int:
    logging.basicConfig(level=logging.INFO)
    ap = argparse.ArgumentParser(description="Seed a demo cat lottery event (10 cats, 40 applicants)")
    ap.add_argument("--db", default=str(DB_PATH), help="Path to cat_lottery.sqlite")
    ap.add_argument("--seed", type=int, default=None, help="Seed for reproducible demo data")
    ap.add_argument("--reset", action="store_true", help="Delete existing cats, applicants, applications and draws first")
    args = ap.parse_args()

    counts = seed_db(Path(args.db).expanduser().resolve(), seed=args.seed, reset=args.reset)
    logger.info("seeded cats=%s applicants=%s applications=%s", counts["cats"], counts["applicants"], counts["applications"])
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
