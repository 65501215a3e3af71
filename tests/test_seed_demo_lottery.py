from __future__ import annotations

import json
import random
import unittest
import tempfile
from pathlib import Path

from api.engine.batch_draw_v1 import winner_ids_from_results
from api.engine.live_notify_v1 import LiveStateNotifier
from api.engine.lottery_service_v1 import draw_v1, list_cats_v1
from scripts.init_lottery_db import init_db
from scripts.seed_demo_lottery import build_demo_rows, seed_db


class SeedDemoLotteryTests(unittest.TestCase):
    def test_demo_rows_are_reproducible_for_a_seed(self) -> None:
        self.assertEqual(build_demo_rows(seed=7), build_demo_rows(seed=7))

    def test_every_cat_gets_12_to_22_applicants(self) -> None:
        rows = build_demo_rows(seed=3)
        per_cat = {}
        for applicant_id, choices_json in rows["applications"]:
            for cat_id in json.loads(choices_json):
                per_cat.setdefault(cat_id, set()).add(applicant_id)
        self.assertEqual(sorted(per_cat), list(range(1, 11)))
        for applicant_ids in per_cat.values():
            self.assertTrue(12 <= len(applicant_ids) <= 22)

    def test_seeded_event_draws_without_double_wins(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            db_path = init_db(Path(tmp_dir) / "event.sqlite")
            counts = seed_db(db_path, seed=11, reset=False)
            self.assertEqual(counts["cats"], 10)
            self.assertEqual(counts["applicants"], 40)

            cats = list_cats_v1(db_path=db_path)
            self.assertEqual([cat["popular"] for cat in cats[:3]], [True, True, True])

            state = draw_v1(
                [cat["id"] for cat in cats],
                db_path=db_path,
                notifier=LiveStateNotifier(),
                rng=random.Random(5),
            )

        winners = winner_ids_from_results(state["results"])
        self.assertEqual(len(winners), len(set(winners)))
        self.assertEqual(len(state["results"]), 10)


if __name__ == "__main__":
    unittest.main()
