from __future__ import annotations

import unittest

from api.engine.applicant_pool_v1 import count_applications_for_cat_v1, resolve_applicant_pool_v1


APPLICATIONS = [
    {"applicant_id": "u1", "choices": [5, 11]},
    {"applicant_id": "u2", "choices": [5]},
    {"applicant_id": "u3", "choices": [11]},
    {"applicant_id": "u1", "choices": [5]},
    {"applicant_id": "u4", "choices": ["5"]},
    {"applicant_id": "u5", "choices": None},
    {"applicant_id": "", "choices": [5]},
]


class ApplicantPoolV1Tests(unittest.TestCase):
    def test_pool_in_arrival_order_with_duplicates_collapsed(self) -> None:
        self.assertEqual(resolve_applicant_pool_v1(5, APPLICATIONS), ["u1", "u2", "u4"])

    def test_excluded_ids_removed_and_not_mutated(self) -> None:
        excluded = {"u1"}
        pool = resolve_applicant_pool_v1(5, APPLICATIONS, excluded_ids=excluded)
        self.assertEqual(pool, ["u2", "u4"])
        self.assertEqual(excluded, {"u1"})

    def test_unknown_applicants_dropped_when_known_ids_given(self) -> None:
        pool = resolve_applicant_pool_v1(5, APPLICATIONS, known_applicant_ids={"u1", "u2"})
        self.assertEqual(pool, ["u1", "u2"])

    def test_no_application_for_cat_is_empty_pool(self) -> None:
        self.assertEqual(resolve_applicant_pool_v1(7, APPLICATIONS), [])

    def test_fully_excluded_pool_is_empty(self) -> None:
        self.assertEqual(resolve_applicant_pool_v1(11, APPLICATIONS, excluded_ids={"u1", "u3"}), [])

    def test_deterministic_for_same_inputs(self) -> None:
        first = resolve_applicant_pool_v1(5, APPLICATIONS, excluded_ids={"u2"})
        second = resolve_applicant_pool_v1(5, APPLICATIONS, excluded_ids={"u2"})
        self.assertEqual(first, second)

    def test_count_is_distinct_applicants_before_exclusion(self) -> None:
        self.assertEqual(count_applications_for_cat_v1(5, APPLICATIONS), 3)
        self.assertEqual(count_applications_for_cat_v1(11, APPLICATIONS), 2)
        self.assertEqual(count_applications_for_cat_v1(7, APPLICATIONS), 0)

    def test_count_skips_applicants_missing_from_store(self) -> None:
        known = {"u1", "u2"}
        self.assertEqual(count_applications_for_cat_v1(5, APPLICATIONS, known_applicant_ids=known), 2)
        self.assertEqual(count_applications_for_cat_v1(11, APPLICATIONS, known_applicant_ids=known), 1)

    def test_non_ascii_digit_choices_never_match(self) -> None:
        applications = [
            {"applicant_id": "u1", "choices": ["\u00b2"]},
            {"applicant_id": "u2", "choices": ["\uff15", 5]},
        ]
        self.assertEqual(resolve_applicant_pool_v1(5, applications), ["u2"])
        self.assertEqual(resolve_applicant_pool_v1(2, applications), [])
        self.assertEqual(count_applications_for_cat_v1(5, applications), 1)


if __name__ == "__main__":
    unittest.main()
