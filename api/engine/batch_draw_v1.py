from __future__ import annotations

from typing import Any, Collection, Dict, Iterable, List, Sequence

from api.engine.applicant_pool_v1 import count_applications_for_cat_v1, resolve_applicant_pool_v1
from api.engine.constants import (
    BATCH_DRAW_VERSION,
    DRAW_STATUS_FILLED,
    DRAW_STATUS_INSUFFICIENT,
    DRAW_STATUS_NO_APPLICANTS,
    NOTE_FULLY_FILLED,
    NOTE_NO_APPLICANTS,
    SLOTS_PER_CAT,
    WINNER_RANK_LABELS,
    WINNER_RANKS,
    insufficient_applicants_note,
)
from api.engine.fair_selector_v1 import RandomSource, default_random_source, draw_without_replacement_v1


def fallback_cat_name(cat_id: int) -> str:
    return f"Cat {int(cat_id)}"


def empty_winner_slot(rank: str) -> Dict[str, Any]:
    return {
        "rank": rank,
        "rank_label": WINNER_RANK_LABELS.get(rank, rank),
        "filled": False,
        "applicant_id": None,
        "name": None,
    }


def _filled_winner_slot(rank: str, applicant_id: str, applicants_by_id: Dict[str, Dict[str, Any]] | None) -> Dict[str, Any]:
    applicant = applicants_by_id.get(applicant_id) if isinstance(applicants_by_id, dict) else None
    name = applicant.get("name") if isinstance(applicant, dict) else None
    return {
        "rank": rank,
        "rank_label": WINNER_RANK_LABELS.get(rank, rank),
        "filled": True,
        "applicant_id": applicant_id,
        "name": name if isinstance(name, str) else None,
    }


def _status_for(pool_size: int, filled: int, slots_per_cat: int) -> tuple[str, str]:
    if pool_size == 0:
        return DRAW_STATUS_NO_APPLICANTS, NOTE_NO_APPLICANTS
    if filled < slots_per_cat:
        return DRAW_STATUS_INSUFFICIENT, insufficient_applicants_note(filled, slots_per_cat)
    return DRAW_STATUS_FILLED, NOTE_FULLY_FILLED


def _cat_name(cat_id: int, cats_by_id: Dict[int, Dict[str, Any]]) -> str:
    cat = cats_by_id.get(cat_id) if isinstance(cats_by_id, dict) else None
    name = cat.get("name") if isinstance(cat, dict) else None
    if isinstance(name, str) and name.strip() != "":
        return name
    return fallback_cat_name(cat_id)


def run_batch_draw_v1(
    selected_cat_ids: Sequence[int],
    cats_by_id: Dict[int, Dict[str, Any]],
    applications: Iterable[Dict[str, Any]],
    *,
    applicants_by_id: Dict[str, Dict[str, Any]] | None = None,
    prior_winner_ids: Collection[str] = (),
    rng: RandomSource | None = None,
    slots_per_cat: int = SLOTS_PER_CAT,
) -> Dict[str, Any]:
    """
    Draw every selected cat in the given order, sharing one exclusion set.

    Anyone drawn for a cat, at any rank, is out of the pools of all later cats
    in the batch, so earlier cats consume shared applicants first. The order is
    the admin's choice. ``prior_winner_ids`` (wins from earlier batches) are
    excluded too, but kept apart from the batch set and not reported back.
    When ``applicants_by_id`` is given, only applicants with a row there are
    eligible and slots carry their names.
    """
    if slots_per_cat < 1 or slots_per_cat > len(WINNER_RANKS):
        raise ValueError(f"slots_per_cat must be between 1 and {len(WINNER_RANKS)}, got {slots_per_cat}")

    source = rng if rng is not None else default_random_source()
    application_rows = [row for row in applications if isinstance(row, dict)]
    prior = frozenset(str(applicant_id) for applicant_id in prior_winner_ids)
    known_ids = set(applicants_by_id.keys()) if isinstance(applicants_by_id, dict) else None
    ranks = WINNER_RANKS[:slots_per_cat]

    batch_excluded: set[str] = set()
    results: List[Dict[str, Any]] = []

    for raw_cat_id in selected_cat_ids:
        cat_id = int(raw_cat_id)
        pool = resolve_applicant_pool_v1(
            cat_id,
            application_rows,
            excluded_ids=batch_excluded | prior,
            known_applicant_ids=known_ids,
        )
        drawn = draw_without_replacement_v1(pool, k=slots_per_cat, rng=source) if pool else []
        batch_excluded.update(drawn)

        winners: List[Dict[str, Any]] = []
        for idx, rank in enumerate(ranks):
            if idx < len(drawn):
                winners.append(_filled_winner_slot(rank, drawn[idx], applicants_by_id))
            else:
                winners.append(empty_winner_slot(rank))

        status, note = _status_for(len(pool), len(drawn), slots_per_cat)
        results.append(
            {
                "cat_id": cat_id,
                "cat_name": _cat_name(cat_id, cats_by_id),
                "status": status,
                "note": note,
                "applicant_count": count_applications_for_cat_v1(cat_id, application_rows, known_ids),
                "pool_size": len(pool),
                "winners": winners,
            }
        )

    return {
        "version": BATCH_DRAW_VERSION,
        "results": results,
        "excluded_applicant_ids": sorted(batch_excluded),
    }


def winner_ids_from_results(results: Iterable[Dict[str, Any]]) -> List[str]:
    out: List[str] = []
    for result in results:
        winners = result.get("winners") if isinstance(result, dict) else None
        if not isinstance(winners, list):
            continue
        for slot in winners:
            if isinstance(slot, dict) and slot.get("filled") and isinstance(slot.get("applicant_id"), str):
                out.append(slot["applicant_id"])
    return out
