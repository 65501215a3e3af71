from __future__ import annotations

from typing import Any, Dict, List, Sequence

from api.engine.batch_draw_v1 import fallback_cat_name
from api.engine.constants import (
    EMPTY_SLOT_DISPLAY_NAME,
    LIVE_STATE_SCHEMA_VERSION,
    PHASE_DRAWN,
    PHASE_PREVIEW,
    SLOTS_PER_CAT,
    WINNER_RANK_LABELS,
    WINNER_RANKS,
)
from api.engine.utils import mask_phone, sha256_hex, stable_json_dumps, strip_volatile_fields

_VOLATILE_LIVE_STATE_KEYS = frozenset({"updated_at", "revision", "live_state_hash_v1"})


def cat_label(cat_id: int) -> str:
    return f"Cat #{int(cat_id):02d}"


def _cat_display_fields(cat_id: int, cats_by_id: Dict[int, Dict[str, Any]]) -> Dict[str, Any]:
    cat = cats_by_id.get(cat_id) if isinstance(cats_by_id, dict) else None
    cat = cat if isinstance(cat, dict) else {}
    name = cat.get("name")
    image_url = cat.get("image_url")
    return {
        "cat_id": int(cat_id),
        "cat_name": name if isinstance(name, str) and name.strip() != "" else fallback_cat_name(cat_id),
        "cat_label": cat_label(cat_id),
        "image_url": image_url if isinstance(image_url, str) and image_url != "" else None,
        "popular": bool(cat.get("popular")) if "popular" in cat else False,
    }


def _unrevealed_slot(rank: str) -> Dict[str, Any]:
    return {
        "rank": rank,
        "rank_label": WINNER_RANK_LABELS.get(rank, rank),
        "revealed": False,
        "filled": False,
        "display_name": EMPTY_SLOT_DISPLAY_NAME,
        "township": None,
        "phone_masked": None,
    }


def _revealed_slot(slot: Dict[str, Any], applicants_by_id: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
    rank = slot.get("rank") if isinstance(slot.get("rank"), str) else ""
    applicant_id = slot.get("applicant_id") if isinstance(slot.get("applicant_id"), str) else None
    filled = bool(slot.get("filled")) and applicant_id is not None
    applicant = applicants_by_id.get(applicant_id) if filled and isinstance(applicants_by_id, dict) else None
    applicant = applicant if isinstance(applicant, dict) else {}

    name = slot.get("name") if isinstance(slot.get("name"), str) else applicant.get("name")
    township = applicant.get("township")
    return {
        "rank": rank,
        "rank_label": slot.get("rank_label") if isinstance(slot.get("rank_label"), str) else WINNER_RANK_LABELS.get(rank, rank),
        "revealed": True,
        "filled": filled,
        "applicant_id": applicant_id if filled else None,
        "name": name if filled and isinstance(name, str) else None,
        "display_name": name if filled and isinstance(name, str) else EMPTY_SLOT_DISPLAY_NAME,
        "township": township if filled and isinstance(township, str) else None,
        "phone_masked": mask_phone(applicant.get("phone")) if filled else None,
    }


def project_preview_v1(
    selected_cat_ids: Sequence[int],
    cats_by_id: Dict[int, Dict[str, Any]],
) -> Dict[str, Any]:
    results: List[Dict[str, Any]] = []
    for cat_id in selected_cat_ids:
        row = _cat_display_fields(int(cat_id), cats_by_id)
        row["status"] = "PENDING"
        row["note"] = None
        row["winners"] = [_unrevealed_slot(rank) for rank in WINNER_RANKS[:SLOTS_PER_CAT]]
        results.append(row)

    return {
        "schema_version": LIVE_STATE_SCHEMA_VERSION,
        "phase": PHASE_PREVIEW,
        "selected_cat_ids": [int(cat_id) for cat_id in selected_cat_ids],
        "batch_id": None,
        "results": results,
    }


def project_drawn_v1(
    selected_cat_ids: Sequence[int],
    draw_results: Sequence[Dict[str, Any]],
    cats_by_id: Dict[int, Dict[str, Any]],
    applicants_by_id: Dict[str, Dict[str, Any]],
    batch_id: str | None = None,
) -> Dict[str, Any]:
    """
    Display form of a finished batch. Draw rows are carried over as-is, then
    decorated with cat display fields and per-slot display-safe contact data.
    Raw phone numbers never appear in the output.
    """
    results: List[Dict[str, Any]] = []
    for draw_row in draw_results:
        if not isinstance(draw_row, dict):
            continue
        cat_id = int(draw_row.get("cat_id"))
        row = _cat_display_fields(cat_id, cats_by_id)
        if isinstance(draw_row.get("cat_name"), str):
            row["cat_name"] = draw_row["cat_name"]
        row["status"] = draw_row.get("status")
        row["note"] = draw_row.get("note")
        row["applicant_count"] = draw_row.get("applicant_count")
        row["pool_size"] = draw_row.get("pool_size")
        slots = draw_row.get("winners") if isinstance(draw_row.get("winners"), list) else []
        row["winners"] = [_revealed_slot(slot, applicants_by_id) for slot in slots if isinstance(slot, dict)]
        results.append(row)

    return {
        "schema_version": LIVE_STATE_SCHEMA_VERSION,
        "phase": PHASE_DRAWN,
        "selected_cat_ids": [int(cat_id) for cat_id in selected_cat_ids],
        "batch_id": batch_id if isinstance(batch_id, str) and batch_id != "" else None,
        "results": results,
    }


def compute_live_state_hash_v1(state: Dict[str, Any]) -> str:
    payload = strip_volatile_fields(state if isinstance(state, dict) else {}, _VOLATILE_LIVE_STATE_KEYS)
    return sha256_hex(stable_json_dumps(payload))
