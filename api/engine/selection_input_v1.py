from __future__ import annotations

from typing import Any, List

from api.engine.constants import MAX_CAT_ID, MAX_SELECTED_CATS, SelectionInputError


def _coerce_cat_id(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return int(value)
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        token = value.strip()
        if token.isascii() and token.isdigit():
            return int(token)
    return None


def normalize_selected_cat_ids_v1(raw: Any) -> List[int]:
    """
    Validate an admin cat selection and return it as an ordered list of ints.

    Accepts ints and digit strings ("5"). Rejects an empty or non-list value,
    booleans, negatives, fractional numbers, ids past the
    64-bit store range and repeated ids. Nothing here
    touches the store.
    """
    if not isinstance(raw, (list, tuple)):
        raise SelectionInputError("selected_cat_ids must be a list of cat ids", value=raw)
    if len(raw) == 0:
        raise SelectionInputError("selected_cat_ids is empty", value=raw)
    if len(raw) > MAX_SELECTED_CATS:
        raise SelectionInputError(
            f"selected_cat_ids has {len(raw)} entries; at most {MAX_SELECTED_CATS} cats per round",
            value=raw,
        )

    out: List[int] = []
    seen: set[int] = set()
    for idx, value in enumerate(raw):
        cat_id = _coerce_cat_id(value)
        if cat_id is None or cat_id < 0:
            raise SelectionInputError(f"selected_cat_ids[{idx}] is not a cat id: {value!r}", value=raw)
        if cat_id > MAX_CAT_ID:
            raise SelectionInputError(f"selected_cat_ids[{idx}] is out of range: {value!r}", value=raw)
        if cat_id in seen:
            raise SelectionInputError(f"cat {cat_id} is selected more than once", value=raw)
        seen.add(cat_id)
        out.append(cat_id)
    return out
