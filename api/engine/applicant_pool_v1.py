from __future__ import annotations

from typing import Any, Collection, Dict, Iterable, List


def _application_choices(application: Dict[str, Any]) -> List[Any]:
    choices = application.get("choices")
    if isinstance(choices, (list, tuple, set, frozenset)):
        return list(choices)
    return []


def _chose_cat(application: Dict[str, Any], cat_id: int) -> bool:
    for choice in _application_choices(application):
        if isinstance(choice, bool):
            continue
        if isinstance(choice, (int, float)) and choice == cat_id:
            return True
        if isinstance(choice, str):
            token = choice.strip()
            if token.isascii() and token.isdigit() and int(token) == cat_id:
                return True
    return False


def _applicant_id(application: Dict[str, Any]) -> str | None:
    raw = application.get("applicant_id")
    if raw is None or isinstance(raw, bool):
        return None
    token = str(raw).strip()
    return token if token != "" else None


def count_applications_for_cat_v1(
    cat_id: int,
    applications: Iterable[Dict[str, Any]],
    known_applicant_ids: Collection[str] | None = None,
) -> int:
    """Distinct applicants who chose ``cat_id``, before any exclusion. Orphan applications are not counted."""
    seen: set[str] = set()
    for application in applications:
        if not isinstance(application, dict) or not _chose_cat(application, int(cat_id)):
            continue
        applicant_id = _applicant_id(application)
        if applicant_id is None:
            continue
        if known_applicant_ids is not None and applicant_id not in known_applicant_ids:
            continue
        seen.add(applicant_id)
    return len(seen)


def resolve_applicant_pool_v1(
    cat_id: int,
    applications: Iterable[Dict[str, Any]],
    excluded_ids: Collection[str] = (),
    known_applicant_ids: Collection[str] | None = None,
) -> List[str]:
    """
    Eligible applicant ids for one cat, in application arrival order.

    An applicant listed twice keeps its first position. ``excluded_ids`` is read,
    never modified. With ``known_applicant_ids`` set, applications pointing at a
    missing applicant row are skipped.
    """
    target = int(cat_id)
    pool: List[str] = []
    seen: set[str] = set()
    for application in applications:
        if not isinstance(application, dict):
            continue
        if not _chose_cat(application, target):
            continue
        applicant_id = _applicant_id(application)
        if applicant_id is None or applicant_id in seen:
            continue
        seen.add(applicant_id)
        if applicant_id in excluded_ids:
            continue
        if known_applicant_ids is not None and applicant_id not in known_applicant_ids:
            continue
        pool.append(applicant_id)
    return pool
