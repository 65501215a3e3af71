import hashlib
import json
from typing import Any, Dict


def stable_json_dumps(obj: Any) -> str:
    return json.dumps(obj, separators=(",", ":"), sort_keys=True, ensure_ascii=False)


def sha256_hex(value: str | bytes) -> str:
    if isinstance(value, bytes):
        data = value
    else:
        data = str(value).encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def strip_volatile_fields(value: Any, volatile_keys: frozenset[str]) -> Any:
    if isinstance(value, dict):
        cleaned: Dict[str, Any] = {}
        for key, child in value.items():
            if isinstance(key, str) and key in volatile_keys:
                continue
            cleaned[key] = strip_volatile_fields(child, volatile_keys)
        return cleaned
    if isinstance(value, list):
        return [strip_volatile_fields(item, volatile_keys) for item in value]
    return value


def parse_json_blob(value: Any, default: Any = None) -> Any:
    if isinstance(value, str):
        try:
            return json.loads(value)
        except (TypeError, ValueError):
            return default
    return default


def mask_phone(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    digits = "".join(ch for ch in value if ch.isdigit())
    if digits == "":
        return None
    if len(digits) <= 3:
        return "*" * len(digits)
    keep_head = 4 if len(digits) >= 10 else 0
    head = digits[:keep_head]
    tail = digits[-3:]
    return head + "*" * (len(digits) - keep_head - 3) + tail
