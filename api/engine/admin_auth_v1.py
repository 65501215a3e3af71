from __future__ import annotations

import os
import secrets


def _env_secret(var_name: str) -> str:
    raw = os.getenv(var_name)
    if not isinstance(raw, str):
        return ""
    return raw.strip()


def _matches(provided: str | None, expected: str) -> bool:
    if expected == "" or not isinstance(provided, str):
        return False
    return secrets.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def admin_key_ok(provided: str | None) -> bool:
    """An unset CAT_LOTTERY_ADMIN_KEY locks the admin API instead of opening it."""
    return _matches(provided, _env_secret("CAT_LOTTERY_ADMIN_KEY"))


def admin_password_configured() -> bool:
    return _env_secret("CAT_LOTTERY_ADMIN_PASSWORD") != ""


def admin_password_ok(provided: str | None) -> bool:
    return _matches(provided, _env_secret("CAT_LOTTERY_ADMIN_PASSWORD"))
