from typing import Any, Dict, List


# --- Versions (core) ---
ENGINE_VERSION = "0.3.0"
LIVE_STATE_SCHEMA_VERSION = "live_state_v1"

# --- Layer Versions ---
APPLICANT_POOL_VERSION = "applicant_pool_v1"
FAIR_SELECTOR_VERSION = "fair_selector_v1"
BATCH_DRAW_VERSION = "batch_draw_v1"
RESULT_PROJECTION_VERSION = "result_projection_v1"

# --- Draw rules ---
SLOTS_PER_CAT = 3
WINNER_RANKS: List[str] = ["PRIMARY", "ALTERNATE_1", "ALTERNATE_2"]
WINNER_RANK_LABELS: Dict[str, str] = {
    "PRIMARY": "Primary",
    "ALTERNATE_1": "Alternate 1",
    "ALTERNATE_2": "Alternate 2",
}

DRAW_STATUS_NO_APPLICANTS = "NO_APPLICANTS"
DRAW_STATUS_INSUFFICIENT = "INSUFFICIENT_APPLICANTS"
DRAW_STATUS_FILLED = "FILLED"

NOTE_NO_APPLICANTS = "no applicants"
NOTE_FULLY_FILLED = "fully filled"

PHASE_PREVIEW = "preview"
PHASE_DRAWN = "drawn"
LIVE_STATE_PHASES = (PHASE_PREVIEW, PHASE_DRAWN)

EMPTY_SLOT_DISPLAY_NAME = "—"

# --- Request layer ---
MAX_SELECTED_CATS = 200
MAX_CAT_ID = 2**63 - 1
DEFAULT_LONG_POLL_MAX_S = 25.0


def insufficient_applicants_note(filled: int, total: int = SLOTS_PER_CAT) -> str:
    return f"insufficient applicants ({int(filled)} of {int(total)} filled)"


class SelectionInputError(ValueError):
    code = "INVALID_SELECTION"

    def __init__(self, reason: str, value: Any = None):
        self.reason = str(reason or "selected_cat_ids is invalid")
        self.value = value
        super().__init__(f"{self.code}: {self.reason}")

    def to_error(self) -> Dict[str, Any]:
        return {
            "ok": False,
            "code": self.code,
            "error": self.reason,
        }


class LotteryStoreError(RuntimeError):
    """Collaborator store failure. The driver message is kept verbatim."""

    def __init__(self, operation: str, cause: BaseException, *, write: bool = False):
        self.operation = str(operation or "store access")
        self.code = "STORE_WRITE_FAILED" if write else "STORE_READ_FAILED"
        self.detail = str(cause)
        super().__init__(f"{self.operation} failed: {self.detail}")

    def to_error(self) -> Dict[str, Any]:
        return {
            "ok": False,
            "code": self.code,
            "error": str(self),
        }


class LiveStateConflictError(RuntimeError):
    code = "LIVE_STATE_CONFLICT"

    def __init__(self, expected_revision: int, actual_revision: int | None):
        self.expected_revision = int(expected_revision)
        self.actual_revision = actual_revision if isinstance(actual_revision, int) else None
        super().__init__(
            f"{self.code}: live state moved from revision {self.expected_revision} "
            f"to {self.actual_revision}; reload and retry"
        )

    def to_error(self) -> Dict[str, Any]:
        return {
            "ok": False,
            "code": self.code,
            "error": str(self),
            "expected_revision": self.expected_revision,
            "actual_revision": self.actual_revision,
        }
