import logging
import os
from datetime import datetime, timezone
from typing import Any, List, Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from api.engine.admin_auth_v1 import admin_key_ok, admin_password_configured, admin_password_ok
from api.engine.constants import (
    APPLICANT_POOL_VERSION,
    BATCH_DRAW_VERSION,
    DEFAULT_LONG_POLL_MAX_S,
    ENGINE_VERSION,
    FAIR_SELECTOR_VERSION,
    LIVE_STATE_SCHEMA_VERSION,
    RESULT_PROJECTION_VERSION,
    LiveStateConflictError,
    LotteryStoreError,
    SelectionInputError,
)
from api.engine.live_notify_v1 import live_state_notifier
from api.engine.lottery_service_v1 import (
    draw_v1,
    get_live_state_v1,
    list_cats_v1,
    list_draw_history_v1,
    preview_v1,
    reset_draw_history_v1,
)

logger = logging.getLogger(__name__)


class AdminAuthError(RuntimeError):
    code = "UNAUTHORIZED"


class LiveSelectionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Validated by normalize_selected_cat_ids_v1 so that malformed input gets a 400, not a 422.
    selected_cat_ids: Any = Field(default=None, alias="selectedCatIds")
    expected_revision: Optional[int] = None


class LiveDrawRequest(LiveSelectionRequest):
    exclude_prior_winners: Optional[bool] = None


class AdminAuthRequest(BaseModel):
    password: str = ""


class WinnerSlotView(BaseModel):
    rank: str
    rank_label: str
    revealed: bool
    filled: bool
    display_name: str
    applicant_id: Optional[str] = None
    name: Optional[str] = None
    township: Optional[str] = None
    phone_masked: Optional[str] = None


class LiveResultView(BaseModel):
    cat_id: int
    cat_name: str
    cat_label: str
    image_url: Optional[str] = None
    popular: bool = False
    status: Optional[str] = None
    note: Optional[str] = None
    applicant_count: Optional[int] = None
    pool_size: Optional[int] = None
    winners: List[WinnerSlotView]


class LiveStateResponse(BaseModel):
    schema_version: str
    phase: str
    selected_cat_ids: List[int]
    batch_id: Optional[str] = None
    results: List[LiveResultView]
    live_state_hash_v1: str
    revision: int
    updated_at: Optional[str] = None


class LiveWaitResponse(BaseModel):
    changed: bool
    live_state: LiveStateResponse


app = FastAPI(title="Cat Adoption Lottery", version=ENGINE_VERSION)

DEV_CORS = os.getenv("CAT_LOTTERY_DEV_CORS", "0") == "1"

if DEV_CORS:
    dev_ports = range(5173, 5181)
    allow_origins = [f"http://127.0.0.1:{port}" for port in dev_ports] + [
        f"http://localhost:{port}" for port in dev_ports
    ]
else:
    allow_origins = [
        "http://127.0.0.1:5173",
        "http://localhost:5173",
    ]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SelectionInputError)
async def _selection_input_error(request: Request, exc: SelectionInputError):
    return JSONResponse(status_code=400, content=exc.to_error())


@app.exception_handler(LiveStateConflictError)
async def _live_state_conflict(request: Request, exc: LiveStateConflictError):
    return JSONResponse(status_code=409, content=exc.to_error())


@app.exception_handler(LotteryStoreError)
async def _lottery_store_error(request: Request, exc: LotteryStoreError):
    return JSONResponse(status_code=500, content=exc.to_error())


@app.exception_handler(AdminAuthError)
async def _admin_auth_error(request: Request, exc: AdminAuthError):
    return JSONResponse(
        status_code=401,
        content={"ok": False, "code": exc.code, "error": "401 Unauthorized: bad admin key"},
    )


def require_admin(x_admin_key: Optional[str] = Header(default=None)) -> None:
    if not admin_key_ok(x_admin_key):
        raise AdminAuthError()


def _long_poll_max_s() -> float:
    raw = os.getenv("CAT_LOTTERY_LONG_POLL_MAX_S")
    try:
        value = float(raw) if isinstance(raw, str) and raw.strip() != "" else DEFAULT_LONG_POLL_MAX_S
    except ValueError:
        return DEFAULT_LONG_POLL_MAX_S
    return value if value > 0 else DEFAULT_LONG_POLL_MAX_S


@app.get("/health")
def health():
    return {
        "ok": True,
        "engine_version": ENGINE_VERSION,
        "layers": {
            "applicant_pool": APPLICANT_POOL_VERSION,
            "fair_selector": FAIR_SELECTOR_VERSION,
            "batch_draw": BATCH_DRAW_VERSION,
            "result_projection": RESULT_PROJECTION_VERSION,
            "live_state": LIVE_STATE_SCHEMA_VERSION,
        },
        "time": datetime.now(timezone.utc).replace(microsecond=0).isoformat(),
    }


@app.get("/cats")
def cats(active_only: bool = False):
    return {"cats": list_cats_v1(active_only=active_only)}


@app.get("/live/state", response_model=LiveStateResponse)
def live_state():
    return get_live_state_v1()


@app.get("/live/wait", response_model=LiveWaitResponse)
def live_wait(after_revision: int = 0, timeout_s: float = 20.0):
    state = get_live_state_v1()
    if int(state["revision"]) > after_revision:
        return {"changed": True, "live_state": state}

    wait_s = min(max(0.0, timeout_s), _long_poll_max_s())
    live_state_notifier.wait_for_change(after_revision, wait_s)
    state = get_live_state_v1()
    return {"changed": int(state["revision"]) > after_revision, "live_state": state}


@app.post("/live/preview", response_model=LiveStateResponse, dependencies=[Depends(require_admin)])
def live_preview(req: LiveSelectionRequest):
    return preview_v1(req.selected_cat_ids, expected_revision=req.expected_revision)


@app.post("/live/draw", response_model=LiveStateResponse, dependencies=[Depends(require_admin)])
def live_draw(req: LiveDrawRequest):
    return draw_v1(
        req.selected_cat_ids,
        exclude_prior_winners=req.exclude_prior_winners,
        expected_revision=req.expected_revision,
    )


@app.get("/draws", dependencies=[Depends(require_admin)])
def draws(limit: int = 50):
    return {"draws": list_draw_history_v1(limit=limit)}


@app.post("/draws/reset", dependencies=[Depends(require_admin)])
def draws_reset():
    counts = reset_draw_history_v1()
    return {"ok": True, **counts}


@app.post("/admin/auth")
def admin_auth(req: AdminAuthRequest):
    if not admin_password_configured():
        return JSONResponse(
            status_code=500,
            content={"ok": False, "code": "ADMIN_PASSWORD_NOT_SET", "error": "CAT_LOTTERY_ADMIN_PASSWORD not set"},
        )
    if not admin_password_ok(req.password):
        logger.warning("admin auth rejected")
        return JSONResponse(status_code=401, content={"ok": False, "code": "UNAUTHORIZED", "error": "Unauthorized"})
    return {"ok": True}

