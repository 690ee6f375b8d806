"""
DecisionLab streak service — FastAPI backend
"""
import logging
from dataclasses import asdict
from functools import lru_cache

from fastapi import FastAPI, Header, HTTPException, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from .config import get_settings
from .db import get_client, get_user_by_auth_id, SupabaseEventLog
from .engine.streak import StreakState, apply_multiplier
from .engine.tiers import TIERS, MILESTONES
from .errors import EventLogUnavailable, InvalidUser
from .models import ScoreRequest
from .service import StreakEngine

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)
app = FastAPI(title="DecisionLab Streak API")
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().allowed_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["Authorization", "Content-Type"],
)


@app.exception_handler(InvalidUser)
async def invalid_user_handler(request: Request, exc: InvalidUser):
    return JSONResponse(status_code=404, content={"detail": "User not found"})


@app.exception_handler(EventLogUnavailable)
async def event_log_unavailable_handler(request: Request, exc: EventLogUnavailable):
    # The UI must show the multiplier as unknown and offer a retry, not fall back to 1.0x.
    logger.error("Event log unavailable on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=503,
        content={"detail": "Streak data unavailable; multiplier unknown", "multiplier": None},
    )


@lru_cache(maxsize=1)
def get_engine() -> StreakEngine:
    settings = get_settings()
    return StreakEngine(
        SupabaseEventLog(get_client()),
        lookback=settings.login_lookback,
        checkin_attempts=settings.checkin_attempts,
        retry_backoff=settings.checkin_backoff,
    )


@app.get("/health")
def health():
    try:
        db = get_client()
        db.table("login_events").select("user_id").limit(1).execute()
        return {"status": "ok", "db": "ok"}
    except Exception as e:
        logger.error("Health check DB failure: %s", e)
        raise HTTPException(status_code=503, detail="DB unavailable")


# ── Auth ──────────────────────────────────────────────────────────────────────

def get_auth_user_id(authorization: str = Header(...)) -> str:
    if not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing Bearer token")
    return authorization.removeprefix("Bearer ").strip()


def require_user(auth_user_id: str = Depends(get_auth_user_id)) -> str:
    """Resolve the Supabase auth id to the platform's internal user id."""
    user = get_user_by_auth_id(get_client(), auth_user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not registered")
    return user["id"]


# ── Tiers ─────────────────────────────────────────────────────────────────────

@app.get("/api/streak/tiers")
def get_tiers():
    return {
        "tiers": [
            {"min_streak": t.min_streak, "multiplier": t.multiplier, "label": t.label}
            for t in TIERS
        ],
        "milestones": list(MILESTONES),
    }


# ── Check-in ──────────────────────────────────────────────────────────────────

@app.post("/api/streak/check-in")
@limiter.limit("30/minute")
def check_in(request: Request, user_id: str = Depends(require_user)):
    """Called on session activation. Records today's login at most once."""
    state = get_engine().ensure_today_checked_in(user_id)
    return _state_payload(state)


@app.get("/api/streak/me")
def get_my_streak(user_id: str = Depends(require_user)):
    return _state_payload(get_engine().resolve_streak(user_id))


@app.get("/api/streak/{user_id}")
@limiter.limit("60/minute")
def get_streak(request: Request, user_id: str):
    state = get_engine().resolve_streak(user_id)
    return {
        "user_id": user_id,
        "current_streak": state.current_streak,
        "longest_streak": state.longest_streak,
        "multiplier": state.multiplier,
        "tier_label": state.tier_label,
    }


# ── Scores ────────────────────────────────────────────────────────────────────

@app.post("/api/scores")
@limiter.limit("60/minute")
def score(request: Request, body: ScoreRequest, user_id: str = Depends(require_user)):
    """Scale base scores by the streak multiplier, resolved once for the whole request."""
    state = get_engine().resolve_streak(user_id)
    try:
        results = [
            {"base_score": base, "scaled_score": apply_multiplier(base, state.multiplier)}
            for base in body.base_scores
        ]
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {
        "multiplier": state.multiplier,
        "current_streak": state.current_streak,
        "results": results,
    }


# ── Helpers ───────────────────────────────────────────────────────────────────

def _state_payload(state: StreakState) -> dict:
    payload = asdict(state)
    payload["last_login_date"] = state.last_login_date.isoformat() if state.last_login_date else None
    return payload
