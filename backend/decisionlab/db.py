import logging
from datetime import date, datetime
from functools import lru_cache

from supabase import create_client, Client

from .config import get_settings
from .errors import ConcurrentCheckInRace, EventLogUnavailable

logger = logging.getLogger(__name__)

PAGE_SIZE = 1000  # Supabase row limit per request


@lru_cache(maxsize=1)
def get_client() -> Client:
    settings = get_settings()
    if not settings.supabase_url or not settings.supabase_service_key:
        raise RuntimeError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set")
    return create_client(settings.supabase_url, settings.supabase_service_key)


def is_unique_violation(exc: Exception) -> bool:
    if getattr(exc, "code", None) == "23505":
        return True
    err_str = str(exc).lower()
    return "duplicate" in err_str or "unique" in err_str or "23505" in err_str


def is_invalid_id(exc: Exception) -> bool:
    """users.id is a uuid; Postgres rejects malformed text with 22P02."""
    if getattr(exc, "code", None) == "22P02":
        return True
    err_str = str(exc).lower()
    return "22p02" in err_str or "invalid input syntax for type uuid" in err_str


def get_user_by_auth_id(db: Client, auth_user_id: str) -> dict | None:
    """Map a Supabase auth user id onto the platform's users row."""
    try:
        res = db.table("users").select("id").eq("supabase_user_id", auth_user_id).limit(1).execute()
    except Exception as e:
        if is_invalid_id(e):
            return None
        logger.error("User lookup failed for auth id %s...: %s", auth_user_id[:8], e)
        raise EventLogUnavailable("user lookup failed") from e
    return res.data[0] if res.data else None


def user_exists(db: Client, user_id: str) -> bool:
    try:
        res = db.table("users").select("id").eq("id", user_id).limit(1).execute()
    except Exception as e:
        if is_invalid_id(e):
            return False
        logger.error("User existence check failed for %s...: %s", user_id[:8], e)
        raise EventLogUnavailable("user lookup failed") from e
    return bool(res.data)


def fetch_login_timestamps(db: Client, user_id: str, limit: int) -> list[str]:
    """Most-recent `limit` login timestamps for a user, newest first."""
    try:
        res = (
            db.table("login_events")
            .select("occurred_at")
            .eq("user_id", user_id)
            .order("occurred_at", desc=True)
            .limit(limit)
            .execute()
        )
    except Exception as e:
        logger.error("Login event read failed for %s...: %s", user_id[:8], e)
        raise EventLogUnavailable("login event read failed") from e
    return [row["occurred_at"] for row in (res.data or [])]


def insert_login_event(db: Client, user_id: str, day: date, occurred_at: datetime) -> None:
    """
    Insert the (user_id, day) check-in. The table carries UNIQUE(user_id, day),
    so a second writer for the same day gets ConcurrentCheckInRace.
    """
    try:
        db.table("login_events").insert({
            "user_id": user_id,
            "day": day.isoformat(),
            "occurred_at": occurred_at.isoformat(),
        }).execute()
    except Exception as e:
        if is_unique_violation(e):
            raise ConcurrentCheckInRace(user_id, day) from e
        logger.error("Login event insert failed for %s... on %s: %s", user_id[:8], day, e)
        raise EventLogUnavailable("login event insert failed") from e


def fetch_all_login_days(db: Client, user_id: str) -> list[str]:
    """Full login history for a user, oldest first, fetched in pages."""
    days: list[str] = []
    offset = 0
    while True:
        try:
            res = (
                db.table("login_events")
                .select("day")
                .eq("user_id", user_id)
                .order("day")
                .range(offset, offset + PAGE_SIZE - 1)
                .execute()
            )
        except Exception as e:
            raise EventLogUnavailable("login history read failed") from e
        batch = res.data or []
        days.extend(row["day"] for row in batch)
        if len(batch) < PAGE_SIZE:
            break
        offset += PAGE_SIZE
    return days


class SupabaseEventLog:
    """Login-event log backed by the Supabase `users` and `login_events` tables."""

    def __init__(self, db: Client):
        self.db = db

    def user_exists(self, user_id: str) -> bool:
        return user_exists(self.db, user_id)

    def fetch_login_timestamps(self, user_id: str, limit: int) -> list[str]:
        return fetch_login_timestamps(self.db, user_id, limit)

    def insert_login_event(self, user_id: str, day: date, occurred_at: datetime) -> None:
        insert_login_event(self.db, user_id, day, occurred_at)
