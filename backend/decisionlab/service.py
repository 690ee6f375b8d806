"""
StreakEngine — the one place that reads the login log and decides streaks.

Callers resolve the multiplier once per session/request and then scale
scores with engine.streak.apply_multiplier; nothing else touches raw
login rows.
"""
import logging
import threading
import time
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Protocol

from .engine.streak import StreakState, build_streak_state, login_dates, to_utc_date
from .errors import ConcurrentCheckInRace, EventLogUnavailable, InvalidUser

logger = logging.getLogger(__name__)


class EventLog(Protocol):
    def user_exists(self, user_id: str) -> bool: ...

    def fetch_login_timestamps(self, user_id: str, limit: int) -> list: ...

    def insert_login_event(self, user_id: str, day: date, occurred_at: datetime) -> None: ...


class StreakEngine:
    def __init__(self, event_log: EventLog, lookback: int, checkin_attempts: int = 2,
                 retry_backoff: float = 0.2):
        self.event_log = event_log
        self.lookback = lookback
        self.checkin_attempts = checkin_attempts
        self.retry_backoff = retry_backoff
        # user_id -> [lock, holders]; entries live only while a check-in is in flight
        self._locks: dict[str, list] = {}
        self._locks_guard = threading.Lock()

    def resolve_streak(self, user_id: str, now: datetime | None = None) -> StreakState:
        """Read-only streak view. Storage faults raise EventLogUnavailable."""
        today = to_utc_date(now or datetime.now(timezone.utc))
        self._require_user(user_id)
        timestamps = self.event_log.fetch_login_timestamps(user_id, self.lookback)
        return build_streak_state(timestamps, today)

    def ensure_today_checked_in(self, user_id: str, now: datetime | None = None) -> StreakState:
        """
        Record today's login if it is missing, then return the fresh state.
        At most one login event per user per UTC day; safe to call repeatedly.
        """
        now = now or datetime.now(timezone.utc)
        today = to_utc_date(now)
        self._require_user(user_id)

        attempt = 0
        with self._user_lock(user_id):
            while True:
                attempt += 1
                timestamps = self.event_log.fetch_login_timestamps(user_id, self.lookback)
                if today in login_dates(timestamps):
                    return build_streak_state(timestamps, today)

                try:
                    self.event_log.insert_login_event(user_id, today, now)
                except ConcurrentCheckInRace:
                    logger.info("Check-in for %s... on %s already recorded elsewhere", user_id[:8], today)
                    timestamps = self.event_log.fetch_login_timestamps(user_id, self.lookback)
                    return build_streak_state(timestamps, today)
                except EventLogUnavailable:
                    if attempt >= self.checkin_attempts:
                        raise
                    logger.warning("Check-in insert for %s... failed (attempt %d/%d), retrying",
                                   user_id[:8], attempt, self.checkin_attempts)
                    time.sleep(self.retry_backoff * attempt)
                    continue

                timestamps = self.event_log.fetch_login_timestamps(user_id, self.lookback)
                state = build_streak_state(timestamps, today, newly_checked_in=True)
                logger.info("Check-in recorded for %s... on %s: streak=%d multiplier=%.2fx",
                            user_id[:8], today, state.current_streak, state.multiplier)
                return state

    def _require_user(self, user_id: str) -> None:
        if not self.event_log.user_exists(user_id):
            raise InvalidUser(user_id)

    @contextmanager
    def _user_lock(self, user_id: str):
        with self._locks_guard:
            entry = self._locks.get(user_id)
            if entry is None:
                entry = self._locks[user_id] = [threading.Lock(), 0]
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[user_id]
