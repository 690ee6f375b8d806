import threading
import time
from datetime import date, datetime

import pytest

from decisionlab.errors import ConcurrentCheckInRace, EventLogUnavailable


class InMemoryEventLog:
    """login_events stand-in with the same UNIQUE(user_id, day) behaviour as the real table."""

    def __init__(self, users=(), read_delay: float = 0.0):
        self.users = set(users)
        self.rows: list[tuple[str, date, datetime]] = []
        self.read_delay = read_delay
        self.fail_reads = 0
        self.fail_inserts = 0
        self.insert_attempts = 0
        self.before_insert = None
        self._lock = threading.Lock()

    def add(self, user_id: str, occurred_at: datetime) -> None:
        """Seed a row directly, bypassing the constraint (legacy duplicates)."""
        self.rows.append((user_id, occurred_at.date(), occurred_at))

    def user_exists(self, user_id: str) -> bool:
        return user_id in self.users

    def fetch_login_timestamps(self, user_id: str, limit: int) -> list[datetime]:
        if self.fail_reads:
            self.fail_reads -= 1
            raise EventLogUnavailable("read failed")
        with self._lock:
            stamps = sorted((ts for uid, _, ts in self.rows if uid == user_id), reverse=True)
        if self.read_delay:
            time.sleep(self.read_delay)
        return stamps[:limit]

    def insert_login_event(self, user_id: str, day: date, occurred_at: datetime) -> None:
        self.insert_attempts += 1
        if self.before_insert:
            hook, self.before_insert = self.before_insert, None
            hook()
        if self.fail_inserts:
            self.fail_inserts -= 1
            raise EventLogUnavailable("insert failed")
        with self._lock:
            if any(uid == user_id and d == day for uid, d, _ in self.rows):
                raise ConcurrentCheckInRace(user_id, day)
            self.rows.append((user_id, day, occurred_at))

    def count(self, user_id: str, day: date) -> int:
        return sum(1 for uid, d, _ in self.rows if uid == user_id and d == day)


@pytest.fixture
def event_log():
    return InMemoryEventLog(users={"user-aaaa-1111", "user-bbbb-2222"})


@pytest.fixture
def slow_event_log():
    """Reads sleep briefly so concurrent callers overlap between read and insert."""
    return InMemoryEventLog(users={"user-aaaa-1111"}, read_delay=0.01)
