"""
Streak engine error taxonomy.
"""


class StreakError(Exception):
    pass


class EventLogUnavailable(StreakError):
    """Reading or writing the login-event log failed. Not the same as "no history"."""


class ConcurrentCheckInRace(StreakError):
    """Another caller already recorded today's check-in for this user."""

    def __init__(self, user_id: str, day):
        super().__init__(f"login event for {user_id[:8]}... on {day} already exists")
        self.user_id = user_id
        self.day = day


class InvalidUser(StreakError):
    def __init__(self, user_id: str):
        super().__init__(f"unknown user: {user_id}")
        self.user_id = user_id
