"""
Runtime settings, read from the environment.
"""
import os
from dataclasses import dataclass, field
from functools import lru_cache

from .engine.tiers import max_threshold

DEFAULT_ORIGINS = [
    "https://decisionlab.app",
    "https://www.decisionlab.app",
    "http://localhost:5173",
]


@dataclass(frozen=True)
class Settings:
    supabase_url: str | None = None
    supabase_service_key: str | None = None
    # Most-recent login events fetched per streak computation
    login_lookback: int = field(default_factory=max_threshold)
    checkin_attempts: int = 2
    # Seconds slept before retry n is backoff * n
    checkin_backoff: float = 0.2
    allowed_origins: list[str] = field(default_factory=lambda: list(DEFAULT_ORIGINS))

    def __post_init__(self):
        # Streaks longer than the lookback cannot be seen, so the bound has to
        # cover the highest tier threshold.
        if self.login_lookback < max_threshold():
            raise ValueError(
                f"login_lookback={self.login_lookback} is below the highest tier "
                f"threshold ({max_threshold()} days)"
            )
        if self.checkin_attempts < 1:
            raise ValueError("checkin_attempts must be >= 1")
        if self.checkin_backoff < 0:
            raise ValueError("checkin_backoff must be >= 0")


def load_settings(env: dict[str, str] | None = None) -> Settings:
    env = os.environ if env is None else env
    kwargs: dict = {
        "supabase_url": env.get("SUPABASE_URL"),
        "supabase_service_key": env.get("SUPABASE_SERVICE_KEY"),
    }
    if env.get("STREAK_LOGIN_LOOKBACK"):
        kwargs["login_lookback"] = int(env["STREAK_LOGIN_LOOKBACK"])
    if env.get("STREAK_CHECKIN_ATTEMPTS"):
        kwargs["checkin_attempts"] = int(env["STREAK_CHECKIN_ATTEMPTS"])
    if env.get("STREAK_CHECKIN_BACKOFF"):
        kwargs["checkin_backoff"] = float(env["STREAK_CHECKIN_BACKOFF"])
    if env.get("ALLOWED_ORIGINS"):
        kwargs["allowed_origins"] = [o.strip() for o in env["ALLOWED_ORIGINS"].split(",") if o.strip()]
    return Settings(**kwargs)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
