"""
Daily login streak tracking — pure functions, no DB access.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP, localcontext
from typing import Iterable

from .tiers import (
    TIERS, Tier, tier_for_streak, next_tier, tier_progress, milestones_reached,
)


@dataclass
class StreakState:
    current_streak: int
    longest_streak: int
    multiplier: float
    today_checked_in: bool
    last_login_date: date | None
    tier_label: str
    next_tier_min_streak: int | None
    next_tier_multiplier: float | None
    next_tier_label: str | None
    days_to_next_tier: int | None
    tier_progress: float
    milestones_reached: list[int] = field(default_factory=list)
    newly_checked_in: bool = False


def to_utc_date(ts: datetime | str) -> date:
    """Calendar date of a timestamp in UTC. Naive values are taken to be UTC already."""
    if isinstance(ts, str):
        ts = datetime.fromisoformat(ts.replace("Z", "+00:00"))
    if ts.tzinfo is not None:
        ts = ts.astimezone(timezone.utc)
    return ts.date()


def login_dates(timestamps: Iterable[datetime | str]) -> set[date]:
    """Reduce raw event timestamps to the set of distinct UTC days."""
    return {to_utc_date(ts) for ts in timestamps}


def compute_current_streak(dates: set[date], today: date) -> int:
    """
    Consecutive days ending today, or ending yesterday if today has no
    check-in yet. Zero when neither today nor yesterday is present.
    """
    day = today if today in dates else today - timedelta(days=1)
    streak = 0
    while day in dates:
        streak += 1
        day -= timedelta(days=1)
    return streak


def compute_longest_streak(dates: set[date]) -> int:
    longest = 0
    run = 0
    prev: date | None = None
    for day in sorted(dates):
        if prev is not None and day - prev == timedelta(days=1):
            run += 1
        else:
            run = 1
        longest = max(longest, run)
        prev = day
    return longest


def multiplier_for_streak(streak: int, tiers: list[Tier] = TIERS) -> float:
    return tier_for_streak(streak, tiers).multiplier


def build_streak_state(
    timestamps: Iterable[datetime | str],
    today: date,
    newly_checked_in: bool = False,
    tiers: list[Tier] = TIERS,
) -> StreakState:
    dates = login_dates(timestamps)
    current = compute_current_streak(dates, today)
    # A bounded fetch can cut the oldest run short; never report longest < current.
    longest = max(compute_longest_streak(dates), current)
    tier = tier_for_streak(current, tiers)
    upcoming = next_tier(current, tiers)

    return StreakState(
        current_streak=current,
        longest_streak=longest,
        multiplier=tier.multiplier,
        today_checked_in=today in dates,
        last_login_date=max(dates) if dates else None,
        tier_label=tier.label,
        next_tier_min_streak=upcoming.min_streak if upcoming else None,
        next_tier_multiplier=upcoming.multiplier if upcoming else None,
        next_tier_label=upcoming.label if upcoming else None,
        days_to_next_tier=upcoming.min_streak - current if upcoming else None,
        tier_progress=tier_progress(current, tiers),
        milestones_reached=milestones_reached(current),
        newly_checked_in=newly_checked_in,
    )


def apply_multiplier(base_score: int | float | Decimal, multiplier: float | Decimal) -> int:
    """
    Scale a score by an already-resolved streak multiplier.
    Ties round half away from zero: apply_multiplier(10, 1.25) == 13.
    """
    base = Decimal(str(base_score))
    factor = Decimal(str(multiplier))
    if not (base.is_finite() and factor.is_finite()):
        raise ValueError("base_score and multiplier must be finite")
    if base < 0:
        raise ValueError("base_score must be non-negative")
    if factor < 0:
        raise ValueError("multiplier must be non-negative")
    with localcontext() as ctx:
        # Enough digits for the exact product and its integer part, however large the score
        ctx.prec = max(
            ctx.prec,
            len(base.as_tuple().digits) + len(factor.as_tuple().digits)
            + max(base.as_tuple().exponent, 0) + max(factor.as_tuple().exponent, 0) + 1,
        )
        product = base * factor
        return int(product.quantize(Decimal(1), rounding=ROUND_HALF_UP))
