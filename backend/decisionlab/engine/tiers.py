"""
Streak multiplier tiers — static configuration plus lookups.
"""
from dataclasses import dataclass


@dataclass(frozen=True)
class Tier:
    min_streak: int
    multiplier: float
    label: str


TIERS: list[Tier] = [
    Tier(1,   1.0,  "Base"),
    Tier(3,   1.25, "25% Bonus"),
    Tier(7,   1.5,  "50% Bonus"),
    Tier(14,  1.75, "75% Bonus"),
    Tier(30,  2.0,  "2x Bonus"),
    Tier(60,  2.5,  "2.5x Bonus"),
    Tier(100, 3.0,  "3x Bonus"),
]

# Streak lengths celebrated on the streak card
MILESTONES: tuple[int, ...] = (3, 7, 14, 30)


def validate_tiers(tiers: list[Tier]) -> None:
    if not tiers or tiers[0].min_streak != 1 or tiers[0].multiplier != 1.0:
        raise ValueError("tier table must start with the floor tier (1, 1.0)")
    for prev, cur in zip(tiers, tiers[1:]):
        if cur.min_streak <= prev.min_streak:
            raise ValueError(f"tier thresholds must be strictly ascending: {prev.min_streak} -> {cur.min_streak}")
        if cur.multiplier < prev.multiplier:
            raise ValueError(f"tier multipliers must not decrease: {prev.multiplier} -> {cur.multiplier}")


validate_tiers(TIERS)


def max_threshold(tiers: list[Tier] = TIERS) -> int:
    """Largest min_streak in the table; the event fetch must reach at least this far back."""
    return tiers[-1].min_streak


def tier_for_streak(streak: int, tiers: list[Tier] = TIERS) -> Tier:
    """Highest tier whose threshold the streak meets. Streak 0 falls back to the floor tier."""
    for tier in reversed(tiers):
        if streak >= tier.min_streak:
            return tier
    return tiers[0]


def next_tier(streak: int, tiers: list[Tier] = TIERS) -> Tier | None:
    for tier in tiers:
        if tier.min_streak > streak:
            return tier
    return None


def tier_progress(streak: int, tiers: list[Tier] = TIERS) -> float:
    """
    Fraction of the way from the previous threshold to the next one.
    Below the floor tier the previous threshold is 0; at the top tier it is 1.0.
    """
    upcoming = next_tier(streak, tiers)
    if upcoming is None:
        return 1.0
    idx = tiers.index(upcoming)
    floor = tiers[idx - 1].min_streak if idx > 0 else 0
    return (streak - floor) / (upcoming.min_streak - floor)


def milestones_reached(streak: int) -> list[int]:
    return [m for m in MILESTONES if streak >= m]
