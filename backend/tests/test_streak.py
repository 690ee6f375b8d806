from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from decisionlab.engine.streak import (
    apply_multiplier, build_streak_state, compute_current_streak,
    compute_longest_streak, login_dates, multiplier_for_streak, to_utc_date,
)

TODAY = date(2026, 2, 27)


def days_ago(*offsets: int) -> set[date]:
    return {TODAY - timedelta(days=n) for n in offsets}


def stamps(*offsets: int) -> list[str]:
    """ISO timestamps at midday UTC, newest first, like the event-log read returns."""
    return [f"{(TODAY - timedelta(days=n)).isoformat()}T12:00:00+00:00" for n in sorted(offsets)]


class TestToUtcDate:
    def test_z_suffix(self):
        assert to_utc_date("2026-02-27T23:59:59Z") == date(2026, 2, 27)

    def test_offset_is_converted_to_utc(self):
        # 01:30 in UTC+02:00 is still the previous UTC day
        assert to_utc_date("2026-02-28T01:30:00+02:00") == date(2026, 2, 27)

    def test_naive_datetime_taken_as_utc(self):
        assert to_utc_date(datetime(2026, 2, 27, 23, 0)) == date(2026, 2, 27)

    def test_aware_datetime(self):
        ts = datetime(2026, 2, 27, 22, 0, tzinfo=timezone(timedelta(hours=-5)))
        assert to_utc_date(ts) == date(2026, 2, 28)

    def test_date_only_string(self):
        assert to_utc_date("2026-02-27") == date(2026, 2, 27)


class TestLoginDates:
    def test_same_day_events_deduplicated(self):
        dates = login_dates([
            "2026-02-27T08:00:00+00:00",
            "2026-02-27T20:00:00+00:00",
            "2026-02-26T10:00:00+00:00",
        ])
        assert dates == {date(2026, 2, 27), date(2026, 2, 26)}

    def test_empty(self):
        assert login_dates([]) == set()


class TestComputeCurrentStreak:
    def test_run_ending_today(self):
        for n in (1, 2, 5, 30):
            assert compute_current_streak(days_ago(*range(n)), TODAY) == n

    def test_run_ending_yesterday_is_not_broken(self):
        for n in (1, 3, 10):
            assert compute_current_streak(days_ago(*range(1, n + 1)), TODAY) == n

    def test_neither_today_nor_yesterday_is_zero(self):
        assert compute_current_streak(days_ago(2, 3, 4, 5, 6), TODAY) == 0

    def test_gap_stops_the_walk(self):
        assert compute_current_streak(days_ago(0, 1, 2, 4, 5), TODAY) == 3

    def test_no_history(self):
        assert compute_current_streak(set(), TODAY) == 0


class TestComputeLongestStreak:
    def test_longest_run_in_history(self):
        assert compute_longest_streak(days_ago(0, 1, 5, 6, 7, 8, 20)) == 4

    def test_single_day(self):
        assert compute_longest_streak(days_ago(10)) == 1

    def test_empty(self):
        assert compute_longest_streak(set()) == 0


class TestMultiplierForStreak:
    @pytest.mark.parametrize("streak,expected", [
        (0, 1.0), (1, 1.0), (2, 1.0), (3, 1.25), (6, 1.25), (7, 1.5),
        (13, 1.5), (14, 1.75), (30, 2.0), (59, 2.0), (60, 2.5), (100, 3.0), (365, 3.0),
    ])
    def test_tier_boundaries(self, streak, expected):
        assert multiplier_for_streak(streak) == expected

    def test_monotonic_non_decreasing(self):
        values = [multiplier_for_streak(s) for s in range(0, 150)]
        assert values == sorted(values)


class TestBuildStreakState:
    def test_seven_consecutive_days_including_today(self):
        state = build_streak_state(stamps(0, 1, 2, 3, 4, 5, 6), TODAY)
        assert state.current_streak == 7
        assert state.multiplier == 1.5
        assert state.today_checked_in is True
        assert state.tier_label == "50% Bonus"

    def test_three_days_ending_yesterday(self):
        state = build_streak_state(stamps(1, 2, 3), TODAY)
        assert state.current_streak == 3
        assert state.multiplier == 1.25
        assert state.today_checked_in is False
        assert state.last_login_date == TODAY - timedelta(days=1)

    def test_single_old_event(self):
        state = build_streak_state(stamps(10), TODAY)
        assert state.current_streak == 0
        assert state.longest_streak == 1
        assert state.multiplier == 1.0

    def test_no_events(self):
        state = build_streak_state([], TODAY)
        assert state.current_streak == 0
        assert state.longest_streak == 0
        assert state.multiplier == 1.0
        assert state.last_login_date is None
        assert state.milestones_reached == []

    def test_longest_never_below_current(self):
        state = build_streak_state(stamps(*range(12)), TODAY)
        assert state.longest_streak >= state.current_streak == 12

    def test_longest_from_older_run(self):
        state = build_streak_state(stamps(0, 10, 11, 12, 13, 14), TODAY)
        assert state.current_streak == 1
        assert state.longest_streak == 5

    def test_next_tier_and_progress(self):
        state = build_streak_state(stamps(0, 1, 2, 3), TODAY)
        assert state.next_tier_min_streak == 7
        assert state.next_tier_multiplier == 1.5
        assert state.next_tier_label == "50% Bonus"
        assert state.days_to_next_tier == 3
        assert state.tier_progress == pytest.approx(0.25)
        assert state.milestones_reached == [3]

    def test_top_tier_has_no_next(self):
        state = build_streak_state(stamps(*range(100)), TODAY)
        assert state.multiplier == 3.0
        assert state.next_tier_min_streak is None
        assert state.days_to_next_tier is None
        assert state.tier_progress == 1.0
        assert state.milestones_reached == [3, 7, 14, 30]

    def test_newly_checked_in_flag_passthrough(self):
        assert build_streak_state(stamps(0), TODAY, newly_checked_in=True).newly_checked_in is True
        assert build_streak_state(stamps(0), TODAY).newly_checked_in is False


class TestApplyMultiplier:
    def test_basic(self):
        assert apply_multiplier(100, 1.5) == 150

    def test_zero_score(self):
        assert apply_multiplier(0, 3.0) == 0

    def test_rounds_down_below_half(self):
        assert apply_multiplier(33, 1.25) == 41  # 41.25

    def test_ties_round_away_from_zero(self):
        assert apply_multiplier(10, 1.25) == 13  # 12.5
        assert apply_multiplier(2, 1.25) == 3    # 2.5
        assert apply_multiplier(1, 2.5) == 3     # 2.5, not banker's 2

    def test_no_float_drift(self):
        # 1.15 * 10 is 11.499999... in binary floating point
        assert apply_multiplier(10, 1.15) == 12  # 11.5

    def test_decimal_input(self):
        assert apply_multiplier(Decimal("12.4"), 1.25) == 16  # 15.5

    def test_negative_score_rejected(self):
        with pytest.raises(ValueError):
            apply_multiplier(-1, 1.5)

    def test_negative_multiplier_rejected(self):
        with pytest.raises(ValueError):
            apply_multiplier(10, -1.0)

    def test_large_scores_keep_full_precision(self):
        assert apply_multiplier(10**28, 1.5) == 15 * 10**27
        assert apply_multiplier(Decimal("1e30"), 3.0) == 3 * 10**30
        assert apply_multiplier(10**40 + 1, 2.5) == 25 * 10**39 + 3  # ...2.5 rounds up

    def test_non_finite_rejected(self):
        for bad in (float("inf"), float("nan"), Decimal("NaN")):
            with pytest.raises(ValueError):
                apply_multiplier(bad, 1.5)
        with pytest.raises(ValueError):
            apply_multiplier(10, float("inf"))
