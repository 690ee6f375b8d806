"""
Recompute a user's login streak from their full login history.

Reads every row in login_events (not just the bounded lookback the API
uses) and reports what the engine sees versus the full history. Read-only;
safe to run at any time.

Usage:
    cd backend
    SUPABASE_URL=... SUPABASE_SERVICE_KEY=... python scripts/recompute_streak.py <user_id> [--as-of YYYY-MM-DD]

Or with a .env file in the working directory.
"""
import os
import sys
from datetime import date, datetime, timezone

from dotenv import load_dotenv

load_dotenv()

# Add project root to path so we can import engine modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from decisionlab.config import get_settings
from decisionlab.db import get_client, user_exists, fetch_all_login_days
from decisionlab.engine.streak import build_streak_state, login_dates


def compute_report(days: list[str], today: date, lookback: int) -> dict:
    """
    Compare the full-history streak with what the bounded lookback yields.
    `days` is the complete history, oldest first.
    """
    full = build_streak_state(days, today)
    bounded = build_streak_state(days[-lookback:], today)
    return {
        "distinct_days": len(login_dates(days)),
        "total_rows": len(days),
        "current_streak": full.current_streak,
        "longest_streak": full.longest_streak,
        "multiplier": full.multiplier,
        "tier_label": full.tier_label,
        "days_to_next_tier": full.days_to_next_tier,
        "today_checked_in": full.today_checked_in,
        "bounded_current_streak": bounded.current_streak,
        "bounded_longest_streak": bounded.longest_streak,
    }


def run(user_id: str, as_of: date | None = None):
    today = as_of or datetime.now(timezone.utc).date()
    settings = get_settings()
    print(f"\n🔍 Recomputing streak for user: {user_id[:8]}... (as of {today})\n")

    db = get_client()
    if not user_exists(db, user_id):
        print(f"❌ User not found: {user_id}")
        sys.exit(1)

    days = fetch_all_login_days(db, user_id)
    if not days:
        print("  No login events found — streak is 0.")
        return

    report = compute_report(days, today, settings.login_lookback)
    for k, v in report.items():
        print(f"    {k}: {v}")

    if report["total_rows"] != report["distinct_days"]:
        print(f"\n  ⚠️  {report['total_rows'] - report['distinct_days']} duplicate day rows — "
              "check the UNIQUE(user_id, day) constraint on login_events.")
    if report["bounded_longest_streak"] < report["longest_streak"]:
        print(f"\n  ℹ️  Lookback of {settings.login_lookback} events under-reports longest_streak "
              f"({report['bounded_longest_streak']} vs {report['longest_streak']}).")
    print()


if __name__ == "__main__":
    args = sys.argv[1:]
    as_of = None
    if "--as-of" in args:
        i = args.index("--as-of")
        as_of = date.fromisoformat(args[i + 1])
        args = args[:i] + args[i + 2:]

    if not args:
        print("Usage: python scripts/recompute_streak.py <user_id> [--as-of YYYY-MM-DD]")
        sys.exit(1)

    run(args[0], as_of=as_of)
