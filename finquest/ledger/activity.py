"""
Daily activity log and streaks.

A user "checks in" on a calendar day by adding any transaction (whatever its
date) or by logging a no-spend day. The log is a set of ISO dates.
"""

from datetime import date, timedelta
from typing import Iterable, Optional


def today_key(today: Optional[date] = None) -> str:
    return (today or date.today()).isoformat()


def needs_checkin(activity_log: Iterable[str], today: Optional[date] = None) -> bool:
    """True if today has not been logged yet."""
    return today_key(today) not in set(activity_log)


def compute_streaks(
    activity_log: Iterable[str],
    today: Optional[date] = None,
) -> tuple[int, int]:
    """
    Return (current_streak, longest_streak) in days.

    The current streak survives until the end of the day after the last
    check-in; after that it drops to 0.
    """
    days = sorted({date.fromisoformat(d) for d in activity_log})
    if not days:
        return 0, 0

    current = longest = 1
    for previous, day in zip(days, days[1:]):
        if day - previous == timedelta(days=1):
            current += 1
        else:
            current = 1
        longest = max(longest, current)

    today = today or date.today()
    if (today - days[-1]).days > 1:
        current = 0

    return current, longest
