"""Calendar-day bucketing and consecutive-day streak counting."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Optional, Set

__all__ = ["active_days", "current_streak", "day_of"]


def day_of(timestamp: datetime) -> date:
    """Return the UTC calendar day of a timestamp (naive values are taken as UTC)."""

    if timestamp.tzinfo is None:
        return timestamp.date()
    return timestamp.astimezone(timezone.utc).date()


def active_days(
    timestamps: Iterable[datetime], *, since: Optional[date] = None
) -> Set[date]:
    days = {day_of(ts) for ts in timestamps}
    if since is not None:
        days = {day for day in days if day >= since}
    return days


def current_streak(days: Set[date], *, today: date, cap: Optional[int] = None) -> int:
    """Count consecutive active days walking backward from ``today``.

    Stops at the first day without an entry, or at ``cap`` when given. A day
    with no entry today means the streak is zero.
    """

    streak = 0
    cursor = today
    while cursor in days:
        if cap is not None and streak >= cap:
            break
        streak += 1
        cursor -= timedelta(days=1)
    return streak
