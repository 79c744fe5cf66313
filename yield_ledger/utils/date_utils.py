"""Date manipulation utilities

All persisted timestamps are naive UTC. Day boundaries are UTC midnights.
"""

from datetime import datetime, time, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time as naive UTC"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Normalize an aware datetime to naive UTC; naive values are assumed UTC"""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def utc_day_start(value: datetime) -> datetime:
    """UTC midnight of the day containing value"""
    return datetime.combine(to_naive_utc(value).date(), time.min)


def days_between(earlier: Optional[datetime], later: datetime) -> int:
    """
    Number of UTC midnights crossed going from earlier to later.

    Monday 18:00 -> Tuesday 00:01 is one day; Tuesday 00:01 -> Tuesday 23:59
    is zero. Never negative.
    """
    if earlier is None:
        return 0
    days = (to_naive_utc(later).date() - to_naive_utc(earlier).date()).days
    return max(days, 0)

