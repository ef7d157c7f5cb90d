"""Calendar helpers for subscription windows."""

import math
from datetime import datetime, timezone
from typing import Optional

from dateutil.relativedelta import relativedelta


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes.

    SQLite hands back naive values even for ``DateTime(timezone=True)``
    columns; everything stored by this service is UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def add_months(start: datetime, months: int) -> datetime:
    """Advance ``start`` by whole calendar months.

    Days past the end of the target month are clamped to its last day, so
    Jan 31 + 1 month is Feb 28 (or Feb 29 in a leap year).
    """
    if months < 0:
        raise ValueError("months must be non-negative")
    return start + relativedelta(months=months)


def days_remaining(end_date: Optional[datetime], now: Optional[datetime] = None) -> Optional[int]:
    """Whole days left until ``end_date``, rounded up. Negative once past."""
    if end_date is None:
        return None
    now = now or utcnow()
    seconds = (as_utc(end_date) - as_utc(now)).total_seconds()
    return math.ceil(seconds / 86400)
