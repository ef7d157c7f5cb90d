"""Tests for calendar month arithmetic and remaining-days rounding."""

import pytest
import sys
import os
from datetime import datetime, timedelta, timezone

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from portal.dates import add_months, as_utc, days_remaining


def _utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


class TestAddMonths:
    """Subscription windows advance by whole calendar months."""

    def test_plain_month(self):
        assert add_months(_utc(2025, 3, 15, 10, 30), 1) == _utc(2025, 4, 15, 10, 30)

    def test_end_of_month_clamps_to_february(self):
        """Jan 31 + 1 month lands on the last day of February."""
        assert add_months(_utc(2025, 1, 31), 1) == _utc(2025, 2, 28)

    def test_leap_year_february(self):
        assert add_months(_utc(2024, 1, 31), 1) == _utc(2024, 2, 29)

    def test_crosses_year(self):
        assert add_months(_utc(2025, 11, 30), 3) == _utc(2026, 2, 28)

    def test_twelve_months(self):
        assert add_months(_utc(2024, 2, 29), 12) == _utc(2025, 2, 28)

    def test_zero_months_is_identity(self):
        start = _utc(2025, 6, 1)
        assert add_months(start, 0) == start

    def test_negative_months_rejected(self):
        with pytest.raises(ValueError):
            add_months(_utc(2025, 6, 1), -1)


class TestDaysRemaining:
    """Days left are rounded up so a partial day still counts."""

    def test_rounds_up_partial_day(self):
        now = _utc(2025, 1, 1)
        assert days_remaining(now + timedelta(days=2, hours=1), now) == 3

    def test_exact_days(self):
        now = _utc(2025, 1, 1)
        assert days_remaining(now + timedelta(days=5), now) == 5

    def test_negative_once_past(self):
        now = _utc(2025, 1, 10)
        assert days_remaining(now - timedelta(days=2), now) == -2

    def test_none_end_date(self):
        assert days_remaining(None) is None

    def test_naive_end_date_treated_as_utc(self):
        now = _utc(2025, 1, 1)
        assert days_remaining(datetime(2025, 1, 2), now) == 1


class TestAsUtc:
    def test_naive_gets_utc(self):
        assert as_utc(datetime(2025, 1, 1)).tzinfo == timezone.utc

    def test_other_offset_is_converted(self):
        plus_three = timezone(timedelta(hours=3))
        value = datetime(2025, 1, 1, 3, 0, tzinfo=plus_three)
        assert as_utc(value) == _utc(2025, 1, 1, 0, 0)
