"""Tests for next-occurrence calculation and due/reminder helpers."""

import pytest
from datetime import date, datetime, timezone
from decimal import Decimal

from ledger.models import Frequency, RecurringTransaction
from ledger.scheduling import is_due, next_occurrence, next_occurrence_for, reminder_date
from ledger.scheduling.recurrence import days_in_month, sunday_based_weekday

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def make_schedule(**overrides) -> RecurringTransaction:
    fields = dict(
        id="r1",
        owner_id="o1",
        amount=Decimal("100"),
        debit_account_id="rent",
        credit_account_id="bank",
        frequency=Frequency.MONTHLY,
        day_of_recurrence=5,
        start_date=date(2024, 1, 5),
        next_occurrence=date(2024, 2, 5),
        created_at=NOW,
        updated_at=NOW,
    )
    fields.update(overrides)
    return RecurringTransaction(**fields)


class TestCalendarHelpers:
    """Tests for small calendar helpers."""

    def test_days_in_february(self):
        """Test leap and non-leap Februaries."""
        assert days_in_month(2024, 2) == 29
        assert days_in_month(2023, 2) == 28

    def test_sunday_based_weekday(self):
        """Test Sunday is 0 and Saturday is 6."""
        assert sunday_based_weekday(date(2024, 6, 2)) == 0  # Sunday
        assert sunday_based_weekday(date(2024, 6, 1)) == 6  # Saturday


class TestNextOccurrence:
    """Tests for each frequency."""

    def test_daily(self):
        """Test daily crosses year boundaries."""
        assert next_occurrence("daily", 1, date(2023, 12, 31)) == date(2024, 1, 1)

    def test_weekly_same_weekday_moves_full_week(self):
        """Test a base already on the weekday advances 7 days, never returning itself."""
        base = date(2024, 6, 2)  # Sunday
        assert next_occurrence(Frequency.WEEKLY, 0, base) == date(2024, 6, 9)

    def test_weekly_later_in_week(self):
        """Test Saturday base with Monday recurrence lands two days later."""
        assert next_occurrence(Frequency.WEEKLY, 1, date(2024, 6, 1)) == date(2024, 6, 3)

    @pytest.mark.parametrize("year,expected", [
        (2023, date(2023, 2, 28)),
        (2024, date(2024, 2, 29)),
    ])
    def test_monthly_clamps_to_short_month(self, year, expected):
        """Test day 31 from Jan 31 lands on the last day of February."""
        assert next_occurrence(Frequency.MONTHLY, 31, date(year, 1, 31)) == expected

    def test_monthly_recovers_after_short_month(self):
        """Test day 31 returns to the 31st once the month allows it."""
        assert next_occurrence(
            Frequency.MONTHLY, 31, date(2023, 1, 31), date(2023, 2, 28)
        ) == date(2023, 3, 31)

    def test_monthly_wraps_year(self):
        """Test December advances to January of the next year."""
        assert next_occurrence(Frequency.MONTHLY, 15, date(2024, 12, 15)) == date(2025, 1, 15)

    def test_yearly_leap_day(self):
        """Test Feb 29 clamps to Feb 28 in a non-leap year."""
        assert next_occurrence(Frequency.YEARLY, 29, date(2024, 2, 29)) == date(2025, 2, 28)

    def test_last_created_date_is_the_base(self):
        """Test the last materialized date takes precedence over the start."""
        assert next_occurrence(
            Frequency.DAILY, 1, date(2024, 1, 1), date(2024, 3, 10)
        ) == date(2024, 3, 11)

    def test_next_occurrence_for_schedule(self):
        """Test recomputation from a schedule's own fields."""
        schedule = make_schedule(last_created_date=date(2024, 2, 5))
        assert next_occurrence_for(schedule) == date(2024, 3, 5)


class TestDueAndReminder:
    """Tests for is_due and reminder_date."""

    def test_due_on_next_occurrence(self):
        """Test an active schedule is due on its next occurrence."""
        assert is_due(make_schedule(), date(2024, 2, 5))

    def test_not_due_on_other_days(self):
        """Test nothing is due on any other day."""
        assert not is_due(make_schedule(), date(2024, 2, 4))

    def test_inactive_never_due(self):
        """Test a paused schedule is never due."""
        assert not is_due(make_schedule(is_active=False), date(2024, 2, 5))

    def test_not_due_after_end_date(self):
        """Test the end date bounds the schedule."""
        schedule = make_schedule(end_date=date(2024, 2, 1))
        assert not is_due(schedule, date(2024, 2, 5))

    def test_not_due_when_already_created_today(self):
        """Test a schedule materialized today is not due again."""
        schedule = make_schedule(last_created_date=date(2024, 2, 5))
        assert not is_due(schedule, date(2024, 2, 5))

    def test_reminder_date(self):
        """Test the reminder falls notify_before_days ahead."""
        assert reminder_date(make_schedule(notify_before_days=3)) == date(2024, 2, 2)

    def test_no_reminder_without_notify(self):
        """Test schedules without notify_before_days have no reminder."""
        assert reminder_date(make_schedule()) is None
