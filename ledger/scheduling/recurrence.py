"""
Recurrence Scheduler

Pure calendar arithmetic for recurring transactions. No storage, no clock
except where a caller passes ``today``.

The base date is the last materialized occurrence if there is one, otherwise
the schedule's start date. The result is always strictly after the base.
"""

import calendar
from datetime import date, timedelta
from typing import Optional

from ledger.models.transaction import Frequency, RecurringTransaction


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def sunday_based_weekday(day: date) -> int:
    """Weekday index with 0 = Sunday ... 6 = Saturday."""
    return (day.weekday() + 1) % 7


def _add_months(base: date, months: int, day_of_month: int) -> date:
    month_index = base.month - 1 + months
    year = base.year + month_index // 12
    month = month_index % 12 + 1
    return date(year, month, min(day_of_month, days_in_month(year, month)))


def next_occurrence(
    frequency: Frequency,
    day_of_recurrence: int,
    start_date: date,
    last_created_date: Optional[date] = None,
) -> date:
    """
    Calculate the next occurrence of a recurring schedule.

    - daily: the day after the base
    - weekly: the first date after the base on weekday ``day_of_recurrence``
      (0 = Sunday); a base already on that weekday moves a full week
    - monthly: one calendar month after the base, on ``day_of_recurrence``
      clamped to the length of that month (31 becomes Feb 28/29)
    - yearly: one calendar year after the base, same clamping
    """
    base = last_created_date or start_date
    frequency = Frequency(frequency)

    if frequency == Frequency.DAILY:
        return base + timedelta(days=1)

    if frequency == Frequency.WEEKLY:
        days_until_next = (day_of_recurrence - sunday_based_weekday(base)) % 7
        if days_until_next == 0:
            days_until_next = 7
        return base + timedelta(days=days_until_next)

    if frequency == Frequency.MONTHLY:
        return _add_months(base, 1, day_of_recurrence)

    # Yearly
    return _add_months(base, 12, day_of_recurrence)


def next_occurrence_for(schedule: RecurringTransaction) -> date:
    """Recompute ``next_occurrence`` from a schedule's own fields."""
    return next_occurrence(
        schedule.frequency,
        schedule.day_of_recurrence,
        schedule.start_date,
        schedule.last_created_date,
    )


def is_due(schedule: RecurringTransaction, today: date) -> bool:
    """
    Should a concrete transaction be materialized for this schedule today?

    True when the schedule is active, today is its next occurrence, today is
    inside [start_date, end_date], and nothing was created today already.
    """
    if not schedule.is_active:
        return False
    if today != schedule.next_occurrence:
        return False
    if today < schedule.start_date:
        return False
    if schedule.end_date and today > schedule.end_date:
        return False
    if schedule.last_created_date == today:
        return False
    return True


def reminder_date(schedule: RecurringTransaction) -> Optional[date]:
    """When to remind the owner ahead of the next occurrence, if at all."""
    if not schedule.notify_before_days:
        return None
    return schedule.next_occurrence - timedelta(days=schedule.notify_before_days)
