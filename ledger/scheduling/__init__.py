"""Recurring schedule calculations."""

from ledger.scheduling.recurrence import (
    is_due,
    next_occurrence,
    next_occurrence_for,
    reminder_date,
)

__all__ = [
    "is_due",
    "next_occurrence",
    "next_occurrence_for",
    "reminder_date",
]
