"""
Ledger Input Validation

DESIGN DECISION: The ledger re-validates every input, even when the calling
API layer already did. It is the last line of defense for the accounting
invariant.

All checks here are pure: no storage access. Checks that need stored data
(existence, ownership, active state, duplicate names) live in the services.

IMPORTANT: Validation NEVER silently fixes issues beyond trimming whitespace.
Every rejection raises InvalidArgumentError with a message fit for a user.
"""

import math
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Optional

from ledger.config import get_settings
from ledger.errors import InvalidArgumentError
from ledger.models.account import MAX_ACCOUNT_NAME_LENGTH, AccountType
from ledger.models.transaction import Frequency


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def require_text(value: Any, message: str) -> str:
    """Return the trimmed string, or reject None/blank/non-string input."""
    if not isinstance(value, str) or not value.strip():
        raise InvalidArgumentError(message)
    return value.strip()


def require_id(value: Any, label: str) -> str:
    return require_text(value, f"{label} is required")


def require_account_name(value: Any, message: str) -> str:
    """Trimmed account name, rejected when blank or longer than the stored limit."""
    name = require_text(value, message)
    if len(name) > MAX_ACCOUNT_NAME_LENGTH:
        raise InvalidArgumentError(
            f"Account name cannot be longer than {MAX_ACCOUNT_NAME_LENGTH} characters"
        )
    return name


def parse_account_type(value: Any) -> AccountType:
    try:
        return AccountType(value)
    except ValueError:
        raise InvalidArgumentError(f"Invalid account type: {value}")


def parse_frequency(value: Any) -> Frequency:
    try:
        return Frequency(value)
    except ValueError:
        raise InvalidArgumentError(f"Invalid frequency: {value}")


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    try:
        number = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        return None
    if not number.is_finite():
        return None
    return number


def parse_amount(value: Any) -> Decimal:
    """Transaction amounts must be positive numbers."""
    amount = _to_decimal(value)
    if amount is None or amount <= 0:
        raise InvalidArgumentError("Amount must be a positive number")
    return amount


def parse_opening_balance(value: Any) -> Decimal:
    """Opening balances default to zero and cannot be negative."""
    if value is None:
        return Decimal("0")
    balance = _to_decimal(value)
    if balance is None:
        raise InvalidArgumentError("Opening balance must be a number")
    if balance < 0:
        raise InvalidArgumentError("Opening balance cannot be negative")
    return balance


def require_distinct_accounts(debit_account_id: str, credit_account_id: str) -> None:
    if debit_account_id == credit_account_id:
        raise InvalidArgumentError("Debit and credit accounts must be different")


def parse_calendar_date(value: Any, label: str) -> date:
    """Parse a schedule date (date, datetime or ISO string)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            pass
    raise InvalidArgumentError(f"Invalid {label}")


def validate_day_of_recurrence(frequency: Frequency, day: Any) -> int:
    """Weekday 0-6 (0 = Sunday) for weekly, day of month 1-31 otherwise."""
    if isinstance(day, bool) or not isinstance(day, int):
        raise InvalidArgumentError("Day of recurrence must be a whole number")
    if frequency == Frequency.WEEKLY:
        if not 0 <= day <= 6:
            raise InvalidArgumentError(
                "Day of recurrence must be a weekday between 0 (Sunday) and 6"
            )
    elif not 1 <= day <= 31:
        raise InvalidArgumentError("Day of recurrence must be between 1 and 31")
    return day


def parse_notify_before_days(value: Any) -> Optional[int]:
    """None or 0 mean no reminder; negative values are rejected."""
    if value is None or value == 0:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgumentError("Notify before days must be a whole number")
    if value < 0:
        raise InvalidArgumentError("Notify before days must be 0 or positive")
    return value


def clean_note(value: Any) -> Optional[str]:
    """Trimmed note; None or blank means no note."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidArgumentError("Note must be text")
    return value.strip() or None


def clean_tags(value: Any) -> Optional[list[str]]:
    """A non-empty list of tags, or None."""
    if value is None:
        return None
    if not isinstance(value, (list, tuple)) or not all(isinstance(t, str) for t in value):
        raise InvalidArgumentError("Tags must be a list of strings")
    return list(value) or None


class LedgerValidator:
    """
    Validates values that depend on configuration or the current time.

    The clock is injectable so date limits are testable.
    """

    def __init__(
        self,
        max_future_days: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        if max_future_days is None:
            max_future_days = get_settings().ledger.max_future_days
        self._max_future_days = max_future_days
        self._clock = clock or utc_now

    def now(self) -> datetime:
        return self._clock()

    def parse_transaction_date(self, value: Any) -> datetime:
        """
        Parse a transaction date and check it is not too far in the future.

        Accepts datetime, date or ISO-8601 text. Naive values are taken as
        UTC. Dates up to ``max_future_days`` ahead are allowed for planned
        transactions.
        """
        if value is None or (isinstance(value, str) and not value.strip()):
            raise InvalidArgumentError("Transaction date is required")

        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, date):
            parsed = datetime.combine(value, time.min)
        elif isinstance(value, str):
            text = value.strip()
            if text.endswith("Z"):
                text = text[:-1] + "+00:00"
            try:
                parsed = datetime.fromisoformat(text)
            except ValueError:
                raise InvalidArgumentError("Invalid date format")
        else:
            raise InvalidArgumentError("Invalid date format")

        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        parsed = parsed.astimezone(timezone.utc)

        max_date = self.now() + timedelta(days=self._max_future_days)
        if parsed > max_date:
            raise InvalidArgumentError(
                f"Transaction date cannot be more than {self._max_future_days} "
                "days in the future"
            )
        return parsed
