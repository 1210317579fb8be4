"""
Transaction Models

DOUBLE-ENTRY RULE:
- debit_account_id: the account receiving value
- credit_account_id: the account giving value
- amount: always positive

Examples:
- Salary received: Debit Bank (asset), Credit Salary (income)
- Rent paid: Debit Rent (expense), Credit Bank (asset)
- Card bill paid: Debit Credit Card (liability), Credit Bank (asset)
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

# Raw date input accepted by patches; parsed and range-checked by the services
DateInput = Union[datetime, date, str]


# =============================================================================
# LEDGER TRANSACTIONS
# =============================================================================

class Transaction(BaseModel):
    """A recorded ledger transaction."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(..., min_length=1)
    owner_id: str = Field(..., min_length=1)
    date: datetime = Field(
        ...,
        description="When the transaction happened (UTC)"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Transaction value, always positive"
    )
    debit_account_id: str = Field(..., min_length=1)
    credit_account_id: str = Field(..., min_length=1)
    note: Optional[str] = None
    tags: Optional[list[str]] = None

    created_at: datetime
    updated_at: datetime

    @field_validator('note')
    @classmethod
    def blank_note_is_absent(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @field_validator('tags')
    @classmethod
    def empty_tags_are_absent(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        return v or None

    @model_validator(mode='after')
    def validate_sides(self) -> 'Transaction':
        if self.debit_account_id == self.credit_account_id:
            raise ValueError("Debit and credit accounts must be different")
        return self

    def account_ids(self) -> tuple[str, str]:
        return self.debit_account_id, self.credit_account_id

    def to_document(self) -> dict:
        return self.model_dump(exclude={"id"})


class TransactionUpdate(BaseModel):
    """
    Patch for an existing transaction.

    Presence matters: a field left out of the patch keeps its stored value,
    while ``note=None`` or a blank note explicitly clears the note.
    Values are validated by the ledger, not here, so that every rejection
    surfaces as an InvalidArgumentError.
    """
    model_config = ConfigDict(extra="forbid")

    date: Optional[DateInput] = None
    amount: Optional[Any] = None
    debit_account_id: Optional[str] = None
    credit_account_id: Optional[str] = None
    note: Optional[str] = None
    tags: Optional[list[str]] = None

    def is_set(self, field: str) -> bool:
        """Was this field supplied in the patch (even as None)?"""
        return field in self.model_fields_set


# =============================================================================
# RECURRING TRANSACTIONS
# =============================================================================

class Frequency(str, Enum):
    """How often a recurring transaction repeats."""
    DAILY = "daily"
    WEEKLY = "weekly"      # day_of_recurrence is a weekday, 0 = Sunday
    MONTHLY = "monthly"    # day_of_recurrence is a day of month, 1-31
    YEARLY = "yearly"      # day_of_recurrence is a day of month, 1-31


class RecurringTransaction(BaseModel):
    """
    A schedule that produces concrete transactions.

    CRITICAL: next_occurrence is derived. It is always the scheduler's output
    for (frequency, day_of_recurrence, start_date, last_created_date) and is
    never set by hand.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(..., min_length=1)
    owner_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    debit_account_id: str = Field(..., min_length=1)
    credit_account_id: str = Field(..., min_length=1)
    note: Optional[str] = None

    frequency: Frequency
    day_of_recurrence: int = Field(..., ge=0, le=31)
    start_date: date
    end_date: Optional[date] = None
    next_occurrence: date

    is_active: bool = True
    notify_before_days: Optional[int] = Field(default=None, gt=0)
    last_created_date: Optional[date] = None

    created_at: datetime
    updated_at: datetime

    @field_validator('note')
    @classmethod
    def blank_note_is_absent(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @model_validator(mode='after')
    def validate_schedule(self) -> 'RecurringTransaction':
        if self.debit_account_id == self.credit_account_id:
            raise ValueError("Debit and credit accounts must be different")
        if self.end_date and self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")
        return self

    def to_document(self) -> dict:
        return self.model_dump(exclude={"id"})


class RecurringTransactionUpdate(BaseModel):
    """Patch for a recurring transaction. Same presence rules as TransactionUpdate."""
    model_config = ConfigDict(extra="forbid")

    amount: Optional[Any] = None
    debit_account_id: Optional[str] = None
    credit_account_id: Optional[str] = None
    note: Optional[str] = None
    frequency: Optional[str] = None
    day_of_recurrence: Optional[int] = None
    start_date: Optional[DateInput] = None
    end_date: Optional[DateInput] = None
    is_active: Optional[bool] = None
    notify_before_days: Optional[int] = None

    def is_set(self, field: str) -> bool:
        return field in self.model_fields_set
