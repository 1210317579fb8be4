"""
Account Models

An Account is one entry in an owner's chart of accounts.

Balance behaviour by type:
- asset: balance increases with debits, decreases with credits
- liability: balance increases with credits, decreases with debits
- income / expense: NO balance stored, they are categories only

DESIGN DECISION: The "balance fields present iff balance-bearing" rule is
enforced by the model itself, so an Account that violates it can never be
constructed, whether it came from a request or from storage.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


class AccountType(str, Enum):
    """The four ledger account types."""
    ASSET = "asset"
    LIABILITY = "liability"
    INCOME = "income"
    EXPENSE = "expense"

    @property
    def has_balance(self) -> bool:
        return self in (AccountType.ASSET, AccountType.LIABILITY)


MAX_ACCOUNT_NAME_LENGTH = 200


class Account(BaseModel):
    """
    A ledger account as stored.

    Accounts are never hard-deleted. Deactivation keeps every historical
    transaction that references them valid.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Unique account ID"
    )
    owner_id: str = Field(
        ...,
        min_length=1,
        description="Owner of this account"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=MAX_ACCOUNT_NAME_LENGTH,
        description="Display name, unique per owner among active accounts"
    )
    account_type: AccountType

    # Immutable after creation
    parent_category: str = Field(..., min_length=1)
    sub_category: str = Field(..., min_length=1)

    # Only for asset/liability accounts
    opening_balance: Optional[Decimal] = None
    current_balance: Optional[Decimal] = None

    is_active: bool = True
    icon: Optional[str] = None
    color: Optional[str] = None

    created_at: datetime
    updated_at: datetime

    @model_validator(mode='after')
    def validate_balance_fields(self) -> 'Account':
        """Balance fields are present exactly for balance-bearing types."""
        if self.account_type.has_balance:
            if self.opening_balance is None or self.current_balance is None:
                raise ValueError(
                    f"{self.account_type.value} accounts must carry "
                    "opening_balance and current_balance"
                )
        else:
            if self.opening_balance is not None or self.current_balance is not None:
                raise ValueError(
                    f"{self.account_type.value} accounts cannot carry a balance"
                )
        return self

    @property
    def has_balance(self) -> bool:
        return self.account_type.has_balance

    def to_document(self) -> dict:
        """Fields to persist (the id is the document key)."""
        return self.model_dump(exclude={"id"})


class AccountUpdate(BaseModel):
    """
    Patch for an existing account.

    Only these fields may change. account_type, parent_category,
    sub_category and balances are rejected as unknown fields.
    """
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None
    is_active: Optional[bool] = None

    def is_set(self, field: str) -> bool:
        return field in self.model_fields_set
