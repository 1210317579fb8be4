"""
Accounting Rules

Debit/credit sign conventions per account type.

    type        debit     credit
    asset       +amount   -amount
    liability   -amount   +amount
    income      0         0
    expense     0         0

Income and expense accounts are categories only. They never carry a balance,
so their effect is zero on either side.
"""

from decimal import Decimal

from ledger.models.account import AccountType


def has_balance(account_type: AccountType) -> bool:
    """True iff the account type stores opening/current balances."""
    return AccountType(account_type).has_balance


def effect(account_type: AccountType, amount: Decimal, is_debit: bool) -> Decimal:
    """
    Signed change a transaction side has on an account's balance.

    Args:
        account_type: Type of the account on this side
        amount: Transaction amount (always positive)
        is_debit: True for the debit side, False for the credit side

    Returns:
        The signed delta to add to ``current_balance``
    """
    account_type = AccountType(account_type)
    if not account_type.has_balance:
        return Decimal("0")

    amount = Decimal(amount)
    if account_type == AccountType.ASSET:
        return amount if is_debit else -amount

    # Liability
    return -amount if is_debit else amount


def reversal(account_type: AccountType, amount: Decimal, was_debit: bool) -> Decimal:
    """Delta that undoes a previously applied ``effect``."""
    return -effect(account_type, amount, was_debit)
