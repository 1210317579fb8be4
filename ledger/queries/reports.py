"""
Period Reports

DESIGN DECISION: Reports are DETERMINISTIC and computed from history only.
Opening and closing balances are recomputed from each account's opening
balance and its transactions, never read from the stored current_balance.
That way a report for a past period does not depend on what happened since.

Periods are inclusive calendar-date ranges. Transaction dates are compared
by their UTC calendar date.

Report layout:
- categories: grouped by account type (asset, liability, income, expense),
  then parent_category, then sub_category
- expenses / income: totals per (parent_category, sub_category) of expense
  debits and income credits inside the period
"""

import calendar
from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Iterable, Optional

from pydantic import BaseModel, Field

from ledger.errors import InvalidArgumentError
from ledger.models.account import Account, AccountType
from ledger.models.transaction import Transaction
from ledger.queries.reconciliation import recompute_balance
from ledger.services.common import read_all
from ledger.services.storage import ACCOUNTS, TRANSACTIONS, DocumentStore
from ledger.validation.validator import parse_calendar_date, require_id

ZERO = Decimal("0")

# Report section order
ACCOUNT_TYPE_ORDER = [
    AccountType.ASSET,
    AccountType.LIABILITY,
    AccountType.INCOME,
    AccountType.EXPENSE,
]


# =============================================================================
# REPORT MODELS
# =============================================================================

class SubCategoryReport(BaseModel):
    """Activity of the accounts sharing one sub-category."""
    sub_category: str
    account_ids: list[str]
    opening_balance: Decimal = ZERO
    closing_balance: Decimal = ZERO
    total_debits: Decimal = ZERO
    total_credits: Decimal = ZERO
    net_change: Decimal = ZERO
    transaction_count: int = 0


class CategoryReport(BaseModel):
    category: str
    account_type: AccountType
    sub_categories: list[SubCategoryReport] = Field(default_factory=list)
    total_opening_balance: Decimal = ZERO
    total_closing_balance: Decimal = ZERO
    transaction_count: int = 0


class CategoryTotal(BaseModel):
    """Expense or income total for one (category, sub-category) pair."""
    category: str
    sub_category: str
    total: Decimal = ZERO
    transaction_ids: list[str] = Field(default_factory=list)


class PeriodReport(BaseModel):
    start_date: date
    end_date: date
    categories: list[CategoryReport] = Field(default_factory=list)
    expenses: list[CategoryTotal] = Field(default_factory=list)
    income: list[CategoryTotal] = Field(default_factory=list)
    total_opening_balance: Decimal = ZERO
    total_closing_balance: Decimal = ZERO
    transaction_count: int = 0


# =============================================================================
# PURE HELPERS
# =============================================================================

def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last calendar day of a month."""
    if not 1 <= month <= 12:
        raise InvalidArgumentError("Month must be between 1 and 12")
    return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])


def transactions_in_range(
    transactions: Iterable[Transaction],
    start: date,
    end: date,
) -> list[Transaction]:
    """Transactions dated within [start, end], both days included."""
    return [t for t in transactions if start <= t.date.date() <= end]


def transactions_for_month(
    transactions: Iterable[Transaction],
    year: int,
    month: int,
) -> list[Transaction]:
    start, end = month_bounds(year, month)
    return transactions_in_range(transactions, start, end)


def opening_balance_at(
    account: Account,
    transactions: Iterable[Transaction],
    start: date,
) -> Optional[Decimal]:
    """Balance before any transaction dated ``start`` (None for income/expense)."""
    return recompute_balance(account, transactions, as_of=start - timedelta(days=1))


def closing_balance_at(
    account: Account,
    transactions: Iterable[Transaction],
    end: date,
) -> Optional[Decimal]:
    """Balance after every transaction dated up to and including ``end``."""
    return recompute_balance(account, transactions, as_of=end)


def category_totals(
    accounts: Iterable[Account],
    transactions: Iterable[Transaction],
    start: date,
    end: date,
) -> tuple[list[CategoryTotal], list[CategoryTotal]]:
    """
    Expense and income totals inside the period.

    An expense is a transaction debiting an expense account; income is one
    crediting an income account. Both lists are sorted by category, then
    sub-category.

    Returns:
        (expenses, income)
    """
    by_id = {account.id: account for account in accounts}
    expenses: dict[tuple[str, str], CategoryTotal] = {}
    income: dict[tuple[str, str], CategoryTotal] = {}

    def add(bucket: dict, account: Account, txn: Transaction) -> None:
        key = (account.parent_category, account.sub_category)
        total = bucket.setdefault(key, CategoryTotal(category=key[0], sub_category=key[1]))
        total.total += txn.amount
        total.transaction_ids.append(txn.id)

    for txn in transactions_in_range(transactions, start, end):
        debit = by_id.get(txn.debit_account_id)
        credit = by_id.get(txn.credit_account_id)
        if debit is not None and debit.account_type == AccountType.EXPENSE:
            add(expenses, debit, txn)
        if credit is not None and credit.account_type == AccountType.INCOME:
            add(income, credit, txn)

    return (
        [expenses[key] for key in sorted(expenses)],
        [income[key] for key in sorted(income)],
    )


def _sub_category_report(
    name: str,
    accounts: list[Account],
    all_transactions: list[Transaction],
    period_transactions: list[Transaction],
    start: date,
    end: date,
) -> SubCategoryReport:
    account_ids = [account.id for account in accounts]
    report = SubCategoryReport(sub_category=name, account_ids=account_ids)

    for account in accounts:
        if account.has_balance:
            report.opening_balance += opening_balance_at(account, all_transactions, start)
            report.closing_balance += closing_balance_at(account, all_transactions, end)

    for txn in period_transactions:
        touched = False
        if txn.debit_account_id in account_ids:
            report.total_debits += txn.amount
            touched = True
        if txn.credit_account_id in account_ids:
            report.total_credits += txn.amount
            touched = True
        if touched:
            report.transaction_count += 1

    # Balance-bearing groups move by their balances, categories by their activity
    if accounts[0].has_balance:
        report.net_change = report.closing_balance - report.opening_balance
    else:
        report.net_change = report.total_debits - report.total_credits
    return report


def generate_report(
    accounts: Iterable[Account],
    transactions: Iterable[Transaction],
    start: date,
    end: date,
) -> PeriodReport:
    """
    Build the report for an inclusive date range.

    Every account passed in is included (inactive ones too, their history
    still counts). Categories with no accounts are left out.
    """
    if start > end:
        raise InvalidArgumentError("Start date must be on or before end date")

    accounts = list(accounts)
    transactions = list(transactions)
    period_transactions = transactions_in_range(transactions, start, end)

    grouped: dict[AccountType, dict[str, dict[str, list[Account]]]] = defaultdict(
        lambda: defaultdict(lambda: defaultdict(list))
    )
    for account in accounts:
        grouped[account.account_type][account.parent_category][account.sub_category].append(
            account
        )

    report = PeriodReport(
        start_date=start,
        end_date=end,
        transaction_count=len(period_transactions),
    )

    for account_type in ACCOUNT_TYPE_ORDER:
        for category_name in sorted(grouped.get(account_type, {})):
            sub_categories = grouped[account_type][category_name]
            category = CategoryReport(category=category_name, account_type=account_type)
            for sub_name in sorted(sub_categories):
                sub_report = _sub_category_report(
                    sub_name,
                    sub_categories[sub_name],
                    transactions,
                    period_transactions,
                    start,
                    end,
                )
                category.sub_categories.append(sub_report)
                category.total_opening_balance += sub_report.opening_balance
                category.total_closing_balance += sub_report.closing_balance
                category.transaction_count += sub_report.transaction_count

            report.categories.append(category)
            report.total_opening_balance += category.total_opening_balance
            report.total_closing_balance += category.total_closing_balance

    report.expenses, report.income = category_totals(accounts, transactions, start, end)
    return report


def generate_monthly_report(
    accounts: Iterable[Account],
    transactions: Iterable[Transaction],
    year: int,
    month: int,
) -> PeriodReport:
    start, end = month_bounds(year, month)
    return generate_report(accounts, transactions, start, end)


def available_months(transactions: Iterable[Transaction]) -> list[tuple[int, int]]:
    """(year, month) pairs that have transactions, newest first."""
    return sorted({(t.date.year, t.date.month) for t in transactions}, reverse=True)


# =============================================================================
# STORE-BACKED REPORTS
# =============================================================================

class LedgerReporter:
    """
    Loads an owner's accounts and transactions and builds reports from them.

    Usage:
        report = await LedgerReporter(store).period_report(
            owner_id, "2024-05-01", "2024-05-31",
        )
    """

    def __init__(self, store: DocumentStore):
        self._store = store

    async def _load(self, owner_id: str) -> tuple[list[Account], list[Transaction]]:
        require_id(owner_id, "Owner ID")
        account_docs = await read_all(self._store, ACCOUNTS, {"owner_id": owner_id})
        transaction_docs = await read_all(self._store, TRANSACTIONS, {"owner_id": owner_id})
        return (
            [Account.model_validate(doc) for doc in account_docs],
            [Transaction.model_validate(doc) for doc in transaction_docs],
        )

    async def period_report(
        self,
        owner_id: str,
        start_date: Any,
        end_date: Any,
    ) -> PeriodReport:
        start = parse_calendar_date(start_date, "start date")
        end = parse_calendar_date(end_date, "end date")
        accounts, transactions = await self._load(owner_id)
        return generate_report(accounts, transactions, start, end)

    async def monthly_report(self, owner_id: str, year: int, month: int) -> PeriodReport:
        start, end = month_bounds(year, month)
        accounts, transactions = await self._load(owner_id)
        return generate_report(accounts, transactions, start, end)

    async def available_months(self, owner_id: str) -> list[tuple[int, int]]:
        _, transactions = await self._load(owner_id)
        return available_months(transactions)
