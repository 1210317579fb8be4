"""
Shared fixtures.

Every test runs against the in-memory document store with a fixed clock, so
date limits and timestamps are deterministic. No Google Sheets calls.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
import pytest_asyncio

from ledger.audit import AuditLogger
from ledger.orchestrator import LedgerService
from ledger.queries import BalanceReconciler
from ledger.services.accounts import AccountStore
from ledger.services.recurring import RecurringTransactionService
from ledger.services.storage import InMemoryDocumentStore
from ledger.services.transactions import TransactionLedger
from ledger.validation import LedgerValidator

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
OWNER = "owner-1"
OTHER_OWNER = "owner-2"


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def validator() -> LedgerValidator:
    return LedgerValidator(max_future_days=365, clock=lambda: NOW)


@pytest.fixture
def audit_logger() -> AuditLogger:
    """Local-only audit logging (keeps the store free of audit rows)."""
    return AuditLogger()


@pytest.fixture
def accounts(store, validator, audit_logger) -> AccountStore:
    return AccountStore(store, validator, audit_logger)


@pytest.fixture
def ledger(store, validator, audit_logger) -> TransactionLedger:
    return TransactionLedger(store, validator, audit_logger)


@pytest.fixture
def recurring(store, validator, audit_logger) -> RecurringTransactionService:
    return RecurringTransactionService(store, validator, audit_logger)


@pytest.fixture
def reconciler(store, audit_logger) -> BalanceReconciler:
    return BalanceReconciler(store, audit_logger)


@pytest.fixture
def service(store, validator, audit_logger) -> LedgerService:
    return LedgerService(store, validator, audit_logger)


@pytest_asyncio.fixture
async def chart(accounts) -> dict:
    """A small chart of accounts: one of each type plus a credit card."""
    bank = await accounts.create_account(
        OWNER, "Bank", "asset", "Bank", "Savings", opening_balance=Decimal("1000")
    )
    cash = await accounts.create_account(
        OWNER, "Cash", "asset", "Cash", "Wallet", opening_balance=Decimal("50")
    )
    card = await accounts.create_account(
        OWNER, "CreditCard", "liability", "Cards", "Visa", opening_balance=Decimal("0")
    )
    salary = await accounts.create_account(
        OWNER, "Salary", "income", "Earned Income", "Salary"
    )
    shopping = await accounts.create_account(
        OWNER, "Shopping", "expense", "Lifestyle", "Shopping"
    )
    return {
        "bank": bank.id,
        "cash": cash.id,
        "card": card.id,
        "salary": salary.id,
        "shopping": shopping.id,
    }


async def balance_of(accounts: AccountStore, account_id: str):
    account = await accounts.get_account(OWNER, account_id)
    return account.current_balance
