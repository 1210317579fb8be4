"""
Main Orchestrator for the Personal Ledger

This module ties together all the components behind one facade,
LedgerService, which is what an API layer calls:
1. Accounts (create → update → deactivate, default chart for new owners)
2. Transactions (create → edit → delete, balances kept in step)
3. Recurring schedules (create → update → materialize → delete)
4. Reconciliation, period reports and owner data purge

DESIGN DECISION: The orchestrator enforces the boundaries:
- Every operation returns OperationResult or raises a typed LedgerError
- Storage failures never leak as backend exceptions (InternalError instead)
- Every rejection is audited

The facade holds no business rules of its own. Those live in the services.
"""

from datetime import date
from typing import Any, Awaitable, Optional, TypeVar, Union

import structlog

from ledger.audit import AuditLogger
from ledger.config import get_settings
from ledger.errors import InternalError, LedgerError
from ledger.models.account import AccountUpdate
from ledger.models.result import OperationResult
from ledger.models.transaction import RecurringTransactionUpdate, TransactionUpdate
from ledger.queries import BalanceDrift, BalanceReconciler, LedgerReporter, PeriodReport
from ledger.services.accounts import AccountStore
from ledger.services.common import commit, read_all
from ledger.services.recurring import RecurringTransactionService
from ledger.services.storage import (
    ACCOUNTS,
    RECURRING_TRANSACTIONS,
    TRANSACTIONS,
    DocumentStore,
    GoogleSheetsClient,
    GoogleSheetsDocumentStore,
    InMemoryDocumentStore,
    StorageError,
)
from ledger.services.transactions import TransactionLedger
from ledger.validation import LedgerValidator
from ledger.validation.validator import require_id

T = TypeVar("T")

logger = structlog.get_logger("ledger.orchestrator")


class LedgerService:
    """
    Facade over the ledger services.

    Usage:
        service = create_app_components(use_storage=False)
        result = await service.create_account(
            owner_id, "Cash", "asset", "Cash", "Wallet", opening_balance=500,
        )
        account_id = result.data["account_id"]
    """

    def __init__(
        self,
        store: DocumentStore,
        validator: Optional[LedgerValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger or AuditLogger()
        validator = validator or LedgerValidator()

        self.accounts = AccountStore(store, validator, self._audit_logger)
        self.transactions = TransactionLedger(store, validator, self._audit_logger)
        self.recurring = RecurringTransactionService(store, validator, self._audit_logger)
        self.reconciler = BalanceReconciler(store, self._audit_logger)
        self.reports = LedgerReporter(store)

    @property
    def store(self) -> DocumentStore:
        return self._store

    async def _run(self, operation: str, owner_id: Optional[str], call: Awaitable[T]) -> T:
        """Await a service call, auditing rejections and hiding backend errors."""
        try:
            return await call
        except LedgerError as e:
            await self._audit_logger.log_rejected(operation, e.code, e.message, owner_id)
            raise
        except StorageError as e:
            await self._audit_logger.log_storage_error(operation, str(e), owner_id)
            raise InternalError(f"{operation} failed: {e}", details={"operation": operation})

    # =========================================================================
    # ACCOUNTS
    # =========================================================================

    async def create_account(
        self,
        owner_id: str,
        name: Any,
        account_type: Any,
        parent_category: Any,
        sub_category: Any,
        opening_balance: Any = None,
        icon: Optional[str] = None,
        color: Optional[str] = None,
    ) -> OperationResult:
        account = await self._run("create_account", owner_id, self.accounts.create_account(
            owner_id, name, account_type, parent_category, sub_category,
            opening_balance=opening_balance, icon=icon, color=color,
        ))
        return OperationResult.ok(account_id=account.id)

    async def update_account(
        self,
        owner_id: str,
        account_id: str,
        patch: Union[AccountUpdate, dict],
    ) -> OperationResult:
        await self._run("update_account", owner_id, self.accounts.update_account(
            owner_id, account_id, patch
        ))
        return OperationResult.ok()

    async def deactivate_account(self, owner_id: str, account_id: str) -> OperationResult:
        await self._run("deactivate_account", owner_id, self.accounts.deactivate_account(
            owner_id, account_id
        ))
        return OperationResult.ok()

    async def seed_default_accounts(self, owner_id: str) -> OperationResult:
        created = await self._run(
            "seed_default_accounts", owner_id, self.accounts.seed_default_accounts(owner_id)
        )
        return OperationResult.ok(created=created)

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    async def create_transaction(
        self,
        owner_id: str,
        date: Any,
        amount: Any,
        debit_account_id: Any,
        credit_account_id: Any,
        note: Optional[str] = None,
        tags: Optional[list[str]] = None,
    ) -> OperationResult:
        transaction = await self._run(
            "create_transaction",
            owner_id,
            self.transactions.create_transaction(
                owner_id, date, amount, debit_account_id, credit_account_id,
                note=note, tags=tags,
            ),
        )
        return OperationResult.ok(transaction_id=transaction.id)

    async def update_transaction(
        self,
        owner_id: str,
        transaction_id: str,
        patch: Union[TransactionUpdate, dict],
    ) -> OperationResult:
        await self._run("update_transaction", owner_id, self.transactions.update_transaction(
            owner_id, transaction_id, patch
        ))
        return OperationResult.ok()

    async def delete_transaction(self, owner_id: str, transaction_id: str) -> OperationResult:
        await self._run("delete_transaction", owner_id, self.transactions.delete_transaction(
            owner_id, transaction_id
        ))
        return OperationResult.ok()

    # =========================================================================
    # RECURRING TRANSACTIONS
    # =========================================================================

    async def create_recurring_transaction(
        self,
        owner_id: str,
        amount: Any,
        debit_account_id: Any,
        credit_account_id: Any,
        frequency: Any,
        day_of_recurrence: Any,
        start_date: Any,
        end_date: Any = None,
        note: Optional[str] = None,
        notify_before_days: Optional[int] = None,
    ) -> OperationResult:
        schedule = await self._run(
            "create_recurring_transaction",
            owner_id,
            self.recurring.create_recurring_transaction(
                owner_id, amount, debit_account_id, credit_account_id,
                frequency, day_of_recurrence, start_date,
                end_date=end_date, note=note, notify_before_days=notify_before_days,
            ),
        )
        return OperationResult.ok(recurring_transaction_id=schedule.id)

    async def update_recurring_transaction(
        self,
        owner_id: str,
        recurring_id: str,
        patch: Union[RecurringTransactionUpdate, dict],
    ) -> OperationResult:
        await self._run(
            "update_recurring_transaction",
            owner_id,
            self.recurring.update_recurring_transaction(owner_id, recurring_id, patch),
        )
        return OperationResult.ok()

    async def delete_recurring_transaction(
        self,
        owner_id: str,
        recurring_id: str,
    ) -> OperationResult:
        await self._run(
            "delete_recurring_transaction",
            owner_id,
            self.recurring.delete_recurring_transaction(owner_id, recurring_id),
        )
        return OperationResult.ok()

    async def record_materialization(
        self,
        owner_id: str,
        recurring_id: str,
        created_date: Union[date, str],
    ) -> OperationResult:
        upcoming = await self._run(
            "record_materialization",
            owner_id,
            self.recurring.record_materialization(owner_id, recurring_id, created_date),
        )
        return OperationResult.ok(next_occurrence=upcoming.isoformat())

    # =========================================================================
    # OWNER-WIDE OPERATIONS
    # =========================================================================

    async def reconcile(self, owner_id: str) -> list[BalanceDrift]:
        return await self._run("reconcile", owner_id, self.reconciler.reconcile(owner_id))

    async def period_report(self, owner_id: str, start_date: Any, end_date: Any) -> PeriodReport:
        """Opening/closing balances and category totals for an inclusive date range."""
        return await self._run(
            "period_report",
            owner_id,
            self.reports.period_report(owner_id, start_date, end_date),
        )

    async def monthly_report(self, owner_id: str, year: int, month: int) -> PeriodReport:
        return await self._run(
            "monthly_report", owner_id, self.reports.monthly_report(owner_id, year, month)
        )

    async def purge_owner_data(self, owner_id: str) -> OperationResult:
        """
        Delete every account, transaction and recurring schedule of an owner.

        IMPORTANT: One batch. Either all of the owner's data is gone or none.
        Audit events are kept.
        """
        return await self._run("purge_owner_data", owner_id, self._purge(owner_id))

    async def _purge(self, owner_id: str) -> OperationResult:
        require_id(owner_id, "Owner ID")
        counts: dict[str, int] = {}
        batch = self._store.batch()
        for collection in (ACCOUNTS, TRANSACTIONS, RECURRING_TRANSACTIONS):
            documents = await read_all(self._store, collection, {"owner_id": owner_id})
            for document in documents:
                batch.delete(collection, document["id"])
            counts[collection] = len(documents)

        if len(batch):
            await commit(self._store, batch, "purge_owner_data")

        await self._audit_logger.log_owner_data_purged(owner_id, counts)
        return OperationResult.ok(deleted=counts)


def create_app_components(use_storage: bool = True) -> LedgerService:
    """
    Factory function to create the ledger facade.

    Args:
        use_storage: Whether to use the configured persistent backend.
                    Set to False for an in-memory ledger (tests, demos).

    Returns:
        A LedgerService wired to its store and audit logger
    """
    store: DocumentStore = InMemoryDocumentStore()

    if use_storage and get_settings().ledger.storage_backend == "google_sheets":
        try:
            client = GoogleSheetsClient()
            client.get_spreadsheet()
            store = GoogleSheetsDocumentStore(client)
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            store = InMemoryDocumentStore()

    audit_logger = AuditLogger(store if use_storage else None)
    return LedgerService(store, audit_logger=audit_logger)
