"""
Balance Reconciliation

DESIGN DECISION: Reconciliation is read-only and DETERMINISTIC.
It recomputes each balance from the full transaction history and compares it
with the incrementally maintained current_balance. It never writes balances.

For every asset/liability account the ledger guarantees:

    current_balance == opening_balance + sum(effect of each transaction)

A drift means that guarantee was broken somewhere (a partial write outside
the ledger, a manual edit of the backing sheet). It is reported and audited,
not repaired.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional, Union

from pydantic import BaseModel

from ledger.accounting import effect
from ledger.audit import AuditLogger
from ledger.models.account import Account
from ledger.models.transaction import Transaction
from ledger.services.common import read_all
from ledger.services.storage import ACCOUNTS, TRANSACTIONS, DocumentStore


def _on_or_before(when: datetime, as_of: Union[date, datetime]) -> bool:
    if isinstance(as_of, datetime):
        return when <= as_of
    return when.date() <= as_of


def recompute_balance(
    account: Account,
    transactions: Iterable[Transaction],
    as_of: Optional[Union[date, datetime]] = None,
) -> Optional[Decimal]:
    """
    Balance of ``account`` from its opening balance and history.

    Args:
        account: The account to recompute
        transactions: Any transactions; those not touching the account are ignored
        as_of: Only count transactions dated on or before this

    Returns:
        The recomputed balance, or None for income/expense accounts
    """
    if not account.has_balance:
        return None

    balance = account.opening_balance or Decimal("0")
    for txn in transactions:
        if as_of is not None and not _on_or_before(txn.date, as_of):
            continue
        if txn.debit_account_id == account.id:
            balance += effect(account.account_type, txn.amount, True)
        if txn.credit_account_id == account.id:
            balance += effect(account.account_type, txn.amount, False)
    return balance


class BalanceDrift(BaseModel):
    """A stored balance that disagrees with the history."""
    account_id: str
    account_name: str
    stored_balance: Decimal
    recomputed_balance: Decimal

    @property
    def difference(self) -> Decimal:
        return self.stored_balance - self.recomputed_balance


class BalanceReconciler:
    """
    Checks an owner's stored balances against their transaction history.

    Usage:
        drifts = await BalanceReconciler(store).reconcile(owner_id)
        if not drifts:
            print("All balances reconcile")
    """

    def __init__(
        self,
        store: DocumentStore,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger or AuditLogger()

    async def recomputed_balances(
        self,
        owner_id: str,
        as_of: Optional[Union[date, datetime]] = None,
    ) -> dict[str, Decimal]:
        """Recomputed balance per balance-bearing account id (active or not)."""
        accounts, transactions = await self._load(owner_id)
        return {
            account.id: recompute_balance(account, transactions, as_of)
            for account in accounts
            if account.has_balance
        }

    async def reconcile(self, owner_id: str) -> list[BalanceDrift]:
        """Return every balance-bearing account whose stored balance drifted."""
        accounts, transactions = await self._load(owner_id)

        drifts: list[BalanceDrift] = []
        for account in accounts:
            if not account.has_balance:
                continue
            recomputed = recompute_balance(account, transactions)
            if account.current_balance != recomputed:
                drifts.append(BalanceDrift(
                    account_id=account.id,
                    account_name=account.name,
                    stored_balance=account.current_balance,
                    recomputed_balance=recomputed,
                ))
                await self._audit_logger.log_balance_drift(
                    owner_id, account.id, account.current_balance, recomputed
                )
        return drifts

    async def _load(self, owner_id: str) -> tuple[list[Account], list[Transaction]]:
        account_docs = await read_all(self._store, ACCOUNTS, {"owner_id": owner_id})
        transaction_docs = await read_all(self._store, TRANSACTIONS, {"owner_id": owner_id})
        return (
            [Account.model_validate(doc) for doc in account_docs],
            [Transaction.model_validate(doc) for doc in transaction_docs],
        )
