"""
Transaction Ledger

Creates, edits and deletes double-entry transactions and keeps every
asset/liability account's current_balance in step with its history:

    current_balance = opening_balance + sum(effect of each transaction)

CRITICAL: Balances are maintained incrementally. An edit reverses the
original transaction's effect and applies the new one; a delete applies the
reversal only. Recomputing from scratch is the reconciler's job, not ours.

CRITICAL: Every mutation is ONE atomic batch holding the transaction write
and every balance increment. If validation fails nothing is written; if the
commit fails nothing is applied.
"""

from decimal import Decimal
from typing import Any, Optional, Union

from ledger.accounting import effect, reversal
from ledger.audit import AuditLogger
from ledger.errors import FailedPreconditionError, NotFoundError, PermissionDeniedError
from ledger.models.account import Account, AccountType
from ledger.models.transaction import Transaction, TransactionUpdate
from ledger.services.common import coerce_patch, commit, load_owned, read, read_all
from ledger.services.storage import ACCOUNTS, TRANSACTIONS, DocumentStore
from ledger.validation import LedgerValidator
from ledger.validation.validator import (
    clean_note,
    clean_tags,
    parse_amount,
    require_distinct_accounts,
    require_id,
)

# (debit_account_id, credit_account_id, amount)
Leg = tuple[str, str, Decimal]


# =============================================================================
# PURE BALANCE ARITHMETIC
# =============================================================================

def balance_effects(
    account_types: dict[str, AccountType],
    leg: Leg,
) -> dict[str, Decimal]:
    """Per-account balance delta of one transaction."""
    debit_id, credit_id, amount = leg
    deltas: dict[str, Decimal] = {}
    deltas[debit_id] = deltas.get(debit_id, Decimal("0")) + effect(
        account_types[debit_id], amount, True
    )
    deltas[credit_id] = deltas.get(credit_id, Decimal("0")) + effect(
        account_types[credit_id], amount, False
    )
    return deltas


def compute_net_adjustments(
    account_types: dict[str, AccountType],
    original: Leg,
    updated: Leg,
) -> dict[str, Decimal]:
    """
    Net balance adjustment per account for editing ``original`` into ``updated``.

    The effect of ``original`` is reversed with the original amount and accounts,
    then the updated effect is added. Accounts that net to zero are left out,
    so an edit that changes nothing monetary yields an empty dict.
    """
    net = {
        account_id: -delta
        for account_id, delta in balance_effects(account_types, original).items()
    }
    for account_id, delta in balance_effects(account_types, updated).items():
        net[account_id] = net.get(account_id, Decimal("0")) + delta
    return {account_id: delta for account_id, delta in net.items() if delta != 0}


# =============================================================================
# LEDGER SERVICE
# =============================================================================

class TransactionLedger:
    """
    The only component that changes account balances.

    Usage:
        ledger = TransactionLedger(store)
        txn = await ledger.create_transaction(
            owner_id, "2024-05-01", Decimal("1000"), bank_id, salary_id,
        )
    """

    def __init__(
        self,
        store: DocumentStore,
        validator: Optional[LedgerValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._validator = validator or LedgerValidator()
        self._audit_logger = audit_logger or AuditLogger()

    async def _load_side(self, owner_id: str, account_id: str, side: str) -> Account:
        document = await load_owned(
            self._store, ACCOUNTS, account_id, owner_id, f"{side} account"
        )
        account = Account.model_validate(document)
        if not account.is_active:
            raise FailedPreconditionError(
                f"{side.capitalize()} account is inactive",
                details={"account_id": account_id},
            )
        return account

    async def _load_accounts(self, owner_id: str, account_ids: list[str]) -> dict[str, Account]:
        """Load every id; all must exist and belong to the owner."""
        accounts: dict[str, Account] = {}
        for account_id in account_ids:
            document = await read(self._store, ACCOUNTS, account_id)
            if document is None:
                raise NotFoundError(f"Account {account_id} not found")
            if document.get("owner_id") != owner_id:
                raise PermissionDeniedError(f"You do not own account {account_id}")
            accounts[account_id] = Account.model_validate(document)
        return accounts

    def _apply_adjustments(self, batch, adjustments: dict[str, Decimal], now) -> None:
        for account_id, delta in adjustments.items():
            if delta != 0:
                batch.update(
                    ACCOUNTS,
                    account_id,
                    {"updated_at": now},
                    increments={"current_balance": delta},
                )

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def get_transaction(self, owner_id: str, transaction_id: str) -> Transaction:
        require_id(transaction_id, "Transaction ID")
        document = await load_owned(
            self._store, TRANSACTIONS, transaction_id, owner_id, "transaction"
        )
        return Transaction.model_validate(document)

    async def list_transactions(
        self,
        owner_id: str,
        account_id: Optional[str] = None,
    ) -> list[Transaction]:
        """Owner's transactions, newest first, optionally touching one account."""
        documents = await read_all(self._store, TRANSACTIONS, {"owner_id": owner_id})
        transactions = [Transaction.model_validate(doc) for doc in documents]
        if account_id:
            transactions = [t for t in transactions if account_id in t.account_ids()]
        return sorted(transactions, key=lambda t: (t.date, t.created_at), reverse=True)

    # =========================================================================
    # MUTATIONS
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
    ) -> Transaction:
        """
        Record a transaction and apply its effect to both accounts.

        Raises:
            InvalidArgumentError: Bad amount, date, ids, or debit == credit
            NotFoundError: Either account is missing
            PermissionDeniedError: Either account belongs to someone else
            FailedPreconditionError: Either account is inactive
            InternalError: The batch could not be committed
        """
        require_id(owner_id, "Owner ID")
        amount = parse_amount(amount)
        debit_account_id = require_id(debit_account_id, "Debit account")
        credit_account_id = require_id(credit_account_id, "Credit account")
        require_distinct_accounts(debit_account_id, credit_account_id)
        when = self._validator.parse_transaction_date(date)
        note = clean_note(note)
        tags = clean_tags(tags)

        debit = await self._load_side(owner_id, debit_account_id, "debit")
        credit = await self._load_side(owner_id, credit_account_id, "credit")

        deltas = balance_effects(
            {debit.id: debit.account_type, credit.id: credit.account_type},
            (debit.id, credit.id, amount),
        )

        now = self._validator.now()
        transaction = Transaction(
            id=self._store.new_id(),
            owner_id=owner_id,
            date=when,
            amount=amount,
            debit_account_id=debit.id,
            credit_account_id=credit.id,
            note=note,
            tags=tags,
            created_at=now,
            updated_at=now,
        )

        batch = self._store.batch().insert(
            TRANSACTIONS, transaction.id, transaction.to_document()
        )
        self._apply_adjustments(batch, deltas, now)
        await commit(self._store, batch, "create_transaction")

        await self._audit_logger.log_transaction_created(
            owner_id,
            transaction.id,
            amount,
            {k: v for k, v in deltas.items() if v != 0},
        )
        return transaction

    async def update_transaction(
        self,
        owner_id: str,
        transaction_id: str,
        patch: Union[TransactionUpdate, dict],
    ) -> dict[str, Decimal]:
        """
        Edit a transaction, re-balancing every affected account.

        Fields left out of the patch keep their stored values. Inactive
        accounts are accepted here; only creation requires active accounts.

        Returns:
            The net balance adjustments applied, keyed by account id
        """
        require_id(transaction_id, "Transaction ID")
        patch = coerce_patch(patch, TransactionUpdate)
        existing = Transaction.model_validate(
            await load_owned(self._store, TRANSACTIONS, transaction_id, owner_id, "transaction")
        )

        debit_id = existing.debit_account_id
        if patch.debit_account_id is not None:
            debit_id = require_id(patch.debit_account_id, "Debit account")
        credit_id = existing.credit_account_id
        if patch.credit_account_id is not None:
            credit_id = require_id(patch.credit_account_id, "Credit account")
        amount = existing.amount
        if patch.amount is not None:
            amount = parse_amount(patch.amount)

        require_distinct_accounts(debit_id, credit_id)

        updates: dict[str, Any] = {
            "debit_account_id": debit_id,
            "credit_account_id": credit_id,
            "amount": amount,
        }
        if patch.is_set("date"):
            updates["date"] = self._validator.parse_transaction_date(patch.date)
        if patch.is_set("note"):
            # None or blank clears the note
            updates["note"] = clean_note(patch.note)
        tags = clean_tags(patch.tags)
        if tags:
            updates["tags"] = tags

        account_ids = list(dict.fromkeys([
            existing.debit_account_id,
            existing.credit_account_id,
            debit_id,
            credit_id,
        ]))
        accounts = await self._load_accounts(owner_id, account_ids)

        adjustments = compute_net_adjustments(
            {account_id: account.account_type for account_id, account in accounts.items()},
            (existing.debit_account_id, existing.credit_account_id, existing.amount),
            (debit_id, credit_id, amount),
        )

        now = self._validator.now()
        updates["updated_at"] = now
        batch = self._store.batch().update(TRANSACTIONS, transaction_id, updates)
        self._apply_adjustments(batch, adjustments, now)
        await commit(self._store, batch, "update_transaction")

        await self._audit_logger.log_transaction_updated(
            owner_id, transaction_id, sorted(patch.model_fields_set), adjustments
        )
        return adjustments

    async def delete_transaction(self, owner_id: str, transaction_id: str) -> dict[str, Decimal]:
        """
        Delete a transaction and reverse its effect.

        Accounts are loaded best-effort: a side whose account no longer
        exists is skipped, the rest of the reversal still applies.
        """
        require_id(transaction_id, "Transaction ID")
        existing = Transaction.model_validate(
            await load_owned(self._store, TRANSACTIONS, transaction_id, owner_id, "transaction")
        )

        adjustments: dict[str, Decimal] = {}
        sides = (
            (existing.debit_account_id, True),
            (existing.credit_account_id, False),
        )
        for account_id, was_debit in sides:
            document = await read(self._store, ACCOUNTS, account_id)
            if document is None:
                continue
            account = Account.model_validate(document)
            if not account.has_balance:
                continue
            adjustments[account_id] = reversal(account.account_type, existing.amount, was_debit)

        now = self._validator.now()
        batch = self._store.batch().delete(TRANSACTIONS, transaction_id)
        self._apply_adjustments(batch, adjustments, now)
        await commit(self._store, batch, "delete_transaction")

        await self._audit_logger.log_transaction_deleted(owner_id, transaction_id, adjustments)
        return adjustments
