"""
Recurring Transaction Service

Stores schedules that describe future transactions. It never touches
balances: materializing a due schedule into a real transaction is done by an
external job through the TransactionLedger, which then reports back via
``record_materialization``.

IMPORTANT: next_occurrence is always recomputed by the scheduler, in the same
write that changes any of its inputs (frequency, day_of_recurrence,
start_date, last_created_date).
"""

from datetime import date
from typing import Any, Optional, Union

from ledger.audit import AuditLogger
from ledger.errors import InvalidArgumentError, NotFoundError, PermissionDeniedError
from ledger.models.audit import AuditEventType
from ledger.models.transaction import (
    RecurringTransaction,
    RecurringTransactionUpdate,
)
from ledger.scheduling import is_due, next_occurrence
from ledger.services.common import coerce_patch, commit, load_owned, read, read_all
from ledger.services.storage import ACCOUNTS, RECURRING_TRANSACTIONS, DocumentStore
from ledger.validation import LedgerValidator
from ledger.validation.validator import (
    clean_note,
    parse_amount,
    parse_calendar_date,
    parse_frequency,
    parse_notify_before_days,
    require_distinct_accounts,
    require_id,
    validate_day_of_recurrence,
)


class RecurringTransactionService:
    """CRUD for recurring schedules plus the materialization hook."""

    def __init__(
        self,
        store: DocumentStore,
        validator: Optional[LedgerValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._validator = validator or LedgerValidator()
        self._audit_logger = audit_logger or AuditLogger()

    async def _check_accounts(self, owner_id: str, debit_id: str, credit_id: str) -> None:
        debit = await read(self._store, ACCOUNTS, debit_id)
        credit = await read(self._store, ACCOUNTS, credit_id)
        if debit is None or credit is None:
            raise NotFoundError("One or both accounts not found")
        if debit.get("owner_id") != owner_id or credit.get("owner_id") != owner_id:
            raise PermissionDeniedError("You do not own one or both accounts")

    async def _load(self, owner_id: str, recurring_id: str) -> RecurringTransaction:
        require_id(recurring_id, "Recurring transaction ID")
        document = await load_owned(
            self._store,
            RECURRING_TRANSACTIONS,
            recurring_id,
            owner_id,
            "recurring transaction",
        )
        return RecurringTransaction.model_validate(document)

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def get_recurring_transaction(
        self,
        owner_id: str,
        recurring_id: str,
    ) -> RecurringTransaction:
        return await self._load(owner_id, recurring_id)

    async def list_recurring_transactions(self, owner_id: str) -> list[RecurringTransaction]:
        documents = await read_all(self._store, RECURRING_TRANSACTIONS, {"owner_id": owner_id})
        schedules = [RecurringTransaction.model_validate(doc) for doc in documents]
        return sorted(schedules, key=lambda s: (s.next_occurrence, s.created_at))

    async def list_due(self, owner_id: str, today: date) -> list[RecurringTransaction]:
        """Schedules that should produce a transaction on ``today``."""
        schedules = await self.list_recurring_transactions(owner_id)
        return [s for s in schedules if is_due(s, today)]

    # =========================================================================
    # MUTATIONS
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
    ) -> RecurringTransaction:
        """
        Create a schedule and compute its first next_occurrence.

        Raises:
            InvalidArgumentError: Bad amount, ids, frequency, day, dates
                (end must be after start) or notify_before_days
            NotFoundError: Either account is missing
            PermissionDeniedError: Either account belongs to someone else
        """
        require_id(owner_id, "Owner ID")
        amount = parse_amount(amount)
        debit_account_id = require_id(debit_account_id, "Debit account")
        credit_account_id = require_id(credit_account_id, "Credit account")
        require_distinct_accounts(debit_account_id, credit_account_id)
        frequency = parse_frequency(frequency)
        day_of_recurrence = validate_day_of_recurrence(frequency, day_of_recurrence)
        start = parse_calendar_date(start_date, "start date")
        end = parse_calendar_date(end_date, "end date") if end_date else None
        if end and end <= start:
            raise InvalidArgumentError("End date must be after start date")
        notify_before_days = parse_notify_before_days(notify_before_days)

        await self._check_accounts(owner_id, debit_account_id, credit_account_id)

        now = self._validator.now()
        schedule = RecurringTransaction(
            id=self._store.new_id(),
            owner_id=owner_id,
            amount=amount,
            debit_account_id=debit_account_id,
            credit_account_id=credit_account_id,
            note=clean_note(note),
            frequency=frequency,
            day_of_recurrence=day_of_recurrence,
            start_date=start,
            end_date=end,
            next_occurrence=next_occurrence(frequency, day_of_recurrence, start),
            is_active=True,
            notify_before_days=notify_before_days,
            created_at=now,
            updated_at=now,
        )

        batch = self._store.batch().insert(
            RECURRING_TRANSACTIONS, schedule.id, schedule.to_document()
        )
        await commit(self._store, batch, "create_recurring_transaction")

        await self._audit_logger.log_recurring_changed(
            AuditEventType.RECURRING_CREATED,
            owner_id,
            schedule.id,
            schedule.next_occurrence.isoformat(),
        )
        return schedule

    async def update_recurring_transaction(
        self,
        owner_id: str,
        recurring_id: str,
        patch: Union[RecurringTransactionUpdate, dict],
    ) -> None:
        """
        Patch a schedule.

        - note: None or blank clears it
        - end_date: None clears it
        - notify_before_days: None or 0 clears it
        - frequency / day_of_recurrence / start_date: next_occurrence is
          recomputed (from last_created_date when one exists)
        """
        patch = coerce_patch(patch, RecurringTransactionUpdate)
        existing = await self._load(owner_id, recurring_id)

        updates: dict[str, Any] = {}

        if patch.amount is not None:
            updates["amount"] = parse_amount(patch.amount)

        if patch.debit_account_id is not None or patch.credit_account_id is not None:
            debit_id = existing.debit_account_id
            if patch.debit_account_id is not None:
                debit_id = require_id(patch.debit_account_id, "Debit account")
            credit_id = existing.credit_account_id
            if patch.credit_account_id is not None:
                credit_id = require_id(patch.credit_account_id, "Credit account")
            require_distinct_accounts(debit_id, credit_id)
            await self._check_accounts(owner_id, debit_id, credit_id)
            updates["debit_account_id"] = debit_id
            updates["credit_account_id"] = credit_id

        if patch.is_set("note"):
            updates["note"] = clean_note(patch.note)

        frequency = existing.frequency
        if patch.frequency is not None:
            frequency = parse_frequency(patch.frequency)
            updates["frequency"] = frequency

        day_of_recurrence = existing.day_of_recurrence
        if patch.day_of_recurrence is not None:
            day_of_recurrence = patch.day_of_recurrence
            updates["day_of_recurrence"] = day_of_recurrence
        if "frequency" in updates or "day_of_recurrence" in updates:
            validate_day_of_recurrence(frequency, day_of_recurrence)

        start = existing.start_date
        if patch.start_date is not None:
            start = parse_calendar_date(patch.start_date, "start date")
            updates["start_date"] = start

        end = existing.end_date
        if patch.is_set("end_date"):
            end = parse_calendar_date(patch.end_date, "end date") if patch.end_date else None
            updates["end_date"] = end

        if end and end <= start:
            raise InvalidArgumentError("End date must be after start date")

        if patch.is_active is not None:
            updates["is_active"] = patch.is_active

        if patch.is_set("notify_before_days"):
            updates["notify_before_days"] = parse_notify_before_days(patch.notify_before_days)

        if {"frequency", "day_of_recurrence", "start_date"} & updates.keys():
            updates["next_occurrence"] = next_occurrence(
                frequency, day_of_recurrence, start, existing.last_created_date
            )

        changed = updates.get("next_occurrence")
        updates["updated_at"] = self._validator.now()

        batch = self._store.batch().update(RECURRING_TRANSACTIONS, recurring_id, updates)
        await commit(self._store, batch, "update_recurring_transaction")

        await self._audit_logger.log_recurring_changed(
            AuditEventType.RECURRING_UPDATED,
            owner_id,
            recurring_id,
            changed.isoformat() if changed else None,
        )

    async def delete_recurring_transaction(self, owner_id: str, recurring_id: str) -> None:
        """Hard delete. Transactions it already produced are not touched."""
        await self._load(owner_id, recurring_id)

        batch = self._store.batch().delete(RECURRING_TRANSACTIONS, recurring_id)
        await commit(self._store, batch, "delete_recurring_transaction")

        await self._audit_logger.log_recurring_changed(
            AuditEventType.RECURRING_DELETED, owner_id, recurring_id
        )

    async def record_materialization(
        self,
        owner_id: str,
        recurring_id: str,
        created_date: Any,
    ) -> date:
        """
        Record that the schedule produced a transaction on ``created_date``.

        Sets last_created_date and advances next_occurrence past it.

        Returns:
            The new next_occurrence
        """
        schedule = await self._load(owner_id, recurring_id)
        created = parse_calendar_date(created_date, "created date")

        upcoming = next_occurrence(
            schedule.frequency,
            schedule.day_of_recurrence,
            schedule.start_date,
            created,
        )

        batch = self._store.batch().update(RECURRING_TRANSACTIONS, recurring_id, {
            "last_created_date": created,
            "next_occurrence": upcoming,
            "updated_at": self._validator.now(),
        })
        await commit(self._store, batch, "record_materialization")

        await self._audit_logger.log_recurring_changed(
            AuditEventType.RECURRING_MATERIALIZED,
            owner_id,
            recurring_id,
            upcoming.isoformat(),
        )
        return upcoming
