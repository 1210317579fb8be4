"""
Tests for TransactionLedger.

Balances are checked after every operation against both the expected value
and a full recomputation from history.
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal

from ledger.errors import (
    FailedPreconditionError,
    InternalError,
    InvalidArgumentError,
    NotFoundError,
    PermissionDeniedError,
)
from ledger.models import TransactionUpdate
from ledger.services.storage import ACCOUNTS, TRANSACTIONS, InMemoryDocumentStore, StorageError
from ledger.services.transactions import TransactionLedger
from tests.conftest import OTHER_OWNER, OWNER, balance_of


class FailingCommitStore(InMemoryDocumentStore):
    """Reads work, every commit fails."""

    async def commit(self, batch):
        raise StorageError("backend unavailable")


class TestCreateTransaction:
    """Tests for recording transactions."""

    @pytest.mark.asyncio
    async def test_scenario_salary_into_bank(self, accounts, ledger, store):
        """Test asset debit increases balance; income side stays balance-less."""
        bank = await accounts.create_account(
            OWNER, "Bank", "asset", "Bank", "Savings", opening_balance=Decimal("1000")
        )
        salary = await accounts.create_account(OWNER, "Salary", "income", "Income", "Salary")

        await ledger.create_transaction(OWNER, "2024-05-31", Decimal("500"), bank.id, salary.id)

        assert await balance_of(accounts, bank.id) == Decimal("1500")
        document = await store.get(ACCOUNTS, salary.id)
        assert "current_balance" not in document

    @pytest.mark.asyncio
    async def test_scenario_card_purchase(self, accounts, ledger):
        """Test a credit to a liability increases it."""
        card = await accounts.create_account(
            OWNER, "CreditCard", "liability", "Cards", "Visa", opening_balance=Decimal("0")
        )
        shopping = await accounts.create_account(OWNER, "Shopping", "expense", "Life", "Shop")

        await ledger.create_transaction(OWNER, "2024-05-31", Decimal("200"), shopping.id, card.id)

        assert await balance_of(accounts, card.id) == Decimal("200")

    @pytest.mark.asyncio
    async def test_record_is_stored(self, ledger, chart, store):
        """Test the stored transaction carries trimmed note and tags."""
        txn = await ledger.create_transaction(
            OWNER,
            "2024-05-31T10:00:00Z",
            "12.50",
            chart["shopping"],
            chart["cash"],
            note="  coffee ",
            tags=["food"],
        )
        document = await store.get(TRANSACTIONS, txn.id)
        assert document["amount"] == Decimal("12.50")
        assert document["note"] == "coffee"
        assert document["tags"] == ["food"]
        assert document["date"] == datetime(2024, 5, 31, 10, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_blank_note_omitted(self, ledger, chart, store):
        """Test an empty note is absent from the stored document."""
        txn = await ledger.create_transaction(
            OWNER, "2024-05-31", 5, chart["shopping"], chart["cash"], note="  ", tags=[]
        )
        document = await store.get(TRANSACTIONS, txn.id)
        assert "note" not in document
        assert "tags" not in document

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, -5, "abc", None, float("nan")])
    async def test_rejects_bad_amount(self, ledger, chart, amount):
        """Test amounts must be positive numbers."""
        with pytest.raises(InvalidArgumentError, match="positive number"):
            await ledger.create_transaction(
                OWNER, "2024-05-31", amount, chart["bank"], chart["salary"]
            )

    @pytest.mark.asyncio
    async def test_rejects_same_accounts(self, ledger, chart):
        """Test debit and credit must differ."""
        with pytest.raises(InvalidArgumentError, match="must be different"):
            await ledger.create_transaction(OWNER, "2024-05-31", 10, chart["bank"], chart["bank"])

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value,message", [
        ("", "date is required"),
        ("yesterday", "Invalid date format"),
        ("2025-07-01", "in the future"),
    ])
    async def test_rejects_bad_dates(self, ledger, chart, value, message):
        """Test date parsing and the future limit."""
        with pytest.raises(InvalidArgumentError, match=message):
            await ledger.create_transaction(OWNER, value, 10, chart["bank"], chart["salary"])

    @pytest.mark.asyncio
    async def test_allows_planned_transactions(self, ledger, chart):
        """Test dates within a year ahead are accepted."""
        txn = await ledger.create_transaction(
            OWNER, "2025-05-01", 10, chart["shopping"], chart["bank"]
        )
        assert txn.date.year == 2025

    @pytest.mark.asyncio
    async def test_missing_account(self, ledger, chart):
        """Test NotFound names the side."""
        with pytest.raises(NotFoundError, match="Credit account not found"):
            await ledger.create_transaction(OWNER, "2024-05-31", 10, chart["bank"], "nope")

    @pytest.mark.asyncio
    async def test_foreign_account(self, ledger, accounts, chart):
        """Test PermissionDenied for another owner's account."""
        foreign = await accounts.create_account(OTHER_OWNER, "Theirs", "asset", "Bank", "X")
        with pytest.raises(PermissionDeniedError, match="debit account"):
            await ledger.create_transaction(OWNER, "2024-05-31", 10, foreign.id, chart["salary"])

    @pytest.mark.asyncio
    async def test_inactive_account(self, ledger, accounts, chart, store):
        """Test FailedPrecondition and nothing written."""
        await accounts.deactivate_account(OWNER, chart["bank"])
        with pytest.raises(FailedPreconditionError, match="Debit account is inactive"):
            await ledger.create_transaction(OWNER, "2024-05-31", 10, chart["bank"], chart["salary"])
        assert await store.query(TRANSACTIONS) == []


class TestUpdateTransaction:
    """Tests for edits with reversal-then-reapply."""

    @pytest.mark.asyncio
    async def test_scenario_amount_change(self, accounts, ledger, chart):
        """Test 1000 + 500, edited to 300, leaves 1300."""
        txn = await ledger.create_transaction(
            OWNER, "2024-05-31", Decimal("500"), chart["bank"], chart["salary"]
        )
        assert await balance_of(accounts, chart["bank"]) == Decimal("1500")

        adjustments = await ledger.update_transaction(OWNER, txn.id, {"amount": Decimal("300")})

        assert adjustments == {chart["bank"]: Decimal("-200")}
        assert await balance_of(accounts, chart["bank"]) == Decimal("1300")

    @pytest.mark.asyncio
    async def test_no_op_edit_changes_nothing(self, accounts, ledger, chart):
        """Test re-sending identical values gives zero adjustment."""
        txn = await ledger.create_transaction(
            OWNER, "2024-05-31", Decimal("500"), chart["bank"], chart["salary"]
        )
        adjustments = await ledger.update_transaction(OWNER, txn.id, TransactionUpdate(
            amount=Decimal("500"),
            debit_account_id=chart["bank"],
            credit_account_id=chart["salary"],
        ))
        assert adjustments == {}
        assert await balance_of(accounts, chart["bank"]) == Decimal("1500")

    @pytest.mark.asyncio
    async def test_move_between_accounts(self, accounts, ledger, chart):
        """Test changing the debit side moves the effect to the new account."""
        txn = await ledger.create_transaction(
            OWNER, "2024-05-31", Decimal("100"), chart["bank"], chart["salary"]
        )
        await ledger.update_transaction(OWNER, txn.id, {"debit_account_id": chart["cash"]})

        assert await balance_of(accounts, chart["bank"]) == Decimal("1000")
        assert await balance_of(accounts, chart["cash"]) == Decimal("150")

    @pytest.mark.asyncio
    async def test_pay_card_from_bank_then_edit_both(self, accounts, ledger, chart):
        """Test an edit touching two liabilities and assets nets correctly."""
        purchase = await ledger.create_transaction(
            OWNER, "2024-05-30", Decimal("200"), chart["shopping"], chart["card"]
        )
        payment = await ledger.create_transaction(
            OWNER, "2024-05-31", Decimal("200"), chart["card"], chart["bank"]
        )
        assert await balance_of(accounts, chart["card"]) == Decimal("0")

        await ledger.update_transaction(OWNER, payment.id, {
            "amount": "150",
            "credit_account_id": chart["cash"],
        })

        assert await balance_of(accounts, chart["card"]) == Decimal("50")
        assert await balance_of(accounts, chart["bank"]) == Decimal("1000")
        assert await balance_of(accounts, chart["cash"]) == Decimal("-100")
        assert purchase.id != payment.id

    @pytest.mark.asyncio
    async def test_note_cleared_and_stored_as_null(self, ledger, chart, store):
        """Test a blank note clears it (null, not omitted)."""
        txn = await ledger.create_transaction(
            OWNER, "2024-05-31", 10, chart["shopping"], chart["cash"], note="lunch"
        )
        await ledger.update_transaction(OWNER, txn.id, {"note": "  "})
        document = await store.get(TRANSACTIONS, txn.id)
        assert "note" in document
        assert document["note"] is None

    @pytest.mark.asyncio
    async def test_empty_tags_leave_existing(self, ledger, chart, store):
        """Test an empty tags list does not clear stored tags."""
        txn = await ledger.create_transaction(
            OWNER, "2024-05-31", 10, chart["shopping"], chart["cash"], tags=["food"]
        )
        await ledger.update_transaction(OWNER, txn.id, {"tags": []})
        document = await store.get(TRANSACTIONS, txn.id)
        assert document["tags"] == ["food"]

        await ledger.update_transaction(OWNER, txn.id, {"tags": ["work"]})
        document = await store.get(TRANSACTIONS, txn.id)
        assert document["tags"] == ["work"]

    @pytest.mark.asyncio
    async def test_date_validated_like_creation(self, ledger, chart):
        """Test a patched date beyond the limit is rejected."""
        txn = await ledger.create_transaction(
            OWNER, "2024-05-31", 10, chart["shopping"], chart["cash"]
        )
        with pytest.raises(InvalidArgumentError, match="in the future"):
            await ledger.update_transaction(OWNER, txn.id, {"date": "2030-01-01"})
        with pytest.raises(InvalidArgumentError, match="date is required"):
            await ledger.update_transaction(OWNER, txn.id, {"date": None})

    @pytest.mark.asyncio
    async def test_inactive_accounts_allowed_on_edit(self, accounts, ledger, chart):
        """Test edits do not require active accounts."""
        txn = await ledger.create_transaction(
            OWNER, "2024-05-31", Decimal("100"), chart["bank"], chart["salary"]
        )
        await accounts.deactivate_account(OWNER, chart["bank"])
        await ledger.update_transaction(OWNER, txn.id, {"amount": 40})
        assert await balance_of(accounts, chart["bank"]) == Decimal("1040")

    @pytest.mark.asyncio
    async def test_rejects_same_effective_accounts(self, ledger, chart):
        """Test distinctness is checked on the effective values."""
        txn = await ledger.create_transaction(
            OWNER, "2024-05-31", 10, chart["bank"], chart["salary"]
        )
        with pytest.raises(InvalidArgumentError, match="must be different"):
            await ledger.update_transaction(OWNER, txn.id, {"credit_account_id": chart["bank"]})

    @pytest.mark.asyncio
    async def test_rejects_unknown_patch_field(self, ledger, chart):
        """Test patches cannot touch owner or timestamps."""
        txn = await ledger.create_transaction(
            OWNER, "2024-05-31", 10, chart["bank"], chart["salary"]
        )
        with pytest.raises(InvalidArgumentError, match="owner_id"):
            await ledger.update_transaction(OWNER, txn.id, {"owner_id": OTHER_OWNER})

    @pytest.mark.asyncio
    async def test_new_account_must_exist(self, accounts, ledger, chart):
        """Test NotFound for a new side, with balances untouched."""
        txn = await ledger.create_transaction(
            OWNER, "2024-05-31", 10, chart["bank"], chart["salary"]
        )
        with pytest.raises(NotFoundError):
            await ledger.update_transaction(OWNER, txn.id, {"debit_account_id": "nope"})
        assert await balance_of(accounts, chart["bank"]) == Decimal("1010")

    @pytest.mark.asyncio
    async def test_other_owner_cannot_edit(self, ledger, chart):
        """Test PermissionDenied for someone else's transaction."""
        txn = await ledger.create_transaction(
            OWNER, "2024-05-31", 10, chart["bank"], chart["salary"]
        )
        with pytest.raises(PermissionDeniedError):
            await ledger.update_transaction(OTHER_OWNER, txn.id, {"amount": 5})

    @pytest.mark.asyncio
    async def test_missing_transaction(self, ledger):
        """Test NotFound for an unknown transaction."""
        with pytest.raises(NotFoundError, match="Transaction not found"):
            await ledger.update_transaction(OWNER, "nope", {"amount": 5})


class TestDeleteTransaction:
    """Tests for delete with reversal."""

    @pytest.mark.asyncio
    async def test_delete_restores_balances(self, accounts, ledger, chart, store):
        """Test delete(create(T)) restores every balance."""
        before = {k: await balance_of(accounts, chart[k]) for k in ("bank", "card")}
        txn = await ledger.create_transaction(
            OWNER, "2024-05-31", Decimal("75.25"), chart["card"], chart["bank"]
        )
        await ledger.delete_transaction(OWNER, txn.id)

        after = {k: await balance_of(accounts, chart[k]) for k in ("bank", "card")}
        assert after == before
        assert await store.get(TRANSACTIONS, txn.id) is None

    @pytest.mark.asyncio
    async def test_delete_skips_missing_account(self, accounts, ledger, chart, store):
        """Test the reversal still applies to the account that remains."""
        txn = await ledger.create_transaction(
            OWNER, "2024-05-31", Decimal("100"), chart["cash"], chart["bank"]
        )
        await store.delete(ACCOUNTS, chart["cash"])

        adjustments = await ledger.delete_transaction(OWNER, txn.id)

        assert adjustments == {chart["bank"]: Decimal("100")}
        assert await balance_of(accounts, chart["bank"]) == Decimal("1000")

    @pytest.mark.asyncio
    async def test_delete_other_owner(self, ledger, chart):
        """Test PermissionDenied on delete."""
        txn = await ledger.create_transaction(
            OWNER, "2024-05-31", 10, chart["bank"], chart["salary"]
        )
        with pytest.raises(PermissionDeniedError):
            await ledger.delete_transaction(OTHER_OWNER, txn.id)


class TestAtomicity:
    """Tests that failed operations leave no partial state."""

    @pytest.mark.asyncio
    async def test_commit_failure_is_internal(self, validator, audit_logger):
        """Test backend failures surface as InternalError."""
        store = FailingCommitStore()
        ledger = TransactionLedger(store, validator, audit_logger)
        await InMemoryDocumentStore.commit(store, store.batch().insert(ACCOUNTS, "bank", {
            "owner_id": OWNER, "name": "Bank", "account_type": "asset",
            "parent_category": "Bank", "sub_category": "Savings",
            "opening_balance": Decimal("10"), "current_balance": Decimal("10"),
            "is_active": True, "created_at": validator.now(), "updated_at": validator.now(),
        }).insert(ACCOUNTS, "salary", {
            "owner_id": OWNER, "name": "Salary", "account_type": "income",
            "parent_category": "Income", "sub_category": "Salary",
            "is_active": True, "created_at": validator.now(), "updated_at": validator.now(),
        }))

        with pytest.raises(InternalError):
            await ledger.create_transaction(OWNER, "2024-05-31", 5, "bank", "salary")

        assert await store.query(TRANSACTIONS) == []
        assert (await store.get(ACCOUNTS, "bank"))["current_balance"] == Decimal("10")

    @pytest.mark.asyncio
    async def test_single_commit_per_operation(self, ledger, chart, store):
        """Test create, update and delete each commit exactly one batch."""
        start = store.commit_count
        txn = await ledger.create_transaction(
            OWNER, "2024-05-31", 10, chart["bank"], chart["card"]
        )
        await ledger.update_transaction(OWNER, txn.id, {"amount": 20})
        await ledger.delete_transaction(OWNER, txn.id)
        assert store.commit_count - start == 3


class TestReconciliationInvariant:
    """current_balance always equals opening + history."""

    @pytest.mark.asyncio
    async def test_balances_reconcile_after_mixed_activity(self, ledger, chart, reconciler):
        """Test a sequence of creates, edits and deletes leaves no drift."""
        create = ledger.create_transaction
        t1 = await create(OWNER, "2024-05-01", 3000, chart["bank"], chart["salary"])
        t2 = await create(OWNER, "2024-05-02", 120, chart["shopping"], chart["card"])
        t3 = await create(OWNER, "2024-05-03", 120, chart["card"], chart["bank"])
        await create(OWNER, "2024-05-04", 40, chart["cash"], chart["bank"])
        await ledger.update_transaction(
            OWNER, t1.id, {"amount": 2800, "debit_account_id": chart["cash"]}
        )
        await ledger.update_transaction(OWNER, t2.id, {"credit_account_id": chart["bank"]})
        await ledger.delete_transaction(OWNER, t3.id)

        assert await reconciler.reconcile(OWNER) == []
