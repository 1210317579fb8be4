"""Tests for RecurringTransactionService."""

import pytest
from datetime import date
from decimal import Decimal

from ledger.errors import InvalidArgumentError, NotFoundError, PermissionDeniedError
from ledger.models import Frequency
from ledger.services.storage import RECURRING_TRANSACTIONS
from tests.conftest import OTHER_OWNER, OWNER


async def monthly_rent(recurring, chart, **overrides):
    fields = dict(
        amount=Decimal("900"),
        debit_account_id=chart["shopping"],
        credit_account_id=chart["bank"],
        frequency="monthly",
        day_of_recurrence=31,
        start_date="2024-01-31",
    )
    fields.update(overrides)
    return await recurring.create_recurring_transaction(OWNER, **fields)


class TestCreateRecurring:
    """Tests for creating schedules."""

    @pytest.mark.asyncio
    async def test_first_occurrence_is_computed(self, recurring, chart):
        """Test next_occurrence is derived from the start date."""
        schedule = await monthly_rent(recurring, chart)
        assert schedule.frequency == Frequency.MONTHLY
        assert schedule.next_occurrence == date(2024, 2, 29)
        assert schedule.is_active

    @pytest.mark.asyncio
    async def test_optional_fields_omitted(self, recurring, chart, store):
        """Test zero notify days and blank note are absent."""
        schedule = await monthly_rent(recurring, chart, note=" ", notify_before_days=0)
        document = await store.get(RECURRING_TRANSACTIONS, schedule.id)
        assert "note" not in document
        assert "notify_before_days" not in document
        assert "end_date" not in document

    @pytest.mark.asyncio
    @pytest.mark.parametrize("overrides,message", [
        ({"amount": 0}, "positive number"),
        ({"credit_account_id": None}, "Credit account is required"),
        ({"frequency": "hourly"}, "Invalid frequency"),
        ({"day_of_recurrence": 0}, "between 1 and 31"),
        ({"frequency": "weekly", "day_of_recurrence": 7}, "weekday"),
        ({"start_date": "soon"}, "Invalid start date"),
        ({"end_date": "2024-01-31"}, "End date must be after start date"),
        ({"notify_before_days": -1}, "0 or positive"),
    ])
    async def test_validation(self, recurring, chart, overrides, message):
        """Test every field is validated before anything is stored."""
        with pytest.raises(InvalidArgumentError, match=message):
            await monthly_rent(recurring, chart, **overrides)

    @pytest.mark.asyncio
    async def test_accounts_must_exist(self, recurring, chart):
        """Test NotFound for a missing account."""
        with pytest.raises(NotFoundError, match="One or both accounts not found"):
            await monthly_rent(recurring, chart, debit_account_id="nope")

    @pytest.mark.asyncio
    async def test_accounts_must_be_owned(self, recurring, accounts, chart):
        """Test PermissionDenied for another owner's account."""
        foreign = await accounts.create_account(OTHER_OWNER, "Theirs", "asset", "Bank", "X")
        with pytest.raises(PermissionDeniedError):
            await monthly_rent(recurring, chart, credit_account_id=foreign.id)


class TestUpdateRecurring:
    """Tests for patching schedules."""

    @pytest.mark.asyncio
    async def test_frequency_change_recomputes(self, recurring, chart):
        """Test next_occurrence follows a frequency change in the same write."""
        schedule = await monthly_rent(recurring, chart)
        await recurring.update_recurring_transaction(OWNER, schedule.id, {
            "frequency": "weekly",
            "day_of_recurrence": 3,
        })
        updated = await recurring.get_recurring_transaction(OWNER, schedule.id)
        # 2024-01-31 is a Wednesday (3), so the next one is a week later
        assert updated.next_occurrence == date(2024, 2, 7)

    @pytest.mark.asyncio
    async def test_recompute_uses_last_created_date(self, recurring, chart):
        """Test recomputation starts from the last materialized date."""
        schedule = await monthly_rent(recurring, chart)
        await recurring.record_materialization(OWNER, schedule.id, date(2024, 2, 29))
        await recurring.update_recurring_transaction(OWNER, schedule.id, {"day_of_recurrence": 15})
        updated = await recurring.get_recurring_transaction(OWNER, schedule.id)
        assert updated.next_occurrence == date(2024, 3, 15)

    @pytest.mark.asyncio
    async def test_amount_only_keeps_occurrence(self, recurring, chart):
        """Test unrelated edits leave next_occurrence alone."""
        schedule = await monthly_rent(recurring, chart)
        await recurring.update_recurring_transaction(OWNER, schedule.id, {"amount": "950"})
        updated = await recurring.get_recurring_transaction(OWNER, schedule.id)
        assert updated.amount == Decimal("950")
        assert updated.next_occurrence == schedule.next_occurrence

    @pytest.mark.asyncio
    async def test_clearing_optional_fields(self, recurring, chart):
        """Test note, end date and reminder can be cleared."""
        schedule = await monthly_rent(
            recurring, chart, note="rent", end_date="2024-12-31", notify_before_days=2
        )
        await recurring.update_recurring_transaction(OWNER, schedule.id, {
            "note": "",
            "end_date": None,
            "notify_before_days": 0,
        })
        updated = await recurring.get_recurring_transaction(OWNER, schedule.id)
        assert updated.note is None
        assert updated.end_date is None
        assert updated.notify_before_days is None

    @pytest.mark.asyncio
    async def test_day_checked_against_new_frequency(self, recurring, chart):
        """Test switching to weekly with day 31 is rejected."""
        schedule = await monthly_rent(recurring, chart)
        with pytest.raises(InvalidArgumentError, match="weekday"):
            await recurring.update_recurring_transaction(OWNER, schedule.id, {"frequency": "weekly"})

    @pytest.mark.asyncio
    async def test_end_date_checked_against_start(self, recurring, chart):
        """Test a new start date after the stored end date is rejected."""
        schedule = await monthly_rent(recurring, chart, end_date="2024-06-30")
        with pytest.raises(InvalidArgumentError, match="End date"):
            await recurring.update_recurring_transaction(
                OWNER, schedule.id, {"start_date": "2024-07-01"}
            )

    @pytest.mark.asyncio
    async def test_account_change_validated(self, recurring, chart):
        """Test new accounts must differ and exist."""
        schedule = await monthly_rent(recurring, chart)
        with pytest.raises(InvalidArgumentError, match="must be different"):
            await recurring.update_recurring_transaction(
                OWNER, schedule.id, {"debit_account_id": chart["bank"]}
            )
        with pytest.raises(NotFoundError):
            await recurring.update_recurring_transaction(
                OWNER, schedule.id, {"credit_account_id": "nope"}
            )

    @pytest.mark.asyncio
    async def test_other_owner(self, recurring, chart):
        """Test PermissionDenied on someone else's schedule."""
        schedule = await monthly_rent(recurring, chart)
        with pytest.raises(PermissionDeniedError):
            await recurring.update_recurring_transaction(OTHER_OWNER, schedule.id, {"amount": 1})


class TestMaterializationAndDue:
    """Tests for the materialization hook and due listing."""

    @pytest.mark.asyncio
    async def test_record_materialization_advances(self, recurring, chart):
        """Test last_created_date is stored and next_occurrence moves on."""
        schedule = await monthly_rent(recurring, chart)
        upcoming = await recurring.record_materialization(OWNER, schedule.id, "2024-02-29")
        assert upcoming == date(2024, 3, 31)

        updated = await recurring.get_recurring_transaction(OWNER, schedule.id)
        assert updated.last_created_date == date(2024, 2, 29)
        assert updated.next_occurrence == date(2024, 3, 31)

    @pytest.mark.asyncio
    async def test_list_due(self, recurring, chart):
        """Test only schedules due today are listed."""
        rent = await monthly_rent(recurring, chart)
        await monthly_rent(recurring, chart, day_of_recurrence=10, start_date="2024-01-10")

        due = await recurring.list_due(OWNER, date(2024, 2, 29))
        assert [s.id for s in due] == [rent.id]

    @pytest.mark.asyncio
    async def test_delete(self, recurring, chart):
        """Test a deleted schedule is gone."""
        schedule = await monthly_rent(recurring, chart)
        await recurring.delete_recurring_transaction(OWNER, schedule.id)
        assert await recurring.list_recurring_transactions(OWNER) == []
        with pytest.raises(NotFoundError, match="Recurring transaction not found"):
            await recurring.get_recurring_transaction(OWNER, schedule.id)
