"""
Account Store

Manages an owner's chart of accounts.

DESIGN DECISION: Accounts are never hard-deleted. Deactivation (soft delete)
keeps every historical transaction that references the account valid, and
its balance stays where the history put it.

IMPORTANT: account_type, parent_category and sub_category are fixed at
creation. Balances are only ever changed by the TransactionLedger, through
store-side increments.
"""

from decimal import Decimal
from typing import Any, Optional, Union

from pydantic import ValidationError

from ledger.audit import AuditLogger
from ledger.errors import AlreadyExistsError, InvalidArgumentError
from ledger.models.account import Account, AccountType, AccountUpdate
from ledger.services.common import coerce_patch, commit, load_owned, read_all
from ledger.services.storage import ACCOUNTS, DocumentStore
from ledger.validation import LedgerValidator
from ledger.validation.validator import (
    parse_account_type,
    parse_opening_balance,
    require_account_name,
    require_id,
    require_text,
)


# Income/expense categories every new owner starts with
DEFAULT_ACCOUNTS: list[dict[str, str]] = [
    # Income
    {"name": "Salary", "account_type": "income",
     "parent_category": "Earned Income", "sub_category": "Salary"},
    {"name": "Interest Income", "account_type": "income",
     "parent_category": "Investment Income", "sub_category": "Interest"},
    # Expense
    {"name": "Rent", "account_type": "expense",
     "parent_category": "Housing", "sub_category": "Rent"},
    {"name": "Electricity", "account_type": "expense",
     "parent_category": "Utilities", "sub_category": "Electricity"},
    {"name": "Water", "account_type": "expense",
     "parent_category": "Utilities", "sub_category": "Water"},
    {"name": "Internet", "account_type": "expense",
     "parent_category": "Utilities", "sub_category": "Internet"},
    {"name": "Mobile", "account_type": "expense",
     "parent_category": "Utilities", "sub_category": "Mobile"},
    {"name": "Groceries", "account_type": "expense",
     "parent_category": "Food & Dining", "sub_category": "Groceries"},
    {"name": "Restaurants", "account_type": "expense",
     "parent_category": "Food & Dining", "sub_category": "Restaurants"},
    {"name": "Fuel", "account_type": "expense",
     "parent_category": "Transportation", "sub_category": "Fuel"},
    {"name": "Public Transport", "account_type": "expense",
     "parent_category": "Transportation", "sub_category": "Public Transport"},
    {"name": "Doctor", "account_type": "expense",
     "parent_category": "Healthcare", "sub_category": "Doctor"},
    {"name": "Medicine", "account_type": "expense",
     "parent_category": "Healthcare", "sub_category": "Medicine"},
    {"name": "Entertainment", "account_type": "expense",
     "parent_category": "Entertainment", "sub_category": "Movies"},
    {"name": "Maid", "account_type": "expense",
     "parent_category": "Utilities", "sub_category": "Helper"},
    {"name": "Cook", "account_type": "expense",
     "parent_category": "Utilities", "sub_category": "Helper"},
]


def _optional_text(value: Any) -> Optional[str]:
    """Blank icon/color values count as not given."""
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


class AccountStore:
    """
    Create, patch and deactivate accounts.

    Usage:
        accounts = AccountStore(store)
        account = await accounts.create_account(
            owner_id, "HDFC Savings", "asset", "Bank", "Savings",
            opening_balance=Decimal("5000"),
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

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def get_account(self, owner_id: str, account_id: str) -> Account:
        """Load one account the owner holds (NotFound / PermissionDenied)."""
        require_id(account_id, "Account ID")
        document = await load_owned(self._store, ACCOUNTS, account_id, owner_id, "account")
        return Account.model_validate(document)

    async def list_accounts(
        self,
        owner_id: str,
        include_inactive: bool = False,
    ) -> list[Account]:
        filters: dict[str, Any] = {"owner_id": owner_id}
        if not include_inactive:
            filters["is_active"] = True
        documents = await read_all(self._store, ACCOUNTS, filters)
        accounts = [Account.model_validate(doc) for doc in documents]
        return sorted(accounts, key=lambda a: (a.account_type.value, a.name.lower()))

    async def _check_unique_name(
        self,
        owner_id: str,
        name: str,
        exclude_id: Optional[str] = None,
    ) -> None:
        """Names are unique per owner, case-insensitively, among active accounts."""
        active = await read_all(self._store, ACCOUNTS, {"owner_id": owner_id, "is_active": True})
        for document in active:
            if document["id"] == exclude_id:
                continue
            existing_name = str(document.get("name", ""))
            if existing_name.strip().lower() == name.lower():
                raise AlreadyExistsError(
                    f'An account with the name "{existing_name}" already exists. '
                    "Please use a different name.",
                    details={"account_id": document["id"]},
                )

    # =========================================================================
    # MUTATIONS
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
    ) -> Account:
        """
        Create an account.

        Balance-bearing (asset/liability) accounts start with
        current_balance = opening_balance (default 0). Income and expense
        accounts carry no balance fields at all.

        Raises:
            InvalidArgumentError: Blank or over-long name, blank categories,
                unknown type, negative opening balance
            AlreadyExistsError: Active account with the same name exists
        """
        require_id(owner_id, "Owner ID")
        name = require_account_name(name, "Account name is required")
        parent_category = require_text(parent_category, "Parent category is required")
        sub_category = require_text(sub_category, "Sub-category is required")
        account_type = parse_account_type(account_type)

        balance: Optional[Decimal] = None
        if account_type.has_balance:
            balance = parse_opening_balance(opening_balance)

        await self._check_unique_name(owner_id, name)

        now = self._validator.now()
        account = Account(
            id=self._store.new_id(),
            owner_id=owner_id,
            name=name,
            account_type=account_type,
            parent_category=parent_category,
            sub_category=sub_category,
            opening_balance=balance,
            current_balance=balance,
            is_active=True,
            icon=_optional_text(icon),
            color=_optional_text(color),
            created_at=now,
            updated_at=now,
        )

        batch = self._store.batch().insert(ACCOUNTS, account.id, account.to_document())
        await commit(self._store, batch, "create_account")

        await self._audit_logger.log_account_created(
            owner_id, account.id, account.name, account.account_type.value
        )
        return account

    async def update_account(
        self,
        owner_id: str,
        account_id: str,
        patch: Union[AccountUpdate, dict],
    ) -> None:
        """
        Patch name, icon, color and/or is_active.

        Blank icon/color values are ignored rather than clearing the field.
        A rename, or reactivating an account, must not collide with another
        active account's name.
        """
        require_id(account_id, "Account ID")
        patch = coerce_patch(patch, AccountUpdate)
        document = await load_owned(self._store, ACCOUNTS, account_id, owner_id, "account")

        updates: dict[str, Any] = {}

        if patch.is_set("name"):
            updates["name"] = require_account_name(patch.name, "Account name cannot be empty")

        icon = _optional_text(patch.icon)
        if icon is not None:
            updates["icon"] = icon
        color = _optional_text(patch.color)
        if color is not None:
            updates["color"] = color

        if patch.is_active is not None:
            updates["is_active"] = patch.is_active

        will_be_active = updates.get("is_active", document.get("is_active", True))
        renamed = "name" in updates and updates["name"] != document.get("name")
        reactivated = updates.get("is_active") is True and not document.get("is_active", True)
        if will_be_active and (renamed or reactivated):
            await self._check_unique_name(
                owner_id,
                updates.get("name", document.get("name", "")),
                exclude_id=account_id,
            )

        changed_fields = sorted(updates)
        updates["updated_at"] = self._validator.now()

        # The stored record must stay loadable after the patch
        try:
            Account.model_validate({**document, **updates})
        except ValidationError as e:
            raise InvalidArgumentError(f"Invalid update: {e.errors()[0]['msg']}")

        batch = self._store.batch().update(ACCOUNTS, account_id, updates)
        await commit(self._store, batch, "update_account")

        await self._audit_logger.log_account_updated(owner_id, account_id, changed_fields)

    async def deactivate_account(self, owner_id: str, account_id: str) -> None:
        """Soft delete. Balances and transaction history are left untouched."""
        require_id(account_id, "Account ID")
        await load_owned(self._store, ACCOUNTS, account_id, owner_id, "account")

        batch = self._store.batch().update(ACCOUNTS, account_id, {
            "is_active": False,
            "updated_at": self._validator.now(),
        })
        await commit(self._store, batch, "deactivate_account")

        await self._audit_logger.log_account_deactivated(owner_id, account_id)

    async def seed_default_accounts(self, owner_id: str) -> int:
        """
        Create the default chart of accounts for a new owner.

        Skipped (returns 0) when the owner already has any account, active or
        not. All defaults are written in one batch.
        """
        require_id(owner_id, "Owner ID")
        existing = await read_all(self._store, ACCOUNTS, {"owner_id": owner_id})
        if existing:
            return 0

        now = self._validator.now()
        batch = self._store.batch()
        for template in DEFAULT_ACCOUNTS:
            account_type = AccountType(template["account_type"])
            balance = Decimal("0") if account_type.has_balance else None
            account = Account(
                id=self._store.new_id(),
                owner_id=owner_id,
                name=template["name"],
                account_type=account_type,
                parent_category=template["parent_category"],
                sub_category=template["sub_category"],
                opening_balance=balance,
                current_balance=balance,
                created_at=now,
                updated_at=now,
            )
            batch.insert(ACCOUNTS, account.id, account.to_document())

        await commit(self._store, batch, "seed_default_accounts")

        await self._audit_logger.log_default_accounts_seeded(owner_id, len(batch))
        return len(batch)
