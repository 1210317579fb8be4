"""
Data Models Package

This package contains all Pydantic models used by the ledger.
All data flowing into and out of storage must conform to these schemas.
"""

from ledger.models.account import (
    Account,
    AccountType,
    AccountUpdate,
)
from ledger.models.transaction import (
    Frequency,
    RecurringTransaction,
    RecurringTransactionUpdate,
    Transaction,
    TransactionUpdate,
)
from ledger.models.result import OperationResult
from ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "Account",
    "AccountType",
    "AccountUpdate",
    "Frequency",
    "RecurringTransaction",
    "RecurringTransactionUpdate",
    "Transaction",
    "TransactionUpdate",
    "OperationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
