"""
Audit Models for Personal Ledger

Every mutation of the ledger is logged for audit purposes.
This provides:
1. Traceability of every balance change
2. Debugging information when a reconciliation drifts
3. Ability to reconstruct who changed what and when

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    One event type per ledger operation, plus rejections and failures.
    """
    # Accounts
    ACCOUNT_CREATED = "account_created"
    ACCOUNT_UPDATED = "account_updated"
    ACCOUNT_DEACTIVATED = "account_deactivated"
    DEFAULT_ACCOUNTS_SEEDED = "default_accounts_seeded"

    # Transactions
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"

    # Recurring schedules
    RECURRING_CREATED = "recurring_created"
    RECURRING_UPDATED = "recurring_updated"
    RECURRING_DELETED = "recurring_deleted"
    RECURRING_MATERIALIZED = "recurring_materialized"

    # Owner lifecycle
    OWNER_DATA_PURGED = "owner_data_purged"

    # Reconciliation
    BALANCE_DRIFT_DETECTED = "balance_drift_detected"

    # Failures
    OPERATION_REJECTED = "operation_rejected"
    STORAGE_ERROR = "storage_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every ledger mutation creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - who and what is this about?
    owner_id: Optional[str] = Field(
        default=None,
        description="Owner whose ledger was touched"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'account', 'transaction', 'recurring')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "owner_id": self.owner_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }

    def to_document(self) -> dict:
        """Fields persisted to the audit_events collection."""
        document = self.to_log_dict()
        document.pop("event_id")
        document["timestamp"] = self.timestamp
        return document


def _amount(value: Decimal) -> str:
    return str(value)


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.account_created(owner_id, account_id, name, "asset")
        event = AuditEventBuilder.transaction_deleted(owner_id, transaction_id, adjustments)
    """

    @staticmethod
    def account_created(
        owner_id: str,
        account_id: str,
        name: str,
        account_type: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_CREATED,
            owner_id=owner_id,
            entity_type="account",
            entity_id=account_id,
            description=f"Account created: {name} ({account_type})",
            details={
                "name": name,
                "account_type": account_type,
            },
        )

    @staticmethod
    def account_updated(
        owner_id: str,
        account_id: str,
        changed_fields: list[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_UPDATED,
            owner_id=owner_id,
            entity_type="account",
            entity_id=account_id,
            description=f"Account updated: {', '.join(changed_fields) or 'no fields'}",
            details={"changed_fields": changed_fields},
        )

    @staticmethod
    def account_deactivated(owner_id: str, account_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_DEACTIVATED,
            owner_id=owner_id,
            entity_type="account",
            entity_id=account_id,
            description="Account deactivated",
        )

    @staticmethod
    def default_accounts_seeded(owner_id: str, count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEFAULT_ACCOUNTS_SEEDED,
            owner_id=owner_id,
            entity_type="account",
            description=f"Created {count} default accounts",
            details={"count": count},
        )

    @staticmethod
    def transaction_created(
        owner_id: str,
        transaction_id: str,
        amount: Decimal,
        adjustments: dict[str, Decimal],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            owner_id=owner_id,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Transaction created: {amount}",
            details={
                "amount": _amount(amount),
                "balance_adjustments": {k: _amount(v) for k, v in adjustments.items()},
            },
        )

    @staticmethod
    def transaction_updated(
        owner_id: str,
        transaction_id: str,
        changed_fields: list[str],
        adjustments: dict[str, Decimal],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            owner_id=owner_id,
            entity_type="transaction",
            entity_id=transaction_id,
            description="Transaction updated",
            details={
                "changed_fields": changed_fields,
                "balance_adjustments": {k: _amount(v) for k, v in adjustments.items()},
            },
        )

    @staticmethod
    def transaction_deleted(
        owner_id: str,
        transaction_id: str,
        adjustments: dict[str, Decimal],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            owner_id=owner_id,
            entity_type="transaction",
            entity_id=transaction_id,
            description="Transaction deleted and balances reversed",
            details={
                "balance_adjustments": {k: _amount(v) for k, v in adjustments.items()},
            },
        )

    @staticmethod
    def recurring_changed(
        event_type: AuditEventType,
        owner_id: str,
        recurring_id: str,
        next_occurrence: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            owner_id=owner_id,
            entity_type="recurring",
            entity_id=recurring_id,
            description=f"Recurring transaction {event_type.value.split('_', 1)[1]}",
            details={"next_occurrence": next_occurrence} if next_occurrence else {},
        )

    @staticmethod
    def owner_data_purged(owner_id: str, counts: dict[str, int]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OWNER_DATA_PURGED,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            description="All ledger data deleted for owner",
            details=counts,
        )

    @staticmethod
    def balance_drift_detected(
        owner_id: str,
        account_id: str,
        stored: Decimal,
        recomputed: Decimal,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCE_DRIFT_DETECTED,
            severity=AuditSeverity.ERROR,
            owner_id=owner_id,
            entity_type="account",
            entity_id=account_id,
            description="Stored balance does not match transaction history",
            details={
                "stored_balance": _amount(stored),
                "recomputed_balance": _amount(recomputed),
            },
        )

    @staticmethod
    def operation_rejected(
        operation: str,
        error_code: str,
        error_message: str,
        owner_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OPERATION_REJECTED,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            description=f"Operation rejected: {operation}",
            details={"operation": operation},
            error_code=error_code,
            error_message=error_message,
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        owner_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            owner_id=owner_id,
            description=f"Storage error during {operation}",
            details={"operation": operation},
            error_code="internal",
            error_message=error_message,
        )
