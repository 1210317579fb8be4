"""
Audit Logger

DESIGN DECISION: Every ledger mutation is logged.
This provides:
1. Complete traceability of balance changes
2. Debugging capability when reconciliation drifts
3. A history the owner can inspect

The audit logger:
- Is async like the storage it writes to
- Gracefully handles failures (an audit write never fails a committed operation)
- Writes audit events outside the ledger batch, after it has committed
"""

import logging
from decimal import Decimal
from typing import Optional

import structlog

from ledger.config import get_settings
from ledger.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from ledger.services.storage import AUDIT_EVENTS, DocumentStore


def configure_logging(level: str = "INFO", json_output: bool = True) -> None:
    """Configure structlog (and the stdlib logger it writes through)."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper(), logging.INFO))
    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


_ledger_settings = get_settings().ledger
configure_logging(_ledger_settings.log_level, _ledger_settings.log_json)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The audit_events collection of a document store (if given)
    """

    def __init__(
        self,
        storage: Optional[DocumentStore] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Document store for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("ledger.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                await self._storage.insert(
                    AUDIT_EVENTS,
                    str(event.event_id),
                    event.to_document(),
                )
                return True
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_account_created(
        self,
        owner_id: str,
        account_id: str,
        name: str,
        account_type: str,
    ) -> None:
        await self.log(AuditEventBuilder.account_created(
            owner_id=owner_id,
            account_id=account_id,
            name=name,
            account_type=account_type,
        ))

    async def log_account_updated(
        self,
        owner_id: str,
        account_id: str,
        changed_fields: list[str],
    ) -> None:
        await self.log(AuditEventBuilder.account_updated(
            owner_id=owner_id,
            account_id=account_id,
            changed_fields=changed_fields,
        ))

    async def log_account_deactivated(self, owner_id: str, account_id: str) -> None:
        await self.log(AuditEventBuilder.account_deactivated(owner_id, account_id))

    async def log_default_accounts_seeded(self, owner_id: str, count: int) -> None:
        await self.log(AuditEventBuilder.default_accounts_seeded(owner_id, count))

    async def log_transaction_created(
        self,
        owner_id: str,
        transaction_id: str,
        amount: Decimal,
        adjustments: dict[str, Decimal],
    ) -> None:
        """Log a new transaction and the balance deltas it applied."""
        await self.log(AuditEventBuilder.transaction_created(
            owner_id=owner_id,
            transaction_id=transaction_id,
            amount=amount,
            adjustments=adjustments,
        ))

    async def log_transaction_updated(
        self,
        owner_id: str,
        transaction_id: str,
        changed_fields: list[str],
        adjustments: dict[str, Decimal],
    ) -> None:
        """Log a transaction edit and its net balance adjustments."""
        await self.log(AuditEventBuilder.transaction_updated(
            owner_id=owner_id,
            transaction_id=transaction_id,
            changed_fields=changed_fields,
            adjustments=adjustments,
        ))

    async def log_transaction_deleted(
        self,
        owner_id: str,
        transaction_id: str,
        adjustments: dict[str, Decimal],
    ) -> None:
        await self.log(AuditEventBuilder.transaction_deleted(
            owner_id=owner_id,
            transaction_id=transaction_id,
            adjustments=adjustments,
        ))

    async def log_recurring_changed(
        self,
        event_type: AuditEventType,
        owner_id: str,
        recurring_id: str,
        next_occurrence: Optional[str] = None,
    ) -> None:
        await self.log(AuditEventBuilder.recurring_changed(
            event_type=event_type,
            owner_id=owner_id,
            recurring_id=recurring_id,
            next_occurrence=next_occurrence,
        ))

    async def log_owner_data_purged(self, owner_id: str, counts: dict[str, int]) -> None:
        await self.log(AuditEventBuilder.owner_data_purged(owner_id, counts))

    async def log_balance_drift(
        self,
        owner_id: str,
        account_id: str,
        stored: Decimal,
        recomputed: Decimal,
    ) -> None:
        await self.log(AuditEventBuilder.balance_drift_detected(
            owner_id=owner_id,
            account_id=account_id,
            stored=stored,
            recomputed=recomputed,
        ))

    async def log_rejected(
        self,
        operation: str,
        error_code: str,
        error_message: str,
        owner_id: Optional[str] = None,
    ) -> None:
        """Log a request the ledger refused."""
        await self.log(AuditEventBuilder.operation_rejected(
            operation=operation,
            error_code=error_code,
            error_message=error_message,
            owner_id=owner_id,
        ))

    async def log_storage_error(
        self,
        operation: str,
        error_message: str,
        owner_id: Optional[str] = None,
    ) -> None:
        await self.log(AuditEventBuilder.storage_error(
            operation=operation,
            error_message=error_message,
            owner_id=owner_id,
        ))
