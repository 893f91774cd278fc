"""
Audit Logger

DESIGN DECISION: Every change to the ledger is logged.
This provides:
1. Complete traceability
2. Debugging capability when totals look wrong
3. A visible record of overpayments, which are otherwise silent

The audit logger:
- Is async to match the storage interface
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from finance_tracker.models.audit import AuditEvent, AuditEventBuilder
from finance_tracker.services.storage import AuditStorageInterface


def configure_logging(level: str = "INFO") -> None:
    """Configure stdlib logging and structlog for JSON output."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper(), logging.INFO))
    logging.getLogger().setLevel(getattr(logging, level.upper(), logging.INFO))

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
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("finance_tracker.audit")

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
        elif event.severity.value == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_entry_created(
        self,
        entry_id: UUID,
        owner_id: UUID,
        entry_type: str,
        amount: Decimal,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.entry_created(
            entry_id=entry_id,
            owner_id=owner_id,
            entry_type=entry_type,
            amount=str(amount),
            correlation_id=correlation_id,
        ))

    async def log_entry_updated(
        self,
        entry_id: UUID,
        owner_id: UUID,
        changed_fields: list[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.entry_updated(
            entry_id=entry_id,
            owner_id=owner_id,
            changed_fields=changed_fields,
            correlation_id=correlation_id,
        ))

    async def log_entry_deleted(
        self,
        entry_id: UUID,
        owner_id: UUID,
        payments_deleted: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.entry_deleted(
            entry_id=entry_id,
            owner_id=owner_id,
            payments_deleted=payments_deleted,
            correlation_id=correlation_id,
        ))

    async def log_category_created(
        self,
        category_id: UUID,
        owner_id: UUID,
        name: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.category_created(
            category_id=category_id,
            owner_id=owner_id,
            name=name,
            correlation_id=correlation_id,
        ))

    async def log_category_updated(
        self,
        category_id: UUID,
        owner_id: UUID,
        name: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.category_updated(
            category_id=category_id,
            owner_id=owner_id,
            name=name,
            correlation_id=correlation_id,
        ))

    async def log_category_deleted(
        self,
        category_id: UUID,
        owner_id: UUID,
        detached_entries: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.category_deleted(
            category_id=category_id,
            owner_id=owner_id,
            detached_entries=detached_entries,
            correlation_id=correlation_id,
        ))

    async def log_payment_recorded(
        self,
        payment_id: UUID,
        entry_id: UUID,
        owner_id: UUID,
        amount: Decimal,
        remaining: Decimal,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.payment_recorded(
            payment_id=payment_id,
            entry_id=entry_id,
            owner_id=owner_id,
            amount=str(amount),
            remaining=str(remaining),
            correlation_id=correlation_id,
        ))

    async def log_overpayment(
        self,
        payment_id: UUID,
        entry_id: UUID,
        owner_id: UUID,
        entry_amount: Decimal,
        total_paid: Decimal,
        correlation_id: UUID,
    ) -> None:
        """Log that an entry has now been paid beyond its amount."""
        await self.log(AuditEventBuilder.overpayment_recorded(
            payment_id=payment_id,
            entry_id=entry_id,
            owner_id=owner_id,
            entry_amount=str(entry_amount),
            total_paid=str(total_paid),
            correlation_id=correlation_id,
        ))

    async def log_grouped_query(
        self,
        query_id: UUID,
        owner_id: UUID,
        group_by: str,
        group_count: int,
        entry_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.grouped_query_executed(
            query_id=query_id,
            owner_id=owner_id,
            group_by=group_by,
            group_count=group_count,
            entry_count=entry_count,
            correlation_id=correlation_id,
        ))

    async def log_grouped_query_failed(
        self,
        query_id: UUID,
        owner_id: UUID,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.grouped_query_failed(
            query_id=query_id,
            owner_id=owner_id,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_window_extended(
        self,
        query_id: UUID,
        owner_id: UUID,
        direction: str,
        date_from: str,
        date_to: str,
        added_groups: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.window_extended(
            query_id=query_id,
            owner_id=owner_id,
            direction=direction,
            date_from=date_from,
            date_to=date_to,
            added_groups=added_groups,
            correlation_id=correlation_id,
        ))

    async def log_validation_failed(
        self,
        entity_type: str,
        owner_id: UUID,
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.validation_failed(
            entity_type=entity_type,
            owner_id=owner_id,
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_ownership_denied(
        self,
        entity_type: str,
        entity_id: UUID,
        owner_id: UUID,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.ownership_denied(
            entity_type=entity_type,
            entity_id=entity_id,
            owner_id=owner_id,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., saving an entry).
    Pass it through all subsequent operations.
    """
    return uuid4()
