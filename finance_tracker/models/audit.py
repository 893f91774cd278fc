"""
Audit Models for the Finance Tracker

Every change to stored data, and every grouped query, is logged for audit
purposes. This provides:
1. Traceability of who changed which entry, category or payment
2. Debugging information when totals look wrong
3. A record of overpayments, which the ledger accepts silently

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Entries
    ENTRY_CREATED = "entry_created"
    ENTRY_UPDATED = "entry_updated"
    ENTRY_DELETED = "entry_deleted"

    # Categories
    CATEGORY_CREATED = "category_created"
    CATEGORY_UPDATED = "category_updated"
    CATEGORY_DELETED = "category_deleted"

    # Payments
    PAYMENT_RECORDED = "payment_recorded"
    OVERPAYMENT_RECORDED = "overpayment_recorded"

    # Grouped view
    GROUPED_QUERY_EXECUTED = "grouped_query_executed"
    GROUPED_QUERY_FAILED = "grouped_query_failed"
    WINDOW_EXTENDED = "window_extended"

    # Rejections
    VALIDATION_FAILED = "validation_failed"
    OWNERSHIP_DENIED = "ownership_denied"

    # System events
    SYSTEM_ERROR = "system_error"


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
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
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

    # Who and what
    owner_id: Optional[UUID] = Field(
        default=None,
        description="User the affected data belongs to"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'entry', 'category', 'payment', 'query')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., an entry and its new category)"
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

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "owner_id": str(self.owner_id) if self.owner_id else None,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, owner_id, entity_type,
         entity_id, correlation_id, description, details_json,
         error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            str(self.owner_id) if self.owner_id else "",
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.entry_created(entry_id, owner_id, "expense", "12.50", cid)
        event = AuditEventBuilder.payment_recorded(payment_id, entry_id, owner_id, "5.00", "7.50", cid)
    """

    @staticmethod
    def entry_created(
        entry_id: UUID,
        owner_id: UUID,
        entry_type: str,
        amount: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_CREATED,
            owner_id=owner_id,
            entity_type="entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description=f"Entry created: {entry_type} of {amount}",
            details={
                "entry_type": entry_type,
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def entry_updated(
        entry_id: UUID,
        owner_id: UUID,
        changed_fields: list[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_UPDATED,
            owner_id=owner_id,
            entity_type="entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description=f"Entry updated ({len(changed_fields)} fields changed)",
            details={
                "changed_fields": changed_fields,
            },
            is_user_action=True,
        )

    @staticmethod
    def entry_deleted(
        entry_id: UUID,
        owner_id: UUID,
        payments_deleted: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_DELETED,
            owner_id=owner_id,
            entity_type="entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description="Entry deleted",
            details={
                "payments_deleted": payments_deleted,
            },
            is_user_action=True,
        )

    @staticmethod
    def category_created(
        category_id: UUID,
        owner_id: UUID,
        name: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_CREATED,
            owner_id=owner_id,
            entity_type="category",
            entity_id=category_id,
            correlation_id=correlation_id,
            description=f"Category created: {name}",
            details={
                "name": name,
            },
            is_user_action=True,
        )

    @staticmethod
    def category_updated(
        category_id: UUID,
        owner_id: UUID,
        name: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_UPDATED,
            owner_id=owner_id,
            entity_type="category",
            entity_id=category_id,
            correlation_id=correlation_id,
            description=f"Category updated: {name}",
            details={
                "name": name,
            },
            is_user_action=True,
        )

    @staticmethod
    def category_deleted(
        category_id: UUID,
        owner_id: UUID,
        detached_entries: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_DELETED,
            owner_id=owner_id,
            entity_type="category",
            entity_id=category_id,
            correlation_id=correlation_id,
            description=f"Category deleted, {detached_entries} entries now uncategorized",
            details={
                "detached_entries": detached_entries,
            },
            is_user_action=True,
        )

    @staticmethod
    def payment_recorded(
        payment_id: UUID,
        entry_id: UUID,
        owner_id: UUID,
        amount: str,
        remaining: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAYMENT_RECORDED,
            owner_id=owner_id,
            entity_type="payment",
            entity_id=payment_id,
            correlation_id=correlation_id,
            description=f"Payment of {amount} recorded, {remaining} remaining",
            details={
                "entry_id": str(entry_id),
                "amount": amount,
                "remaining": remaining,
            },
            is_user_action=True,
        )

    @staticmethod
    def overpayment_recorded(
        payment_id: UUID,
        entry_id: UUID,
        owner_id: UUID,
        entry_amount: str,
        total_paid: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OVERPAYMENT_RECORDED,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            entity_type="payment",
            entity_id=payment_id,
            correlation_id=correlation_id,
            description=f"Entry overpaid: {total_paid} paid against {entry_amount}",
            details={
                "entry_id": str(entry_id),
                "entry_amount": entry_amount,
                "total_paid": total_paid,
            },
        )

    @staticmethod
    def grouped_query_executed(
        query_id: UUID,
        owner_id: UUID,
        group_by: str,
        group_count: int,
        entry_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GROUPED_QUERY_EXECUTED,
            severity=AuditSeverity.DEBUG,
            owner_id=owner_id,
            entity_type="query",
            entity_id=query_id,
            correlation_id=correlation_id,
            description=f"Grouped by {group_by}: {group_count} groups, {entry_count} entries",
            details={
                "group_by": group_by,
                "group_count": group_count,
                "entry_count": entry_count,
            },
        )

    @staticmethod
    def grouped_query_failed(
        query_id: UUID,
        owner_id: UUID,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GROUPED_QUERY_FAILED,
            severity=AuditSeverity.ERROR,
            owner_id=owner_id,
            entity_type="query",
            entity_id=query_id,
            correlation_id=correlation_id,
            description="Grouped query failed",
            error_message=error_message,
        )

    @staticmethod
    def window_extended(
        query_id: UUID,
        owner_id: UUID,
        direction: str,
        date_from: str,
        date_to: str,
        added_groups: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WINDOW_EXTENDED,
            severity=AuditSeverity.DEBUG,
            owner_id=owner_id,
            entity_type="query",
            entity_id=query_id,
            correlation_id=correlation_id,
            description=f"Window extended {direction}: {date_from}..{date_to} (+{added_groups} groups)",
            details={
                "direction": direction,
                "date_from": date_from,
                "date_to": date_to,
                "added_groups": added_groups,
            },
        )

    @staticmethod
    def validation_failed(
        entity_type: str,
        owner_id: UUID,
        issues: list[dict],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            entity_type=entity_type,
            correlation_id=correlation_id,
            description=f"{entity_type.capitalize()} validation failed with {len(issues)} issues",
            details={
                "issues": issues,
            },
            is_user_action=True,
        )

    @staticmethod
    def ownership_denied(
        entity_type: str,
        entity_id: UUID,
        owner_id: UUID,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OWNERSHIP_DENIED,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Access to {entity_type} denied: not owned by requesting user",
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
