"""
Data Models Package

This package contains all Pydantic models used in the Finance Tracker.
All data flowing through the system must conform to these schemas.
"""

from finance_tracker.models.ledger import (
    DATE_KEY_FORMAT,
    DATE_LABEL_FORMAT,
    MAX_ENTRY_AMOUNT,
    MIN_PAYMENT_AMOUNT,
    UNCATEGORIZED_LABEL,
    ZERO,
    AnnotatedEntry,
    Category,
    CategorySummary,
    DateWindow,
    Entry,
    EntryDraft,
    EntryGroup,
    EntryTotals,
    EntryType,
    ExtensionDirection,
    GroupBy,
    GroupedEntriesResult,
    GroupingRequest,
    Payment,
    PaymentDraft,
    TimelineItem,
    ValidationIssue,
    ValidationResult,
)
from finance_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Constants
    "DATE_KEY_FORMAT",
    "DATE_LABEL_FORMAT",
    "MAX_ENTRY_AMOUNT",
    "MIN_PAYMENT_AMOUNT",
    "UNCATEGORIZED_LABEL",
    "ZERO",
    # Ledger models
    "AnnotatedEntry",
    "Category",
    "CategorySummary",
    "DateWindow",
    "Entry",
    "EntryDraft",
    "EntryGroup",
    "EntryTotals",
    "EntryType",
    "ExtensionDirection",
    "GroupBy",
    "GroupedEntriesResult",
    "GroupingRequest",
    "Payment",
    "PaymentDraft",
    "TimelineItem",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
