"""
Tests for Finance Tracker models

Test strategy:
1. Unit tests for individual components (models, grouping, validators)
2. Integration tests for flows against in-memory storage
3. No real API calls in tests (Google Sheets is faked)
"""

import json

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from finance_tracker.models.ledger import (
    UNCATEGORIZED_LABEL,
    AnnotatedEntry,
    Category,
    DateWindow,
    Entry,
    EntryDraft,
    EntryGroup,
    EntryType,
    GroupBy,
    GroupingRequest,
    Payment,
    ValidationIssue,
    ValidationResult,
)
from finance_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestLedgerModels:
    """Tests for stored ledger records."""

    def test_entry_creation(self):
        """Test Entry model creation."""
        entry = Entry(
            owner_id=uuid4(),
            type=EntryType.EXPENSE,
            amount=Decimal("12.50"),
            date=date(2024, 1, 1),
        )
        assert entry.is_expense
        assert not entry.is_income
        assert entry.category_id is None

    def test_entry_rejects_negative_amount(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValueError):
            Entry(
                owner_id=uuid4(),
                type=EntryType.EXPENSE,
                amount=Decimal("-1.00"),
                date=date(2024, 1, 1),
            )

    def test_entry_rejects_three_decimal_places(self):
        with pytest.raises(ValueError):
            Entry(
                owner_id=uuid4(),
                type=EntryType.INCOME,
                amount=Decimal("1.005"),
                date=date(2024, 1, 1),
            )

    def test_entry_rejects_amount_above_maximum(self):
        with pytest.raises(ValueError):
            Entry(
                owner_id=uuid4(),
                type=EntryType.INCOME,
                amount=Decimal("100000000.00"),
                date=date(2024, 1, 1),
            )

    def test_payment_requires_minimum_amount(self):
        """Test that zero payments are rejected."""
        with pytest.raises(ValueError):
            Payment(entry_id=uuid4(), amount=Decimal("0.00"), date=date(2024, 1, 1))

    def test_category_strips_whitespace(self):
        """Test that whitespace is stripped from category name."""
        category = Category(owner_id=uuid4(), name="  Food  ")
        assert category.name == "Food"
        assert category.normalized_name == "food"

    def test_category_rejects_blank_name(self):
        with pytest.raises(ValueError):
            Category(owner_id=uuid4(), name="   ")

    def test_entry_draft_accepts_category_name(self):
        draft = EntryDraft(
            type=EntryType.EXPENSE,
            amount=Decimal("5.00"),
            date=date(2024, 1, 1),
            category_name=" Groceries ",
        )
        assert draft.category_name == "Groceries"
        assert draft.category_id is None


class TestDerivedModels:
    """Tests for records computed per request."""

    def test_annotated_entry_defaults_to_uncategorized(self):
        entry = Entry(
            owner_id=uuid4(),
            type=EntryType.EXPENSE,
            amount=Decimal("10.00"),
            date=date(2024, 1, 1),
        )
        item = AnnotatedEntry(entry=entry)
        assert item.category_label == UNCATEGORIZED_LABEL
        assert item.total_paid == Decimal("0.00")
        assert not item.is_paid

    def test_empty_group_is_placeholder(self):
        group = EntryGroup(key="2024-01-01", label="Jan 01, 2024")
        assert group.is_placeholder
        assert group.entry_count == 0
        assert group.net == Decimal("0.00")

    def test_group_net(self):
        group = EntryGroup(
            key="Food",
            label="Food",
            total_payable=Decimal("150.00"),
            total_income=Decimal("200.00"),
        )
        assert group.net == Decimal("50.00")

    def test_date_window_days(self):
        window = DateWindow(date_from=date(2024, 1, 1), date_to=date(2024, 1, 7))
        assert window.days == 7

    def test_reversed_date_window_is_empty(self):
        window = DateWindow(date_from=date(2024, 1, 7), date_to=date(2024, 1, 1))
        assert window.days == 0


class TestGroupingRequest:
    """Tests for filter state."""

    def test_single_category_becomes_list(self):
        category_id = uuid4()
        request = GroupingRequest(owner_id=uuid4(), category_ids=category_id)
        assert request.category_ids == [category_id]

    def test_empty_category_means_all(self):
        request = GroupingRequest(owner_id=uuid4(), category_ids="")
        assert request.category_ids == []

    def test_defaults(self):
        request = GroupingRequest(owner_id=uuid4())
        assert request.group_by == GroupBy.DATE
        assert not request.has_window

    def test_with_window_keeps_query_id(self):
        request = GroupingRequest(owner_id=uuid4())
        windowed = request.with_window(date(2024, 1, 1), date(2024, 1, 7))
        assert windowed.query_id == request.query_id
        assert windowed.has_window
        assert request.date_from is None


class TestValidationModels:
    """Tests for validation models."""

    def test_validation_result_no_errors(self):
        """Test ValidationResult with no errors."""
        result = ValidationResult(issues=[])
        assert result.is_valid
        assert not result.has_errors
        assert result.error_count == 0

    def test_validation_result_with_errors(self):
        """Test ValidationResult with errors."""
        result = ValidationResult(
            issues=[
                ValidationIssue(
                    field="amount",
                    issue_type="invalid_value",
                    message="Amount too large",
                    severity="error",
                ),
            ],
        )
        assert not result.is_valid
        assert result.error_count == 1

    def test_issues_sorted_by_severity(self):
        result = ValidationResult(
            issues=[
                ValidationIssue(field="a", issue_type="x", message="info", severity="info"),
                ValidationIssue(field="b", issue_type="x", message="warn", severity="warning"),
                ValidationIssue(field="c", issue_type="x", message="err", severity="error"),
            ],
        )
        assert [i.severity for i in result.issues] == ["error", "warning", "info"]
        assert result.warnings == ["warn"]

    def test_issue_rejects_unknown_severity(self):
        with pytest.raises(ValueError):
            ValidationIssue(field="a", issue_type="x", message="m", severity="fatal")


class TestAuditModels:
    """Tests for audit models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.ENTRY_CREATED,
            description="Test event",
        )
        assert event.event_type == AuditEventType.ENTRY_CREATED
        assert event.severity == AuditSeverity.INFO
        assert event.timestamp is not None

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row format."""
        event = AuditEvent(
            event_type=AuditEventType.PAYMENT_RECORDED,
            owner_id=uuid4(),
            entity_type="payment",
            entity_id=uuid4(),
            description="Test",
            details={"amount": "5.00"},
        )
        row = event.to_sheets_row()
        assert len(row) == 12
        assert row[2] == "payment_recorded"
        assert json.loads(row[9]) == {"amount": "5.00"}

    def test_overpayment_event_is_warning(self):
        event = AuditEventBuilder.overpayment_recorded(
            payment_id=uuid4(),
            entry_id=uuid4(),
            owner_id=uuid4(),
            entry_amount="100.00",
            total_paid="130.00",
            correlation_id=uuid4(),
        )
        assert event.event_type == AuditEventType.OVERPAYMENT_RECORDED
        assert event.severity == AuditSeverity.WARNING
        assert event.details["total_paid"] == "130.00"

    def test_builder_entry_created(self):
        """Test AuditEventBuilder.entry_created."""
        entry_id = uuid4()
        correlation_id = uuid4()

        event = AuditEventBuilder.entry_created(
            entry_id=entry_id,
            owner_id=uuid4(),
            entry_type="expense",
            amount="12.50",
            correlation_id=correlation_id,
        )

        assert event.event_type == AuditEventType.ENTRY_CREATED
        assert event.entity_id == entry_id
        assert event.correlation_id == correlation_id
        assert event.is_user_action


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
