"""
Integration tests for the ledger flows.

All flows run against in-memory storage with an in-memory audit trail,
so every test can also check what was audited.
"""

import asyncio

import pytest
from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

from finance_tracker.audit import AuditLogger
from finance_tracker.models.audit import AuditEventType
from finance_tracker.models.ledger import (
    EntryDraft,
    EntryType,
    ExtensionDirection,
    GroupBy,
    GroupingRequest,
    PaymentDraft,
)
from finance_tracker.orchestrator import (
    AppComponents,
    CategoryFlow,
    EntryFlow,
    GroupedViewFlow,
    OwnershipError,
    PaymentFlow,
    ValidationFailedError,
    create_app_components,
)
from finance_tracker.services.storage import (
    DuplicateError,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    NotFoundError,
)


TODAY = date(2024, 6, 15)


class Ledger:
    """All flows wired to one in-memory store."""

    def __init__(self):
        self.storage = InMemoryLedgerStorage()
        self.audit = InMemoryAuditStorage()
        audit_logger = AuditLogger(self.audit)
        self.categories = CategoryFlow(self.storage, audit_logger)
        self.entries = EntryFlow(self.storage, self.categories, audit_logger=audit_logger)
        self.payments = PaymentFlow(self.storage, audit_logger=audit_logger)
        self.grouped = GroupedViewFlow(self.storage, audit_logger)

    def event_types(self):
        return [e.event_type for e in self.audit._events]


def run(coro):
    return asyncio.run(coro)


def expense(amount="100.00", day=TODAY, **kwargs):
    return EntryDraft(type=EntryType.EXPENSE, amount=Decimal(amount), date=day, **kwargs)


@pytest.fixture
def ledger():
    return Ledger()


@pytest.fixture
def owner_id():
    return uuid4()


class TestEntryFlow:
    """Tests for EntryFlow."""

    def test_create_with_new_category_name(self, ledger, owner_id):
        entry = run(ledger.entries.create_entry(owner_id, expense(category_name="Food")))

        categories = run(ledger.categories.list_categories(owner_id))
        assert [s.category.name for s in categories] == ["Food"]
        assert entry.category_id == categories[0].category.id
        assert ledger.event_types() == [
            AuditEventType.CATEGORY_CREATED,
            AuditEventType.ENTRY_CREATED,
        ]

    def test_category_name_resolved_case_insensitively(self, ledger, owner_id):
        first = run(ledger.entries.create_entry(owner_id, expense(category_name="Food")))
        second = run(ledger.entries.create_entry(owner_id, expense(category_name="  fOOd ")))

        assert first.category_id == second.category_id
        assert len(run(ledger.categories.list_categories(owner_id))) == 1

    def test_empty_category_name_rejected(self, ledger, owner_id):
        with pytest.raises(ValidationFailedError, match="Category name cannot be empty"):
            run(ledger.entries.create_entry(owner_id, expense(category_name="  ")))

        assert run(ledger.storage.list_entries(owner_id)) == []
        assert ledger.event_types() == [AuditEventType.VALIDATION_FAILED]

    def test_uncategorized_entry_allowed(self, ledger, owner_id):
        entry = run(ledger.entries.create_entry(owner_id, expense()))
        assert entry.category_id is None

    def test_update_entry(self, ledger, owner_id):
        entry = run(ledger.entries.create_entry(owner_id, expense("10.00")))

        updated = run(ledger.entries.update_entry(
            owner_id, entry.id, expense("12.00", description="Taxi")
        ))

        assert updated.amount == Decimal("12.00")
        assert updated.created_at == entry.created_at
        event = ledger.audit._events[-1]
        assert event.event_type == AuditEventType.ENTRY_UPDATED
        assert event.details["changed_fields"] == ["amount", "description"]

    def test_update_by_other_owner_denied(self, ledger, owner_id):
        entry = run(ledger.entries.create_entry(owner_id, expense()))

        with pytest.raises(OwnershipError):
            run(ledger.entries.update_entry(uuid4(), entry.id, expense("1.00")))

        assert ledger.event_types()[-1] == AuditEventType.OWNERSHIP_DENIED
        assert run(ledger.storage.get_entry(entry.id)).amount == Decimal("100.00")

    def test_get_missing_entry(self, ledger, owner_id):
        with pytest.raises(NotFoundError):
            run(ledger.entries.get_entry(owner_id, uuid4()))

    def test_delete_entry_removes_payments(self, ledger, owner_id):
        entry = run(ledger.entries.create_entry(owner_id, expense()))
        run(ledger.payments.record_payment(
            owner_id, PaymentDraft(entry_id=entry.id, amount=Decimal("10.00"), date=TODAY)
        ))

        assert run(ledger.entries.delete_entry(owner_id, entry.id))

        assert run(ledger.storage.list_payments([entry.id])) == []
        assert ledger.audit._events[-1].details["payments_deleted"] == 1

    def test_list_entries_with_totals(self, ledger, owner_id):
        paid = run(ledger.entries.create_entry(owner_id, expense("20.00", TODAY)))
        run(ledger.entries.create_entry(owner_id, expense("30.00", TODAY - timedelta(days=1))))
        run(ledger.payments.record_payment(
            owner_id, PaymentDraft(entry_id=paid.id, amount=Decimal("20.00"), date=TODAY)
        ))

        listed = run(ledger.entries.list_entries(owner_id))

        assert [item.amount for item in listed] == [Decimal("30.00"), Decimal("20.00")]
        assert [item.is_paid for item in listed] == [False, True]
        assert listed[1].totals.remaining == Decimal("0.00")


class TestCategoryFlow:
    """Tests for CategoryFlow."""

    def test_duplicate_name_rejected(self, ledger, owner_id):
        run(ledger.categories.create_category(owner_id, "Food"))

        with pytest.raises(DuplicateError, match="already exists"):
            run(ledger.categories.create_category(owner_id, " FOOD"))

    def test_update_keeps_unspecified_fields(self, ledger, owner_id):
        food = run(ledger.categories.create_category(owner_id, "Food", "Meals out"))

        updated = run(ledger.categories.update_category(owner_id, food.id, name="Dining"))

        assert updated.name == "Dining"
        assert updated.description == "Meals out"

    def test_update_to_own_name_with_new_case(self, ledger, owner_id):
        food = run(ledger.categories.create_category(owner_id, "food"))
        updated = run(ledger.categories.update_category(owner_id, food.id, name="Food"))
        assert updated.name == "Food"

    def test_update_to_taken_name_rejected(self, ledger, owner_id):
        run(ledger.categories.create_category(owner_id, "Food"))
        rent = run(ledger.categories.create_category(owner_id, "Rent"))

        with pytest.raises(DuplicateError):
            run(ledger.categories.update_category(owner_id, rent.id, name="food"))

    def test_delete_leaves_entries_uncategorized(self, ledger, owner_id):
        entry = run(ledger.entries.create_entry(owner_id, expense(category_name="Food")))

        run(ledger.categories.delete_category(owner_id, entry.category_id))

        assert run(ledger.storage.get_entry(entry.id)).category_id is None
        assert ledger.audit._events[-1].details["detached_entries"] == 1

    def test_delete_by_other_owner_denied(self, ledger, owner_id):
        food = run(ledger.categories.create_category(owner_id, "Food"))
        with pytest.raises(OwnershipError):
            run(ledger.categories.delete_category(uuid4(), food.id))

    def test_list_with_counts(self, ledger, owner_id):
        for name in ("Rent", "Food", "Food"):
            run(ledger.entries.create_entry(owner_id, expense(category_name=name)))
        run(ledger.categories.create_category(owner_id, "Travel"))

        summaries = run(ledger.categories.list_categories(owner_id))

        assert [(s.category.name, s.entry_count) for s in summaries] == [
            ("Food", 2),
            ("Rent", 1),
            ("Travel", 0),
        ]

    def test_search(self, ledger, owner_id):
        for name in ("Groceries", "Grooming", "Rent", "Gross"):
            run(ledger.categories.create_category(owner_id, name))

        assert run(ledger.categories.search_categories(owner_id, "gr")) == []
        names = [c.name for c in run(ledger.categories.search_categories(owner_id, "GRO"))]
        assert names == ["Groceries", "Grooming", "Gross"]

    def test_search_limit(self, ledger, owner_id):
        for i in range(25):
            run(ledger.categories.create_category(owner_id, f"Bill {i:02d}"))

        found = run(ledger.categories.search_categories(owner_id, "bill"))

        assert len(found) == 20
        assert found[0].name == "Bill 00"

    def test_timeline(self, ledger, owner_id):
        older = run(ledger.entries.create_entry(
            owner_id, expense("50.00", TODAY - timedelta(days=5), category_name="Food")
        ))
        run(ledger.entries.create_entry(owner_id, expense("20.00", TODAY, category_name="Food")))
        run(ledger.entries.create_entry(owner_id, expense("99.00", TODAY)))
        run(ledger.payments.record_payment(owner_id, PaymentDraft(
            entry_id=older.id, amount=Decimal("25.00"), date=TODAY - timedelta(days=2), notes="half"
        )))

        timeline = run(ledger.categories.category_timeline(owner_id, older.category_id))

        assert [(item.kind, item.amount) for item in timeline] == [
            ("entry", Decimal("50.00")),
            ("payment", Decimal("25.00")),
            ("entry", Decimal("20.00")),
        ]
        assert timeline[1].entry_id == older.id
        assert timeline[1].notes == "half"


class TestPaymentFlow:
    """Tests for PaymentFlow."""

    def test_record_partial_payment(self, ledger, owner_id):
        entry = run(ledger.entries.create_entry(owner_id, expense("100.00")))

        payment, totals, result = run(ledger.payments.record_payment(
            owner_id, PaymentDraft(entry_id=entry.id, amount=Decimal("40.00"), date=TODAY)
        ))

        assert payment.entry_id == entry.id
        assert totals.remaining == Decimal("60.00")
        assert totals.is_partially_paid
        assert result.is_valid
        assert ledger.event_types()[-1] == AuditEventType.PAYMENT_RECORDED

    def test_overpayment_accepted_and_audited(self, ledger, owner_id):
        entry = run(ledger.entries.create_entry(owner_id, expense("100.00")))
        run(ledger.payments.record_payment(
            owner_id, PaymentDraft(entry_id=entry.id, amount=Decimal("100.00"), date=TODAY)
        ))

        _, totals, result = run(ledger.payments.record_payment(
            owner_id, PaymentDraft(entry_id=entry.id, amount=Decimal("30.00"), date=TODAY)
        ))

        assert totals.total_paid == Decimal("130.00")
        assert totals.remaining == Decimal("0.00")
        assert result.warnings
        assert ledger.event_types()[-2:] == [
            AuditEventType.PAYMENT_RECORDED,
            AuditEventType.OVERPAYMENT_RECORDED,
        ]

        view = run(ledger.grouped.load(
            GroupingRequest(owner_id=owner_id, date_from=TODAY, date_to=TODAY)
        ))
        assert view.groups[0].total_remaining == Decimal("-30.00")

    def test_payment_on_other_owners_entry_denied(self, ledger, owner_id):
        entry = run(ledger.entries.create_entry(owner_id, expense()))

        with pytest.raises(OwnershipError):
            run(ledger.payments.record_payment(
                uuid4(), PaymentDraft(entry_id=entry.id, amount=Decimal("1.00"), date=TODAY)
            ))

        assert run(ledger.storage.list_payments([entry.id])) == []

    def test_payment_on_missing_entry(self, ledger, owner_id):
        with pytest.raises(NotFoundError):
            run(ledger.payments.record_payment(
                owner_id, PaymentDraft(entry_id=uuid4(), amount=Decimal("1.00"), date=TODAY)
            ))

    def test_list_payments_by_date(self, ledger, owner_id):
        entry = run(ledger.entries.create_entry(owner_id, expense()))
        for day in (TODAY, TODAY - timedelta(days=3)):
            run(ledger.payments.record_payment(
                owner_id, PaymentDraft(entry_id=entry.id, amount=Decimal("1.00"), date=day)
            ))

        payments = run(ledger.payments.list_payments(owner_id, entry.id))

        assert [p.date for p in payments] == [TODAY - timedelta(days=3), TODAY]


class TestGroupedViewFlow:
    """Tests for GroupedViewFlow."""

    def test_load_and_extend(self, ledger, owner_id):
        run(ledger.entries.create_entry(owner_id, expense("10.00", TODAY - timedelta(days=6))))
        request = GroupingRequest(owner_id=owner_id)

        loaded = run(ledger.grouped.load(request, today=TODAY))
        assert len(loaded.groups) == 7
        assert loaded.entry_count == 0

        extended = run(ledger.grouped.extend(
            request, loaded.groups, ExtensionDirection.BACKWARD, days=7
        ))

        assert len(extended.groups) == 14
        assert extended.entry_count == 1
        assert ledger.event_types()[-2:] == [
            AuditEventType.GROUPED_QUERY_EXECUTED,
            AuditEventType.WINDOW_EXTENDED,
        ]
        assert ledger.audit._events[-1].details["added_groups"] == 7

    def test_extend_defaults_to_configured_chunk(self, ledger, owner_id):
        request = GroupingRequest(owner_id=owner_id)
        loaded = run(ledger.grouped.load(request, today=TODAY))

        extended = run(ledger.grouped.extend(request, loaded.groups, ExtensionDirection.FORWARD))

        assert len(extended.groups) == 14

    def test_category_view(self, ledger, owner_id):
        run(ledger.entries.create_entry(owner_id, expense(category_name="Food")))
        run(ledger.entries.create_entry(owner_id, expense()))

        result = run(ledger.grouped.load(
            GroupingRequest(owner_id=owner_id, group_by=GroupBy.CATEGORY)
        ))

        assert [g.label for g in result.groups] == ["Food", "Uncategorized"]

    def test_other_owners_entries_never_shown(self, ledger, owner_id):
        run(ledger.entries.create_entry(uuid4(), expense()))

        result = run(ledger.grouped.load(
            GroupingRequest(owner_id=owner_id, group_by=GroupBy.CATEGORY)
        ))

        assert result.groups == []


class TestAppComponents:
    """Tests for the component factory."""

    def test_memory_backend(self):
        components = create_app_components(backend="memory")

        assert isinstance(components, AppComponents)
        assert isinstance(components.storage, InMemoryLedgerStorage)

    def test_unconfigured_sheets_falls_back_to_memory(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)

        components = create_app_components(backend="google_sheets")

        assert isinstance(components.storage, InMemoryLedgerStorage)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
