"""
Tests for storage backends.

The Google Sheets backend runs against an in-process fake worksheet;
no network calls are made.
"""

import asyncio

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from finance_tracker.models.audit import AuditEventBuilder
from finance_tracker.models.ledger import Category, Entry, EntryType, Payment
from finance_tracker.services.storage import (
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsLedgerStorage,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    NotFoundError,
)
from finance_tracker.services.storage.google_sheets import (
    AUDIT_COLUMNS,
    CATEGORY_COLUMNS,
    ENTRY_COLUMNS,
    PAYMENT_COLUMNS,
)


class FakeWorksheet:
    """Just enough of gspread.Worksheet for the storage layer."""

    def __init__(self, columns):
        self.rows = [list(columns)]

    def get_all_values(self):
        return [list(row) for row in self.rows]

    def append_row(self, values, value_input_option=None):
        self.rows.append([str(v) for v in values])

    def update(self, range_name, values):
        idx = int(range_name[1:])
        self.rows[idx - 1] = [str(v) for v in values[0]]

    def update_cell(self, row, col, value):
        self.rows[row - 1][col - 1] = str(value)

    def delete_rows(self, index):
        del self.rows[index - 1]


class FakeSheetsClient:
    def __init__(self):
        self.entries = FakeWorksheet(ENTRY_COLUMNS)
        self.categories = FakeWorksheet(CATEGORY_COLUMNS)
        self.payments = FakeWorksheet(PAYMENT_COLUMNS)
        self.audit = FakeWorksheet(AUDIT_COLUMNS)

    def get_entries_sheet(self):
        return self.entries

    def get_categories_sheet(self):
        return self.categories

    def get_payments_sheet(self):
        return self.payments

    def get_audit_sheet(self):
        return self.audit


@pytest.fixture(params=["memory", "google_sheets"])
def storage(request):
    if request.param == "memory":
        return InMemoryLedgerStorage()
    return GoogleSheetsLedgerStorage(FakeSheetsClient())


def entry(owner_id, amount="10.00", day=date(2024, 1, 1), **kwargs):
    return Entry(owner_id=owner_id, type=EntryType.EXPENSE, amount=Decimal(amount), date=day, **kwargs)


class TestLedgerStorage:
    """Behaviour shared by every ledger backend."""

    def test_entry_save_and_get(self, storage):
        owner_id = uuid4()
        saved = entry(owner_id, "12.34", description="Lunch")

        asyncio.run(storage.save_entry(saved))
        loaded = asyncio.run(storage.get_entry(saved.id))

        assert loaded.id == saved.id
        assert loaded.amount == Decimal("12.34")
        assert loaded.description == "Lunch"
        assert loaded.type == EntryType.EXPENSE

    def test_get_missing_entry(self, storage):
        assert asyncio.run(storage.get_entry(uuid4())) is None

    def test_update_entry(self, storage):
        owner_id = uuid4()
        saved = entry(owner_id)
        asyncio.run(storage.save_entry(saved))

        asyncio.run(storage.update_entry(saved.model_copy(update={"amount": Decimal("99.00")})))

        assert asyncio.run(storage.get_entry(saved.id)).amount == Decimal("99.00")

    def test_update_missing_entry(self, storage):
        with pytest.raises(NotFoundError):
            asyncio.run(storage.update_entry(entry(uuid4())))

    def test_delete_entry(self, storage):
        saved = entry(uuid4())
        asyncio.run(storage.save_entry(saved))

        assert asyncio.run(storage.delete_entry(saved.id))
        assert not asyncio.run(storage.delete_entry(saved.id))
        assert asyncio.run(storage.get_entry(saved.id)) is None

    def test_list_entries_oldest_first_stable(self, storage):
        owner_id = uuid4()
        later = entry(owner_id, "1.00", date(2024, 1, 5))
        first = entry(owner_id, "2.00", date(2024, 1, 1))
        second = entry(owner_id, "3.00", date(2024, 1, 1))
        other_owner = entry(uuid4(), "4.00", date(2024, 1, 1))
        for e in (later, first, second, other_owner):
            asyncio.run(storage.save_entry(e))

        listed = asyncio.run(storage.list_entries(owner_id))

        assert [e.id for e in listed] == [first.id, second.id, later.id]

    def test_list_entries_filters(self, storage):
        owner_id = uuid4()
        category_id = uuid4()
        match = entry(owner_id, day=date(2024, 1, 3), category_id=category_id)
        for e in (
            match,
            entry(owner_id, day=date(2024, 1, 3)),
            entry(owner_id, day=date(2024, 2, 1), category_id=category_id),
        ):
            asyncio.run(storage.save_entry(e))

        listed = asyncio.run(storage.list_entries(
            owner_id,
            entry_type=EntryType.EXPENSE,
            category_ids=[category_id],
            date_from=date(2024, 1, 1),
            date_to=date(2024, 1, 31),
        ))

        assert [e.id for e in listed] == [match.id]

    def test_category_crud(self, storage):
        owner_id = uuid4()
        food = Category(owner_id=owner_id, name="Food")
        asyncio.run(storage.save_category(food))

        assert asyncio.run(storage.find_category_by_name(owner_id, "  FOOD ")).id == food.id
        assert asyncio.run(storage.find_category_by_name(uuid4(), "Food")) is None

        renamed = food.model_copy(update={"name": "Groceries"})
        asyncio.run(storage.update_category(renamed))
        assert asyncio.run(storage.get_category(food.id)).name == "Groceries"

        assert asyncio.run(storage.delete_category(food.id))
        assert asyncio.run(storage.get_category(food.id)) is None

    def test_duplicate_category_name_rejected(self, storage):
        owner_id = uuid4()
        asyncio.run(storage.save_category(Category(owner_id=owner_id, name="Food")))

        with pytest.raises(DuplicateError):
            asyncio.run(storage.save_category(Category(owner_id=owner_id, name="food")))

        # Same name for another owner is fine
        asyncio.run(storage.save_category(Category(owner_id=uuid4(), name="Food")))

    def test_list_categories_by_name(self, storage):
        owner_id = uuid4()
        for name in ("Rent", "Food", "Travel"):
            asyncio.run(storage.save_category(Category(owner_id=owner_id, name=name)))

        names = [c.name for c in asyncio.run(storage.list_categories(owner_id))]

        assert names == ["Food", "Rent", "Travel"]

    def test_detach_category(self, storage):
        owner_id = uuid4()
        food = Category(owner_id=owner_id, name="Food")
        asyncio.run(storage.save_category(food))
        tagged = [entry(owner_id, category_id=food.id) for _ in range(2)]
        for e in tagged + [entry(owner_id)]:
            asyncio.run(storage.save_entry(e))

        assert asyncio.run(storage.detach_category(food.id)) == 2
        assert asyncio.run(storage.get_entry(tagged[0].id)).category_id is None

    def test_payments(self, storage):
        owner_id = uuid4()
        bill = entry(owner_id, "100.00")
        other = entry(owner_id, "50.00")
        for e in (bill, other):
            asyncio.run(storage.save_entry(e))
        for amount in ("10.00", "20.00"):
            asyncio.run(storage.save_payment(
                Payment(entry_id=bill.id, amount=Decimal(amount), date=date(2024, 1, 2))
            ))
        asyncio.run(storage.save_payment(
            Payment(entry_id=other.id, amount=Decimal("5.00"), date=date(2024, 1, 2))
        ))

        payments = asyncio.run(storage.list_payments([bill.id]))
        assert sorted(p.amount for p in payments) == [Decimal("10.00"), Decimal("20.00")]
        assert asyncio.run(storage.list_payments([])) == []

        assert asyncio.run(storage.delete_payments_for_entry(bill.id)) == 2
        assert asyncio.run(storage.list_payments([bill.id, other.id]))[0].entry_id == other.id


class TestGoogleSheetsRows:
    """Sheets-specific row handling."""

    def test_malformed_rows_are_skipped(self):
        client = FakeSheetsClient()
        storage = GoogleSheetsLedgerStorage(client)
        owner_id = uuid4()
        good = entry(owner_id)
        asyncio.run(storage.save_entry(good))
        client.entries.rows.append(["not-a-uuid", str(owner_id), "expense"])
        client.entries.rows.append([])

        listed = asyncio.run(storage.list_entries(owner_id))

        assert [e.id for e in listed] == [good.id]

    def test_entry_row_layout(self):
        client = FakeSheetsClient()
        storage = GoogleSheetsLedgerStorage(client)
        saved = entry(uuid4(), "7.50")

        asyncio.run(storage.save_entry(saved))

        row = client.entries.rows[1]
        assert row[0] == str(saved.id)
        assert row[3] == "7.50"
        assert row[4] == "2024-01-01"
        assert row[6] == ""


class TestAuditStorage:
    """Tests for audit backends."""

    @pytest.mark.parametrize("backend", ["memory", "google_sheets"])
    def test_events_by_correlation_and_entity(self, backend):
        if backend == "memory":
            storage = InMemoryAuditStorage()
        else:
            storage = GoogleSheetsAuditStorage(FakeSheetsClient())

        correlation_id = uuid4()
        entry_id = uuid4()
        created = AuditEventBuilder.entry_created(
            entry_id=entry_id,
            owner_id=uuid4(),
            entry_type="expense",
            amount="5.00",
            correlation_id=correlation_id,
        )
        unrelated = AuditEventBuilder.category_created(
            category_id=uuid4(),
            owner_id=uuid4(),
            name="Food",
            correlation_id=uuid4(),
        )
        for event in (created, unrelated):
            assert asyncio.run(storage.append_event(event))

        by_correlation = asyncio.run(storage.get_events_by_correlation_id(correlation_id))
        by_entity = asyncio.run(storage.get_events_by_entity("entry", entry_id))
        recent = asyncio.run(storage.get_recent_events(limit=1))

        assert [e.event_id for e in by_correlation] == [created.event_id]
        assert [e.event_id for e in by_entity] == [created.event_id]
        assert by_entity[0].details == {"entry_type": "expense", "amount": "5.00"}
        assert len(recent) == 1
