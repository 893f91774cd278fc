"""
In-Memory Storage Implementation

Used by the test suite and by the default "memory" backend for local runs.
Records live in insertion-ordered dicts, so creation order is preserved
for same-day entries. Copies go in and out, so callers can never mutate
stored state by accident.
"""

from datetime import date
from typing import Iterable, Optional
from uuid import UUID

from finance_tracker.grouping.engine import filter_entries
from finance_tracker.models.audit import AuditEvent
from finance_tracker.models.ledger import (
    Category,
    Entry,
    EntryType,
    GroupingRequest,
    Payment,
)
from finance_tracker.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Dict-backed ledger storage."""

    def __init__(self):
        self._entries: dict[UUID, Entry] = {}
        self._categories: dict[UUID, Category] = {}
        self._payments: dict[UUID, Payment] = {}

    # Entries

    async def save_entry(self, entry: Entry) -> bool:
        self._entries[entry.id] = entry.model_copy(deep=True)
        return True

    async def get_entry(self, entry_id: UUID) -> Optional[Entry]:
        entry = self._entries.get(entry_id)
        return entry.model_copy(deep=True) if entry else None

    async def update_entry(self, entry: Entry) -> bool:
        if entry.id not in self._entries:
            raise NotFoundError(f"Entry not found: {entry.id}")
        self._entries[entry.id] = entry.model_copy(deep=True)
        return True

    async def delete_entry(self, entry_id: UUID) -> bool:
        return self._entries.pop(entry_id, None) is not None

    async def list_entries(
        self,
        owner_id: UUID,
        entry_type: Optional[EntryType] = None,
        category_ids: Optional[Iterable[UUID]] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Entry]:
        request = GroupingRequest(
            owner_id=owner_id,
            entry_type=entry_type,
            category_ids=list(category_ids or []),
            date_from=date_from,
            date_to=date_to,
        )
        matched = filter_entries(self._entries.values(), request)
        matched.sort(key=lambda entry: entry.date)
        return [entry.model_copy(deep=True) for entry in matched]

    async def detach_category(self, category_id: UUID) -> int:
        detached = 0
        for entry in self._entries.values():
            if entry.category_id == category_id:
                entry.category_id = None
                detached += 1
        return detached

    # Categories

    async def save_category(self, category: Category) -> bool:
        self._check_unique_name(category)
        self._categories[category.id] = category.model_copy(deep=True)
        return True

    async def get_category(self, category_id: UUID) -> Optional[Category]:
        category = self._categories.get(category_id)
        return category.model_copy(deep=True) if category else None

    async def update_category(self, category: Category) -> bool:
        if category.id not in self._categories:
            raise NotFoundError(f"Category not found: {category.id}")
        self._check_unique_name(category)
        self._categories[category.id] = category.model_copy(deep=True)
        return True

    async def delete_category(self, category_id: UUID) -> bool:
        return self._categories.pop(category_id, None) is not None

    async def list_categories(self, owner_id: UUID) -> list[Category]:
        owned = [c for c in self._categories.values() if c.owner_id == owner_id]
        owned.sort(key=lambda c: c.name)
        return [c.model_copy(deep=True) for c in owned]

    async def find_category_by_name(
        self,
        owner_id: UUID,
        name: str,
    ) -> Optional[Category]:
        wanted = name.strip().lower()
        for category in self._categories.values():
            if category.owner_id == owner_id and category.normalized_name == wanted:
                return category.model_copy(deep=True)
        return None

    def _check_unique_name(self, category: Category) -> None:
        for other in self._categories.values():
            if (
                other.id != category.id
                and other.owner_id == category.owner_id
                and other.normalized_name == category.normalized_name
            ):
                raise DuplicateError(f"Category already exists: {category.name}")

    # Payments

    async def save_payment(self, payment: Payment) -> bool:
        self._payments[payment.id] = payment.model_copy(deep=True)
        return True

    async def list_payments(self, entry_ids: Iterable[UUID]) -> list[Payment]:
        wanted = set(entry_ids)
        return [
            payment.model_copy(deep=True)
            for payment in self._payments.values()
            if payment.entry_id in wanted
        ]

    async def delete_payments_for_entry(self, entry_id: UUID) -> int:
        doomed = [pid for pid, p in self._payments.items() if p.entry_id == entry_id]
        for payment_id in doomed:
            del self._payments[payment_id]
        return len(doomed)


class InMemoryAuditStorage(AuditStorageInterface):
    """List-backed, append-only audit storage."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
