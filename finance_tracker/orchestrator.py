"""
Main Orchestrator for the Finance Tracker

This module ties together storage, validation, the grouping pipeline and
the audit logger, and defines the flows the presentation layer calls:
1. Entries (create / update / delete / list, with category-by-name)
2. Categories (CRUD, search, combined entries-and-payments timeline)
3. Payments (record against an entry)
4. Grouped view (load a window, extend it)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Every read and write is scoped to a single owning user
- Nothing is saved if semantic validation reports an error
- Every change is audited
"""

from collections import Counter
from datetime import date
from typing import Iterable, NamedTuple, Optional
from uuid import UUID

import structlog

from finance_tracker.audit import AuditLogger, configure_logging, create_correlation_id
from finance_tracker.config import get_settings
from finance_tracker.grouping.engine import annotate_entries
from finance_tracker.grouping.totals import compute_totals
from finance_tracker.models.ledger import (
    AnnotatedEntry,
    Category,
    CategorySummary,
    Entry,
    EntryDraft,
    EntryGroup,
    EntryTotals,
    EntryType,
    ExtensionDirection,
    GroupedEntriesResult,
    GroupingRequest,
    Payment,
    PaymentDraft,
    TimelineItem,
    ValidationResult,
    utcnow,
)
from finance_tracker.queries import GroupedEntriesExecutor
from finance_tracker.services.storage import (
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    NotFoundError,
)
from finance_tracker.validation import LedgerValidator


logger = structlog.get_logger(__name__)


class LedgerError(Exception):
    """Base exception for ledger flow failures."""
    pass


class OwnershipError(LedgerError):
    """The requested record belongs to another user."""

    def __init__(self, entity_type: str, entity_id: UUID):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"Unauthorized action on {entity_type} {entity_id}")


class ValidationFailedError(LedgerError):
    """Semantic validation reported at least one error."""

    def __init__(self, result: ValidationResult):
        self.result = result
        messages = "; ".join(i.message for i in result.issues if i.severity == "error")
        super().__init__(messages or "Validation failed")


class _LedgerFlow:
    """Shared ownership and audit plumbing."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger

    async def _deny(self, entity_type: str, entity_id: UUID, owner_id: UUID, correlation_id: UUID):
        if self._audit_logger:
            await self._audit_logger.log_ownership_denied(
                entity_type=entity_type,
                entity_id=entity_id,
                owner_id=owner_id,
                correlation_id=correlation_id,
            )
        raise OwnershipError(entity_type, entity_id)

    async def _owned_entry(self, owner_id: UUID, entry_id: UUID, correlation_id: UUID) -> Entry:
        entry = await self._storage.get_entry(entry_id)
        if entry is None:
            raise NotFoundError(f"Entry not found: {entry_id}")
        if entry.owner_id != owner_id:
            await self._deny("entry", entry_id, owner_id, correlation_id)
        return entry

    async def _owned_category(self, owner_id: UUID, category_id: UUID, correlation_id: UUID) -> Category:
        category = await self._storage.get_category(category_id)
        if category is None:
            raise NotFoundError(f"Category not found: {category_id}")
        if category.owner_id != owner_id:
            await self._deny("category", category_id, owner_id, correlation_id)
        return category

    async def _reject(
        self,
        entity_type: str,
        owner_id: UUID,
        result: ValidationResult,
        correlation_id: UUID,
    ):
        if self._audit_logger:
            issues = [
                {"field": i.field, "type": i.issue_type, "message": i.message}
                for i in result.issues
                if i.severity == "error"
            ]
            await self._audit_logger.log_validation_failed(
                entity_type=entity_type,
                owner_id=owner_id,
                issues=issues,
                correlation_id=correlation_id,
            )
        raise ValidationFailedError(result)


class CategoryFlow(_LedgerFlow):
    """
    Category management.

    Names are unique per owner, compared case-insensitively after trimming.
    Deleting a category leaves its entries in place, uncategorized.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        super().__init__(storage, audit_logger)
        self._settings = get_settings().app

    async def create_category(
        self,
        owner_id: UUID,
        name: str,
        description: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Category:
        correlation_id = correlation_id or create_correlation_id()

        category = Category(owner_id=owner_id, name=name, description=description)
        if await self._storage.find_category_by_name(owner_id, category.name):
            raise DuplicateError("A category with this name already exists.")

        await self._storage.save_category(category)

        if self._audit_logger:
            await self._audit_logger.log_category_created(
                category_id=category.id,
                owner_id=owner_id,
                name=category.name,
                correlation_id=correlation_id,
            )
        return category

    async def find_or_create(
        self,
        owner_id: UUID,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> Category:
        """Resolve a typed-in category name, creating the category if needed."""
        existing = await self._storage.find_category_by_name(owner_id, name)
        if existing:
            return existing
        return await self.create_category(owner_id, name, correlation_id=correlation_id)

    async def update_category(
        self,
        owner_id: UUID,
        category_id: UUID,
        name: Optional[str] = None,
        description: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Category:
        """Fields left as None keep their current value."""
        correlation_id = correlation_id or create_correlation_id()
        category = await self._owned_category(owner_id, category_id, correlation_id)

        updated = Category(
            id=category.id,
            owner_id=category.owner_id,
            name=name if name is not None else category.name,
            description=description if description is not None else category.description,
            created_at=category.created_at,
        )

        clash = await self._storage.find_category_by_name(owner_id, updated.name)
        if clash and clash.id != category.id:
            raise DuplicateError("A category with this name already exists.")

        await self._storage.update_category(updated)

        if self._audit_logger:
            await self._audit_logger.log_category_updated(
                category_id=updated.id,
                owner_id=owner_id,
                name=updated.name,
                correlation_id=correlation_id,
            )
        return updated

    async def delete_category(
        self,
        owner_id: UUID,
        category_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        correlation_id = correlation_id or create_correlation_id()
        await self._owned_category(owner_id, category_id, correlation_id)

        detached = await self._storage.detach_category(category_id)
        deleted = await self._storage.delete_category(category_id)

        if self._audit_logger:
            await self._audit_logger.log_category_deleted(
                category_id=category_id,
                owner_id=owner_id,
                detached_entries=detached,
                correlation_id=correlation_id,
            )
        return deleted

    async def get_category(self, owner_id: UUID, category_id: UUID) -> CategorySummary:
        category = await self._owned_category(owner_id, category_id, create_correlation_id())
        entries = await self._storage.list_entries(owner_id, category_ids=[category_id])
        return CategorySummary(category=category, entry_count=len(entries))

    async def list_categories(self, owner_id: UUID) -> list[CategorySummary]:
        """All of an owner's categories, by name, with entry counts."""
        categories = await self._storage.list_categories(owner_id)
        entries = await self._storage.list_entries(owner_id)
        counts = Counter(entry.category_id for entry in entries if entry.category_id)

        return [
            CategorySummary(category=category, entry_count=counts.get(category.id, 0))
            for category in categories
        ]

    async def search_categories(self, owner_id: UUID, query: str) -> list[Category]:
        """
        Case-insensitive substring search over category names.

        Queries shorter than the configured minimum return nothing.
        """
        query = (query or "").strip()
        if len(query) < self._settings.category_search_min_length:
            return []

        needle = query.lower()
        matches = [
            category
            for category in await self._storage.list_categories(owner_id)
            if needle in category.normalized_name
        ]
        return matches[:self._settings.category_search_limit]

    async def category_timeline(self, owner_id: UUID, category_id: UUID) -> list[TimelineItem]:
        """
        A category's entries and the payments against them, merged by date.

        Same-day items keep entries before payments.
        """
        await self._owned_category(owner_id, category_id, create_correlation_id())

        entries = await self._storage.list_entries(owner_id, category_ids=[category_id])
        payments = await self._storage.list_payments([entry.id for entry in entries])
        entries_by_id = {entry.id: entry for entry in entries}

        items = [
            TimelineItem(
                kind="entry",
                id=entry.id,
                date=entry.date,
                amount=entry.amount,
                entry_id=entry.id,
                entry_type=entry.type,
                description=entry.description,
            )
            for entry in entries
        ]
        items.extend(
            TimelineItem(
                kind="payment",
                id=payment.id,
                date=payment.date,
                amount=payment.amount,
                entry_id=payment.entry_id,
                entry_type=entries_by_id[payment.entry_id].type,
                description=entries_by_id[payment.entry_id].description,
                notes=payment.notes,
            )
            for payment in payments
        )

        items.sort(key=lambda item: item.date)
        return items


class EntryFlow(_LedgerFlow):
    """
    Entry management.

    An entry's category can be given by id or by name. A name is resolved
    case-insensitively to an existing category, or a new one is created.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        category_flow: Optional[CategoryFlow] = None,
        validator: Optional[LedgerValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        super().__init__(storage, audit_logger)
        self._category_flow = category_flow or CategoryFlow(storage, audit_logger)
        self._validator = validator or LedgerValidator(storage)

    async def _validated_category_id(
        self,
        owner_id: UUID,
        draft: EntryDraft,
        correlation_id: UUID,
    ) -> Optional[UUID]:
        result = await self._validator.validate_entry(draft, owner_id)
        if result.has_errors:
            await self._reject("entry", owner_id, result, correlation_id)

        if draft.category_id is not None:
            return draft.category_id
        if draft.category_name:
            category = await self._category_flow.find_or_create(
                owner_id, draft.category_name, correlation_id=correlation_id
            )
            return category.id
        return None

    async def create_entry(
        self,
        owner_id: UUID,
        draft: EntryDraft,
        correlation_id: Optional[UUID] = None,
    ) -> Entry:
        correlation_id = correlation_id or create_correlation_id()
        category_id = await self._validated_category_id(owner_id, draft, correlation_id)

        entry = Entry(
            owner_id=owner_id,
            type=draft.type,
            amount=draft.amount,
            date=draft.date,
            description=draft.description,
            category_id=category_id,
        )
        await self._storage.save_entry(entry)

        if self._audit_logger:
            await self._audit_logger.log_entry_created(
                entry_id=entry.id,
                owner_id=owner_id,
                entry_type=entry.type.value,
                amount=entry.amount,
                correlation_id=correlation_id,
            )
        return entry

    async def update_entry(
        self,
        owner_id: UUID,
        entry_id: UUID,
        draft: EntryDraft,
        correlation_id: Optional[UUID] = None,
    ) -> Entry:
        correlation_id = correlation_id or create_correlation_id()
        current = await self._owned_entry(owner_id, entry_id, correlation_id)
        category_id = await self._validated_category_id(owner_id, draft, correlation_id)

        updated = current.model_copy(update={
            "type": draft.type,
            "amount": draft.amount,
            "date": draft.date,
            "description": draft.description,
            "category_id": category_id,
            "updated_at": utcnow(),
        })
        changed = [
            name
            for name in ("type", "amount", "date", "description", "category_id")
            if getattr(current, name) != getattr(updated, name)
        ]

        await self._storage.update_entry(updated)

        if self._audit_logger:
            await self._audit_logger.log_entry_updated(
                entry_id=entry_id,
                owner_id=owner_id,
                changed_fields=changed,
                correlation_id=correlation_id,
            )
        return updated

    async def delete_entry(
        self,
        owner_id: UUID,
        entry_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """Delete an entry together with its payments."""
        correlation_id = correlation_id or create_correlation_id()
        await self._owned_entry(owner_id, entry_id, correlation_id)

        payments_deleted = await self._storage.delete_payments_for_entry(entry_id)
        deleted = await self._storage.delete_entry(entry_id)

        if self._audit_logger:
            await self._audit_logger.log_entry_deleted(
                entry_id=entry_id,
                owner_id=owner_id,
                payments_deleted=payments_deleted,
                correlation_id=correlation_id,
            )
        return deleted

    async def get_entry(self, owner_id: UUID, entry_id: UUID) -> AnnotatedEntry:
        entry = await self._owned_entry(owner_id, entry_id, create_correlation_id())
        payments = await self._storage.list_payments([entry.id])
        categories = await self._storage.list_categories(owner_id)
        return annotate_entries([entry], payments, categories)[0]

    async def list_entries(
        self,
        owner_id: UUID,
        entry_type: Optional[EntryType] = None,
        category_ids: Optional[Iterable[UUID]] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[AnnotatedEntry]:
        """Filtered entries, oldest first, each with its payment totals."""
        entries = await self._storage.list_entries(
            owner_id,
            entry_type=entry_type,
            category_ids=category_ids,
            date_from=date_from,
            date_to=date_to,
        )
        payments = await self._storage.list_payments([entry.id for entry in entries])
        categories = await self._storage.list_categories(owner_id)
        return annotate_entries(entries, payments, categories)


class PaymentFlow(_LedgerFlow):
    """
    Records payments against entries.

    Overpayment is accepted. It is reported as a validation warning and
    audited, and the entry's remaining amount is clamped at zero.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        validator: Optional[LedgerValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        super().__init__(storage, audit_logger)
        self._validator = validator or LedgerValidator(storage)

    async def record_payment(
        self,
        owner_id: UUID,
        draft: PaymentDraft,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Payment, EntryTotals, ValidationResult]:
        """
        Record a payment.

        Returns:
            (payment, entry totals after the payment, validation result)
        """
        correlation_id = correlation_id or create_correlation_id()
        entry = await self._owned_entry(owner_id, draft.entry_id, correlation_id)
        existing = await self._storage.list_payments([entry.id])

        result = self._validator.validate_payment(draft, entry, existing)
        if result.has_errors:
            await self._reject("payment", owner_id, result, correlation_id)

        payment = Payment(
            entry_id=entry.id,
            amount=draft.amount,
            date=draft.date,
            notes=draft.notes,
        )
        await self._storage.save_payment(payment)

        totals = compute_totals(entry, existing + [payment])

        if self._audit_logger:
            await self._audit_logger.log_payment_recorded(
                payment_id=payment.id,
                entry_id=entry.id,
                owner_id=owner_id,
                amount=payment.amount,
                remaining=totals.remaining,
                correlation_id=correlation_id,
            )
            if totals.total_paid > entry.amount:
                await self._audit_logger.log_overpayment(
                    payment_id=payment.id,
                    entry_id=entry.id,
                    owner_id=owner_id,
                    entry_amount=entry.amount,
                    total_paid=totals.total_paid,
                    correlation_id=correlation_id,
                )

        return payment, totals, result

    async def list_payments(self, owner_id: UUID, entry_id: UUID) -> list[Payment]:
        entry = await self._owned_entry(owner_id, entry_id, create_correlation_id())
        payments = await self._storage.list_payments([entry.id])
        return sorted(payments, key=lambda p: p.date)


class GroupedViewFlow:
    """
    Loads and extends the grouped entries view.

    Each call reads a fresh snapshot; nothing is cached between calls.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        executor: Optional[GroupedEntriesExecutor] = None,
    ):
        self._settings = get_settings().app
        self._executor = executor or GroupedEntriesExecutor(
            storage,
            default_window_days=self._settings.default_window_days,
            label_format=self._settings.date_label_format,
        )
        self._audit_logger = audit_logger

    async def load(
        self,
        request: GroupingRequest,
        today: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> GroupedEntriesResult:
        correlation_id = correlation_id or create_correlation_id()
        result = await self._executor.execute(request, today=today)

        if self._audit_logger:
            if result.success:
                await self._audit_logger.log_grouped_query(
                    query_id=result.query_id,
                    owner_id=request.owner_id,
                    group_by=result.group_by.value,
                    group_count=len(result.groups),
                    entry_count=result.entry_count,
                    correlation_id=correlation_id,
                )
            else:
                await self._audit_logger.log_grouped_query_failed(
                    query_id=result.query_id,
                    owner_id=request.owner_id,
                    error_message=result.error_message or "",
                    correlation_id=correlation_id,
                )
        return result

    async def extend(
        self,
        request: GroupingRequest,
        loaded: list[EntryGroup],
        direction: ExtensionDirection,
        days: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> GroupedEntriesResult:
        """Grow a loaded date view by a chunk (default from settings)."""
        correlation_id = correlation_id or create_correlation_id()
        days = days if days is not None else self._settings.extension_chunk_days

        result = await self._executor.extend(request, loaded, direction, days)

        if self._audit_logger and result.success:
            await self._audit_logger.log_window_extended(
                query_id=result.query_id,
                owner_id=request.owner_id,
                direction=direction.value,
                date_from=result.filters.get("date_from") or "",
                date_to=result.filters.get("date_to") or "",
                added_groups=len(result.groups) - len(loaded),
                correlation_id=correlation_id,
            )
        return result


class AppComponents(NamedTuple):
    entries: EntryFlow
    categories: CategoryFlow
    payments: PaymentFlow
    grouped_view: GroupedViewFlow
    storage: LedgerStorageInterface


def create_app_components(backend: Optional[str] = None) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        backend: "memory" or "google_sheets". Defaults to the configured
                 storage_backend. If Google Sheets cannot be set up, the
                 in-memory backend is used instead.
    """
    app_settings = get_settings().app
    configure_logging(app_settings.log_level)
    backend = backend or app_settings.storage_backend

    storage: LedgerStorageInterface
    if backend == "google_sheets":
        try:
            sheets_client = GoogleSheetsClient()
            storage = GoogleSheetsLedgerStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue without it
            logger.warning("storage_not_configured", error=str(e))
            storage = InMemoryLedgerStorage()
            audit_logger = AuditLogger(InMemoryAuditStorage())
    else:
        storage = InMemoryLedgerStorage()
        audit_logger = AuditLogger(InMemoryAuditStorage())

    validator = LedgerValidator(storage)
    category_flow = CategoryFlow(storage, audit_logger)

    return AppComponents(
        entries=EntryFlow(storage, category_flow, validator, audit_logger),
        categories=category_flow,
        payments=PaymentFlow(storage, validator, audit_logger),
        grouped_view=GroupedViewFlow(storage, audit_logger),
        storage=storage,
    )
