"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep the grouping engine decoupled from storage entirely

The interface is intentionally simple - we're not building a full ORM.
Just the reads and writes the ledger flows need.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Iterable, Optional
from uuid import UUID

from finance_tracker.models.ledger import Category, Entry, EntryType, Payment
from finance_tracker.models.audit import AuditEvent


class LedgerStorageInterface(ABC):
    """
    Abstract interface for entry, category and payment storage.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    @abstractmethod
    async def save_entry(self, entry: Entry) -> bool:
        """
        Save a new entry.

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def get_entry(self, entry_id: UUID) -> Optional[Entry]:
        """Retrieve an entry by ID, or None if it doesn't exist."""
        pass

    @abstractmethod
    async def update_entry(self, entry: Entry) -> bool:
        """
        Replace a stored entry.

        Raises:
            NotFoundError: If the entry doesn't exist
        """
        pass

    @abstractmethod
    async def delete_entry(self, entry_id: UUID) -> bool:
        """Delete an entry. Returns False if it didn't exist."""
        pass

    @abstractmethod
    async def list_entries(
        self,
        owner_id: UUID,
        entry_type: Optional[EntryType] = None,
        category_ids: Optional[Iterable[UUID]] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Entry]:
        """
        List an owner's entries with optional filters.

        Args:
            owner_id: Only entries belonging to this user
            entry_type: Filter by income/expense
            category_ids: Keep entries in any of these categories (empty = all)
            date_from: Entries on or after this date
            date_to: Entries on or before this date

        Returns:
            Matching entries, oldest date first, ties in creation order
        """
        pass

    @abstractmethod
    async def detach_category(self, category_id: UUID) -> int:
        """
        Set category_id to None on every entry in the category.

        Returns:
            Number of entries updated
        """
        pass

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    @abstractmethod
    async def save_category(self, category: Category) -> bool:
        """
        Save a new category.

        Raises:
            DuplicateError: If the owner already has a category with
                this name (case-insensitive)
        """
        pass

    @abstractmethod
    async def get_category(self, category_id: UUID) -> Optional[Category]:
        pass

    @abstractmethod
    async def update_category(self, category: Category) -> bool:
        """
        Replace a stored category.

        Raises:
            NotFoundError: If the category doesn't exist
            DuplicateError: If the new name collides with another category
        """
        pass

    @abstractmethod
    async def delete_category(self, category_id: UUID) -> bool:
        pass

    @abstractmethod
    async def list_categories(self, owner_id: UUID) -> list[Category]:
        """An owner's categories ordered by name."""
        pass

    @abstractmethod
    async def find_category_by_name(
        self,
        owner_id: UUID,
        name: str,
    ) -> Optional[Category]:
        """Case-insensitive exact name lookup within one owner's categories."""
        pass

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    @abstractmethod
    async def save_payment(self, payment: Payment) -> bool:
        pass

    @abstractmethod
    async def list_payments(self, entry_ids: Iterable[UUID]) -> list[Payment]:
        """All payments recorded against any of the given entries."""
        pass

    @abstractmethod
    async def delete_payments_for_entry(self, entry_id: UUID) -> int:
        """
        Delete every payment of an entry.

        Returns:
            Number of payments deleted
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Events sharing a correlation ID, in chronological order."""
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """Events for one entity, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Most recent events, newest first."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class StorageConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
