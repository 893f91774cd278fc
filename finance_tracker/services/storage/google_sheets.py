"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is available as a storage backend because:
1. Non-technical users can view their ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions (we handle this with careful ordering)
- Limited query capabilities (we filter in Python)

The implementation follows the abstract interface, so we can swap
to PostgreSQL/SQLite later without changing business logic.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from finance_tracker.config import get_settings
from finance_tracker.grouping.engine import filter_entries
from finance_tracker.models.audit import AuditEvent, AuditEventType, AuditSeverity
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
    StorageConnectionError,
    StorageError,
)


logger = structlog.get_logger(__name__)


ENTRY_COLUMNS = [
    "id",
    "owner_id",
    "type",
    "amount",
    "date",
    "description",
    "category_id",
    "created_at",
    "updated_at",
]

CATEGORY_COLUMNS = [
    "id",
    "owner_id",
    "name",
    "description",
    "created_at",
]

PAYMENT_COLUMNS = [
    "id",
    "entry_id",
    "amount",
    "date",
    "notes",
    "created_at",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "owner_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

# 1-based column of entries.category_id, for in-place detaching
ENTRY_CATEGORY_COLUMN = ENTRY_COLUMNS.index("category_id") + 1


def _cell(row: list, index: int, default: str = "") -> str:
    """Read a cell, tolerating short rows and blanks."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


def _data_rows(sheet: gspread.Worksheet) -> list[tuple[int, list]]:
    """(sheet row number, values) for every non-empty data row."""
    all_rows = sheet.get_all_values()
    return [
        (idx, row)
        for idx, row in enumerate(all_rows[1:], start=2)  # Row 1 is the header
        if row and row[0]
    ]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise StorageConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StorageConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise StorageConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int = 1000,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_entries_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(self._settings.entries_sheet_name, ENTRY_COLUMNS)

    def get_categories_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(self._settings.categories_sheet_name, CATEGORY_COLUMNS)

    def get_payments_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(self._settings.payments_sheet_name, PAYMENT_COLUMNS)

    def get_audit_sheet(self) -> gspread.Worksheet:
        # More rows for audit log
        return self._get_or_create_sheet(self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000)


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of ledger storage.

    Entries, categories and payments each live in their own worksheet,
    one record per row.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    # ------------------------------------------------------------------
    # Row conversion
    # ------------------------------------------------------------------

    @staticmethod
    def _entry_to_row(entry: Entry) -> list:
        return [
            str(entry.id),
            str(entry.owner_id),
            entry.type.value,
            str(entry.amount),
            entry.date.isoformat(),
            entry.description or "",
            str(entry.category_id) if entry.category_id else "",
            entry.created_at.isoformat(),
            entry.updated_at.isoformat(),
        ]

    @staticmethod
    def _row_to_entry(row: list) -> Entry:
        return Entry(
            id=UUID(_cell(row, 0)),
            owner_id=UUID(_cell(row, 1)),
            type=EntryType(_cell(row, 2)),
            amount=Decimal(_cell(row, 3)),
            date=date.fromisoformat(_cell(row, 4)),
            description=_cell(row, 5) or None,
            category_id=UUID(_cell(row, 6)) if _cell(row, 6) else None,
            created_at=datetime.fromisoformat(_cell(row, 7)),
            updated_at=datetime.fromisoformat(_cell(row, 8)),
        )

    @staticmethod
    def _category_to_row(category: Category) -> list:
        return [
            str(category.id),
            str(category.owner_id),
            category.name,
            category.description or "",
            category.created_at.isoformat(),
        ]

    @staticmethod
    def _row_to_category(row: list) -> Category:
        return Category(
            id=UUID(_cell(row, 0)),
            owner_id=UUID(_cell(row, 1)),
            name=_cell(row, 2),
            description=_cell(row, 3) or None,
            created_at=datetime.fromisoformat(_cell(row, 4)),
        )

    @staticmethod
    def _payment_to_row(payment: Payment) -> list:
        return [
            str(payment.id),
            str(payment.entry_id),
            str(payment.amount),
            payment.date.isoformat(),
            payment.notes or "",
            payment.created_at.isoformat(),
        ]

    @staticmethod
    def _row_to_payment(row: list) -> Payment:
        return Payment(
            id=UUID(_cell(row, 0)),
            entry_id=UUID(_cell(row, 1)),
            amount=Decimal(_cell(row, 2)),
            date=date.fromisoformat(_cell(row, 3)),
            notes=_cell(row, 4) or None,
            created_at=datetime.fromisoformat(_cell(row, 5)),
        )

    def _load_entries(self) -> list[tuple[int, Entry]]:
        loaded = []
        for idx, row in _data_rows(self._client.get_entries_sheet()):
            try:
                loaded.append((idx, self._row_to_entry(row)))
            except Exception as e:
                logger.warning("sheets_row_skipped", sheet="entries", row=idx, error=str(e))
        return loaded

    def _load_categories(self) -> list[tuple[int, Category]]:
        loaded = []
        for idx, row in _data_rows(self._client.get_categories_sheet()):
            try:
                loaded.append((idx, self._row_to_category(row)))
            except Exception as e:
                logger.warning("sheets_row_skipped", sheet="categories", row=idx, error=str(e))
        return loaded

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def save_entry(self, entry: Entry) -> bool:
        """Append an entry row."""
        try:
            sheet = self._client.get_entries_sheet()
            sheet.append_row(self._entry_to_row(entry), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to save entry: {e}")

    async def get_entry(self, entry_id: UUID) -> Optional[Entry]:
        try:
            for _, entry in self._load_entries():
                if entry.id == entry_id:
                    return entry
            return None
        except Exception as e:
            raise StorageError(f"Failed to get entry: {e}")

    async def update_entry(self, entry: Entry) -> bool:
        try:
            sheet = self._client.get_entries_sheet()
            for idx, row in _data_rows(sheet):
                if row[0] == str(entry.id):
                    sheet.update(range_name=f"A{idx}", values=[self._entry_to_row(entry)])
                    return True
            raise NotFoundError(f"Entry not found: {entry.id}")
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update entry: {e}")

    async def delete_entry(self, entry_id: UUID) -> bool:
        try:
            sheet = self._client.get_entries_sheet()
            for idx, row in _data_rows(sheet):
                if row[0] == str(entry_id):
                    sheet.delete_rows(idx)
                    return True
            return False
        except Exception as e:
            raise StorageError(f"Failed to delete entry: {e}")

    async def list_entries(
        self,
        owner_id: UUID,
        entry_type: Optional[EntryType] = None,
        category_ids: Optional[Iterable[UUID]] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Entry]:
        """List entries with optional filters, oldest first."""
        try:
            request = GroupingRequest(
                owner_id=owner_id,
                entry_type=entry_type,
                category_ids=list(category_ids or []),
                date_from=date_from,
                date_to=date_to,
            )
            entries = filter_entries((entry for _, entry in self._load_entries()), request)
            # Rows are appended in creation order; a stable sort keeps it for ties
            entries.sort(key=lambda e: e.date)
            return entries
        except Exception as e:
            raise StorageError(f"Failed to list entries: {e}")

    async def detach_category(self, category_id: UUID) -> int:
        try:
            sheet = self._client.get_entries_sheet()
            detached = 0
            for idx, row in _data_rows(sheet):
                if _cell(row, ENTRY_CATEGORY_COLUMN - 1) == str(category_id):
                    sheet.update_cell(idx, ENTRY_CATEGORY_COLUMN, "")
                    detached += 1
            return detached
        except Exception as e:
            raise StorageError(f"Failed to detach category: {e}")

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def _check_unique_name(self, category: Category) -> None:
        for _, other in self._load_categories():
            if (
                other.id != category.id
                and other.owner_id == category.owner_id
                and other.normalized_name == category.normalized_name
            ):
                raise DuplicateError(f"Category already exists: {category.name}")

    async def save_category(self, category: Category) -> bool:
        try:
            self._check_unique_name(category)
        except DuplicateError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save category: {e}")
        return await self._append_category(category)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _append_category(self, category: Category) -> bool:
        try:
            sheet = self._client.get_categories_sheet()
            sheet.append_row(self._category_to_row(category), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to save category: {e}")

    async def get_category(self, category_id: UUID) -> Optional[Category]:
        try:
            for _, category in self._load_categories():
                if category.id == category_id:
                    return category
            return None
        except Exception as e:
            raise StorageError(f"Failed to get category: {e}")

    async def update_category(self, category: Category) -> bool:
        try:
            self._check_unique_name(category)
            sheet = self._client.get_categories_sheet()
            for idx, row in _data_rows(sheet):
                if row[0] == str(category.id):
                    sheet.update(range_name=f"A{idx}", values=[self._category_to_row(category)])
                    return True
            raise NotFoundError(f"Category not found: {category.id}")
        except (NotFoundError, DuplicateError):
            raise
        except Exception as e:
            raise StorageError(f"Failed to update category: {e}")

    async def delete_category(self, category_id: UUID) -> bool:
        try:
            sheet = self._client.get_categories_sheet()
            for idx, row in _data_rows(sheet):
                if row[0] == str(category_id):
                    sheet.delete_rows(idx)
                    return True
            return False
        except Exception as e:
            raise StorageError(f"Failed to delete category: {e}")

    async def list_categories(self, owner_id: UUID) -> list[Category]:
        try:
            owned = [c for _, c in self._load_categories() if c.owner_id == owner_id]
            owned.sort(key=lambda c: c.name)
            return owned
        except Exception as e:
            raise StorageError(f"Failed to list categories: {e}")

    async def find_category_by_name(
        self,
        owner_id: UUID,
        name: str,
    ) -> Optional[Category]:
        wanted = name.strip().lower()
        for category in await self.list_categories(owner_id):
            if category.normalized_name == wanted:
                return category
        return None

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def save_payment(self, payment: Payment) -> bool:
        try:
            sheet = self._client.get_payments_sheet()
            sheet.append_row(self._payment_to_row(payment), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to save payment: {e}")

    async def list_payments(self, entry_ids: Iterable[UUID]) -> list[Payment]:
        wanted = {str(entry_id) for entry_id in entry_ids}
        if not wanted:
            return []
        try:
            payments = []
            for idx, row in _data_rows(self._client.get_payments_sheet()):
                if _cell(row, 1) not in wanted:
                    continue
                try:
                    payments.append(self._row_to_payment(row))
                except Exception as e:
                    logger.warning("sheets_row_skipped", sheet="payments", row=idx, error=str(e))
            return payments
        except Exception as e:
            raise StorageError(f"Failed to list payments: {e}")

    async def delete_payments_for_entry(self, entry_id: UUID) -> int:
        try:
            sheet = self._client.get_payments_sheet()
            doomed = [idx for idx, row in _data_rows(sheet) if _cell(row, 1) == str(entry_id)]
            # Bottom-up so earlier row numbers stay valid
            for idx in reversed(doomed):
                sheet.delete_rows(idx)
            return len(doomed)
        except Exception as e:
            raise StorageError(f"Failed to delete payments: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        return AuditEvent(
            event_id=UUID(_cell(row, 0)),
            timestamp=datetime.fromisoformat(_cell(row, 1)),
            event_type=AuditEventType(_cell(row, 2)),
            severity=AuditSeverity(_cell(row, 3)),
            owner_id=UUID(_cell(row, 4)) if _cell(row, 4) else None,
            entity_type=_cell(row, 5) or None,
            entity_id=UUID(_cell(row, 6)) if _cell(row, 6) else None,
            correlation_id=UUID(_cell(row, 7)) if _cell(row, 7) else None,
            description=_cell(row, 8),
            details=json.loads(_cell(row, 9)) if _cell(row, 9) else {},
            error_message=_cell(row, 10) or None,
            is_user_action=_cell(row, 11).lower() == "true",
        )

    def _load_events(self) -> list[AuditEvent]:
        events = []
        for idx, row in _data_rows(self._client.get_audit_sheet()):
            try:
                events.append(self._row_to_event(row))
            except Exception as e:
                logger.warning("sheets_row_skipped", sheet="audit", row=idx, error=str(e))
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Don't raise - audit logging should not break the main flow
            logger.warning("audit_sheet_write_failed", error=str(e), event_id=str(event.event_id))
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        try:
            events = [e for e in self._load_events() if e.correlation_id == correlation_id]
            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        try:
            events = [
                e for e in self._load_events()
                if e.entity_type == entity_type and e.entity_id == entity_id
            ]
            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        try:
            events = self._load_events()
            # Newest first
            events.sort(key=lambda e: e.timestamp, reverse=True)
            return events[:limit]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
