"""
Grouped Entries Query Execution

DESIGN DECISION: The executor is the only place that touches storage on
the read path. It takes one snapshot per request:
1. Read the filtered entries
2. Read the payments for exactly those entries
3. Read the owner's categories for display names

Everything after that is the pure grouping pipeline. Each entry's totals
are computed once, and that same value is shown on the entry and summed
into its group, so one result can never disagree with itself.
"""

from datetime import date, timedelta
from typing import Optional

from finance_tracker.grouping.date_range import complete_date_groups
from finance_tracker.grouping.engine import annotate_entries, group_entries
from finance_tracker.grouping.window import loaded_window, merge_groups, plan_extension
from finance_tracker.models.ledger import (
    EntryGroup,
    ExtensionDirection,
    GroupBy,
    GroupedEntriesResult,
    GroupingRequest,
)
from finance_tracker.services.storage import LedgerStorageInterface


class QueryExecutionError(Exception):
    """Error during query execution."""
    pass


class GroupedEntriesExecutor:
    """
    Executes grouping requests against ledger storage.

    GUARANTEES:
    - Only returns real data from storage
    - Totals are recomputed on every call, never cached
    - A date-grouped request with a full window gets one group per day
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        default_window_days: int = 3,
        label_format: Optional[str] = None,
    ):
        self._storage = storage
        self._default_window_days = default_window_days
        self._label_format = label_format

    def effective_request(
        self,
        request: GroupingRequest,
        today: Optional[date] = None,
    ) -> GroupingRequest:
        """
        Fill in the default window for date grouping.

        A date-grouped request with neither bound gets today +/- the
        default number of days. A single open bound is left alone, and
        category grouping is never windowed implicitly.
        """
        if request.group_by != GroupBy.DATE:
            return request
        if request.date_from is not None or request.date_to is not None:
            return request

        today = today or date.today()
        span = timedelta(days=self._default_window_days)
        return request.with_window(today - span, today + span)

    async def fetch_groups(self, request: GroupingRequest) -> list[EntryGroup]:
        """
        Read one snapshot and run the grouping pipeline on it.

        Raises:
            StorageError: If any read fails
        """
        entries = await self._storage.list_entries(
            owner_id=request.owner_id,
            entry_type=request.entry_type,
            category_ids=request.category_ids,
            date_from=request.date_from,
            date_to=request.date_to,
        )
        payments = await self._storage.list_payments([entry.id for entry in entries])
        categories = await self._storage.list_categories(request.owner_id)

        annotated = annotate_entries(entries, payments, categories)
        groups = group_entries(annotated, request.group_by, self._label_format)

        if request.group_by == GroupBy.DATE and request.has_window:
            groups = complete_date_groups(
                groups,
                request.date_from,
                request.date_to,
                self._label_format,
            )

        return groups

    async def execute(
        self,
        request: GroupingRequest,
        today: Optional[date] = None,
    ) -> GroupedEntriesResult:
        """
        Execute a grouping request and return the grouped view.

        Storage failures come back as an unsuccessful result rather than
        an exception.
        """
        try:
            effective = self.effective_request(request, today)
            groups = await self.fetch_groups(effective)
        except Exception as e:
            return GroupedEntriesResult(
                query_id=request.query_id,
                success=False,
                error_message=str(e),
                group_by=request.group_by,
                filters=self._filters(request),
            )

        return GroupedEntriesResult(
            query_id=request.query_id,
            success=True,
            group_by=effective.group_by,
            groups=groups,
            filters=self._filters(effective),
        )

    async def extend(
        self,
        request: GroupingRequest,
        loaded: list[EntryGroup],
        direction: ExtensionDirection,
        days: int,
    ) -> GroupedEntriesResult:
        """
        Grow a loaded date-grouped view by `days` on one side.

        Only the new sub-window is fetched. Groups already loaded are never
        replaced or duplicated. The result's filters describe the whole
        merged window.
        """
        if request.group_by != GroupBy.DATE:
            raise QueryExecutionError("Only date-grouped views can be extended")

        window = plan_extension(loaded, direction, days)
        if window is None:
            return GroupedEntriesResult(
                query_id=request.query_id,
                success=True,
                group_by=GroupBy.DATE,
                groups=list(loaded),
                filters=self._filters(request),
            )

        sub_request = request.with_window(window.date_from, window.date_to)
        try:
            new_groups = await self.fetch_groups(sub_request)
        except Exception as e:
            return GroupedEntriesResult(
                query_id=request.query_id,
                success=False,
                error_message=str(e),
                group_by=GroupBy.DATE,
                groups=list(loaded),
                filters=self._filters(request),
            )

        merged = merge_groups(loaded, new_groups)
        merged_window = loaded_window(merged)

        return GroupedEntriesResult(
            query_id=request.query_id,
            success=True,
            group_by=GroupBy.DATE,
            groups=merged,
            filters=self._filters(
                request.with_window(merged_window.date_from, merged_window.date_to)
            ),
        )

    def _filters(self, request: GroupingRequest) -> dict:
        """Echo the filters; category ids are always a list."""
        return {
            "type": request.entry_type.value if request.entry_type else "",
            "category_id": [str(category_id) for category_id in request.category_ids],
            "date_from": request.date_from.isoformat() if request.date_from else None,
            "date_to": request.date_to.isoformat() if request.date_to else None,
            "group_by": request.group_by.value,
        }
