"""Grouped-entry aggregation and payment reconciliation."""

from finance_tracker.grouping.date_range import (
    complete_date_groups,
    iter_dates,
    placeholder_group,
)
from finance_tracker.grouping.engine import (
    annotate_entries,
    build_group,
    date_key,
    date_label,
    filter_entries,
    group_entries,
)
from finance_tracker.grouping.totals import (
    compute_totals,
    is_fully_paid,
    is_partially_paid,
    remaining_amount,
    total_paid,
)
from finance_tracker.grouping.window import (
    loaded_window,
    merge_groups,
    plan_extension,
)

__all__ = [
    "annotate_entries",
    "build_group",
    "complete_date_groups",
    "compute_totals",
    "date_key",
    "date_label",
    "filter_entries",
    "group_entries",
    "is_fully_paid",
    "is_partially_paid",
    "iter_dates",
    "loaded_window",
    "merge_groups",
    "placeholder_group",
    "plan_extension",
    "remaining_amount",
    "total_paid",
]
