"""
Grouping Engine

Partitions a filtered set of entries into ordered groups, by date or by
category, and computes exact Decimal totals for every group.

GUARANTEES:
- Pure: never touches storage, never raises for well-formed input
- Date groups are ordered oldest first, whatever the input order
- Category groups are ordered by label; missing categories share
  the "Uncategorized" group
- Entries inside every group read chronologically; same-day entries
  keep their input order
"""

from collections import defaultdict
from datetime import date
from typing import Iterable, Optional

from finance_tracker.grouping.totals import compute_totals
from finance_tracker.models.ledger import (
    DATE_LABEL_FORMAT,
    ZERO,
    AnnotatedEntry,
    Category,
    Entry,
    EntryGroup,
    EntryType,
    GroupBy,
    GroupingRequest,
    Payment,
)


def date_key(day: date) -> str:
    """Group key for a calendar day (YYYY-MM-DD)."""
    return day.isoformat()


def date_label(day: date, label_format: str = DATE_LABEL_FORMAT) -> str:
    """Display label for a calendar day, e.g. 'Jan 01, 2024'."""
    return day.strftime(label_format)


def filter_entries(
    entries: Iterable[Entry],
    request: GroupingRequest,
) -> list[Entry]:
    """
    Keep the entries matching the request's filters.

    The date window is inclusive on both ends; a missing bound is open.
    Storage backends that cannot filter natively use this too.
    """
    category_ids = set(request.category_ids)
    matched = []

    for entry in entries:
        if entry.owner_id != request.owner_id:
            continue
        if request.entry_type and entry.type != request.entry_type:
            continue
        if category_ids and entry.category_id not in category_ids:
            continue
        if request.date_from and entry.date < request.date_from:
            continue
        if request.date_to and entry.date > request.date_to:
            continue
        matched.append(entry)

    return matched


def annotate_entries(
    entries: Iterable[Entry],
    payments: Iterable[Payment],
    categories: Iterable[Category] = (),
) -> list[AnnotatedEntry]:
    """
    Attach totals and category names to entries.

    Payments are bucketed once, so each entry's totals come from the same
    payments snapshot and are computed exactly once.
    """
    payments_by_entry: dict = defaultdict(list)
    for payment in payments:
        payments_by_entry[payment.entry_id].append(payment)

    category_names = {category.id: category.name for category in categories}

    return [
        AnnotatedEntry(
            entry=entry,
            category_name=category_names.get(entry.category_id),
            totals=compute_totals(entry, payments_by_entry.get(entry.id, [])),
        )
        for entry in entries
    ]


def build_group(key: str, label: str, entries: list[AnnotatedEntry]) -> EntryGroup:
    """
    Build a group and its totals.

    total_remaining = total_payable - total_payment, unclamped.
    total_payment counts payments on income entries as well.
    """
    total_payable = sum(
        (item.amount for item in entries if item.type == EntryType.EXPENSE),
        ZERO,
    )
    total_income = sum(
        (item.amount for item in entries if item.type == EntryType.INCOME),
        ZERO,
    )
    total_payment = sum((item.total_paid for item in entries), ZERO)

    return EntryGroup(
        key=key,
        label=label,
        entries=list(entries),
        total_payable=total_payable,
        total_payment=total_payment,
        total_remaining=total_payable - total_payment,
        total_income=total_income,
    )


def group_entries(
    entries: Iterable[AnnotatedEntry],
    group_by: GroupBy,
    label_format: Optional[str] = None,
) -> list[EntryGroup]:
    """
    Partition annotated entries into ordered groups.

    Args:
        entries: Entries already filtered and annotated with totals
        group_by: GroupBy.DATE or GroupBy.CATEGORY
        label_format: strftime format for date labels

    Returns:
        Groups in display order. No placeholder groups are created here;
        see complete_date_groups for that.
    """
    label_format = label_format or DATE_LABEL_FORMAT

    # sorted() is stable: same-day entries keep their input order
    ordered = sorted(entries, key=lambda item: item.date)

    buckets: dict[str, list[AnnotatedEntry]] = {}
    labels: dict[str, str] = {}

    for item in ordered:
        if group_by == GroupBy.DATE:
            key = date_key(item.date)
            label = date_label(item.date, label_format)
        else:
            key = label = item.category_label

        buckets.setdefault(key, []).append(item)
        labels.setdefault(key, label)

    groups = [build_group(key, labels[key], members) for key, members in buckets.items()]

    if group_by == GroupBy.DATE:
        groups.sort(key=lambda group: group.key)
    else:
        groups.sort(key=lambda group: group.label)

    return groups
