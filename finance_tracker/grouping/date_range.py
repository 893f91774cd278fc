"""
Date-Range Completer

Turns a date-grouped result into a gap-free calendar: one group per day of
an inclusive window, with empty placeholder groups for days that have no
entries. The windowed view relies on this to always have a contiguous run
of day keys to merge against.
"""

from datetime import date, timedelta
from typing import Iterable, Iterator, Optional

from finance_tracker.grouping.engine import build_group, date_key, date_label
from finance_tracker.models.ledger import DATE_LABEL_FORMAT, EntryGroup


def iter_dates(date_from: date, date_to: date) -> Iterator[date]:
    """Yield every day from date_from to date_to inclusive."""
    current = date_from
    while current <= date_to:
        yield current
        current += timedelta(days=1)


def placeholder_group(day: date, label_format: Optional[str] = None) -> EntryGroup:
    """An empty group with all totals zero."""
    return build_group(date_key(day), date_label(day, label_format or DATE_LABEL_FORMAT), [])


def complete_date_groups(
    groups: Iterable[EntryGroup],
    date_from: date,
    date_to: date,
    label_format: Optional[str] = None,
) -> list[EntryGroup]:
    """
    Fill in a placeholder group for every day in the window with no entries.

    Returns exactly (date_to - date_from).days + 1 groups in ascending
    order, or an empty list if date_from > date_to. Input groups whose
    key falls outside the window are dropped. Applying this twice gives
    the same result.
    """
    by_key = {group.key: group for group in groups}

    completed = []
    for day in iter_dates(date_from, date_to):
        key = date_key(day)
        if key in by_key:
            completed.append(by_key[key])
        else:
            completed.append(placeholder_group(day, label_format))

    return completed
