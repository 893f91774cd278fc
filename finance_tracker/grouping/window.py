"""
Windowed Extension

Grows an already-loaded date-grouped view by a chunk of days before its
earliest day or after its latest day, without re-fetching loaded days.

Only the data side lives here. Keeping the scroll position steady while
groups are prepended is the presentation layer's job.
"""

from datetime import date, timedelta
from typing import Iterable, Optional

from finance_tracker.models.ledger import DateWindow, EntryGroup, ExtensionDirection


def loaded_window(groups: Iterable[EntryGroup]) -> Optional[DateWindow]:
    """The [earliest, latest] day covered by date-keyed groups, if any."""
    days = [date.fromisoformat(group.key) for group in groups]
    if not days:
        return None
    return DateWindow(date_from=min(days), date_to=max(days))


def plan_extension(
    loaded: Iterable[EntryGroup],
    direction: ExtensionDirection,
    days: int,
) -> Optional[DateWindow]:
    """
    Compute the sub-window to fetch next.

    Backward: [earliest - days, earliest - 1].
    Forward:  [latest + 1, latest + days].

    Returns None when nothing is loaded yet or days is not positive.
    """
    current = loaded_window(loaded)
    if current is None or days <= 0:
        return None

    if direction == ExtensionDirection.BACKWARD:
        return DateWindow(
            date_from=current.date_from - timedelta(days=days),
            date_to=current.date_from - timedelta(days=1),
        )
    return DateWindow(
        date_from=current.date_to + timedelta(days=1),
        date_to=current.date_to + timedelta(days=days),
    )


def merge_groups(
    loaded: list[EntryGroup],
    new_groups: Iterable[EntryGroup],
) -> list[EntryGroup]:
    """
    Merge freshly fetched groups into the loaded list.

    Any group whose key is already loaded is skipped, so re-requesting an
    overlapping window never duplicates a day or double-counts its totals.
    The result is in ascending day order: earlier days end up in front and
    later days at the end, even when the fetched window overlaps the loaded
    days and reaches past both ends of them.
    """
    seen = {group.key for group in loaded}
    fresh = []
    for group in new_groups:
        if group.key in seen:
            continue
        seen.add(group.key)
        fresh.append(group)

    # Keys are ISO dates, so string order is calendar order
    return sorted(list(loaded) + fresh, key=lambda group: group.key)
