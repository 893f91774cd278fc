"""
Remaining-Amount Calculator

Maps an entry and its payments to paid / remaining / fully-paid status.

DESIGN DECISION: remaining is clamped at zero per entry. Overpayment is
not an error and is not flagged here; the excess is silently absorbed.
Group totals (see engine.py) deliberately do NOT clamp.
"""

from decimal import Decimal
from typing import Iterable

from finance_tracker.models.ledger import ZERO, Entry, EntryTotals, Payment


def total_paid(entry: Entry, payments: Iterable[Payment]) -> Decimal:
    """Sum of the payments recorded against this entry."""
    return sum(
        (payment.amount for payment in payments if payment.entry_id == entry.id),
        ZERO,
    )


def remaining_amount(entry: Entry, payments: Iterable[Payment]) -> Decimal:
    return _clamped_remaining(entry.amount, total_paid(entry, payments))


def is_fully_paid(entry: Entry, payments: Iterable[Payment]) -> bool:
    return remaining_amount(entry, payments) == ZERO


def is_partially_paid(entry: Entry, payments: Iterable[Payment]) -> bool:
    payments = list(payments)
    return total_paid(entry, payments) > ZERO and not is_fully_paid(entry, payments)


def compute_totals(entry: Entry, payments: Iterable[Payment]) -> EntryTotals:
    """
    Build the full reconciliation snapshot for one entry.

    Payments for other entries are ignored, so callers may pass the
    whole payment list of a request.
    """
    paid = total_paid(entry, payments)
    remaining = _clamped_remaining(entry.amount, paid)
    fully_paid = remaining == ZERO

    return EntryTotals(
        total_paid=paid,
        remaining=remaining,
        is_fully_paid=fully_paid,
        is_partially_paid=paid > ZERO and not fully_paid,
    )


def _clamped_remaining(amount: Decimal, paid: Decimal) -> Decimal:
    return max(ZERO, amount - paid)
