"""
Ledger Validation

DESIGN DECISION: Validation happens in two layers:

LAYER 1 - SCHEMA VALIDATION (pydantic):
- Types, required fields, amount bounds, two decimal places
- Runs when an EntryDraft / PaymentDraft is constructed

LAYER 2 - SEMANTIC VALIDATION (this module):
- Configurable limits (max entry amount, min payment amount)
- Category references must exist and belong to the same owner
- Overpayment and odd dates are reported, but never block a save

IMPORTANT: Validation NEVER silently fixes issues.
It reports them; the flows decide whether to proceed.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

from finance_tracker.config import get_settings
from finance_tracker.grouping.totals import total_paid
from finance_tracker.models.ledger import (
    Entry,
    EntryDraft,
    Payment,
    PaymentDraft,
    ValidationIssue,
    ValidationResult,
)
from finance_tracker.services.storage import LedgerStorageInterface


class LedgerValidator:
    """
    Semantic checks for entry and payment drafts.
    """

    def __init__(
        self,
        storage: Optional[LedgerStorageInterface] = None,
    ):
        """
        Initialize validator.

        Args:
            storage: Used to resolve category references.
                     If None, category checks are skipped.
        """
        self._storage = storage
        self._settings = get_settings().app

    async def validate_entry(
        self,
        draft: EntryDraft,
        owner_id: UUID,
        today: Optional[date] = None,
    ) -> ValidationResult:
        issues = []
        today = today or date.today()

        if draft.amount > self._settings.max_entry_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message=f"Amount ({draft.amount:,.2f}) exceeds the maximum of {self._settings.max_entry_amount:,.2f}",
                severity="error",
            ))

        issues.extend(await self._check_category(draft, owner_id))

        max_future_date = today + timedelta(days=self._settings.future_date_tolerance_days)
        if draft.date > max_future_date:
            issues.append(ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"Entry date ({draft.date}) is far in the future",
                severity="info",
            ))

        return ValidationResult(issues=issues)

    async def _check_category(
        self,
        draft: EntryDraft,
        owner_id: UUID,
    ) -> list[ValidationIssue]:
        issues = []

        if draft.category_id is None:
            if draft.category_name is not None and not draft.category_name:
                issues.append(ValidationIssue(
                    field="category_name",
                    issue_type="missing",
                    message="Category name cannot be empty.",
                    severity="error",
                ))
            elif draft.category_name is None:
                issues.append(ValidationIssue(
                    field="category",
                    issue_type="uncategorized",
                    message="Entry has no category and will be listed as Uncategorized",
                    severity="info",
                ))
            return issues

        if self._storage is None:
            return issues

        category = await self._storage.get_category(draft.category_id)
        if category is None or category.owner_id != owner_id:
            issues.append(ValidationIssue(
                field="category_id",
                issue_type="not_found",
                message=f"Category not found: {draft.category_id}",
                severity="error",
            ))

        return issues

    def validate_payment(
        self,
        draft: PaymentDraft,
        entry: Entry,
        existing_payments: Iterable[Payment] = (),
    ) -> ValidationResult:
        """
        Check a payment against its entry.

        Overpayment is a warning only: the ledger accepts it and the
        entry's remaining amount is clamped at zero.
        """
        issues = []

        if draft.amount < self._settings.min_payment_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message=f"Payment must be at least {self._settings.min_payment_amount}",
                severity="error",
            ))

        if draft.entry_id != entry.id:
            issues.append(ValidationIssue(
                field="entry_id",
                issue_type="inconsistent",
                message="Payment does not reference this entry",
                severity="error",
            ))

        already_paid = total_paid(entry, existing_payments)
        outstanding = max(Decimal("0.00"), entry.amount - already_paid)
        if draft.amount > outstanding:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="overpayment",
                message=(
                    f"Payment of {draft.amount:,.2f} exceeds the outstanding "
                    f"{outstanding:,.2f}; the entry will show nothing remaining"
                ),
                severity="warning",
            ))

        if draft.date < entry.date:
            issues.append(ValidationIssue(
                field="date",
                issue_type="inconsistent",
                message="Payment is dated before its entry",
                severity="info",
            ))

        return ValidationResult(issues=issues)

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a short summary of validation results for display.
        """
        if result.is_valid and not result.warnings:
            return "All checks passed."

        lines = []

        if result.has_errors:
            lines.append("Please fix the following:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
