"""
Two-Stage Validation Pipeline

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Type checking
- Required field presence
- Positive amounts
- This catches malformed form input

STAGE 2 - SEMANTIC VALIDATION:
- Category matches the transaction type
- Absurd amount detection
- Duplicate goal names among active quests
- Targets below what is already saved
- This catches requests the ledger must refuse

WHY TWO STAGES:
1. Separation of concerns (structural vs logical)
2. Better error messages (know exactly what kind of issue)
3. Can skip stage 2 if stage 1 fails
4. Stage 2 needs the current goal set

IMPORTANT: Validation NEVER silently fixes issues. Every rejection happens
before any state is mutated.
"""

from typing import Any, Optional

from pydantic import ValidationError

from finquest.config import get_settings
from finquest.ledger.errors import DuplicateGoalNameError, LedgerValidationError
from finquest.ledger.goals import is_duplicate_name
from finquest.models.ledger import (
    EXPENSE_CATEGORIES,
    INCOME_CATEGORIES,
    PendingTransaction,
    SavingsGoal,
    TransactionType,
    UnboundedGoal,
)
from finquest.models.validation import ValidationIssue, ValidationResult


def _issues_from_pydantic(error: ValidationError) -> list[ValidationIssue]:
    issues = []
    for detail in error.errors():
        field = ".".join(str(part) for part in detail["loc"]) or "form"
        issues.append(ValidationIssue(
            field=field,
            issue_type="missing" if detail["type"] == "missing" else "invalid_value",
            message=f"{field}: {detail['msg']}",
            severity="error",
        ))
    return issues


def _has_error(issues: list[ValidationIssue]) -> bool:
    return any(issue.severity == "error" for issue in issues)


class LedgerValidator:
    """
    Validates transaction and goal forms through a two-stage pipeline.

    Stage 1: Schema validation (no ledger state needed)
    Stage 2: Semantic validation (checks against the goal set)
    """

    def __init__(self):
        self._settings = get_settings().ledger

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    def _validate_transaction_schema(
        self,
        data: dict[str, Any],
    ) -> tuple[Optional[PendingTransaction], list[ValidationIssue]]:
        """
        Stage 1: build a PendingTransaction from raw form data.

        Returns: (pending_or_None, list_of_issues)
        """
        try:
            return PendingTransaction.model_validate(data), []
        except ValidationError as e:
            return None, _issues_from_pydantic(e)

    def _validate_transaction_semantic(
        self,
        pending: PendingTransaction,
    ) -> list[ValidationIssue]:
        """
        Stage 2: business rules for a single movement.

        Checks:
        - Category belongs to the transaction type
        - Amount is below the sanity limit
        """
        issues = []

        own = INCOME_CATEGORIES if pending.type == TransactionType.INCOME else EXPENSE_CATEGORIES
        other = EXPENSE_CATEGORIES if pending.type == TransactionType.INCOME else INCOME_CATEGORIES

        if pending.category not in own:
            if pending.category in other:
                issues.append(ValidationIssue(
                    field="category",
                    issue_type="inconsistent",
                    message=(
                        f"'{pending.category}' is not a valid "
                        f"{pending.type.value} category"
                    ),
                    severity="error",
                    suggested_fix="Pick a category that matches the transaction type",
                ))
            else:
                issues.append(ValidationIssue(
                    field="category",
                    issue_type="unknown",
                    message=f"'{pending.category}' is not a standard category",
                    severity="warning",
                ))

        if pending.amount > self._settings.max_transaction_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount ({pending.amount:,.2f}) is unrealistically high",
                severity="error",
                suggested_fix="Please check the amount for extra digits",
            ))

        return issues

    def validate_transaction(self, data: dict[str, Any]) -> ValidationResult:
        """
        Run full two-stage validation on raw transaction form data.

        Args:
            data: type, category, amount and optionally date/description

        Returns:
            ValidationResult with all issues found
        """
        pending, issues = self._validate_transaction_schema(data)
        schema_valid = pending is not None

        semantic_valid = False
        if pending is not None:
            semantic_issues = self._validate_transaction_semantic(pending)
            issues.extend(semantic_issues)
            semantic_valid = not _has_error(semantic_issues)

        return ValidationResult(
            subject="transaction",
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            issues=issues,
        )

    def parse_transaction(self, data: dict[str, Any]) -> PendingTransaction:
        """
        Validate and return the PendingTransaction.

        Raises:
            LedgerValidationError: If any stage reports an error
        """
        result = self.validate_transaction(data)
        self.require_valid(result)
        return PendingTransaction.model_validate(data)

    # =========================================================================
    # GOALS
    # =========================================================================

    def validate_goal(
        self,
        name: str,
        target_amount: Optional[float],
        goals: list[SavingsGoal],
        existing: Optional[SavingsGoal] = None,
    ) -> ValidationResult:
        """
        Validate a create (existing=None) or edit goal form.

        target_amount may be None only when editing General Savings.
        """
        issues = []

        # Stage 1: Schema
        if not name or not name.strip():
            issues.append(ValidationIssue(
                field="name",
                issue_type="missing",
                message="Quest name is required",
                severity="error",
            ))
        elif len(name.strip()) > 100:
            issues.append(ValidationIssue(
                field="name",
                issue_type="invalid_value",
                message="Quest name must be 100 characters or fewer",
                severity="error",
            ))

        unbounded = isinstance(existing, UnboundedGoal)
        if unbounded:
            if target_amount is not None:
                issues.append(ValidationIssue(
                    field="target_amount",
                    issue_type="not_allowed",
                    message="General Savings has no target",
                    severity="error",
                ))
        elif target_amount is None:
            issues.append(ValidationIssue(
                field="target_amount",
                issue_type="missing",
                message="Target amount is required",
                severity="error",
            ))
        elif target_amount <= 0:
            issues.append(ValidationIssue(
                field="target_amount",
                issue_type="invalid_value",
                message="Target amount must be greater than zero",
                severity="error",
            ))

        schema_valid = not _has_error(issues)

        # Stage 2: Semantic (only if the form is well formed)
        semantic_valid = False
        if schema_valid:
            semantic_issues = []
            exclude_id = existing.id if existing is not None else None
            if is_duplicate_name(goals, name, exclude_id=exclude_id):
                semantic_issues.append(ValidationIssue(
                    field="name",
                    issue_type="duplicate",
                    message=str(DuplicateGoalNameError(name)),
                    severity="error",
                    suggested_fix="Choose a different name",
                ))
            if (
                existing is not None
                and target_amount is not None
                and target_amount < existing.current_amount
            ):
                semantic_issues.append(ValidationIssue(
                    field="target_amount",
                    issue_type="below_balance",
                    message=(
                        f"Target ({target_amount:,.2f}) cannot be below the amount "
                        f"already saved ({existing.current_amount:,.2f})"
                    ),
                    severity="error",
                    suggested_fix="Withdraw first, or pick a higher target",
                ))
            issues.extend(semantic_issues)
            semantic_valid = not _has_error(semantic_issues)

        return ValidationResult(
            subject="goal",
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            issues=issues,
        )

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def require_valid(result: ValidationResult) -> None:
        """
        Raise if the result carries any error.

        A duplicate-name error is raised as DuplicateGoalNameError so callers
        can tell it apart.
        """
        if not result.has_errors:
            return
        first = result.first_error
        if first.issue_type == "duplicate":
            error = DuplicateGoalNameError()
            error.issues = result.issues
            raise error
        raise LedgerValidationError(first.message, issues=result.issues)

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what we show inline next to the form.
        """
        warnings = [i for i in result.issues if i.severity == "warning"]
        if result.is_valid and not warnings:
            return "✅ All checks passed!"

        lines = []

        if result.has_errors:
            lines.append("❌ Please fix the following:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for issue in warnings:
                lines.append(f"   • {issue.message}")

        return "\n".join(lines)
