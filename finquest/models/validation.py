"""
Validation Result Models

A rejected form never reaches the ledger. The validator reports every
problem it found at once so the form can show them inline, and the
mutator turns the first error into a LedgerValidationError.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from finquest.models.ledger import utc_now


IssueSeverity = Literal["error", "warning", "info"]


class ValidationIssue(BaseModel):
    """One problem with one form field."""

    field: str
    issue_type: str = Field(
        ...,
        description="missing, invalid_value, inconsistent, unknown, "
                    "suspicious_value, duplicate, below_balance or not_allowed"
    )
    message: str
    severity: IssueSeverity
    suggested_fix: Optional[str] = None

    @property
    def blocks(self) -> bool:
        return self.severity == "error"


class ValidationResult(BaseModel):
    """
    Outcome of validating a transaction or goal form.

    schema_valid covers shape and required values. semantic_valid covers
    rules that need the category lists or the current goal set; it stays
    False when the schema stage already failed.
    """

    subject: Literal["transaction", "goal"]
    validated_at: datetime = Field(default_factory=utc_now)

    schema_valid: bool
    semantic_valid: bool
    is_valid: bool

    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def errors(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.blocks]

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def first_error(self) -> Optional[ValidationIssue]:
        errors = self.errors
        return errors[0] if errors else None
