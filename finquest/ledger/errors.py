"""
Ledger Exceptions

Validation errors are raised BEFORE any state is touched.
Consistency errors (balance drift) are never raised: they live on the
transactions as is_valid=False.
"""

from typing import Optional

from finquest.models.validation import ValidationIssue


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class LedgerValidationError(LedgerError):
    """The requested change was rejected; nothing was mutated."""

    def __init__(self, message: str, issues: Optional[list[ValidationIssue]] = None):
        self.issues = issues or []
        super().__init__(message)


class DuplicateGoalNameError(LedgerValidationError):
    """An active goal already uses this name."""

    def __init__(self, name: Optional[str] = None):
        self.name = name
        super().__init__("An active quest with this name already exists.")


class InsufficientFundsError(LedgerValidationError):
    """A withdrawal exceeds the goal's balance."""

    def __init__(self, goal_name: str, available: float, requested: float):
        self.goal_name = goal_name
        self.available = available
        self.requested = requested
        super().__init__(
            f"Cannot withdraw {requested:.2f} from \"{goal_name}\": "
            f"only {available:.2f} available."
        )


class GoalNotDeletableError(LedgerValidationError):
    """General Savings cannot be deleted or archived."""
    pass


class GoalNotFoundError(LedgerError):
    """No goal with this id in the session."""
    pass


class TransactionNotFoundError(LedgerError):
    """No transaction with this id in the session."""
    pass


class LedgerInvariantError(LedgerError):
    """The ledger is in a state that should be impossible (e.g. no General Savings)."""
    pass


class BackupFormatError(LedgerError):
    """Backup file is malformed, incomplete or from an unsupported version."""
    pass
