"""Savings ledger core: reconciliation, allocation and goal rules."""

from finquest.ledger.activity import compute_streaks, needs_checkin, today_key
from finquest.ledger.allocator import (
    allocate_contribution,
    allocate_to_new_goal,
    allocate_withdrawal,
)
from finquest.ledger.errors import (
    BackupFormatError,
    DuplicateGoalNameError,
    GoalNotDeletableError,
    GoalNotFoundError,
    InsufficientFundsError,
    LedgerError,
    LedgerInvariantError,
    LedgerValidationError,
    TransactionNotFoundError,
)
from finquest.ledger.goals import (
    archived_goals,
    ensure_general_savings,
    find_general_savings,
    find_goal,
    is_duplicate_name,
    sort_active_goals,
    withdrawal_candidates,
)
from finquest.ledger.reconciler import reconcile

__all__ = [
    # Activity
    "compute_streaks",
    "needs_checkin",
    "today_key",
    # Allocator
    "allocate_contribution",
    "allocate_to_new_goal",
    "allocate_withdrawal",
    # Errors
    "BackupFormatError",
    "DuplicateGoalNameError",
    "GoalNotDeletableError",
    "GoalNotFoundError",
    "InsufficientFundsError",
    "LedgerError",
    "LedgerInvariantError",
    "LedgerValidationError",
    "TransactionNotFoundError",
    # Goals
    "archived_goals",
    "ensure_general_savings",
    "find_general_savings",
    "find_goal",
    "is_duplicate_name",
    "sort_active_goals",
    "withdrawal_candidates",
    # Reconciler
    "reconcile",
]
