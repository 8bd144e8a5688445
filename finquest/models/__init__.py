"""
Data Models Package

This package contains all Pydantic models used in FinQuest.
All data flowing through the ledger must conform to these schemas.
"""

from finquest.models.ledger import (
    BALANCE_EPSILON,
    CURRENCIES,
    CURRENCY_SYMBOLS,
    EXPENSE_CATEGORIES,
    INCOME_CATEGORIES,
    SAVINGS_CONTRIBUTION,
    SAVINGS_WITHDRAWAL,
    AllocationResult,
    BackupData,
    PendingTransaction,
    ReconciliationResult,
    SavingsGoal,
    SavingsMeta,
    TargetedGoal,
    Transaction,
    TransactionType,
    UnboundedGoal,
    UserProfile,
    currency_symbol,
    goal_from_record,
    new_id,
    utc_now,
)
from finquest.models.validation import ValidationIssue, ValidationResult
from finquest.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Constants
    "BALANCE_EPSILON",
    "CURRENCIES",
    "CURRENCY_SYMBOLS",
    "EXPENSE_CATEGORIES",
    "INCOME_CATEGORIES",
    "SAVINGS_CONTRIBUTION",
    "SAVINGS_WITHDRAWAL",
    # Ledger models
    "AllocationResult",
    "BackupData",
    "PendingTransaction",
    "ReconciliationResult",
    "SavingsGoal",
    "SavingsMeta",
    "TargetedGoal",
    "Transaction",
    "TransactionType",
    "UnboundedGoal",
    "UserProfile",
    "currency_symbol",
    "goal_from_record",
    "new_id",
    "utc_now",
    # Validation models
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
