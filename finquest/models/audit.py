"""
Audit Models for FinQuest

Every significant ledger action is logged for audit purposes.
This provides:
1. Traceability of every optimistic update and its remote outcome
2. Debugging information when the store and local state drift
3. A record of what the reconciler changed and why

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from finquest.models.ledger import utc_now


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Session
    SESSION_STARTED = "session_started"
    SESSION_CLEARED = "session_cleared"
    DATA_RELOADED = "data_reloaded"
    GENERAL_SAVINGS_CREATED = "general_savings_created"

    # Transactions
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTION_EDITED = "transaction_edited"
    TRANSACTIONS_DELETED = "transactions_deleted"

    # Savings goals
    GOAL_CREATED = "goal_created"
    GOAL_UPDATED = "goal_updated"
    GOAL_ARCHIVED = "goal_archived"
    GOAL_UNARCHIVED = "goal_unarchived"
    GOAL_DELETED = "goal_deleted"
    CONTRIBUTION_POSTED = "contribution_posted"
    CONTRIBUTION_SPLIT = "contribution_split"
    WITHDRAWAL_POSTED = "withdrawal_posted"
    GOAL_COMPLETED = "goal_completed"

    # Reconciliation
    RECONCILIATION_APPLIED = "reconciliation_applied"

    # Activity
    ACTIVITY_LOGGED = "activity_logged"

    # Backup
    BACKUP_EXPORTED = "backup_exported"
    BACKUP_RESTORED = "backup_restored"
    BACKUP_REJECTED = "backup_rejected"
    ALL_DATA_DELETED = "all_data_deleted"

    # Profile
    PROFILE_UPDATED = "profile_updated"
    PROFILE_REVERTED = "profile_reverted"

    # Errors
    VALIDATION_REJECTED = "validation_rejected"
    PERSISTENCE_FAILED = "persistence_failed"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    user_id: Optional[str] = None
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'goal', 'backup')"
    )
    entity_id: Optional[str] = None

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one restore)"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": self.user_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, user_id, entity_type,
         entity_id, correlation_id, description, details_json,
         error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.user_id or "",
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_added(user_id, txn)
        event = AuditEventBuilder.persistence_failed(user_id, "upsert_goals", err)
    """

    @staticmethod
    def transaction_added(
        user_id: str,
        transaction_id: str,
        category: str,
        amount: float,
        goal_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_ADDED,
            user_id=user_id,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Transaction added: {category} {amount:.2f}",
            details={
                "category": category,
                "amount": amount,
                "goal_id": goal_id,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_edited(
        user_id: str,
        transaction_id: str,
        changed_fields: list[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_EDITED,
            user_id=user_id,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Transaction edited ({', '.join(changed_fields) or 'no changes'})",
            details={"changed_fields": changed_fields},
            is_user_action=True,
        )

    @staticmethod
    def transactions_deleted(user_id: str, ids: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTIONS_DELETED,
            user_id=user_id,
            entity_type="transaction",
            description=f"{len(ids)} transaction(s) deleted",
            details={"ids": ids},
            is_user_action=True,
        )

    @staticmethod
    def goal_event(
        event_type: AuditEventType,
        user_id: str,
        goal_id: str,
        goal_name: str,
        details: Optional[dict] = None,
        is_user_action: bool = True,
    ) -> AuditEvent:
        label = event_type.value.replace("_", " ")
        return AuditEvent(
            event_type=event_type,
            user_id=user_id,
            entity_type="goal",
            entity_id=goal_id,
            description=f"{label.capitalize()}: {goal_name}",
            details=details or {},
            is_user_action=is_user_action,
        )

    @staticmethod
    def contribution_split(
        user_id: str,
        goal_id: str,
        goal_name: str,
        completed_amount: float,
        spillover_amount: float,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONTRIBUTION_SPLIT,
            user_id=user_id,
            entity_type="goal",
            entity_id=goal_id,
            description=(
                f"Contribution to {goal_name} split: {completed_amount:.2f} "
                f"completes the goal, {spillover_amount:.2f} spills over"
            ),
            details={
                "completed_amount": completed_amount,
                "spillover_amount": spillover_amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def reconciliation_applied(
        user_id: str,
        invalid_count: int,
        changed_goal_ids: list[str],
        transactions_changed: bool,
    ) -> AuditEvent:
        severity = AuditSeverity.WARNING if invalid_count else AuditSeverity.INFO
        return AuditEvent(
            event_type=AuditEventType.RECONCILIATION_APPLIED,
            severity=severity,
            user_id=user_id,
            description=(
                f"Reconciliation updated {len(changed_goal_ids)} goal balance(s); "
                f"{invalid_count} invalid transaction(s)"
            ),
            details={
                "invalid_count": invalid_count,
                "changed_goal_ids": changed_goal_ids,
                "transactions_changed": transactions_changed,
            },
        )

    @staticmethod
    def activity_logged(user_id: str, day: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACTIVITY_LOGGED,
            user_id=user_id,
            entity_type="activity",
            entity_id=day,
            description=f"Activity logged for {day}",
        )

    @staticmethod
    def backup_restored(
        user_id: str,
        version: str,
        transaction_count: int,
        goal_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_RESTORED,
            user_id=user_id,
            entity_type="backup",
            correlation_id=correlation_id,
            description=(
                f"Backup {version} restored: {transaction_count} transactions, "
                f"{goal_count} goals"
            ),
            details={
                "version": version,
                "transaction_count": transaction_count,
                "goal_count": goal_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def backup_rejected(user_id: str, reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_REJECTED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="backup",
            description="Backup file rejected",
            error_message=reason,
            is_user_action=True,
        )

    @staticmethod
    def validation_rejected(
        user_id: Optional[str],
        subject: str,
        message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_REJECTED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type=subject,
            description=f"{subject.capitalize()} rejected: {message}"[:500],
            error_message=message,
            is_user_action=True,
        )

    @staticmethod
    def persistence_failed(
        user_id: Optional[str],
        operation: str,
        error_message: str,
        recovery: str = "none",
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSISTENCE_FAILED,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            description=f"Remote write failed: {operation}",
            error_message=error_message,
            details={
                "operation": operation,
                "recovery": recovery,
            },
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )

    @staticmethod
    def simple(
        event_type: AuditEventType,
        user_id: Optional[str],
        description: str,
        details: Optional[dict] = None,
        severity: AuditSeverity = AuditSeverity.INFO,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            severity=severity,
            user_id=user_id,
            description=description,
            details=details or {},
        )
