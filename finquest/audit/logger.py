"""
Audit Logger

Every mutation of the ledger leaves a trace: what the user asked for, what
the store did with it, and what the reconciler had to correct. With
optimistic updates this is the only place a failed remote write stays
visible once the UI has moved on.

The logger never raises. A broken audit sink is reported locally and the
ledger operation carries on.
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from finquest.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from finquest.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

_LOG_METHODS = {
    AuditSeverity.DEBUG: "debug",
    AuditSeverity.INFO: "info",
    AuditSeverity.WARNING: "warning",
    AuditSeverity.ERROR: "error",
    AuditSeverity.CRITICAL: "error",
}


class AuditLogger:
    """
    Writes ledger audit events.

    Each event goes to the structlog "finquest.audit" logger at a level
    matching its severity and, when a sink is configured, to audit storage
    (the AuditLog worksheet in production).
    """

    def __init__(self, storage: Optional[AuditStorageInterface] = None):
        self._storage = storage
        self._logger = structlog.get_logger("finquest.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Record one event.

        Returns False only when the configured sink rejected the event.
        """
        emit = getattr(self._logger, _LOG_METHODS[event.severity])
        emit("audit_event", **event.to_log_dict())

        if self._storage is None:
            return True
        try:
            return await self._storage.append_event(event)
        except Exception as e:
            self._logger.error(
                "audit_storage_failed",
                error=str(e),
                event_id=str(event.event_id),
                event_type=event.event_type.value,
            )
            return False

    async def log_persistence_failed(
        self,
        user_id: Optional[str],
        operation: str,
        error: Exception,
        recovery: str = "none",
    ) -> None:
        """
        A store write failed after the session was already updated.

        recovery is one of "none" (left for the next reconciliation),
        "full_reload" or "revert".
        """
        await self.log(AuditEventBuilder.persistence_failed(
            user_id=user_id,
            operation=operation,
            error_message=str(error),
            recovery=recovery,
        ))

    async def log_validation_rejected(
        self,
        user_id: Optional[str],
        subject: str,
        error: Exception,
    ) -> None:
        await self.log(AuditEventBuilder.validation_rejected(
            user_id=user_id,
            subject=subject,
            message=str(error),
        ))

    async def log_reconciliation(
        self,
        user_id: Optional[str],
        invalid_count: int,
        changed_goal_ids: list[str],
        transactions_changed: bool,
    ) -> None:
        await self.log(AuditEventBuilder.reconciliation_applied(
            user_id=user_id,
            invalid_count=invalid_count,
            changed_goal_ids=changed_goal_ids,
            transactions_changed=transactions_changed,
        ))

    async def log_simple(
        self,
        event_type: AuditEventType,
        user_id: Optional[str],
        description: str,
        details: Optional[dict] = None,
    ) -> None:
        await self.log(AuditEventBuilder.simple(
            event_type=event_type,
            user_id=user_id,
            description=description,
            details=details,
        ))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Gemini (or another collaborator) failed and a fallback was used."""
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """Id shared by every event of one multi-step action, e.g. a restore."""
    return uuid4()
