"""
Abstract Storage Interface

DESIGN DECISION: The ledger store is an external collaborator. We define an
abstract interface so that:
1. Google Sheets (or a hosted database) can back production
2. An in-memory store backs tests and offline use
3. The ledger core never depends on a storage implementation

There is no cross-entity transaction. Transactions and goals are written by
two independent calls; the reconciler detects any resulting inconsistency.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from finquest.models.audit import AuditEvent
from finquest.models.ledger import SavingsGoal, Transaction, UserProfile


class LedgerStoreInterface(ABC):
    """
    Abstract interface for per-user ledger storage.

    Write methods return True on success and raise StorageError on failure.
    Upserts replace whole entities by id ("last write wins").
    """

    # -- Transactions ---------------------------------------------------------

    @abstractmethod
    async def list_transactions(self, user_id: str) -> list[Transaction]:
        """
        List a user's transactions, newest first by date.
        """
        pass

    @abstractmethod
    async def upsert_transactions(self, transactions: list[Transaction]) -> bool:
        """
        Insert or replace transactions by id.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_transactions(self, ids: list[str]) -> bool:
        """
        Delete transactions by id. Unknown ids are ignored.
        """
        pass

    @abstractmethod
    async def delete_all_transactions(self, user_id: str) -> bool:
        """Delete every transaction belonging to the user."""
        pass

    # -- Savings goals --------------------------------------------------------

    @abstractmethod
    async def list_goals(self, user_id: str) -> list[SavingsGoal]:
        """List a user's savings goals."""
        pass

    @abstractmethod
    async def upsert_goals(self, goals: list[SavingsGoal]) -> bool:
        """
        Insert or replace goals by id.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_goal(self, goal_id: str) -> bool:
        """
        Delete one goal.

        Raises:
            StorageError: If the delete fails
        """
        pass

    @abstractmethod
    async def delete_goals(self, user_id: str, deletable_only: bool = False) -> bool:
        """
        Delete a user's goals.

        Args:
            user_id: Owner of the goals
            deletable_only: Keep the General Savings goal
        """
        pass

    # -- Activity log ---------------------------------------------------------

    @abstractmethod
    async def list_activity(self, user_id: str) -> list[str]:
        """ISO dates on which the user checked in."""
        pass

    @abstractmethod
    async def log_activity(self, user_id: str, day: str) -> bool:
        """Record a check-in for an ISO date (idempotent)."""
        pass

    @abstractmethod
    async def clear_activity(self, user_id: str) -> bool:
        pass

    # -- Profile --------------------------------------------------------------

    @abstractmethod
    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        pass

    @abstractmethod
    async def update_profile(self, user_id: str, fields: dict[str, Any]) -> bool:
        """
        Update only the given profile fields.

        Raises:
            NotFoundError: If the profile does not exist
            StorageError: If the write fails
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events (newest first).
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
