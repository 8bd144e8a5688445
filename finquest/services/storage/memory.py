"""
In-Memory Storage Implementation

Dict-backed ledger store. Used by the test suite and for running the ledger
without any remote backend.

Entities are deep-copied on the way in and out so callers cannot mutate
"remote" state through a shared reference, just like a real backend.
Failures can be injected per operation name via fail_on.
"""

from typing import Any, Iterable, Optional

from finquest.models.audit import AuditEvent
from finquest.models.ledger import SavingsGoal, Transaction, UserProfile
from finquest.services.storage.interface import (
    AuditStorageInterface,
    LedgerStoreInterface,
    NotFoundError,
    StorageError,
)


class InMemoryLedgerStore(LedgerStoreInterface):
    """Ledger store kept in process memory."""

    def __init__(
        self,
        transactions: Optional[Iterable[Transaction]] = None,
        goals: Optional[Iterable[SavingsGoal]] = None,
        profiles: Optional[Iterable[UserProfile]] = None,
        fail_on: Optional[set[str]] = None,
    ):
        self.transactions: dict[str, Transaction] = {
            t.id: t.model_copy(deep=True) for t in transactions or []
        }
        self.goals: dict[str, SavingsGoal] = {
            g.id: g.model_copy(deep=True) for g in goals or []
        }
        self.profiles: dict[str, UserProfile] = {
            p.id: p.model_copy(deep=True) for p in profiles or []
        }
        self.activity: dict[str, set[str]] = {}
        self.fail_on: set[str] = set(fail_on or ())
        self.calls: list[str] = []

    def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.fail_on:
            raise StorageError(f"Simulated failure in {operation}")

    # -- Transactions ---------------------------------------------------------

    async def list_transactions(self, user_id: str) -> list[Transaction]:
        self._enter("list_transactions")
        rows = [
            t.model_copy(deep=True)
            for t in self.transactions.values()
            if t.user_id == user_id
        ]
        rows.sort(key=lambda t: t.date, reverse=True)
        return rows

    async def upsert_transactions(self, transactions: list[Transaction]) -> bool:
        self._enter("upsert_transactions")
        for txn in transactions:
            self.transactions[txn.id] = txn.model_copy(deep=True)
        return True

    async def delete_transactions(self, ids: list[str]) -> bool:
        self._enter("delete_transactions")
        for txn_id in ids:
            self.transactions.pop(txn_id, None)
        return True

    async def delete_all_transactions(self, user_id: str) -> bool:
        self._enter("delete_all_transactions")
        self.transactions = {
            k: t for k, t in self.transactions.items() if t.user_id != user_id
        }
        return True

    # -- Savings goals --------------------------------------------------------

    async def list_goals(self, user_id: str) -> list[SavingsGoal]:
        self._enter("list_goals")
        return [
            g.model_copy(deep=True)
            for g in self.goals.values()
            if g.user_id == user_id
        ]

    async def upsert_goals(self, goals: list[SavingsGoal]) -> bool:
        self._enter("upsert_goals")
        for goal in goals:
            self.goals[goal.id] = goal.model_copy(deep=True)
        return True

    async def delete_goal(self, goal_id: str) -> bool:
        self._enter("delete_goal")
        return self.goals.pop(goal_id, None) is not None

    async def delete_goals(self, user_id: str, deletable_only: bool = False) -> bool:
        self._enter("delete_goals")
        self.goals = {
            k: g for k, g in self.goals.items()
            if g.user_id != user_id or (deletable_only and not g.is_deletable)
        }
        return True

    # -- Activity log ---------------------------------------------------------

    async def list_activity(self, user_id: str) -> list[str]:
        self._enter("list_activity")
        return sorted(self.activity.get(user_id, set()))

    async def log_activity(self, user_id: str, day: str) -> bool:
        self._enter("log_activity")
        self.activity.setdefault(user_id, set()).add(day)
        return True

    async def clear_activity(self, user_id: str) -> bool:
        self._enter("clear_activity")
        self.activity.pop(user_id, None)
        return True

    # -- Profile --------------------------------------------------------------

    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        self._enter("get_profile")
        profile = self.profiles.get(user_id)
        return profile.model_copy(deep=True) if profile else None

    async def update_profile(self, user_id: str, fields: dict[str, Any]) -> bool:
        self._enter("update_profile")
        profile = self.profiles.get(user_id)
        if profile is None:
            raise NotFoundError(f"Profile not found: {user_id}")
        data = profile.model_dump()
        data.update(fields)
        self.profiles[user_id] = UserProfile.model_validate(data)
        return True


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log kept in a list."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return sorted(self.events, key=lambda e: e.timestamp, reverse=True)[:limit]
