"""
Shared fixtures for the FinQuest test suite.

No real API calls: Gemini is replaced by FakeInsightModel and storage by the
in-memory store.
"""

from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from finquest.agents import InsightAgent
from finquest.audit import AuditLogger
from finquest.models.ledger import (
    SAVINGS_CONTRIBUTION,
    SAVINGS_WITHDRAWAL,
    SavingsMeta,
    TargetedGoal,
    Transaction,
    TransactionType,
    UnboundedGoal,
    UserProfile,
    new_id,
)
from finquest.orchestrator import LedgerMutator
from finquest.services.storage import InMemoryAuditStorage, InMemoryLedgerStore


USER_ID = "user-1"
START = datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc)
TODAY = date(2025, 3, 10)


class FakeInsightModel:
    """Stands in for a Gemini GenerativeModel."""

    def __init__(self, text: str = "Keep questing! 🚀", error: Exception = None):
        self.text = text
        self.error = error
        self.prompts: list[str] = []

    async def generate_content_async(self, prompt: str):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(text=self.text)


@pytest.fixture
def user_id() -> str:
    return USER_ID


@pytest.fixture
def at():
    """Timestamp N days after a fixed start date."""
    def _at(days: float) -> datetime:
        return START + timedelta(days=days)
    return _at


@pytest.fixture
def general_savings() -> UnboundedGoal:
    return UnboundedGoal(
        id="goal-general",
        user_id=USER_ID,
        name="General Savings",
        emoji="🏦",
        created_at=START,
    )


@pytest.fixture
def vacation_goal() -> TargetedGoal:
    return TargetedGoal(
        id="goal-vacation",
        user_id=USER_ID,
        name="Vacation",
        target_amount=100.0,
        emoji="🏖️",
        created_at=START + timedelta(hours=1),
    )


@pytest.fixture
def linked():
    """Build a goal-linked transaction with a savings_meta snapshot."""
    def _linked(goal, amount, previous, day=0, category=SAVINGS_CONTRIBUTION, txn_id=None):
        if category == SAVINGS_WITHDRAWAL:
            txn_type, current = TransactionType.INCOME, previous - amount
        else:
            txn_type, current = TransactionType.EXPENSE, previous + amount
        return Transaction(
            id=txn_id or new_id(),
            user_id=USER_ID,
            type=txn_type,
            category=category,
            amount=amount,
            date=START + timedelta(days=day),
            goal_id=goal.id,
            savings_meta=SavingsMeta(previous_amount=previous, current_amount=current),
        )
    return _linked


@pytest.fixture
def profile() -> UserProfile:
    return UserProfile(
        id=USER_ID,
        name="Ada",
        email="ada@example.com",
        currency="USD",
    )


@pytest.fixture
def store(profile) -> InMemoryLedgerStore:
    return InMemoryLedgerStore(profiles=[profile])


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def insight_model() -> FakeInsightModel:
    return FakeInsightModel()


@pytest.fixture
def mutator(store, audit_storage, insight_model) -> LedgerMutator:
    audit_logger = AuditLogger(audit_storage)
    return LedgerMutator(
        store=store,
        audit_logger=audit_logger,
        insight_agent=InsightAgent(model=insight_model, audit_logger=audit_logger),
        clock=lambda: TODAY,
    )


@pytest.fixture
def failing_model() -> FakeInsightModel:
    return FakeInsightModel(error=RuntimeError("quota exceeded"))


@pytest.fixture
def empty_model() -> FakeInsightModel:
    return FakeInsightModel(text="   ")
