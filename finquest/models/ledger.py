"""
Core Data Models for the FinQuest Ledger

These models define the schemas for all ledger data flowing through the system:
transactions, savings goals ("quests"), the user profile and the backup file.

DESIGN DECISION: Goal balances (current_amount) and transaction validity
(is_valid / invalidation_reason) are DERIVED fields. They are stored so the
UI can show them, but the reconciler recomputes them from the transaction
chain and never trusts the stored value.

DESIGN DECISION: Savings goals are a sum type. A TargetedGoal has a target
and can be completed, split and deleted. The UnboundedGoal ("General
Savings") has no target, never splits and can never be deleted. The flat
record format used by the store and the backup file (target_amount +
is_deletable) is converted at the edges by goal_from_record/to_record.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional, Union
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


# =============================================================================
# CONSTANTS
# =============================================================================

SAVINGS_CONTRIBUTION = "Savings Contribution"
SAVINGS_WITHDRAWAL = "Savings Withdrawal"

# Balances are compared with a tolerance to absorb floating-point drift
BALANCE_EPSILON = 0.001

INCOME_CATEGORIES = [
    "Salary",
    "Freelance",
    "Investment",
    "Gift",
    SAVINGS_WITHDRAWAL,
    "Other",
]

EXPENSE_CATEGORIES = [
    "Food",
    "Housing",
    "Transport",
    "Utilities",
    "Entertainment",
    "Health",
    "Shopping",
    "Education",
    SAVINGS_CONTRIBUTION,
    "Other",
]

CURRENCIES = ("USD", "EUR", "GBP", "JPY", "CAD", "AUD", "KES")

CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "CAD": "$",
    "AUD": "$",
    "KES": "KSh",
}


def new_id() -> str:
    """Fresh opaque identifier for a transaction or goal."""
    return str(uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps are treated as UTC so chains can always be sorted
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def currency_symbol(currency: Optional[str]) -> str:
    return CURRENCY_SYMBOLS.get(currency or "USD", "$")


# =============================================================================
# ENUMS
# =============================================================================

class TransactionType(str, Enum):
    """Direction of a monetary movement."""
    INCOME = "income"
    EXPENSE = "expense"


# =============================================================================
# TRANSACTIONS
# =============================================================================

class SavingsMeta(BaseModel):
    """
    Goal balance immediately before and after a goal-linked transaction.

    Written once when the transaction is created. The reconciler compares
    previous_amount to the real running balance to detect drift.
    """
    model_config = ConfigDict(populate_by_name=True)

    previous_amount: float = Field(..., alias="previousAmount")
    current_amount: float = Field(..., alias="currentAmount")


class Transaction(BaseModel):
    """
    A single income or expense entry.

    goal_id links the transaction into a savings goal's chain.
    is_valid and invalidation_reason are maintained by the reconciler.
    """
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    id: str = Field(default_factory=new_id)
    user_id: Optional[str] = None
    type: TransactionType
    category: str = Field(..., min_length=1, max_length=100)
    amount: float = Field(..., gt=0)
    date: datetime = Field(
        default_factory=utc_now,
        description="Ordering key for balance reconstruction"
    )
    description: str = Field(default="", max_length=500)
    goal_id: Optional[str] = None
    is_valid: bool = True
    invalidation_reason: Optional[str] = None
    savings_meta: Optional[SavingsMeta] = None

    @field_validator("date")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        return _as_utc(v)

    @field_validator("is_valid", mode="before")
    @classmethod
    def default_validity(cls, v: Any) -> Any:
        # Rows written before validation existed carry no flag
        return True if v is None else v

    @field_validator("invalidation_reason", mode="before")
    @classmethod
    def blank_reason_is_none(cls, v: Any) -> Any:
        return v or None

    @field_validator("description", mode="before")
    @classmethod
    def none_description_is_blank(cls, v: Any) -> Any:
        return "" if v is None else v

    @property
    def is_savings_contribution(self) -> bool:
        return self.category == SAVINGS_CONTRIBUTION

    @property
    def is_savings_withdrawal(self) -> bool:
        return self.category == SAVINGS_WITHDRAWAL

    @property
    def balance_delta(self) -> float:
        """Effect of this transaction on its goal's balance."""
        if self.is_savings_contribution:
            return self.amount
        if self.is_savings_withdrawal:
            return -self.amount
        return 0.0

    def to_record(self) -> dict:
        """Flat JSON-ready dict in the wire format (camelCase savings_meta)."""
        return self.model_dump(mode="json", by_alias=True)


class PendingTransaction(BaseModel):
    """
    A movement the user entered but which is not yet tied to a goal.

    The allocator turns this into one or more concrete Transactions.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    type: TransactionType
    category: str = Field(..., min_length=1, max_length=100)
    amount: float = Field(..., gt=0)
    date: datetime = Field(default_factory=utc_now)
    description: str = Field(default="", max_length=500)

    @field_validator("date")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        return _as_utc(v)

    @classmethod
    def contribution(cls, amount: float, **kwargs) -> "PendingTransaction":
        return cls(
            type=TransactionType.EXPENSE,
            category=SAVINGS_CONTRIBUTION,
            amount=amount,
            **kwargs,
        )

    @classmethod
    def withdrawal(cls, amount: float, **kwargs) -> "PendingTransaction":
        return cls(
            type=TransactionType.INCOME,
            category=SAVINGS_WITHDRAWAL,
            amount=amount,
            **kwargs,
        )


# =============================================================================
# SAVINGS GOALS
# =============================================================================

class _GoalBase(BaseModel):
    """Fields shared by every kind of savings goal."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    user_id: Optional[str] = None
    name: str = Field(..., min_length=1, max_length=100)
    current_amount: float = Field(
        default=0.0,
        description="Derived from the goal's transaction chain"
    )
    emoji: str = Field(default="💰", max_length=16)
    created_at: datetime = Field(default_factory=utc_now)
    is_archived: bool = False
    unread_notification_message: Optional[str] = None

    @field_validator("created_at")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        return _as_utc(v)

    @field_validator("is_archived", mode="before")
    @classmethod
    def default_archived(cls, v: Any) -> Any:
        return False if v is None else v


class TargetedGoal(_GoalBase):
    """A savings quest with a target. Can be completed, archived and deleted."""

    kind: Literal["targeted"] = "targeted"
    target_amount: float = Field(..., gt=0)

    @property
    def is_deletable(self) -> bool:
        return True

    @property
    def is_complete(self) -> bool:
        return self.current_amount >= self.target_amount

    @property
    def room(self) -> float:
        """How much can still be contributed before the target is reached."""
        return self.target_amount - self.current_amount

    def to_record(self) -> dict:
        data = self.model_dump(mode="json", exclude={"kind"})
        data["is_deletable"] = True
        return data


class UnboundedGoal(_GoalBase):
    """
    The General Savings goal.

    No target, never complete, never split and never deletable.
    Acts as the sink for spillover from completed quests.
    """

    kind: Literal["unbounded"] = "unbounded"

    @property
    def is_deletable(self) -> bool:
        return False

    @property
    def is_complete(self) -> bool:
        return False

    def to_record(self) -> dict:
        data = self.model_dump(mode="json", exclude={"kind"})
        data["target_amount"] = 0
        data["is_deletable"] = False
        return data


SavingsGoal = Union[TargetedGoal, UnboundedGoal]


def goal_from_record(record: dict) -> SavingsGoal:
    """
    Build the right goal variant from a flat store/backup record.

    A record is the General Savings goal iff is_deletable is explicitly False.
    """
    data = dict(record)
    data.pop("kind", None)
    if data.pop("is_deletable", True) is False:
        data.pop("target_amount", None)
        return UnboundedGoal.model_validate(data)
    return TargetedGoal.model_validate(data)


# =============================================================================
# USER PROFILE
# =============================================================================

class UserProfile(BaseModel):
    """The signed-in user's profile row."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str
    name: str = ""
    email: str = ""
    image_url: str = ""
    currency: str = Field(default="USD")
    is_new_user: bool = False
    has_completed_tour: bool = False

    @field_validator("currency")
    @classmethod
    def known_currency(cls, v: str) -> str:
        if v not in CURRENCIES:
            raise ValueError(f"Unsupported currency: {v}")
        return v

    @property
    def currency_symbol(self) -> str:
        return currency_symbol(self.currency)


# =============================================================================
# BACKUP FILE
# =============================================================================

class BackupData(BaseModel):
    """
    Full export of a user's ledger.

    Field aliases keep the camelCase keys of the JSON file format.
    """
    model_config = ConfigDict(populate_by_name=True)

    transactions: list[Transaction]
    savings_goals: list[Union[TargetedGoal, UnboundedGoal]] = Field(
        ...,
        alias="savingsGoals"
    )
    exported_at: datetime = Field(default_factory=utc_now, alias="exportedAt")
    version: str

    @field_validator("savings_goals", mode="before")
    @classmethod
    def parse_goal_records(cls, v: Any) -> Any:
        if not isinstance(v, list):
            return v
        return [
            goal_from_record(item) if isinstance(item, dict) else item
            for item in v
        ]

    def to_wire(self) -> dict:
        return {
            "transactions": [t.to_record() for t in self.transactions],
            "savingsGoals": [g.to_record() for g in self.savings_goals],
            "exportedAt": _as_utc(self.exported_at).isoformat(),
            "version": self.version,
        }


# =============================================================================
# ENGINE RESULTS
# =============================================================================

class AllocationResult(BaseModel):
    """
    Outcome of allocating one pending movement to the goal set.

    transactions: new concrete transactions, to insert and persist
    goals: goal records to upsert (a new goal, or unread notices)
    balance_deltas: balance change per goal id; the reconciler applies
        these by replaying the chains, goals above keep their old balance
    goal_completed: a quest reached its target (UI celebrates)
    """

    transactions: list[Transaction] = Field(default_factory=list)
    goals: list[Union[TargetedGoal, UnboundedGoal]] = Field(default_factory=list)
    balance_deltas: dict[str, float] = Field(default_factory=dict)
    goal_completed: bool = False
    spillover_amount: float = 0.0

    @property
    def was_split(self) -> bool:
        return self.spillover_amount > BALANCE_EPSILON


class ReconciliationResult(BaseModel):
    """
    Outcome of one reconciliation pass.

    transactions/goals are the corrected full collections.
    Only changed_goals need to be written back; transactions are written
    back wholesale when transactions_changed is set.
    """

    transactions: list[Transaction]
    goals: list[Union[TargetedGoal, UnboundedGoal]]
    transactions_changed: bool = False
    changed_goals: list[Union[TargetedGoal, UnboundedGoal]] = Field(
        default_factory=list
    )

    @property
    def has_changes(self) -> bool:
        return self.transactions_changed or bool(self.changed_goals)

    @property
    def invalid_transactions(self) -> list[Transaction]:
        return [t for t in self.transactions if not t.is_valid]
