"""
Savings Goal Rules

Selection, ordering and naming rules for savings quests, plus lazy creation
of the General Savings goal.

Every user has exactly one UnboundedGoal. It is created on first data load
if the store has none.
"""

from typing import Optional

from finquest.config import get_settings
from finquest.ledger.errors import DuplicateGoalNameError, GoalNotFoundError
from finquest.models.ledger import (
    SavingsGoal,
    TargetedGoal,
    UnboundedGoal,
)


def find_goal(goals: list[SavingsGoal], goal_id: str) -> SavingsGoal:
    for goal in goals:
        if goal.id == goal_id:
            return goal
    raise GoalNotFoundError(f"Savings goal not found: {goal_id}")


def find_general_savings(goals: list[SavingsGoal]) -> Optional[UnboundedGoal]:
    return next((g for g in goals if isinstance(g, UnboundedGoal)), None)


def ensure_general_savings(
    goals: list[SavingsGoal],
    user_id: Optional[str] = None,
) -> tuple[UnboundedGoal, bool]:
    """
    Return the General Savings goal, building one if missing.

    Returns (goal, created). The caller is responsible for persisting a
    newly created goal.
    """
    existing = find_general_savings(goals)
    if existing is not None:
        return existing, False

    settings = get_settings().ledger
    goal = UnboundedGoal(
        user_id=user_id,
        name=settings.general_savings_name,
        emoji=settings.general_savings_emoji,
        current_amount=0.0,
    )
    return goal, True


def normalize_name(name: str) -> str:
    return name.strip().lower()


def is_duplicate_name(
    goals: list[SavingsGoal],
    name: str,
    exclude_id: Optional[str] = None,
) -> bool:
    """
    Check a name against every non-archived goal, case-insensitively.

    Archived goals do not reserve their name.
    """
    wanted = normalize_name(name)
    return any(
        not g.is_archived
        and normalize_name(g.name) == wanted
        and g.id != exclude_id
        for g in goals
    )


def require_unique_name(
    goals: list[SavingsGoal],
    name: str,
    exclude_id: Optional[str] = None,
) -> None:
    if is_duplicate_name(goals, name, exclude_id=exclude_id):
        raise DuplicateGoalNameError(name)


def active_goals(goals: list[SavingsGoal]) -> list[SavingsGoal]:
    return [g for g in goals if not g.is_archived]


def sort_active_goals(goals: list[SavingsGoal]) -> list[SavingsGoal]:
    """
    Default display order for the quest board.

    Incomplete goals come before complete ones. General Savings leads the
    incomplete group. Ties fall back to creation time.
    """
    def sort_key(goal: SavingsGoal):
        return (
            goal.is_complete,
            goal.is_deletable,
            goal.created_at,
        )

    return sorted(active_goals(goals), key=sort_key)


def archived_goals(goals: list[SavingsGoal]) -> list[SavingsGoal]:
    return sorted(
        (g for g in goals if g.is_archived),
        key=lambda g: g.created_at,
    )


def withdrawal_candidates(goals: list[SavingsGoal], amount: float) -> list[SavingsGoal]:
    """Goals that can cover a withdrawal of this size."""
    return [
        g for g in goals
        if not g.is_archived and g.current_amount >= amount
    ]

