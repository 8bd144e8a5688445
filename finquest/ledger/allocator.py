"""
Contribution/Withdrawal Allocator

Decides where a single pending movement lands:

- Contribution to a TargetedGoal that fits: one transaction.
- Contribution that overshoots the target: split into a "completion"
  transaction (exactly enough to reach the target) and a "spillover"
  transaction posted to General Savings. Both goals get an unread notice.
- Contribution to General Savings: never split.
- Contribution that creates a new goal inline: the goal starts at 0 and
  the movement becomes its first transaction.
- Withdrawal: one transaction, refused if it would go below zero.

Every transaction gets a savings_meta snapshot of the goal balance before
and after it. The allocator is pure: it returns what should change and
never touches session state or storage. Balances are not edited here; the
reconciler replays the chains and derives them.
"""

from typing import Optional

import structlog

from finquest.ledger.errors import (
    InsufficientFundsError,
    LedgerInvariantError,
    LedgerValidationError,
)
from finquest.ledger.goals import find_general_savings, require_unique_name
from finquest.models.ledger import (
    BALANCE_EPSILON,
    SAVINGS_CONTRIBUTION,
    SAVINGS_WITHDRAWAL,
    AllocationResult,
    PendingTransaction,
    SavingsGoal,
    SavingsMeta,
    TargetedGoal,
    Transaction,
    currency_symbol,
)


logger = structlog.get_logger(__name__)


def _linked_transaction(
    pending: PendingTransaction,
    goal: SavingsGoal,
    amount: float,
    description: str,
    previous_amount: float,
    current_amount: float,
) -> Transaction:
    return Transaction(
        user_id=goal.user_id,
        type=pending.type,
        category=pending.category,
        amount=amount,
        date=pending.date,
        description=description,
        goal_id=goal.id,
        is_valid=True,
        savings_meta=SavingsMeta(
            previous_amount=previous_amount,
            current_amount=current_amount,
        ),
    )


def _require_category(pending: PendingTransaction, category: str) -> None:
    if pending.category != category:
        raise LedgerValidationError(
            f"Expected a '{category}' transaction, got '{pending.category}'."
        )


def allocate_contribution(
    pending: PendingTransaction,
    goal: SavingsGoal,
    goals: list[SavingsGoal],
    currency: Optional[str] = None,
) -> AllocationResult:
    """
    Post a savings contribution to an existing goal.

    Args:
        pending: the contribution (category must be Savings Contribution)
        goal: the selected goal
        goals: the full goal set (needed to find General Savings)
        currency: used to format the spillover notices

    Raises:
        LedgerValidationError: wrong category or archived goal
        LedgerInvariantError: a spillover is needed but General Savings is missing
    """
    _require_category(pending, SAVINGS_CONTRIBUTION)
    if goal.is_archived:
        raise LedgerValidationError(
            f"\"{goal.name}\" is archived and cannot receive contributions."
        )

    amount = pending.amount
    overshoots = (
        isinstance(goal, TargetedGoal)
        and amount - goal.room > BALANCE_EPSILON
    )

    if overshoots:
        return _split_contribution(pending, goal, goals, currency)

    description = (
        f"{pending.description} (Goal: {goal.name})"
        if pending.description
        else f"Contribution to savings goal: \"{goal.name}\""
    )
    transaction = _linked_transaction(
        pending,
        goal,
        amount=amount,
        description=description,
        previous_amount=goal.current_amount,
        current_amount=goal.current_amount + amount,
    )

    completed = (
        isinstance(goal, TargetedGoal)
        and goal.current_amount < goal.target_amount
        and goal.current_amount + amount >= goal.target_amount
    )

    return AllocationResult(
        transactions=[transaction],
        balance_deltas={goal.id: amount},
        goal_completed=completed,
    )


def _split_contribution(
    pending: PendingTransaction,
    goal: TargetedGoal,
    goals: list[SavingsGoal],
    currency: Optional[str],
) -> AllocationResult:
    # A goal already at or past its target has no room left, never negative room
    amount_to_complete = max(goal.room, 0.0)
    spillover_amount = pending.amount - amount_to_complete

    general = find_general_savings(goals)
    if spillover_amount > BALANCE_EPSILON and general is None:
        raise LedgerInvariantError(
            "General Savings goal is missing; cannot route the spillover."
        )

    transactions = []
    balance_deltas = {}

    if amount_to_complete > BALANCE_EPSILON:
        transactions.append(_linked_transaction(
            pending,
            goal,
            amount=amount_to_complete,
            description=f"Final contribution to complete: \"{goal.name}\"",
            previous_amount=goal.current_amount,
            current_amount=goal.target_amount,
        ))
        balance_deltas[goal.id] = amount_to_complete

    symbol = currency_symbol(currency)
    goals_to_upsert: list[SavingsGoal] = [
        goal.model_copy(update={
            "unread_notification_message": (
                f"Excess of {symbol}{spillover_amount:.2f} transferred to General Savings."
            ),
        })
    ]

    if spillover_amount > BALANCE_EPSILON:
        transactions.append(_linked_transaction(
            pending,
            general,
            amount=spillover_amount,
            description=f"Spillover from \"{goal.name}\" to General Savings",
            previous_amount=general.current_amount,
            current_amount=general.current_amount + spillover_amount,
        ))
        balance_deltas[general.id] = spillover_amount
        goals_to_upsert.append(general.model_copy(update={
            "unread_notification_message": (
                f"Received {symbol}{spillover_amount:.2f} spillover from \"{goal.name}\"."
            ),
        }))

    logger.info(
        "contribution_split",
        goal_id=goal.id,
        completed_amount=amount_to_complete,
        spillover_amount=spillover_amount,
    )

    return AllocationResult(
        transactions=transactions,
        goals=goals_to_upsert,
        balance_deltas=balance_deltas,
        goal_completed=True,
        spillover_amount=spillover_amount,
    )


def allocate_to_new_goal(
    pending: PendingTransaction,
    name: str,
    target_amount: float,
    emoji: str,
    goals: list[SavingsGoal],
    user_id: Optional[str] = None,
) -> AllocationResult:
    """
    Create a goal inline and post the contribution as its first transaction.

    No split logic applies. Reaching the target on the first contribution
    still signals completion.
    """
    _require_category(pending, SAVINGS_CONTRIBUTION)
    if target_amount <= 0:
        raise LedgerValidationError("Target amount must be greater than zero.")
    require_unique_name(goals, name)

    goal = TargetedGoal(
        user_id=user_id,
        name=name,
        target_amount=target_amount,
        emoji=emoji,
        current_amount=0.0,
    )
    transaction = _linked_transaction(
        pending,
        goal,
        amount=pending.amount,
        description=f"Initial contribution to new goal: \"{goal.name}\"",
        previous_amount=0.0,
        current_amount=pending.amount,
    )

    return AllocationResult(
        transactions=[transaction],
        goals=[goal],
        balance_deltas={goal.id: pending.amount},
        goal_completed=pending.amount >= target_amount,
    )


def allocate_withdrawal(
    pending: PendingTransaction,
    goal: SavingsGoal,
) -> AllocationResult:
    """
    Withdraw from a goal.

    Raises:
        InsufficientFundsError: the amount exceeds the goal's balance
        LedgerValidationError: wrong category or archived goal
    """
    _require_category(pending, SAVINGS_WITHDRAWAL)
    if goal.is_archived:
        raise LedgerValidationError(
            f"\"{goal.name}\" is archived; unarchive it before withdrawing."
        )
    if pending.amount > goal.current_amount:
        raise InsufficientFundsError(goal.name, goal.current_amount, pending.amount)

    description = (
        f"{pending.description} (From Goal: {goal.name})"
        if pending.description
        else f"Withdrawal from savings goal: \"{goal.name}\""
    )
    transaction = _linked_transaction(
        pending,
        goal,
        amount=pending.amount,
        description=description,
        previous_amount=goal.current_amount,
        current_amount=goal.current_amount - pending.amount,
    )

    return AllocationResult(
        transactions=[transaction],
        balance_deltas={goal.id: -pending.amount},
    )
