"""
Goal Balance Reconciler

DESIGN DECISION: Balances and validity are re-derived from scratch on every
change instead of being patched incrementally. reconcile() is a pure function
over the current snapshot:

    (transactions, goals) -> corrected transactions, corrected goals, patch set

Editing or deleting a mid-chain transaction leaves every later
savings_meta.previous_amount pointing at a balance that no longer exists.
We do not cascade repairs at edit time. The next pass marks those
transactions invalid and the user sees why.

Running reconcile() on its own output changes nothing, so calling it after
every mutation cannot loop.
"""

from typing import Iterable, Optional

from finquest.models.ledger import (
    BALANCE_EPSILON,
    ReconciliationResult,
    SavingsGoal,
    Transaction,
)


def mismatch_reason(expected: float, found: float) -> str:
    return f"Historical mismatch. Expected {expected:.2f}, found {found:.2f}"


def goal_chain(transactions: Iterable[Transaction], goal_id: str) -> list[Transaction]:
    """Transactions linked to a goal, oldest first by date."""
    return sorted(
        (t for t in transactions if t.goal_id == goal_id),
        key=lambda t: t.date,
    )


def walk_chain(chain: list[Transaction]) -> tuple[float, dict[str, tuple[bool, Optional[str]]]]:
    """
    Walk one goal's date-ordered chain.

    Returns the final balance and the recomputed (is_valid, reason)
    per transaction id.
    """
    running_balance = 0.0
    verdicts: dict[str, tuple[bool, Optional[str]]] = {}

    for txn in chain:
        is_valid, reason = True, None
        if txn.savings_meta is not None:
            found = txn.savings_meta.previous_amount
            if abs(found - running_balance) > BALANCE_EPSILON:
                is_valid = False
                reason = mismatch_reason(running_balance, found)
        verdicts[txn.id] = (is_valid, reason)

        # Non-savings categories linked to a goal are balance-neutral
        running_balance += txn.balance_delta

    return running_balance, verdicts


def reconcile(
    transactions: list[Transaction],
    goals: list[SavingsGoal],
) -> ReconciliationResult:
    """
    Recompute every goal balance and every goal-linked transaction's validity.

    Transactions whose goal_id does not match any goal are left untouched.
    Output transactions keep the input order.
    """
    verdicts: dict[str, tuple[bool, Optional[str]]] = {}
    balances: dict[str, float] = {}

    for goal in goals:
        balance, chain_verdicts = walk_chain(goal_chain(transactions, goal.id))
        balances[goal.id] = balance
        verdicts.update(chain_verdicts)

    corrected_transactions = []
    for txn in transactions:
        verdict = verdicts.get(txn.id)
        if verdict is None:
            corrected_transactions.append(txn)
            continue
        is_valid, reason = verdict
        if txn.is_valid == is_valid and txn.invalidation_reason == reason:
            corrected_transactions.append(txn)
        else:
            corrected_transactions.append(
                txn.model_copy(update={
                    "is_valid": is_valid,
                    "invalidation_reason": reason,
                })
            )

    corrected_goals = []
    changed_goals = []
    for goal in goals:
        balance = balances[goal.id]
        if abs(balance - goal.current_amount) > BALANCE_EPSILON:
            updated = goal.model_copy(update={"current_amount": balance})
            corrected_goals.append(updated)
            changed_goals.append(updated)
        else:
            corrected_goals.append(goal)

    # Structural comparison: pydantic models compare field by field
    transactions_changed = corrected_transactions != list(transactions)

    return ReconciliationResult(
        transactions=corrected_transactions,
        goals=corrected_goals,
        transactions_changed=transactions_changed,
        changed_goals=changed_goals,
    )
