"""Tests for the goal balance reconciler."""

import pytest

from finquest.ledger.reconciler import goal_chain, mismatch_reason, reconcile, walk_chain
from finquest.models.ledger import (
    SAVINGS_WITHDRAWAL,
    SavingsMeta,
    Transaction,
    TransactionType,
)


class TestReconcile:
    """Balance reconstruction and drift detection."""

    def test_consistent_ledger_has_no_changes(self, vacation_goal, general_savings, linked):
        """Already-consistent data produces an empty patch set."""
        goal = vacation_goal.model_copy(update={"current_amount": 70})
        txns = [
            linked(goal, 50, previous=0, day=0),
            linked(goal, 20, previous=50, day=1),
        ]
        result = reconcile(txns, [goal, general_savings])
        assert result.has_changes is False
        assert result.transactions == txns
        assert result.changed_goals == []

    def test_idempotent(self, vacation_goal, general_savings, linked):
        """A second pass over the first pass's output changes nothing."""
        t2 = linked(vacation_goal, 50, previous=100, day=1)
        t3 = linked(general_savings, 30, previous=999, day=2)  # drifted

        first = reconcile([t3, t2], [vacation_goal, general_savings])
        second = reconcile(first.transactions, first.goals)

        assert first.has_changes is True
        assert second.has_changes is False
        assert second.transactions == first.transactions
        assert second.goals == first.goals

    def test_balance_is_sum_of_chain(self, vacation_goal, linked):
        """Contributions add, withdrawals subtract."""
        txns = [
            linked(vacation_goal, 60, previous=0, day=0),
            linked(vacation_goal, 25, previous=60, day=1, category=SAVINGS_WITHDRAWAL),
            linked(vacation_goal, 40, previous=35, day=2),
        ]
        result = reconcile(txns, [vacation_goal])
        assert result.goals[0].current_amount == 75
        assert [g.id for g in result.changed_goals] == [vacation_goal.id]
        assert all(t.is_valid for t in result.transactions)

    def test_orders_chain_by_date_not_position(self, vacation_goal, linked):
        """Transactions entered out of order still reconcile by date."""
        later = linked(vacation_goal, 30, previous=50, day=5)
        earlier = linked(vacation_goal, 50, previous=0, day=1)
        result = reconcile([later, earlier], [vacation_goal])
        assert all(t.is_valid for t in result.transactions)
        assert result.goals[0].current_amount == 80
        # Output keeps input order
        assert [t.id for t in result.transactions] == [later.id, earlier.id]

    def test_deleting_early_contribution_invalidates_later(self, vacation_goal, linked):
        """Removing T1 leaves T2's snapshot pointing at a stale balance."""
        vacation_goal = vacation_goal.model_copy(update={"current_amount": 150})
        t2 = linked(vacation_goal, 50, previous=100, day=1)

        result = reconcile([t2], [vacation_goal])

        flagged = result.transactions[0]
        assert flagged.is_valid is False
        assert flagged.invalidation_reason == "Historical mismatch. Expected 0.00, found 100.00"
        assert result.transactions_changed is True
        assert result.goals[0].current_amount == 50
        assert len(result.invalid_transactions) == 1

    def test_repaired_chain_becomes_valid_again(self, vacation_goal, linked):
        """Validity is re-derived on every pass, in both directions."""
        stale = linked(vacation_goal, 50, previous=0, day=1).model_copy(update={
            "is_valid": False,
            "invalidation_reason": "Historical mismatch. Expected 0.00, found 100.00",
        })
        result = reconcile([stale], [vacation_goal])
        assert result.transactions[0].is_valid is True
        assert result.transactions[0].invalidation_reason is None
        assert result.transactions_changed is True

    def test_epsilon_absorbs_float_drift(self, vacation_goal, linked):
        """Differences below 0.001 are not a mismatch."""
        txns = [
            linked(vacation_goal, 0.1, previous=0, day=0),
            linked(vacation_goal, 0.2, previous=0.1, day=1),
            linked(vacation_goal, 0.3, previous=0.3000004, day=2),
        ]
        result = reconcile(txns, [vacation_goal])
        assert all(t.is_valid for t in result.transactions)

    def test_goal_without_transactions_settles_at_zero(self, vacation_goal):
        """A stored balance with no chain behind it is reset."""
        goal = vacation_goal.model_copy(update={"current_amount": 40})
        result = reconcile([], [goal])
        assert result.goals[0].current_amount == 0
        assert result.changed_goals[0].id == goal.id
        assert result.transactions_changed is False

    def test_only_changed_goals_are_reported(self, vacation_goal, general_savings, linked):
        """Goals whose balance already matches are not in the patch set."""
        general = general_savings.model_copy(update={"current_amount": 10})
        txns = [
            linked(general, 10, previous=0, day=0),
            linked(vacation_goal, 5, previous=0, day=0),
        ]
        result = reconcile(txns, [vacation_goal, general])
        assert [g.id for g in result.changed_goals] == [vacation_goal.id]

    def test_other_categories_are_balance_neutral(self, vacation_goal):
        """A goal-linked expense of another category does not move the balance."""
        odd = Transaction(
            type=TransactionType.EXPENSE,
            category="Food",
            amount=15,
            goal_id=vacation_goal.id,
        )
        result = reconcile([odd], [vacation_goal])
        assert result.goals[0].current_amount == 0
        assert result.transactions[0].is_valid is True

    def test_unlinked_transactions_are_untouched(self, vacation_goal, linked):
        """Transactions whose goal is gone keep their stale meta and validity."""
        orphan = linked(vacation_goal, 50, previous=100, day=0).model_copy(
            update={"goal_id": None}
        )
        result = reconcile([orphan], [])
        assert result.transactions == [orphan]
        assert result.has_changes is False


class TestChainHelpers:
    """Tests for goal_chain and walk_chain."""

    def test_goal_chain_filters_and_sorts(self, vacation_goal, general_savings, linked):
        a = linked(vacation_goal, 10, previous=0, day=3)
        b = linked(general_savings, 10, previous=0, day=1)
        c = linked(vacation_goal, 10, previous=0, day=2)
        assert goal_chain([a, b, c], vacation_goal.id) == [c, a]

    def test_walk_chain_without_meta(self, vacation_goal):
        """Transactions without a snapshot are valid."""
        txn = Transaction(
            type=TransactionType.EXPENSE,
            category="Savings Contribution",
            amount=20,
            goal_id=vacation_goal.id,
        )
        balance, verdicts = walk_chain([txn])
        assert balance == 20
        assert verdicts[txn.id] == (True, None)

    def test_walk_chain_reports_mismatch(self, vacation_goal):
        txn = Transaction(
            type=TransactionType.EXPENSE,
            category="Savings Contribution",
            amount=20,
            goal_id=vacation_goal.id,
            savings_meta=SavingsMeta(previous_amount=5, current_amount=25),
        )
        _, verdicts = walk_chain([txn])
        assert verdicts[txn.id] == (False, mismatch_reason(0, 5))

    @pytest.mark.parametrize("expected,found,text", [
        (0, 100, "Historical mismatch. Expected 0.00, found 100.00"),
        (12.346, 7, "Historical mismatch. Expected 12.35, found 7.00"),
    ])
    def test_mismatch_reason_format(self, expected, found, text):
        assert mismatch_reason(expected, found) == text
