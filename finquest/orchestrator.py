"""
Main Orchestrator for FinQuest

This module ties together all the components and defines the stable entry
points for every ledger mutation:
1. Transactions (add, edit, delete)
2. Savings flows (contribute, contribute to a new goal, withdraw)
3. Goal management (create, edit, archive, unarchive, delete)
4. Data management (backup restore/export, delete all, profile, check-ins)

DESIGN DECISION: Local state is optimistic. Every mutation:
- validates first (nothing is touched if it is rejected)
- updates the session immediately
- forwards the change to the store
- runs the reconciler over the whole session

Remote failures are audited and left for the next reconciliation pass,
except for goal deletion and restore (full reload) and profile edits
(revert to the pre-edit snapshot).
"""

from datetime import date
from typing import Any, Awaitable, Callable, Optional

import structlog
from pydantic import ValidationError

from finquest.agents import InsightAgent
from finquest.audit import AuditLogger, create_correlation_id
from finquest.config import get_settings
from finquest.ledger import (
    BackupFormatError,
    GoalNotDeletableError,
    LedgerError,
    LedgerValidationError,
    TransactionNotFoundError,
    allocate_contribution,
    allocate_to_new_goal,
    allocate_withdrawal,
    archived_goals,
    compute_streaks,
    ensure_general_savings,
    find_goal,
    reconcile,
    sort_active_goals,
    today_key,
    withdrawal_candidates,
)
from finquest.ledger.goals import require_unique_name
from finquest.models.audit import AuditEventBuilder, AuditEventType
from finquest.models.ledger import (
    SAVINGS_CONTRIBUTION,
    SAVINGS_WITHDRAWAL,
    AllocationResult,
    PendingTransaction,
    ReconciliationResult,
    SavingsGoal,
    TargetedGoal,
    Transaction,
    TransactionType,
    UnboundedGoal,
    UserProfile,
)
from finquest.services.backup import (
    build_backup,
    dump_backup,
    export_transactions_csv,
    parse_backup,
)
from finquest.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStore,
    InMemoryLedgerStore,
    LedgerStoreInterface,
    StorageError,
)
from finquest.validation import LedgerValidator


logger = structlog.get_logger(__name__)

EDITABLE_TRANSACTION_FIELDS = {"type", "category", "amount", "date", "description"}
EDITABLE_PROFILE_FIELDS = {"name", "image_url", "currency", "is_new_user", "has_completed_tour"}


def _newest_first(transactions: list[Transaction]) -> list[Transaction]:
    return sorted(transactions, key=lambda t: t.date, reverse=True)


class LedgerSession:
    """
    The signed-in user's working copy of the ledger.

    Started on sign-in, cleared on sign-out. Transactions are kept newest
    first by date.
    """

    def __init__(self):
        self.clear()

    def start(self, user_id: str, profile: Optional[UserProfile] = None) -> None:
        self.clear()
        self.user_id = user_id
        self.profile = profile

    def clear(self) -> None:
        self.user_id: Optional[str] = None
        self.profile: Optional[UserProfile] = None
        self.transactions: list[Transaction] = []
        self.goals: list[SavingsGoal] = []
        self.activity_log: list[str] = []

    @property
    def is_active(self) -> bool:
        return self.user_id is not None

    @property
    def currency(self) -> str:
        if self.profile is not None:
            return self.profile.currency
        return get_settings().ledger.default_currency

    def insert_transactions(self, transactions: list[Transaction]) -> None:
        self.transactions = _newest_first(self.transactions + transactions)

    def find_transaction(self, transaction_id: str) -> Transaction:
        for txn in self.transactions:
            if txn.id == transaction_id:
                return txn
        raise TransactionNotFoundError(f"Transaction not found: {transaction_id}")

    def put_goals(self, goals: list[SavingsGoal]) -> None:
        """Replace goals by id, appending new ones."""
        incoming = {g.id: g for g in goals}
        merged = [incoming.pop(g.id, g) for g in self.goals]
        self.goals = merged + list(incoming.values())


class LedgerMutator:
    """
    Entry points for every change to a user's ledger.

    Composes the validator, allocator and reconciler with the session
    (optimistic local state) and the ledger store (remote state).
    """

    def __init__(
        self,
        store: LedgerStoreInterface,
        session: Optional[LedgerSession] = None,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[LedgerValidator] = None,
        insight_agent: Optional[InsightAgent] = None,
        clock: Callable[[], date] = date.today,
    ):
        self._store = store
        self.session = session or LedgerSession()
        self._audit = audit_logger or AuditLogger()
        self._validator = validator or LedgerValidator()
        self._insight_agent = insight_agent
        self._clock = clock

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _require_session(self) -> str:
        if not self.session.is_active:
            raise LedgerError("No active session. Load a user's data first.")
        return self.session.user_id

    async def _persist(
        self,
        operation: str,
        call: Awaitable[bool],
        recovery: str = "none",
    ) -> bool:
        """Await a store write; audit and swallow StorageError."""
        try:
            await call
            return True
        except StorageError as e:
            await self._audit.log_persistence_failed(
                self.session.user_id, operation, e, recovery=recovery
            )
            return False

    async def _reject(self, subject: str, error: LedgerValidationError) -> None:
        await self._audit.log_validation_rejected(self.session.user_id, subject, error)

    def _validated_pending(self, pending: PendingTransaction) -> None:
        result = self._validator.validate_transaction(pending.model_dump())
        self._validator.require_valid(result)

    async def _reload(self) -> None:
        """Resynchronize the session from the store after a failed critical write."""
        try:
            await self.load_all()
        except StorageError as e:
            await self._audit.log_persistence_failed(
                self.session.user_id, "reload", e
            )

    async def _log_today(self) -> bool:
        """Record today's check-in once per calendar day."""
        user_id = self._require_session()
        day = today_key(self._clock())
        if day in self.session.activity_log:
            return False
        self.session.activity_log = sorted(self.session.activity_log + [day])
        await self._persist("log_activity", self._store.log_activity(user_id, day))
        await self._audit.log(AuditEventBuilder.activity_logged(user_id, day))
        return True

    async def reconcile_now(self) -> ReconciliationResult:
        """
        Run the reconciler over the whole session and persist its patch set.

        The full transaction list is written when any validity changed; only
        goals whose balance changed are written.
        """
        result = reconcile(self.session.transactions, self.session.goals)
        self.session.transactions = result.transactions
        self.session.goals = result.goals

        if result.transactions_changed:
            await self._persist(
                "upsert_transactions",
                self._store.upsert_transactions(result.transactions),
            )
        if result.changed_goals:
            await self._persist(
                "upsert_goals",
                self._store.upsert_goals(result.changed_goals),
            )
        if result.has_changes:
            await self._audit.log_reconciliation(
                self.session.user_id,
                invalid_count=len(result.invalid_transactions),
                changed_goal_ids=[g.id for g in result.changed_goals],
                transactions_changed=result.transactions_changed,
            )
        return result

    # =========================================================================
    # SESSION
    # =========================================================================

    async def load_all(self, user_id: Optional[str] = None) -> LedgerSession:
        """
        Load (or reload) everything for a user.

        Starts a new session when user_id is given. Creates and persists the
        General Savings goal if the store has none, then reconciles.

        Raises:
            StorageError: If the store cannot be read
        """
        user_id = user_id or self._require_session()

        profile = await self._store.get_profile(user_id)
        transactions = await self._store.list_transactions(user_id)
        goals = await self._store.list_goals(user_id)
        activity = await self._store.list_activity(user_id)

        self.session.start(user_id, profile)
        self.session.transactions = _newest_first(transactions)
        self.session.goals = goals
        self.session.activity_log = sorted(activity)

        general, created = ensure_general_savings(goals, user_id=user_id)
        if created:
            self.session.goals.append(general)
            await self._persist("upsert_goals", self._store.upsert_goals([general]))
            await self._audit.log(AuditEventBuilder.goal_event(
                AuditEventType.GENERAL_SAVINGS_CREATED,
                user_id,
                general.id,
                general.name,
                is_user_action=False,
            ))

        await self.reconcile_now()
        await self._audit.log_simple(
            AuditEventType.DATA_RELOADED,
            user_id,
            f"Loaded {len(self.session.transactions)} transactions and "
            f"{len(self.session.goals)} goals",
        )
        return self.session

    async def sign_out(self) -> None:
        user_id = self.session.user_id
        self.session.clear()
        await self._audit.log_simple(AuditEventType.SESSION_CLEARED, user_id, "Session cleared")

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    async def add_transaction(self, pending: PendingTransaction) -> Transaction:
        """
        Add an ordinary (not goal-linked) income or expense.

        Savings movements go through contribute_to_goal/withdraw_from_goal.

        Raises:
            LedgerValidationError: If the transaction is rejected
        """
        user_id = self._require_session()
        try:
            if pending.category in (SAVINGS_CONTRIBUTION, SAVINGS_WITHDRAWAL):
                raise LedgerValidationError(
                    "Savings movements must be posted to a savings goal."
                )
            self._validated_pending(pending)
        except LedgerValidationError as e:
            await self._reject("transaction", e)
            raise

        txn = Transaction(user_id=user_id, is_valid=True, **pending.model_dump())
        self.session.insert_transactions([txn])

        await self._persist("upsert_transactions", self._store.upsert_transactions([txn]))
        await self._audit.log(AuditEventBuilder.transaction_added(
            user_id, txn.id, txn.category, txn.amount
        ))
        await self._log_today()
        await self.reconcile_now()
        return txn

    async def edit_transaction(
        self,
        transaction_id: str,
        changes: dict[str, Any],
        clear_goal_link: bool = False,
    ) -> Transaction:
        """
        Change the non-identity fields of a transaction.

        goal_id and savings_meta survive the edit unless clear_goal_link is
        set. Later transactions in the same chain may become invalid; the
        reconciler flags them.
        """
        user_id = self._require_session()
        original = self.session.find_transaction(transaction_id)

        try:
            unknown = set(changes) - EDITABLE_TRANSACTION_FIELDS
            if unknown:
                raise LedgerValidationError(
                    f"Cannot edit field(s): {', '.join(sorted(unknown))}"
                )
            merged = {
                field: getattr(original, field)
                for field in EDITABLE_TRANSACTION_FIELDS
            }
            merged.update(changes)
            self._validator.require_valid(self._validator.validate_transaction(merged))
            savings = (SAVINGS_CONTRIBUTION, SAVINGS_WITHDRAWAL)
            if merged["category"] in savings and original.goal_id is None:
                raise LedgerValidationError(
                    "Savings movements must be posted to a savings goal."
                )
            if (
                original.goal_id is not None
                and not clear_goal_link
                and original.category in savings
                and merged["category"] not in savings
            ):
                raise LedgerValidationError(
                    "Unlink the transaction from its goal before moving it out of savings."
                )
        except LedgerValidationError as e:
            await self._reject("transaction", e)
            raise

        update = dict(PendingTransaction.model_validate(merged).model_dump())
        if clear_goal_link:
            update.update({"goal_id": None, "savings_meta": None})
        edited = original.model_copy(update=update)

        self.session.transactions = _newest_first([
            edited if t.id == transaction_id else t
            for t in self.session.transactions
        ])

        await self._persist("upsert_transactions", self._store.upsert_transactions([edited]))
        changed = sorted(f for f in update if getattr(original, f) != getattr(edited, f))
        await self._audit.log(AuditEventBuilder.transaction_edited(user_id, transaction_id, changed))
        await self.reconcile_now()
        return edited

    async def delete_transactions(self, ids: list[str]) -> int:
        """
        Delete transactions by id. Unknown ids are ignored.

        Sibling savings_meta snapshots are left alone; the reconciler
        revalidates the chain.

        Returns the number of transactions removed locally.
        """
        user_id = self._require_session()
        doomed = set(ids)
        remaining = [t for t in self.session.transactions if t.id not in doomed]
        removed = len(self.session.transactions) - len(remaining)
        self.session.transactions = remaining

        await self._persist("delete_transactions", self._store.delete_transactions(list(ids)))
        await self._audit.log(AuditEventBuilder.transactions_deleted(user_id, list(ids)))
        await self.reconcile_now()
        return removed

    # =========================================================================
    # SAVINGS FLOWS
    # =========================================================================

    async def _apply_allocation(self, result: AllocationResult) -> None:
        """Insert the allocator's output, persist it, then reconcile."""
        self.session.insert_transactions(result.transactions)
        self.session.put_goals(result.goals)

        # Optimistic balances; the reconciler confirms them from the chains
        touched = {g.id: g for g in result.goals}
        for goal_id, delta in result.balance_deltas.items():
            goal = find_goal(self.session.goals, goal_id)
            touched[goal_id] = goal.model_copy(
                update={"current_amount": goal.current_amount + delta}
            )
        self.session.put_goals(list(touched.values()))

        await self._persist(
            "upsert_transactions",
            self._store.upsert_transactions(result.transactions),
        )
        await self._persist(
            "upsert_goals",
            self._store.upsert_goals(list(touched.values())),
        )
        await self._log_today()
        await self.reconcile_now()

    async def contribute_to_goal(
        self,
        pending: PendingTransaction,
        goal_id: str,
    ) -> AllocationResult:
        """
        Post a contribution to an existing goal, splitting any overshoot
        into General Savings.

        Raises:
            LedgerValidationError: Rejected amount/category or archived goal
            LedgerInvariantError: Spillover needed but no General Savings
        """
        user_id = self._require_session()
        goal = find_goal(self.session.goals, goal_id)
        try:
            self._validated_pending(pending)
            result = allocate_contribution(
                pending, goal, self.session.goals, currency=self.session.currency
            )
        except LedgerValidationError as e:
            await self._reject("contribution", e)
            raise

        await self._apply_allocation(result)

        if result.was_split:
            await self._audit.log(AuditEventBuilder.contribution_split(
                user_id,
                goal.id,
                goal.name,
                completed_amount=pending.amount - result.spillover_amount,
                spillover_amount=result.spillover_amount,
            ))
        else:
            await self._audit.log(AuditEventBuilder.goal_event(
                AuditEventType.CONTRIBUTION_POSTED,
                user_id,
                goal.id,
                goal.name,
                details={"amount": pending.amount},
            ))
        if result.goal_completed:
            await self._audit.log(AuditEventBuilder.goal_event(
                AuditEventType.GOAL_COMPLETED, user_id, goal.id, goal.name
            ))
        return result

    async def contribute_to_new_goal(
        self,
        pending: PendingTransaction,
        name: str,
        target_amount: float,
        emoji: str = "💰",
    ) -> AllocationResult:
        """Create a goal inline and make the contribution its first transaction."""
        user_id = self._require_session()
        try:
            self._validated_pending(pending)
            self._validator.require_valid(
                self._validator.validate_goal(name, target_amount, self.session.goals)
            )
            result = allocate_to_new_goal(
                pending,
                name.strip(),
                target_amount,
                emoji,
                self.session.goals,
                user_id=user_id,
            )
        except LedgerValidationError as e:
            await self._reject("goal", e)
            raise

        await self._apply_allocation(result)

        goal = result.goals[0]
        await self._audit.log(AuditEventBuilder.goal_event(
            AuditEventType.GOAL_CREATED,
            user_id,
            goal.id,
            goal.name,
            details={"target_amount": target_amount, "initial_amount": pending.amount},
        ))
        if result.goal_completed:
            await self._audit.log(AuditEventBuilder.goal_event(
                AuditEventType.GOAL_COMPLETED, user_id, goal.id, goal.name
            ))
        return result

    async def withdraw_from_goal(
        self,
        pending: PendingTransaction,
        goal_id: str,
    ) -> AllocationResult:
        """
        Withdraw from a goal.

        Raises:
            InsufficientFundsError: The goal balance does not cover the amount
        """
        user_id = self._require_session()
        goal = find_goal(self.session.goals, goal_id)
        try:
            self._validated_pending(pending)
            result = allocate_withdrawal(pending, goal)
        except LedgerValidationError as e:
            await self._reject("withdrawal", e)
            raise

        await self._apply_allocation(result)
        await self._audit.log(AuditEventBuilder.goal_event(
            AuditEventType.WITHDRAWAL_POSTED,
            user_id,
            goal.id,
            goal.name,
            details={"amount": pending.amount},
        ))
        return result

    # =========================================================================
    # GOALS
    # =========================================================================

    async def create_goal(
        self,
        name: str,
        target_amount: float,
        emoji: str = "💰",
    ) -> TargetedGoal:
        user_id = self._require_session()
        try:
            self._validator.require_valid(
                self._validator.validate_goal(name, target_amount, self.session.goals)
            )
        except LedgerValidationError as e:
            await self._reject("goal", e)
            raise

        goal = TargetedGoal(
            user_id=user_id,
            name=name.strip(),
            target_amount=target_amount,
            emoji=emoji,
        )
        self.session.put_goals([goal])
        await self._persist("upsert_goals", self._store.upsert_goals([goal]))
        await self._audit.log(AuditEventBuilder.goal_event(
            AuditEventType.GOAL_CREATED,
            user_id,
            goal.id,
            goal.name,
            details={"target_amount": target_amount},
        ))
        return goal

    async def edit_goal(
        self,
        goal_id: str,
        name: Optional[str] = None,
        target_amount: Optional[float] = None,
        emoji: Optional[str] = None,
    ) -> SavingsGoal:
        """
        Rename, retarget or change the emoji of a goal.

        General Savings cannot be retargeted. A target below the amount
        already saved is rejected.
        """
        user_id = self._require_session()
        goal = find_goal(self.session.goals, goal_id)
        new_name = name if name is not None else goal.name
        if isinstance(goal, TargetedGoal) and target_amount is None:
            target_amount = goal.target_amount

        try:
            self._validator.require_valid(self._validator.validate_goal(
                new_name, target_amount, self.session.goals, existing=goal
            ))
        except LedgerValidationError as e:
            await self._reject("goal", e)
            raise

        update: dict[str, Any] = {"name": new_name.strip()}
        if emoji is not None:
            update["emoji"] = emoji
        if isinstance(goal, TargetedGoal):
            update["target_amount"] = target_amount
        edited = goal.model_copy(update=update)

        self.session.put_goals([edited])
        await self._persist("upsert_goals", self._store.upsert_goals([edited]))
        await self._audit.log(AuditEventBuilder.goal_event(
            AuditEventType.GOAL_UPDATED,
            user_id,
            goal.id,
            edited.name,
            details=dict(update),
        ))
        return edited

    async def archive_goal(self, goal_id: str) -> SavingsGoal:
        """Archive a completed quest. General Savings cannot be archived."""
        user_id = self._require_session()
        goal = find_goal(self.session.goals, goal_id)
        try:
            if isinstance(goal, UnboundedGoal):
                raise GoalNotDeletableError("General Savings cannot be archived.")
            if not goal.is_complete:
                raise LedgerValidationError("Only completed quests can be archived.")
        except LedgerValidationError as e:
            await self._reject("goal", e)
            raise

        archived = goal.model_copy(update={"is_archived": True})
        self.session.put_goals([archived])
        await self._persist("upsert_goals", self._store.upsert_goals([archived]))
        await self._audit.log(AuditEventBuilder.goal_event(
            AuditEventType.GOAL_ARCHIVED, user_id, goal.id, goal.name
        ))
        return archived

    async def unarchive_goal(self, goal_id: str) -> SavingsGoal:
        """
        Bring an archived goal back.

        Raises:
            DuplicateGoalNameError: An active goal took the name meanwhile
        """
        user_id = self._require_session()
        goal = find_goal(self.session.goals, goal_id)
        try:
            require_unique_name(self.session.goals, goal.name, exclude_id=goal.id)
        except LedgerValidationError as e:
            await self._reject("goal", e)
            raise

        restored = goal.model_copy(update={"is_archived": False})
        self.session.put_goals([restored])
        await self._persist("upsert_goals", self._store.upsert_goals([restored]))
        await self._audit.log(AuditEventBuilder.goal_event(
            AuditEventType.GOAL_UNARCHIVED, user_id, goal.id, goal.name
        ))
        return restored

    async def mark_goal_notification_read(self, goal_id: str) -> SavingsGoal:
        self._require_session()
        goal = find_goal(self.session.goals, goal_id)
        if goal.unread_notification_message is None:
            return goal

        read = goal.model_copy(update={"unread_notification_message": None})
        self.session.put_goals([read])
        await self._persist("upsert_goals", self._store.upsert_goals([read]))
        return read

    async def delete_goal(self, goal_id: str) -> int:
        """
        Delete a deletable goal and unlink its transactions.

        Linked transactions survive without goal_id and leave every future
        reconciliation walk. On a remote failure the whole session is
        reloaded from the store.

        Returns the number of transactions unlinked.

        Raises:
            GoalNotDeletableError: For General Savings
        """
        user_id = self._require_session()
        goal = find_goal(self.session.goals, goal_id)
        if not goal.is_deletable:
            error = GoalNotDeletableError("General Savings cannot be deleted.")
            await self._reject("goal", error)
            raise error

        unlinked = [
            t.model_copy(update={"goal_id": None})
            for t in self.session.transactions
            if t.goal_id == goal_id
        ]
        by_id = {t.id: t for t in unlinked}
        self.session.transactions = [by_id.get(t.id, t) for t in self.session.transactions]
        self.session.goals = [g for g in self.session.goals if g.id != goal_id]

        try:
            await self._store.delete_goal(goal_id)
            if unlinked:
                await self._store.upsert_transactions(unlinked)
        except StorageError as e:
            await self._audit.log_persistence_failed(
                user_id, "delete_goal", e, recovery="full_reload"
            )
            await self._reload()
            return len(unlinked)

        await self._audit.log(AuditEventBuilder.goal_event(
            AuditEventType.GOAL_DELETED,
            user_id,
            goal.id,
            goal.name,
            details={"unlinked_transactions": len(unlinked)},
        ))
        await self.reconcile_now()
        return len(unlinked)

    # =========================================================================
    # READ HELPERS
    # =========================================================================

    def active_goals(self) -> list[SavingsGoal]:
        return sort_active_goals(self.session.goals)

    def archived_goals(self) -> list[SavingsGoal]:
        return archived_goals(self.session.goals)

    def withdrawal_candidates(self, amount: float) -> list[SavingsGoal]:
        return withdrawal_candidates(self.session.goals, amount)

    def streaks(self) -> tuple[int, int]:
        """(current_streak, longest_streak) in days."""
        return compute_streaks(self.session.activity_log, self._clock())

    # =========================================================================
    # DATA MANAGEMENT
    # =========================================================================

    def export_backup(self) -> str:
        """The session as backup-file JSON."""
        self._require_session()
        backup = build_backup(self.session.transactions, self.session.goals)
        logger.info(
            "backup_exported",
            user_id=self.session.user_id,
            transactions=len(backup.transactions),
            goals=len(backup.savings_goals),
        )
        return dump_backup(backup)

    def export_csv(self) -> str:
        self._require_session()
        return export_transactions_csv(self.session.transactions)

    async def restore_backup(self, text: str) -> bool:
        """
        Replace all of the user's data with a backup file.

        The file is parsed and validated before anything is deleted. No
        merge: existing transactions and goals are removed, the backup is
        inserted and everything is reloaded.

        Returns False if a store write failed (the session is reloaded).

        Raises:
            BackupFormatError: The file was rejected; nothing was deleted
        """
        user_id = self._require_session()
        correlation_id = create_correlation_id()
        try:
            backup = parse_backup(text)
        except BackupFormatError as e:
            await self._audit.log(AuditEventBuilder.backup_rejected(user_id, str(e)))
            raise

        transactions = [t.model_copy(update={"user_id": user_id}) for t in backup.transactions]
        goals = [g.model_copy(update={"user_id": user_id}) for g in backup.savings_goals]

        try:
            await self._store.delete_all_transactions(user_id)
            await self._store.delete_goals(user_id)
            await self._store.upsert_transactions(transactions)
            await self._store.upsert_goals(goals)
        except StorageError as e:
            await self._audit.log_persistence_failed(
                user_id, "restore_backup", e, recovery="full_reload"
            )
            await self._reload()
            return False

        await self._audit.log(AuditEventBuilder.backup_restored(
            user_id,
            backup.version,
            len(transactions),
            len(goals),
            correlation_id=correlation_id,
        ))
        await self._reload()
        return True

    async def delete_all_data(self) -> bool:
        """
        Delete all transactions, every deletable goal and the activity log.

        General Savings survives. The session is reloaded afterwards.
        """
        user_id = self._require_session()
        try:
            await self._store.delete_all_transactions(user_id)
            await self._store.delete_goals(user_id, deletable_only=True)
            await self._store.clear_activity(user_id)
        except StorageError as e:
            await self._audit.log_persistence_failed(
                user_id, "delete_all_data", e, recovery="full_reload"
            )
            await self._reload()
            return False

        await self._audit.log_simple(
            AuditEventType.ALL_DATA_DELETED, user_id, "All ledger data deleted"
        )
        await self._reload()
        return True

    async def update_profile(self, **fields: Any) -> UserProfile:
        """
        Update profile fields optimistically.

        On a store failure the session profile reverts to its previous value.
        """
        user_id = self._require_session()
        snapshot = self.session.profile
        try:
            if snapshot is None:
                raise LedgerValidationError("No profile loaded for this user.")
            unknown = set(fields) - EDITABLE_PROFILE_FIELDS
            if unknown:
                raise LedgerValidationError(
                    f"Cannot edit profile field(s): {', '.join(sorted(unknown))}"
                )
            data = snapshot.model_dump()
            data.update(fields)
            try:
                updated = UserProfile.model_validate(data)
            except ValidationError as e:
                raise LedgerValidationError(str(e))
        except LedgerValidationError as e:
            await self._reject("profile", e)
            raise

        self.session.profile = updated
        try:
            await self._store.update_profile(user_id, fields)
        except StorageError as e:
            self.session.profile = snapshot
            await self._audit.log_persistence_failed(
                user_id, "update_profile", e, recovery="revert"
            )
            await self._audit.log_simple(
                AuditEventType.PROFILE_REVERTED, user_id, "Profile edit reverted"
            )
            return snapshot

        await self._audit.log_simple(
            AuditEventType.PROFILE_UPDATED,
            user_id,
            "Profile updated",
            details={"fields": sorted(fields)},
        )
        return updated

    async def log_nil_day(self) -> bool:
        """No-spend check-in. Returns False if today was already logged."""
        return await self._log_today()

    # =========================================================================
    # AI NARRATIVE
    # =========================================================================

    def _agent(self) -> InsightAgent:
        if self._insight_agent is None:
            self._insight_agent = InsightAgent(audit_logger=self._audit)
        return self._insight_agent

    async def generate_insight(self) -> str:
        self._require_session()
        return await self._agent().generate_financial_insight(
            self.session.transactions, self.session.currency
        )

    async def generate_report_summary(self) -> str:
        self._require_session()
        transactions = self.session.transactions
        total_income = sum(t.amount for t in transactions if t.type == TransactionType.INCOME)
        total_expense = sum(t.amount for t in transactions if t.type == TransactionType.EXPENSE)
        return await self._agent().generate_report_summary(
            transactions, total_income, total_expense, self.session.currency
        )


def create_app_components(
    use_storage: bool = True,
) -> tuple[LedgerMutator, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False to run against the in-memory store.

    Returns:
        (ledger_mutator, sheets_client)
    """
    sheets_client = None
    store: LedgerStoreInterface

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            store = GoogleSheetsLedgerStore(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue without it
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None
            store = InMemoryLedgerStore()
            audit_logger = AuditLogger()  # Local-only logging
    else:
        store = InMemoryLedgerStore()
        audit_logger = AuditLogger()  # Local-only logging

    mutator = LedgerMutator(
        store=store,
        audit_logger=audit_logger,
        insight_agent=InsightAgent(audit_logger=audit_logger),
    )
    return mutator, sheets_client
