"""Tests for the ledger stores (in-memory and Google Sheets row mapping)."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from finquest.models.audit import AuditEventBuilder, AuditEventType
from finquest.models.ledger import TargetedGoal, Transaction, TransactionType
from finquest.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsLedgerStore,
    InMemoryLedgerStore,
    NotFoundError,
    StorageError,
)
from finquest.services.storage.google_sheets import GOAL_COLUMNS, TRANSACTION_COLUMNS


class TestInMemoryLedgerStore:
    """Tests for the dict-backed store."""

    @pytest.mark.asyncio
    async def test_lists_newest_first_for_user(self, linked, vacation_goal, at):
        older = linked(vacation_goal, 10, previous=0, day=0)
        newer = linked(vacation_goal, 10, previous=10, day=2)
        stranger = Transaction(
            user_id="someone-else",
            type=TransactionType.EXPENSE,
            category="Food",
            amount=5,
            date=at(5),
        )
        store = InMemoryLedgerStore(transactions=[older, stranger, newer])

        listed = await store.list_transactions("user-1")

        assert [t.id for t in listed] == [newer.id, older.id]

    @pytest.mark.asyncio
    async def test_returns_copies(self, vacation_goal):
        store = InMemoryLedgerStore(goals=[vacation_goal])
        listed = await store.list_goals("user-1")
        listed[0].current_amount = 999
        assert store.goals[vacation_goal.id].current_amount == 0

    @pytest.mark.asyncio
    async def test_upsert_replaces_by_id(self, vacation_goal):
        store = InMemoryLedgerStore(goals=[vacation_goal])
        await store.upsert_goals([vacation_goal.model_copy(update={"name": "Beach trip"})])
        assert [g.name for g in await store.list_goals("user-1")] == ["Beach trip"]

    @pytest.mark.asyncio
    async def test_delete_goals_deletable_only_keeps_general_savings(self, vacation_goal, general_savings):
        store = InMemoryLedgerStore(goals=[vacation_goal, general_savings])
        await store.delete_goals("user-1", deletable_only=True)
        assert list(store.goals) == [general_savings.id]

        await store.delete_goals("user-1")
        assert store.goals == {}

    @pytest.mark.asyncio
    async def test_activity_is_a_set_of_days(self):
        store = InMemoryLedgerStore()
        await store.log_activity("user-1", "2025-03-10")
        await store.log_activity("user-1", "2025-03-09")
        await store.log_activity("user-1", "2025-03-10")
        assert await store.list_activity("user-1") == ["2025-03-09", "2025-03-10"]
        await store.clear_activity("user-1")
        assert await store.list_activity("user-1") == []

    @pytest.mark.asyncio
    async def test_update_profile(self, profile):
        store = InMemoryLedgerStore(profiles=[profile])
        await store.update_profile("user-1", {"currency": "EUR"})
        assert (await store.get_profile("user-1")).currency == "EUR"
        with pytest.raises(NotFoundError):
            await store.update_profile("nobody", {"name": "X"})

    @pytest.mark.asyncio
    async def test_failure_injection(self):
        store = InMemoryLedgerStore(fail_on={"delete_goal"})
        with pytest.raises(StorageError):
            await store.delete_goal("g1")
        assert store.calls == ["delete_goal"]


def _sheet(rows: list[list]) -> MagicMock:
    sheet = MagicMock()
    sheet.get_all_values.return_value = rows
    return sheet


class TestGoogleSheetsRowMapping:
    """Row conversion for the Google Sheets store."""

    def test_transaction_row_round_trip(self, linked, vacation_goal):
        txn = linked(vacation_goal, 40, previous=10, day=3).model_copy(update={
            "is_valid": False,
            "invalidation_reason": "Historical mismatch. Expected 0.00, found 10.00",
        })
        row = GoogleSheetsLedgerStore._transaction_to_row(txn)

        assert len(row) == len(TRANSACTION_COLUMNS)
        assert row[10] == '{"previousAmount": 10.0, "currentAmount": 50.0}'
        assert GoogleSheetsLedgerStore._row_to_transaction(row) == txn

    def test_plain_transaction_row(self):
        txn = Transaction(
            user_id="user-1",
            type=TransactionType.INCOME,
            category="Salary",
            amount=2500,
            date=datetime(2025, 3, 1, tzinfo=timezone.utc),
        )
        row = GoogleSheetsLedgerStore._transaction_to_row(txn)
        assert row[7] == ""
        assert row[10] == ""
        parsed = GoogleSheetsLedgerStore._row_to_transaction(row[:9])  # trailing blanks trimmed
        assert parsed.goal_id is None
        assert parsed.savings_meta is None
        assert parsed.is_valid is True

    def test_goal_rows_keep_variant(self, vacation_goal, general_savings):
        for goal in (vacation_goal, general_savings):
            row = GoogleSheetsLedgerStore._goal_to_row(goal)
            assert len(row) == len(GOAL_COLUMNS)
            assert GoogleSheetsLedgerStore._row_to_goal(row) == goal
        assert GoogleSheetsLedgerStore._goal_to_row(general_savings)[7] == "False"

    def test_profile_row_round_trip(self, profile):
        row = GoogleSheetsLedgerStore._profile_to_row(profile)
        assert GoogleSheetsLedgerStore._row_to_profile(row) == profile


class TestGoogleSheetsLedgerStore:
    """Google Sheets store against a mocked client."""

    @pytest.mark.asyncio
    async def test_list_transactions_filters_user_and_skips_bad_rows(self, linked, vacation_goal):
        mine = linked(vacation_goal, 10, previous=0, day=1)
        theirs = mine.model_copy(update={"id": "other", "user_id": "user-2"})
        sheet = _sheet([
            TRANSACTION_COLUMNS,
            GoogleSheetsLedgerStore._transaction_to_row(mine),
            GoogleSheetsLedgerStore._transaction_to_row(theirs),
            ["broken", "user-1", "expense", "Food", "not-a-number"],
            [],
        ])
        client = MagicMock()
        client.get_transactions_sheet.return_value = sheet

        listed = await GoogleSheetsLedgerStore(client).list_transactions("user-1")

        assert listed == [mine]

    @pytest.mark.asyncio
    async def test_upsert_updates_existing_and_appends_new(self, vacation_goal, general_savings):
        sheet = _sheet([
            GOAL_COLUMNS,
            GoogleSheetsLedgerStore._goal_to_row(vacation_goal),
        ])
        client = MagicMock()
        client.get_goals_sheet.return_value = sheet
        renamed = vacation_goal.model_copy(update={"name": "Beach"})

        await GoogleSheetsLedgerStore(client).upsert_goals([renamed, general_savings])

        sheet.update.assert_called_once_with(
            range_name="A2",
            values=[GoogleSheetsLedgerStore._goal_to_row(renamed)],
            value_input_option="RAW",
        )
        sheet.append_rows.assert_called_once_with(
            [GoogleSheetsLedgerStore._goal_to_row(general_savings)],
            value_input_option="RAW",
        )

    @pytest.mark.asyncio
    async def test_delete_goals_deletable_only(self, vacation_goal, general_savings):
        other = TargetedGoal(id="g-other", user_id="user-1", name="Bike", target_amount=300)
        sheet = _sheet([
            GOAL_COLUMNS,
            GoogleSheetsLedgerStore._goal_to_row(vacation_goal),
            GoogleSheetsLedgerStore._goal_to_row(general_savings),
            GoogleSheetsLedgerStore._goal_to_row(other),
        ])
        client = MagicMock()
        client.get_goals_sheet.return_value = sheet

        await GoogleSheetsLedgerStore(client).delete_goals("user-1", deletable_only=True)

        # Bottom-up so earlier row numbers stay valid
        assert [c.args[0] for c in sheet.delete_rows.call_args_list] == [4, 2]

    @pytest.mark.asyncio
    async def test_read_failure_becomes_storage_error(self):
        client = MagicMock()
        client.get_goals_sheet.side_effect = RuntimeError("quota")
        with pytest.raises(StorageError):
            await GoogleSheetsLedgerStore(client).list_goals("user-1")

    @pytest.mark.asyncio
    async def test_get_profile(self, profile):
        client = MagicMock()
        client.get_profiles_sheet.return_value = _sheet([
            ["id"],
            GoogleSheetsLedgerStore._profile_to_row(profile),
        ])
        store = GoogleSheetsLedgerStore(client)
        assert await store.get_profile("user-1") == profile
        assert await store.get_profile("nobody") is None

    @pytest.mark.asyncio
    async def test_audit_events_newest_first(self):
        first = AuditEventBuilder.activity_logged("user-1", "2025-03-09")
        second = AuditEventBuilder.activity_logged("user-1", "2025-03-10").model_copy(
            update={"timestamp": datetime(2099, 1, 1, tzinfo=timezone.utc)}
        )
        client = MagicMock()
        client.get_audit_sheet.return_value = _sheet([
            ["event_id"],
            first.to_sheets_row(),
            second.to_sheets_row(),
        ])

        events = await GoogleSheetsAuditStorage(client).get_recent_events(limit=1)

        assert len(events) == 1
        assert events[0].event_id == second.event_id
        assert events[0].event_type == AuditEventType.ACTIVITY_LOGGED
