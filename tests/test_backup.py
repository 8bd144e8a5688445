"""Tests for backup export/parse and CSV export."""

import csv
import io
import json
from datetime import date

import pytest

from finquest.ledger.errors import BackupFormatError
from finquest.models.ledger import Transaction, TransactionType, UnboundedGoal
from finquest.services.backup import (
    CSV_HEADERS,
    backup_filename,
    build_backup,
    csv_filename,
    dump_backup,
    export_transactions_csv,
    parse_backup,
)


def _wire(**overrides) -> str:
    data = {
        "transactions": [],
        "savingsGoals": [],
        "exportedAt": "2025-03-01T10:00:00+00:00",
        "version": "2.0.0",
    }
    data.update(overrides)
    return json.dumps(data)


class TestBackup:
    """JSON backup format."""

    def test_dump_then_parse_keeps_ledger(self, vacation_goal, general_savings, linked):
        txns = [
            linked(vacation_goal, 40, previous=0, day=0),
            linked(general_savings, 10, previous=0, day=1),
        ]
        backup = build_backup(txns, [general_savings, vacation_goal])
        text = dump_backup(backup)

        raw = json.loads(text)
        assert raw["version"] == "2.0.0"
        assert raw["transactions"][0]["savings_meta"] == {"previousAmount": 0.0, "currentAmount": 40.0}
        assert raw["savingsGoals"][0]["is_deletable"] is False

        restored = parse_backup(text)
        assert restored.transactions == txns
        assert isinstance(restored.savings_goals[0], UnboundedGoal)
        assert restored.savings_goals[1].target_amount == 100

    def test_accepts_any_2_0_patch_version(self):
        assert parse_backup(_wire(version="2.0.7")).version == "2.0.7"

    @pytest.mark.parametrize("version", ["1.0.0", "2.1.0", "", None, 2])
    def test_rejects_unsupported_versions(self, version):
        with pytest.raises(BackupFormatError, match="Unsupported backup version"):
            parse_backup(_wire(version=version))

    @pytest.mark.parametrize("missing", ["transactions", "savingsGoals"])
    def test_rejects_missing_arrays(self, missing):
        data = json.loads(_wire())
        del data[missing]
        with pytest.raises(BackupFormatError, match=missing):
            parse_backup(json.dumps(data))

    def test_rejects_non_list_array(self):
        with pytest.raises(BackupFormatError):
            parse_backup(_wire(transactions={"id": "t1"}))

    def test_rejects_invalid_json(self):
        with pytest.raises(BackupFormatError, match="not valid JSON"):
            parse_backup("{not json")

    def test_rejects_non_object(self):
        with pytest.raises(BackupFormatError):
            parse_backup("[1, 2, 3]")

    def test_rejects_invalid_entries(self):
        bad = {"id": "t1", "type": "expense", "category": "Food", "amount": -5}
        with pytest.raises(BackupFormatError, match="invalid entries"):
            parse_backup(_wire(transactions=[bad]))


class TestCsvExport:
    """Transactions-only CSV export."""

    def test_header_and_rows(self, vacation_goal, linked):
        plain = Transaction(
            id="t-plain",
            type=TransactionType.INCOME,
            category="Salary",
            amount=2500,
        )
        saved = linked(vacation_goal, 40, previous=0, day=0, txn_id="t-saved")

        rows = list(csv.reader(io.StringIO(export_transactions_csv([plain, saved]))))

        assert rows[0] == CSV_HEADERS
        assert rows[0] == ["id", "type", "category", "amount", "date", "description", "goal_id"]
        assert rows[1][0] == "t-plain"
        assert rows[1][1] == "income"
        assert rows[1][6] == ""
        assert rows[2][6] == vacation_goal.id

    def test_quotes_special_characters(self):
        txn = Transaction(
            type=TransactionType.EXPENSE,
            category="Food",
            amount=12,
            description='Pizza, "extra" cheese\nand drinks',
        )
        text = export_transactions_csv([txn])
        assert '"Pizza, ""extra"" cheese\nand drinks"' in text

        rows = list(csv.reader(io.StringIO(text)))
        assert rows[1][5] == 'Pizza, "extra" cheese\nand drinks'

    def test_empty_export_has_header_only(self):
        assert export_transactions_csv([]) == ",".join(CSV_HEADERS) + "\n"


class TestFilenames:
    def test_filenames(self):
        day = date(2025, 3, 9)
        assert backup_filename(day) == "finquest-backup-2025-03-09.json"
        assert csv_filename(day) == "finquest-export-2025-03-09.csv"
