"""
Backup and Export

JSON backup (full ledger, versioned) and CSV export (transactions only).

DESIGN DECISION: Restoring a backup is destructive, so parsing fails closed.
Anything that is not valid JSON, lacks either array, or carries a version
outside the accepted series is rejected before any existing data is touched.
"""

import csv
import io
import json
from datetime import date
from typing import Iterable, Optional

import structlog
from pydantic import ValidationError

from finquest.config import get_settings
from finquest.ledger.errors import BackupFormatError
from finquest.models.ledger import BackupData, SavingsGoal, Transaction


logger = structlog.get_logger(__name__)

CSV_HEADERS = ["id", "type", "category", "amount", "date", "description", "goal_id"]


def build_backup(
    transactions: Iterable[Transaction],
    goals: Iterable[SavingsGoal],
) -> BackupData:
    return BackupData(
        transactions=list(transactions),
        savings_goals=list(goals),
        version=get_settings().ledger.backup_version,
    )


def dump_backup(backup: BackupData) -> str:
    """Serialize to the indented JSON file format."""
    return json.dumps(backup.to_wire(), indent=2, ensure_ascii=False)


def parse_backup(text: str) -> BackupData:
    """
    Parse and validate a backup file.

    Raises:
        BackupFormatError: invalid JSON, missing arrays, unsupported version,
            or entries that do not validate
    """
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as e:
        raise BackupFormatError(f"Backup file is not valid JSON: {e}")

    if not isinstance(data, dict):
        raise BackupFormatError("Backup file must contain a JSON object.")

    prefix = get_settings().ledger.accepted_backup_prefix
    version = data.get("version")
    if not isinstance(version, str) or not version.startswith(prefix):
        raise BackupFormatError(
            f"Unsupported backup version: {version!r} (expected {prefix}.x)"
        )

    for key in ("transactions", "savingsGoals"):
        if not isinstance(data.get(key), list):
            raise BackupFormatError(f"Backup file is missing the '{key}' list.")

    try:
        backup = BackupData.model_validate(data)
    except ValidationError as e:
        raise BackupFormatError(f"Backup file contains invalid entries: {e}")

    logger.info(
        "backup_parsed",
        version=backup.version,
        transactions=len(backup.transactions),
        goals=len(backup.savings_goals),
    )
    return backup


def _serialize_value(value) -> str:
    if value is None:
        return ""
    return str(value)


def export_transactions_csv(transactions: Iterable[Transaction]) -> str:
    """
    Render transactions as CSV text.

    Columns: id, type, category, amount, date, description, goal_id.
    Fields with commas, quotes or newlines are quoted.
    """
    buffer = io.StringIO()
    writer = csv.DictWriter(
        buffer,
        fieldnames=CSV_HEADERS,
        extrasaction="ignore",
        quoting=csv.QUOTE_MINIMAL,
        lineterminator="\n",
    )
    writer.writeheader()
    for txn in transactions:
        writer.writerow({
            "id": txn.id,
            "type": txn.type.value,
            "category": txn.category,
            "amount": _serialize_value(txn.amount),
            "date": txn.date.isoformat(),
            "description": txn.description,
            "goal_id": _serialize_value(txn.goal_id),
        })
    return buffer.getvalue()


def backup_filename(today: Optional[date] = None) -> str:
    return f"finquest-backup-{(today or date.today()).isoformat()}.json"


def csv_filename(today: Optional[date] = None) -> str:
    return f"finquest-export-{(today or date.today()).isoformat()}.csv"
