"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets backs the ledger store because:
1. Users can inspect their own ledger directly in Sheets
2. No database setup required
3. Easy to export/migrate later

TRADEOFFS:
- No transactions across worksheets (the reconciler is the safety net)
- Limited query capabilities (we filter by user_id in Python)
- Upserts read the whole sheet to locate rows; fine for personal volumes

The implementation follows the abstract interface, so the ledger core is
unaware of it.
"""

import json
from datetime import datetime
from typing import Any, Optional

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from finquest.config import get_settings
from finquest.models.audit import AuditEvent, AuditEventType, AuditSeverity
from finquest.models.ledger import (
    SavingsGoal,
    SavingsMeta,
    Transaction,
    TransactionType,
    UserProfile,
    goal_from_record,
)
from finquest.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    LedgerStoreInterface,
    NotFoundError,
    StorageError,
)


TRANSACTION_COLUMNS = [
    "id",
    "user_id",
    "type",
    "category",
    "amount",
    "date",
    "description",
    "goal_id",
    "is_valid",
    "invalidation_reason",
    "savings_meta_json",
]

GOAL_COLUMNS = [
    "id",
    "user_id",
    "name",
    "target_amount",
    "current_amount",
    "emoji",
    "created_at",
    "is_deletable",
    "is_archived",
    "unread_notification_message",
]

ACTIVITY_COLUMNS = ["user_id", "log_date"]

PROFILE_COLUMNS = [
    "id",
    "name",
    "email",
    "image_url",
    "currency",
    "is_new_user",
    "has_completed_tour",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "user_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

_write_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


def _safe_get(row: list, index: int, default: str = "") -> str:
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


def _as_bool(value: str) -> bool:
    return value.strip().lower() == "true"


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and creates missing worksheets with headers.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @_write_retry
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _worksheet(self, title: str, columns: list[str], rows: int = 1000) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_transactions_sheet(self) -> gspread.Worksheet:
        return self._worksheet(self._settings.transactions_sheet_name, TRANSACTION_COLUMNS)

    def get_goals_sheet(self) -> gspread.Worksheet:
        return self._worksheet(self._settings.goals_sheet_name, GOAL_COLUMNS)

    def get_activity_sheet(self) -> gspread.Worksheet:
        return self._worksheet(self._settings.activity_sheet_name, ACTIVITY_COLUMNS)

    def get_profiles_sheet(self) -> gspread.Worksheet:
        return self._worksheet(self._settings.profiles_sheet_name, PROFILE_COLUMNS)

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self._worksheet(self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000)


class GoogleSheetsLedgerStore(LedgerStoreInterface):
    """
    Google Sheets implementation of the ledger store.

    One worksheet per entity, one entity per row.
    savings_meta is JSON-serialized into a single cell.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    # -- Row mapping ----------------------------------------------------------

    @staticmethod
    def _transaction_to_row(txn: Transaction) -> list:
        meta = txn.savings_meta
        return [
            txn.id,
            txn.user_id or "",
            txn.type.value,
            txn.category,
            str(txn.amount),
            txn.date.isoformat(),
            txn.description,
            txn.goal_id or "",
            str(txn.is_valid),
            txn.invalidation_reason or "",
            json.dumps(meta.model_dump(by_alias=True)) if meta else "",
        ]

    @staticmethod
    def _row_to_transaction(row: list) -> Transaction:
        meta_json = _safe_get(row, 10)
        return Transaction(
            id=_safe_get(row, 0),
            user_id=_safe_get(row, 1) or None,
            type=TransactionType(_safe_get(row, 2)),
            category=_safe_get(row, 3),
            amount=float(_safe_get(row, 4)),
            date=datetime.fromisoformat(_safe_get(row, 5)),
            description=_safe_get(row, 6),
            goal_id=_safe_get(row, 7) or None,
            is_valid=_as_bool(_safe_get(row, 8, "True")),
            invalidation_reason=_safe_get(row, 9) or None,
            savings_meta=SavingsMeta.model_validate(json.loads(meta_json)) if meta_json else None,
        )

    @staticmethod
    def _goal_to_row(goal: SavingsGoal) -> list:
        record = goal.to_record()
        return [
            record["id"],
            record["user_id"] or "",
            record["name"],
            str(record["target_amount"]),
            str(record["current_amount"]),
            record["emoji"],
            record["created_at"],
            str(record["is_deletable"]),
            str(record["is_archived"]),
            record["unread_notification_message"] or "",
        ]

    @staticmethod
    def _row_to_goal(row: list) -> SavingsGoal:
        return goal_from_record({
            "id": _safe_get(row, 0),
            "user_id": _safe_get(row, 1) or None,
            "name": _safe_get(row, 2),
            "target_amount": float(_safe_get(row, 3, "0")),
            "current_amount": float(_safe_get(row, 4, "0")),
            "emoji": _safe_get(row, 5, "💰"),
            "created_at": _safe_get(row, 6),
            "is_deletable": _as_bool(_safe_get(row, 7, "True")),
            "is_archived": _as_bool(_safe_get(row, 8, "False")),
            "unread_notification_message": _safe_get(row, 9) or None,
        })

    @staticmethod
    def _profile_to_row(profile: UserProfile) -> list:
        return [
            profile.id,
            profile.name,
            profile.email,
            profile.image_url,
            profile.currency,
            str(profile.is_new_user),
            str(profile.has_completed_tour),
        ]

    @staticmethod
    def _row_to_profile(row: list) -> UserProfile:
        return UserProfile(
            id=_safe_get(row, 0),
            name=_safe_get(row, 1),
            email=_safe_get(row, 2),
            image_url=_safe_get(row, 3),
            currency=_safe_get(row, 4, "USD"),
            is_new_user=_as_bool(_safe_get(row, 5, "False")),
            has_completed_tour=_as_bool(_safe_get(row, 6, "False")),
        )

    # -- Generic sheet helpers ------------------------------------------------

    @staticmethod
    def _upsert_rows(sheet: gspread.Worksheet, rows: list[list]) -> None:
        """Replace rows whose first cell matches, append the rest."""
        existing = sheet.get_all_values()
        positions = {
            row[0]: idx
            for idx, row in enumerate(existing[1:], start=2)  # row 1 is header
            if row and row[0]
        }
        to_append = []
        for row in rows:
            idx = positions.get(row[0])
            if idx is None:
                to_append.append(row)
            else:
                sheet.update(
                    range_name=f"A{idx}",
                    values=[row],
                    value_input_option="RAW",
                )
        if to_append:
            sheet.append_rows(to_append, value_input_option="RAW")

    @staticmethod
    def _delete_matching(sheet: gspread.Worksheet, predicate) -> int:
        existing = sheet.get_all_values()
        doomed = [
            idx
            for idx, row in enumerate(existing[1:], start=2)
            if row and predicate(row)
        ]
        # Bottom-up so earlier indices stay valid
        for idx in reversed(doomed):
            sheet.delete_rows(idx)
        return len(doomed)

    # -- Transactions ---------------------------------------------------------

    async def list_transactions(self, user_id: str) -> list[Transaction]:
        try:
            sheet = self._client.get_transactions_sheet()
            rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {e}")

        transactions = []
        for row in rows:
            if not row or not row[0] or _safe_get(row, 1) != user_id:
                continue
            try:
                transactions.append(self._row_to_transaction(row))
            except Exception:
                continue  # Skip malformed rows

        transactions.sort(key=lambda t: t.date, reverse=True)
        return transactions

    @_write_retry
    async def upsert_transactions(self, transactions: list[Transaction]) -> bool:
        if not transactions:
            return True
        try:
            sheet = self._client.get_transactions_sheet()
            self._upsert_rows(sheet, [self._transaction_to_row(t) for t in transactions])
            return True
        except Exception as e:
            raise StorageError(f"Failed to upsert transactions: {e}")

    @_write_retry
    async def delete_transactions(self, ids: list[str]) -> bool:
        wanted = set(ids)
        try:
            sheet = self._client.get_transactions_sheet()
            self._delete_matching(sheet, lambda row: row[0] in wanted)
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete transactions: {e}")

    @_write_retry
    async def delete_all_transactions(self, user_id: str) -> bool:
        try:
            sheet = self._client.get_transactions_sheet()
            self._delete_matching(sheet, lambda row: _safe_get(row, 1) == user_id)
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete transactions: {e}")

    # -- Savings goals --------------------------------------------------------

    async def list_goals(self, user_id: str) -> list[SavingsGoal]:
        try:
            sheet = self._client.get_goals_sheet()
            rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to list goals: {e}")

        goals = []
        for row in rows:
            if not row or not row[0] or _safe_get(row, 1) != user_id:
                continue
            try:
                goals.append(self._row_to_goal(row))
            except Exception:
                continue
        return goals

    @_write_retry
    async def upsert_goals(self, goals: list[SavingsGoal]) -> bool:
        if not goals:
            return True
        try:
            sheet = self._client.get_goals_sheet()
            self._upsert_rows(sheet, [self._goal_to_row(g) for g in goals])
            return True
        except Exception as e:
            raise StorageError(f"Failed to upsert goals: {e}")

    @_write_retry
    async def delete_goal(self, goal_id: str) -> bool:
        try:
            sheet = self._client.get_goals_sheet()
            return self._delete_matching(sheet, lambda row: row[0] == goal_id) > 0
        except Exception as e:
            raise StorageError(f"Failed to delete goal: {e}")

    @_write_retry
    async def delete_goals(self, user_id: str, deletable_only: bool = False) -> bool:
        def doomed(row: list) -> bool:
            if _safe_get(row, 1) != user_id:
                return False
            return not deletable_only or _as_bool(_safe_get(row, 7, "True"))

        try:
            sheet = self._client.get_goals_sheet()
            self._delete_matching(sheet, doomed)
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete goals: {e}")

    # -- Activity log ---------------------------------------------------------

    async def list_activity(self, user_id: str) -> list[str]:
        try:
            sheet = self._client.get_activity_sheet()
            rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to list activity: {e}")
        return sorted({row[1] for row in rows if len(row) > 1 and row[0] == user_id})

    @_write_retry
    async def log_activity(self, user_id: str, day: str) -> bool:
        try:
            sheet = self._client.get_activity_sheet()
            rows = sheet.get_all_values()[1:]
            if any(len(row) > 1 and row[0] == user_id and row[1] == day for row in rows):
                return True
            sheet.append_row([user_id, day], value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to log activity: {e}")

    @_write_retry
    async def clear_activity(self, user_id: str) -> bool:
        try:
            sheet = self._client.get_activity_sheet()
            self._delete_matching(sheet, lambda row: row[0] == user_id)
            return True
        except Exception as e:
            raise StorageError(f"Failed to clear activity: {e}")

    # -- Profile --------------------------------------------------------------

    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        try:
            sheet = self._client.get_profiles_sheet()
            rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get profile: {e}")
        for row in rows:
            if row and row[0] == user_id:
                return self._row_to_profile(row)
        return None

    @_write_retry
    async def update_profile(self, user_id: str, fields: dict[str, Any]) -> bool:
        profile = await self.get_profile(user_id)
        if profile is None:
            raise NotFoundError(f"Profile not found: {user_id}")
        try:
            data = profile.model_dump()
            data.update(fields)
            updated = UserProfile.model_validate(data)
            sheet = self._client.get_profiles_sheet()
            self._upsert_rows(sheet, [self._profile_to_row(updated)])
            return True
        except Exception as e:
            raise StorageError(f"Failed to update profile: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @staticmethod
    def _row_to_event(row: list) -> AuditEvent:
        return AuditEvent(
            event_id=_safe_get(row, 0),
            timestamp=datetime.fromisoformat(_safe_get(row, 1)),
            event_type=AuditEventType(_safe_get(row, 2)),
            severity=AuditSeverity(_safe_get(row, 3)),
            user_id=_safe_get(row, 4) or None,
            entity_type=_safe_get(row, 5) or None,
            entity_id=_safe_get(row, 6) or None,
            correlation_id=_safe_get(row, 7) or None,
            description=_safe_get(row, 8),
            details=json.loads(_safe_get(row, 9)) if _safe_get(row, 9) else {},
            error_message=_safe_get(row, 10) or None,
            is_user_action=_as_bool(_safe_get(row, 11, "False")),
        )

    @_write_retry
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        sheet = self._client.get_audit_sheet()
        sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
        return True

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events, newest first."""
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if row and row[0]:
                try:
                    events.append(self._row_to_event(row))
                except Exception:
                    continue

        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
