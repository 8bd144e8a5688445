"""Services package."""

from finquest.services.backup import (
    build_backup,
    backup_filename,
    csv_filename,
    dump_backup,
    export_transactions_csv,
    parse_backup,
)
from finquest.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStore,
    InMemoryAuditStorage,
    InMemoryLedgerStore,
    LedgerStoreInterface,
    NotFoundError,
    StorageError,
)

__all__ = [
    # Backup / export
    "backup_filename",
    "build_backup",
    "csv_filename",
    "dump_backup",
    "export_transactions_csv",
    "parse_backup",
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStore",
    "InMemoryAuditStorage",
    "InMemoryLedgerStore",
    "LedgerStoreInterface",
    "NotFoundError",
    "StorageError",
]
