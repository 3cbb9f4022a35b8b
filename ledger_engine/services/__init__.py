"""Services package."""

from ledger_engine.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerRepository,
    InMemoryAuditStorage,
    InMemoryLedgerRepository,
    LedgerRepository,
    NotFoundError,
    StorageError,
)

__all__ = [
    # Storage
    "AuditStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerRepository",
    "InMemoryAuditStorage",
    "InMemoryLedgerRepository",
    "LedgerRepository",
    "NotFoundError",
    "StorageError",
]
