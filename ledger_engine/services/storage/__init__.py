"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the remote backend; the in-memory store backs tests and
local dry runs.
"""

from ledger_engine.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    LedgerRepository,
    NotFoundError,
    StorageError,
)
from ledger_engine.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerRepository,
)
from ledger_engine.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerRepository,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerRepository",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryLedgerRepository",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerRepository",
]
