"""
Data Models Package

This package contains all Pydantic models used by the ledger engine.
All data flowing through the import pipeline must conform to these schemas.
"""

from ledger_engine.models.ledger import (
    REQUIRED_FIELDS,
    Account,
    BalanceDrift,
    Category,
    CategoryResolution,
    CategoryType,
    ColumnMapping,
    Currency,
    EntryStats,
    EntryType,
    FieldDefaults,
    ImportResult,
    ImportRowError,
    LedgerEntry,
    LedgerEntryDraft,
    LedgerEntryUpdate,
    LedgerField,
    ParsedFile,
    ProcessedRows,
    ResolutionAction,
    SessionContext,
    new_id,
)
from ledger_engine.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "REQUIRED_FIELDS",
    "Account",
    "BalanceDrift",
    "Category",
    "CategoryResolution",
    "CategoryType",
    "ColumnMapping",
    "Currency",
    "EntryStats",
    "EntryType",
    "FieldDefaults",
    "ImportResult",
    "ImportRowError",
    "LedgerEntry",
    "LedgerEntryDraft",
    "LedgerEntryUpdate",
    "LedgerField",
    "ParsedFile",
    "ProcessedRows",
    "ResolutionAction",
    "SessionContext",
    "new_id",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
