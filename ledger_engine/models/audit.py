"""
Audit Models for Ledger Engine

Every significant action in the engine is logged for audit purposes.
This provides:
1. Complete traceability of imports and balance changes
2. Debugging information when things go wrong
3. A trail to reconstruct balances by hand if they drift

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every step in the import pipeline has its own event type.
    """
    # File handling
    FILE_PARSED = "file_parsed"
    FILE_REJECTED = "file_rejected"
    MAPPING_DETECTED = "mapping_detected"

    # Validation
    VALIDATION_COMPLETED = "validation_completed"
    UNKNOWN_CATEGORIES_FOUND = "unknown_categories_found"

    # Category resolution
    CATEGORY_CREATED = "category_created"
    CATEGORY_RESOLUTION_FAILED = "category_resolution_failed"

    # Import lifecycle
    IMPORT_STARTED = "import_started"
    IMPORT_COMPLETED = "import_completed"
    IMPORT_ABORTED = "import_aborted"

    # Ledger entries
    ENTRY_CREATED = "entry_created"
    ENTRY_UPDATED = "entry_updated"
    ENTRY_DELETED = "entry_deleted"
    ENTRY_COMMIT_FAILED = "entry_commit_failed"

    # Balances
    BALANCE_ADJUSTED = "balance_adjusted"
    BALANCE_UPDATE_FAILED = "balance_update_failed"
    BALANCE_DRIFT_DETECTED = "balance_drift_detected"

    # System events
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'entry', 'account', 'import')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - all events of one import session share this
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.file_parsed(3, 120, correlation_id)
        event = AuditEventBuilder.entry_created(entry_id, "expense", "USD", "10")
    """

    @staticmethod
    def file_parsed(
        header_count: int,
        row_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FILE_PARSED,
            entity_type="import",
            correlation_id=correlation_id,
            description=f"File parsed: {header_count} columns, {row_count} rows",
            details={
                "header_count": header_count,
                "row_count": row_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def file_rejected(
        reason: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FILE_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="import",
            correlation_id=correlation_id,
            description=f"File rejected: {reason}",
            details={"reason": reason},
        )

    @staticmethod
    def mapping_detected(
        mapping: dict[str, Optional[int]],
        correlation_id: UUID
    ) -> AuditEvent:
        mapped = {k: v for k, v in mapping.items() if v is not None}
        return AuditEvent(
            event_type=AuditEventType.MAPPING_DETECTED,
            entity_type="import",
            correlation_id=correlation_id,
            description=f"Detected {len(mapped)} of {len(mapping)} fields",
            details={"mapping": mapping},
        )

    @staticmethod
    def validation_completed(
        valid_count: int,
        error_count: int,
        dry_run: bool,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_COMPLETED,
            severity=AuditSeverity.WARNING if error_count else AuditSeverity.INFO,
            entity_type="import",
            correlation_id=correlation_id,
            description=(
                f"{'Dry run' if dry_run else 'Validation'}: "
                f"{valid_count} valid rows, {error_count} rejected"
            ),
            details={
                "valid_count": valid_count,
                "error_count": error_count,
                "dry_run": dry_run,
            },
        )

    @staticmethod
    def unknown_categories_found(
        names: list[str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.UNKNOWN_CATEGORIES_FOUND,
            entity_type="import",
            correlation_id=correlation_id,
            description=f"{len(names)} unknown categories need resolution",
            details={"names": names},
        )

    @staticmethod
    def category_created(
        category_id: str,
        name: str,
        category_type: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_CREATED,
            entity_type="category",
            entity_id=category_id,
            correlation_id=correlation_id,
            description=f"Category created: {name} ({category_type})",
            details={"name": name, "type": category_type},
            is_user_action=True,
        )

    @staticmethod
    def category_resolution_failed(
        name: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_RESOLUTION_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="category",
            correlation_id=correlation_id,
            description=f"Could not create category: {name}",
            error_message=error_message,
            details={"name": name},
        )

    @staticmethod
    def import_started(
        draft_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_STARTED,
            entity_type="import",
            correlation_id=correlation_id,
            description=f"Import started with {draft_count} entries",
            details={"draft_count": draft_count},
            is_user_action=True,
        )

    @staticmethod
    def import_completed(
        imported_count: int,
        error_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_COMPLETED,
            severity=AuditSeverity.WARNING if error_count else AuditSeverity.INFO,
            entity_type="import",
            correlation_id=correlation_id,
            description=f"Import finished: {imported_count} imported, {error_count} errors",
            details={
                "imported_count": imported_count,
                "error_count": error_count,
            },
        )

    @staticmethod
    def import_aborted(
        reason: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_ABORTED,
            severity=AuditSeverity.ERROR,
            entity_type="import",
            correlation_id=correlation_id,
            description="Import aborted before any entry was committed",
            error_message=reason,
        )

    @staticmethod
    def entry_created(
        entry_id: str,
        entry_type: str,
        currency: str,
        amount: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_CREATED,
            entity_type="entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description=f"Entry created: {entry_type} {amount} {currency}",
            details={
                "type": entry_type,
                "currency": currency,
                "amount": amount,
            },
        )

    @staticmethod
    def entry_updated(
        entry_id: str,
        changes: dict[str, Any],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_UPDATED,
            entity_type="entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description=f"Entry updated: {', '.join(sorted(changes)) or 'no fields'}",
            details={"changes": {k: str(v) for k, v in changes.items()}},
            is_user_action=True,
        )

    @staticmethod
    def entry_deleted(
        entry_id: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_DELETED,
            entity_type="entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description="Entry deleted",
            is_user_action=True,
        )

    @staticmethod
    def entry_commit_failed(
        position: int,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_COMMIT_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="entry",
            correlation_id=correlation_id,
            description=f"Entry {position} could not be committed",
            error_message=error_message,
            details={"position": position},
        )

    @staticmethod
    def balance_adjusted(
        account_id: str,
        currency: str,
        delta: str,
        new_balance: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCE_ADJUSTED,
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            description=f"Balance {currency} adjusted by {delta}",
            details={
                "currency": currency,
                "delta": delta,
                "new_balance": new_balance,
            },
        )

    @staticmethod
    def balance_update_failed(
        account_id: str,
        entry_id: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCE_UPDATE_FAILED,
            severity=AuditSeverity.CRITICAL,
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            description="Balance update failed after the entry was written",
            error_message=error_message,
            details={"entry_id": entry_id},
        )

    @staticmethod
    def balance_drift_detected(
        account_id: str,
        currency: str,
        recorded: str,
        expected: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCE_DRIFT_DETECTED,
            severity=AuditSeverity.WARNING,
            entity_type="account",
            entity_id=account_id,
            description=f"Recorded {currency} balance differs from its entries",
            details={
                "currency": currency,
                "recorded": recorded,
                "expected": expected,
            },
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
            correlation_id=correlation_id,
        )
