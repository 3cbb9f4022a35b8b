"""
Audit Logger

DESIGN DECISION: Every significant action in the engine is logged.
This provides:
1. Complete traceability of imports and balance changes
2. Debugging capability
3. Evidence to reconcile a balance by hand if it ever drifts

The audit logger:
- Is async so it can persist through the same storage layer
- Gracefully handles failures (doesn't break an import if logging fails)
- Supports correlation IDs to trace all events of one import session
"""

from typing import Any, Optional
from uuid import UUID, uuid4

import structlog

from ledger_engine.models.audit import AuditEvent, AuditEventBuilder
from ledger_engine.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence), when configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("ledger_engine.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_file_parsed(
        self,
        header_count: int,
        row_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.file_parsed(header_count, row_count, correlation_id))

    async def log_file_rejected(self, reason: str, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.file_rejected(reason, correlation_id))

    async def log_mapping_detected(
        self,
        mapping: dict[str, Optional[int]],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.mapping_detected(mapping, correlation_id))

    async def log_validation_completed(
        self,
        valid_count: int,
        error_count: int,
        dry_run: bool,
        correlation_id: UUID,
    ) -> None:
        """Log the outcome of a row validation pass."""
        await self.log(AuditEventBuilder.validation_completed(
            valid_count=valid_count,
            error_count=error_count,
            dry_run=dry_run,
            correlation_id=correlation_id,
        ))

    async def log_unknown_categories(
        self,
        names: list[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.unknown_categories_found(names, correlation_id))

    async def log_category_created(
        self,
        category_id: str,
        name: str,
        category_type: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.category_created(
            category_id=category_id,
            name=name,
            category_type=category_type,
            correlation_id=correlation_id,
        ))

    async def log_category_resolution_failed(
        self,
        name: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.category_resolution_failed(
            name=name,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_import_started(self, draft_count: int, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.import_started(draft_count, correlation_id))

    async def log_import_completed(
        self,
        imported_count: int,
        error_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.import_completed(
            imported_count=imported_count,
            error_count=error_count,
            correlation_id=correlation_id,
        ))

    async def log_import_aborted(self, reason: str, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.import_aborted(reason, correlation_id))

    async def log_entry_created(
        self,
        entry_id: str,
        entry_type: str,
        currency: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.entry_created(
            entry_id=entry_id,
            entry_type=entry_type,
            currency=currency,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_entry_updated(
        self,
        entry_id: str,
        changes: dict[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.entry_updated(entry_id, changes, correlation_id))

    async def log_entry_deleted(
        self,
        entry_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.entry_deleted(entry_id, correlation_id))

    async def log_entry_commit_failed(
        self,
        position: int,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.entry_commit_failed(
            position=position,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_balance_adjusted(
        self,
        account_id: str,
        currency: str,
        delta: str,
        new_balance: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.balance_adjusted(
            account_id=account_id,
            currency=currency,
            delta=delta,
            new_balance=new_balance,
            correlation_id=correlation_id,
        ))

    async def log_balance_update_failed(
        self,
        account_id: str,
        entry_id: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a balance write that failed after its entry was written."""
        await self.log(AuditEventBuilder.balance_update_failed(
            account_id=account_id,
            entry_id=entry_id,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_balance_drift(
        self,
        account_id: str,
        currency: str,
        recorded: str,
        expected: str,
    ) -> None:
        await self.log(AuditEventBuilder.balance_drift_detected(
            account_id=account_id,
            currency=currency,
            recorded=recorded,
            expected=expected,
        ))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of an import session.
    Pass it through all subsequent operations.
    """
    return uuid4()
