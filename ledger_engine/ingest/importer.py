"""
Batch Importer

Commits validated drafts one at a time through the ledger entry
service.

CRITICAL: Commits are strictly sequential. Each create (entry write
plus balance update) is awaited before the next starts, so balance
read-modify-writes never interleave within a batch.

A failed commit doesn't stop the batch. It is recorded as a row
error numbered by the draft's 1-based position in the batch.
"""

from typing import Callable, Optional
from uuid import UUID

from ledger_engine.audit import AuditLogger
from ledger_engine.models.ledger import (
    ImportResult,
    ImportRowError,
    LedgerEntryDraft,
    SessionContext,
)
from ledger_engine.services.ledger_entries import LedgerEntryService


# (current, total), called after every commit attempt
ProgressCallback = Callable[[int, int], None]

UNKNOWN_ERROR_MESSAGE = "Unknown error"


class BatchImporter:
    """Sequential committer with progress reporting."""

    def __init__(
        self,
        service: LedgerEntryService,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._service = service
        self._audit = audit_logger or AuditLogger()

    async def import_drafts(
        self,
        session: SessionContext,
        drafts: list[LedgerEntryDraft],
        on_progress: Optional[ProgressCallback] = None,
        validation_errors: Optional[list[ImportRowError]] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ImportResult:
        """
        Commit drafts in order.

        Args:
            session: Owner of the new entries
            drafts: Drafts to commit, in file order
            on_progress: Called with (current, total) after each attempt
            validation_errors: Errors from the validation pass, reported
                               ahead of commit errors
            correlation_id: Ties the audit events of this import together

        Returns:
            ImportResult with the number of committed entries and all errors
        """
        result = ImportResult(errors=list(validation_errors or []))
        total = len(drafts)

        for position, draft in enumerate(drafts, start=1):
            try:
                await self._service.create(session, draft, correlation_id=correlation_id)
                result.imported_count += 1
            except Exception as e:
                message = str(e) or UNKNOWN_ERROR_MESSAGE
                result.errors.append(ImportRowError(row=position, message=message))
                await self._audit.log_entry_commit_failed(
                    position=position,
                    error_message=message,
                    correlation_id=correlation_id,
                )

            if on_progress is not None:
                on_progress(position, total)

        return result
