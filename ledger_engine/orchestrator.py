"""
Main Orchestrator for Ledger Engine

This module ties together all the components and defines the
end-to-end bulk import flow:
file -> parse -> detect mapping -> preview -> dry run ->
resolve categories -> final validation -> import

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is committed before every unknown category has a decision
- Category creation happens entirely before the first entry commit
- A failed category creation aborts the import with nothing committed
- Every step is audited under one correlation ID
"""

import logging
from typing import Optional
from uuid import UUID

import structlog

from ledger_engine.audit import AuditLogger, create_correlation_id
from ledger_engine.config import get_settings
from ledger_engine.ingest.categories import (
    CategoryResolutionError,
    CategoryResolver,
    UnresolvedCategoryError,
    default_resolutions,
    find_unknown_categories,
)
from ledger_engine.ingest.importer import BatchImporter, ProgressCallback
from ledger_engine.ingest.mapping import (
    MappingIncompleteError,
    detect_column_mapping,
    missing_required_fields,
)
from ledger_engine.ingest.parser import (
    EmptyFileError,
    FileTooLargeError,
    decode_file,
    parse_delimited,
)
from ledger_engine.ingest.rows import process_rows
from ledger_engine.models.ledger import (
    Account,
    Category,
    CategoryResolution,
    CategoryType,
    ColumnMapping,
    FieldDefaults,
    ImportResult,
    ParsedFile,
    ProcessedRows,
    SessionContext,
)
from ledger_engine.services.ledger_entries import LedgerEntryService
from ledger_engine.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerRepository,
    InMemoryLedgerRepository,
    LedgerRepository,
    StorageError,
)


class ImportFlow:
    """
    Orchestrates the bulk import flow.

    Flow:
    1. Load -> size check, decode, parse
    2. Map -> auto-detect, user may override with ColumnMapping.assign()
    3. Preview -> first rows of the file
    4. Dry run -> validate without category overrides, list unknown categories
    5. Resolve -> user decides existing/create/skip per unknown category
    6. Import -> create categories, validate again, commit sequentially

    The flow keeps no state between steps; the caller passes the
    parsed file, mapping and decisions back in.
    """

    def __init__(
        self,
        repository: LedgerRepository,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._repository = repository
        self._audit_logger = audit_logger or AuditLogger()
        self._settings = get_settings().imports

        self._service = LedgerEntryService(repository, self._audit_logger)
        self._resolver = CategoryResolver(repository, self._audit_logger)
        self._importer = BatchImporter(self._service, self._audit_logger)

    async def _load_reference_data(
        self,
        session: SessionContext,
        correlation_id: UUID,
    ) -> tuple[list[Account], list[Category]]:
        """Fetch the user's accounts and categories from storage."""
        try:
            accounts = await self._repository.list_accounts(session)
            categories = await self._repository.list_categories(session)
        except StorageError as e:
            await self._audit_logger.log_external_service_error(
                service="ledger_storage",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise
        return accounts, categories

    async def load_file(
        self,
        payload: bytes,
        correlation_id: Optional[UUID] = None,
    ) -> ParsedFile:
        """
        Decode and parse an uploaded file.

        Raises:
            FileTooLargeError: If the payload exceeds the configured limit
            EmptyFileError: If the file has no header row
        """
        correlation_id = correlation_id or create_correlation_id()

        limit = self._settings.max_file_size_bytes
        if len(payload) > limit:
            error = FileTooLargeError(len(payload), limit)
            await self._audit_logger.log_file_rejected(str(error), correlation_id)
            raise error

        parsed = parse_delimited(decode_file(payload, self._settings.file_encoding))
        if parsed.is_empty:
            await self._audit_logger.log_file_rejected("File is empty", correlation_id)
            raise EmptyFileError("The file is empty or has no header row")

        await self._audit_logger.log_file_parsed(
            header_count=len(parsed.headers),
            row_count=len(parsed.rows),
            correlation_id=correlation_id,
        )
        return parsed

    async def detect_mapping(
        self,
        parsed: ParsedFile,
        correlation_id: Optional[UUID] = None,
    ) -> ColumnMapping:
        """Suggest a column mapping from the file's headers."""
        correlation_id = correlation_id or create_correlation_id()

        mapping = detect_column_mapping(parsed.headers)
        await self._audit_logger.log_mapping_detected(mapping.model_dump(), correlation_id)
        return mapping

    def preview(self, parsed: ParsedFile, limit: Optional[int] = None) -> list[list[str]]:
        return parsed.rows[:limit or self._settings.preview_row_limit]

    async def dry_run(
        self,
        session: SessionContext,
        parsed: ParsedFile,
        mapping: ColumnMapping,
        defaults: Optional[FieldDefaults] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[ProcessedRows, list[str]]:
        """
        Validate every row without committing anything.

        Rows naming an unknown category are reported as errors here;
        they become valid once the category is resolved.

        Returns:
            (processed rows, unknown category names)
        """
        correlation_id = correlation_id or create_correlation_id()

        accounts, categories = await self._load_reference_data(session, correlation_id)

        processed = process_rows(parsed.rows, mapping, accounts, categories, defaults)
        unknown = find_unknown_categories(parsed.rows, mapping, categories)

        await self._audit_logger.log_validation_completed(
            valid_count=len(processed.valid),
            error_count=len(processed.errors),
            dry_run=True,
            correlation_id=correlation_id,
        )
        if unknown:
            await self._audit_logger.log_unknown_categories(unknown, correlation_id)

        return processed, unknown

    def propose_resolutions(self, unknown: list[str]) -> dict[str, CategoryResolution]:
        """Initial decisions: create every unknown category under its own name."""
        return default_resolutions(
            unknown,
            CategoryType(self._settings.default_new_category_type),
        )

    async def run_import(
        self,
        session: SessionContext,
        parsed: ParsedFile,
        mapping: ColumnMapping,
        defaults: Optional[FieldDefaults] = None,
        resolutions: Optional[dict[str, CategoryResolution]] = None,
        on_progress: Optional[ProgressCallback] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ImportResult:
        """
        Resolve categories, validate and commit.

        CRITICAL: Category resolution completes before the first commit.
        A resolution failure raises and nothing is committed.

        Args:
            resolutions: Decision per unknown category name. When None,
                         every unknown category is created under its own name.

        Raises:
            MappingIncompleteError: If a required field has no column or default
            UnresolvedCategoryError: If an unknown category has no complete decision
            CategoryResolutionError: If creating a category fails
        """
        correlation_id = correlation_id or create_correlation_id()

        missing = missing_required_fields(mapping, defaults)
        if missing:
            error = MappingIncompleteError(missing)
            await self._audit_logger.log_import_aborted(str(error), correlation_id)
            raise error

        accounts, categories = await self._load_reference_data(session, correlation_id)
        unknown = find_unknown_categories(parsed.rows, mapping, categories)
        if resolutions is None:
            resolutions = self.propose_resolutions(unknown)

        try:
            overrides = await self._resolver.resolve(
                session, unknown, resolutions, correlation_id
            )
        except (UnresolvedCategoryError, CategoryResolutionError) as e:
            await self._audit_logger.log_import_aborted(str(e), correlation_id)
            raise

        processed = process_rows(
            parsed.rows, mapping, accounts, categories, defaults, overrides
        )
        await self._audit_logger.log_validation_completed(
            valid_count=len(processed.valid),
            error_count=len(processed.errors),
            dry_run=False,
            correlation_id=correlation_id,
        )

        await self._audit_logger.log_import_started(len(processed.valid), correlation_id)
        result = await self._importer.import_drafts(
            session,
            processed.valid,
            on_progress=on_progress,
            validation_errors=processed.errors,
            correlation_id=correlation_id,
        )
        await self._audit_logger.log_import_completed(
            imported_count=result.imported_count,
            error_count=result.error_count,
            correlation_id=correlation_id,
        )
        return result

    @property
    def entries(self) -> LedgerEntryService:
        """Entry service sharing this flow's repository and audit logger."""
        return self._service


def create_app_components(
    use_storage: bool = True,
) -> tuple[ImportFlow, LedgerRepository, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False to run against the in-memory store.

    Returns:
        (import_flow, repository, sheets_client)
    """
    logging.basicConfig(level=get_settings().app.log_level)

    sheets_client = None
    repository: LedgerRepository = InMemoryLedgerRepository()
    audit_logger = AuditLogger()  # Local-only logging

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            repository = GoogleSheetsLedgerRepository(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue without it
            structlog.get_logger(__name__).warning("storage_not_configured", error=str(e))
            sheets_client = None
            repository = InMemoryLedgerRepository()
            audit_logger = AuditLogger()

    import_flow = ImportFlow(repository, audit_logger)

    return import_flow, repository, sheets_client
