"""Integration tests for the import flow against the in-memory repository."""

import asyncio
from decimal import Decimal

import pytest
from structlog.testing import capture_logs

from ledger_engine.ingest.categories import CategoryResolutionError, UnresolvedCategoryError
from ledger_engine.ingest.mapping import MappingIncompleteError
from ledger_engine.ingest.parser import EmptyFileError, FileTooLargeError
from ledger_engine.models.audit import AuditEventType
from ledger_engine.models.ledger import (
    CategoryResolution,
    ColumnMapping,
    Currency,
    EntryType,
    FieldDefaults,
    ResolutionAction,
    SessionContext,
)
from ledger_engine.orchestrator import ImportFlow, create_app_components
from ledger_engine.audit import create_correlation_id
from ledger_engine.services.storage import (
    ConnectionError,
    InMemoryLedgerRepository,
    StorageError,
)


CSV = (
    "Fecha,Descripción,Tipo,Monto,Moneda,Categoría,Cuenta\n"
    "2026-02-01,Almuerzo,gasto,25000,COP,Comida,Bancolombia\n"
    "2/2/2026,Taxi,gasto,12500,COP,Transporte,Bancolombia\n"
    "03/02/2026,Sueldo,ingreso,\"1.000,50\",USD,Salario,Bancolombia\n"
).encode("utf-8")


@pytest.fixture
def flow(repository, audit_logger):
    return ImportFlow(repository, audit_logger)


class TestLoadFile:
    """Tests for loading and mapping a file."""

    def test_load_and_detect(self, flow):
        """Test parsing and header detection."""
        parsed = asyncio.run(flow.load_file(CSV))
        mapping = asyncio.run(flow.detect_mapping(parsed))

        assert len(parsed.rows) == 3
        assert mapping == ColumnMapping(
            date=0, description=1, type=2, amount=3, currency=4, category=5, account=6
        )

    def test_empty_file(self, flow, audit_storage):
        """Test the structural failure for an empty file."""
        with pytest.raises(EmptyFileError):
            asyncio.run(flow.load_file(b"  \n\n"))
        assert audit_storage.events[-1].event_type == AuditEventType.FILE_REJECTED

    def test_file_too_large(self, flow, monkeypatch):
        """Test the size limit."""
        monkeypatch.setattr(flow._settings, "max_file_size_mb", 1)
        with pytest.raises(FileTooLargeError):
            asyncio.run(flow.load_file(b"a" * (1024 * 1024 + 1)))

    def test_preview_limit(self, flow):
        """Test that the preview is capped."""
        parsed = asyncio.run(flow.load_file(CSV))
        assert len(flow.preview(parsed, limit=2)) == 2
        assert len(flow.preview(parsed)) == 3


class TestDryRun:
    """Tests for the dry run."""

    def test_reports_unknown_categories(self, flow, session, repository):
        """Test that the dry run lists unknowns and commits nothing."""
        parsed = asyncio.run(flow.load_file(CSV))
        mapping = asyncio.run(flow.detect_mapping(parsed))

        processed, unknown = asyncio.run(flow.dry_run(session, parsed, mapping))

        assert unknown == ["Transporte"]
        assert len(processed.valid) == 2
        assert processed.errors[0].row == 4
        assert repository.entries == []


class TestRunImport:
    """Tests for the full import."""

    def test_import_with_default_resolutions(self, flow, session, repository, audit_storage):
        """Test that unknown categories are created and every row imports."""
        correlation_id = create_correlation_id()
        parsed = asyncio.run(flow.load_file(CSV, correlation_id))
        mapping = asyncio.run(flow.detect_mapping(parsed, correlation_id))
        progress = []

        result = asyncio.run(flow.run_import(
            session,
            parsed,
            mapping,
            on_progress=lambda current, total: progress.append((current, total)),
            correlation_id=correlation_id,
        ))

        assert result.imported_count == 3
        assert result.errors == []
        assert progress == [(1, 3), (2, 3), (3, 3)]

        account = asyncio.run(repository.get_account("acc-checking"))
        assert account.balance(Currency.COP) == Decimal("50000") - Decimal("25000") - Decimal("12500")
        assert account.balance(Currency.USD) == Decimal("100") + Decimal("1000.50")

        categories = {c.name for c in asyncio.run(repository.list_categories(session))}
        assert "Transporte" in categories

        events = asyncio.run(audit_storage.get_events_by_correlation_id(correlation_id))
        types = [e.event_type for e in events]
        assert types[0] == AuditEventType.FILE_PARSED
        assert AuditEventType.CATEGORY_CREATED in types
        assert types[-1] == AuditEventType.IMPORT_COMPLETED
        assert types.index(AuditEventType.CATEGORY_CREATED) < types.index(AuditEventType.ENTRY_CREATED)

    def test_skip_imports_uncategorized(self, flow, session, repository):
        """Test that a skipped category imports the row without category."""
        parsed = asyncio.run(flow.load_file(CSV))
        mapping = asyncio.run(flow.detect_mapping(parsed))
        resolutions = {"Transporte": CategoryResolution(action=ResolutionAction.SKIP)}

        result = asyncio.run(flow.run_import(session, parsed, mapping, resolutions=resolutions))

        assert result.imported_count == 3
        taxi = [e for e in repository.entries if e.description == "Taxi"][0]
        assert taxi.category_id is None

    def test_incomplete_resolutions_abort(self, flow, session, repository, audit_storage):
        """Test that a missing decision aborts before committing."""
        parsed = asyncio.run(flow.load_file(CSV))
        mapping = asyncio.run(flow.detect_mapping(parsed))

        with pytest.raises(UnresolvedCategoryError):
            asyncio.run(flow.run_import(session, parsed, mapping, resolutions={}))

        assert repository.entries == []
        assert audit_storage.events[-1].event_type == AuditEventType.IMPORT_ABORTED

    def test_category_failure_commits_nothing(self, flow, session, repository):
        """Test that a failed category creation is fatal for the whole import."""
        repository.fail_category_creation = True
        parsed = asyncio.run(flow.load_file(CSV))
        mapping = asyncio.run(flow.detect_mapping(parsed))

        with pytest.raises(CategoryResolutionError):
            asyncio.run(flow.run_import(session, parsed, mapping))

        assert repository.entries == []
        account = asyncio.run(repository.get_account("acc-checking"))
        assert account.balance(Currency.COP) == Decimal("50000")

    def test_missing_required_field_aborts(self, flow, session):
        """Test that an incomplete mapping can't be imported."""
        parsed = asyncio.run(flow.load_file(CSV))
        mapping = asyncio.run(flow.detect_mapping(parsed)).assign("currency", None)

        with pytest.raises(MappingIncompleteError):
            asyncio.run(flow.run_import(session, parsed, mapping))

    def test_defaults_and_row_errors(self, flow, session, repository):
        """Test a minimal file relying on defaults, with one bad row."""
        payload = (
            "Fecha;Descripcion;Monto\n"
            "2026-02-01;Pan;3,50\n"
            "2026/02/02;Leche;4,20\n"
            "2026-02-03;Huevos;12,00\n"
        ).encode("utf-8")
        parsed = asyncio.run(flow.load_file(payload))
        mapping = asyncio.run(flow.detect_mapping(parsed))
        defaults = FieldDefaults(
            type=EntryType.EXPENSE,
            currency=Currency.USD,
            account_id="acc-cash",
        )

        result = asyncio.run(flow.run_import(session, parsed, mapping, defaults))

        assert result.imported_count == 2
        assert [(e.row, e.message.split(":")[0]) for e in result.errors] == [(4, "Invalid date")]
        cash = asyncio.run(repository.get_account("acc-cash"))
        assert cash.balance(Currency.USD) == Decimal("-15.50")


class UnreachableRepository(InMemoryLedgerRepository):
    """Repository whose account listing fails like an unreachable sheet."""

    async def list_accounts(self, session):
        raise StorageError("Failed to list accounts: quota exceeded")


class TestStorageFailures:
    """Tests for storage failures during an import."""

    def test_storage_failure_is_audited_and_raised(self, session, audit_logger, audit_storage):
        """Test that a failing store aborts the dry run with an external service event."""
        flow = ImportFlow(UnreachableRepository(), audit_logger)
        correlation_id = create_correlation_id()
        parsed = asyncio.run(flow.load_file(CSV, correlation_id))
        mapping = asyncio.run(flow.detect_mapping(parsed, correlation_id))

        with pytest.raises(StorageError, match="quota exceeded"):
            asyncio.run(flow.dry_run(session, parsed, mapping, correlation_id=correlation_id))

        event = audit_storage.events[-1]
        assert event.event_type == AuditEventType.EXTERNAL_SERVICE_ERROR
        assert event.correlation_id == correlation_id
        assert event.details == {"service": "ledger_storage"}
        assert "quota exceeded" in event.error_message


class TestCreateAppComponents:
    """Tests for the component factory."""

    def test_without_storage(self):
        """Test that the factory falls back to the in-memory store."""
        flow, repository, sheets_client = create_app_components(use_storage=False)
        assert isinstance(flow, ImportFlow)
        assert sheets_client is None
        assert asyncio.run(repository.list_accounts(SessionContext(user_id="u"))) == []

    def test_unconfigured_storage_falls_back(self, monkeypatch):
        """Test that a sheets connection failure is logged and the in-memory store is used."""
        def unconfigured():
            raise ConnectionError("credentials file not found")

        monkeypatch.setattr("ledger_engine.orchestrator.GoogleSheetsClient", unconfigured)

        with capture_logs() as logs:
            flow, repository, sheets_client = create_app_components()

        assert sheets_client is None
        assert isinstance(repository, InMemoryLedgerRepository)
        assert {
            "event": "storage_not_configured",
            "error": "credentials file not found",
            "log_level": "warning",
        } in logs


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
