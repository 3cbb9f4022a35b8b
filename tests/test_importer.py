"""Tests for the batch importer."""

import asyncio
from datetime import date
from decimal import Decimal

import pytest

from ledger_engine.ingest.importer import BatchImporter
from ledger_engine.models.audit import AuditEventType
from ledger_engine.models.ledger import (
    Currency,
    EntryType,
    ImportRowError,
    LedgerEntryDraft,
)
from ledger_engine.services.ledger_entries import LedgerEntryService


def make_drafts(count: int) -> list[LedgerEntryDraft]:
    return [
        LedgerEntryDraft(
            date=date(2026, 1, i),
            description=f"Entry {i}",
            type=EntryType.EXPENSE,
            amount=Decimal(i),
            currency=Currency.USD,
            account_id="acc-checking",
        )
        for i in range(1, count + 1)
    ]


@pytest.fixture
def importer(repository, audit_logger):
    return BatchImporter(LedgerEntryService(repository, audit_logger), audit_logger)


class TestBatchImporter:
    """Tests for BatchImporter.import_drafts."""

    def test_commits_in_order(self, importer, session, repository):
        """Test that entries are committed in draft order."""
        result = asyncio.run(importer.import_drafts(session, make_drafts(4)))

        assert result.imported_count == 4
        assert result.errors == []
        assert [e.description for e in repository.entries] == [
            "Entry 1", "Entry 2", "Entry 3", "Entry 4",
        ]

    def test_balance_reflects_every_commit(self, importer, session, repository):
        """Test the cumulative balance after a batch."""
        asyncio.run(importer.import_drafts(session, make_drafts(4)))
        account = asyncio.run(repository.get_account("acc-checking"))
        assert account.balance(Currency.USD) == Decimal("90")  # 100 - (1+2+3+4)

    def test_progress_after_every_attempt(self, importer, session, repository):
        """Test the progress callback, including failed attempts."""
        repository.reject_entry = lambda draft: draft.description == "Entry 2"
        calls = []

        asyncio.run(importer.import_drafts(
            session, make_drafts(3), on_progress=lambda current, total: calls.append((current, total))
        ))

        assert calls == [(1, 3), (2, 3), (3, 3)]

    def test_commit_failure_uses_draft_position(self, importer, session, repository, audit_storage):
        """Test that a failed commit doesn't stop the batch."""
        repository.reject_entry = lambda draft: draft.description == "Entry 2"

        result = asyncio.run(importer.import_drafts(session, make_drafts(3)))

        assert result.imported_count == 2
        assert len(result.errors) == 1
        assert result.errors[0].row == 2
        assert "Entry 2" in result.errors[0].message
        assert [e.description for e in repository.entries] == ["Entry 1", "Entry 3"]
        failed = [e for e in audit_storage.events if e.event_type == AuditEventType.ENTRY_COMMIT_FAILED]
        assert len(failed) == 1

    def test_validation_errors_come_first(self, importer, session, repository):
        """Test the order of merged errors."""
        repository.reject_entry = lambda draft: draft.description == "Entry 1"
        validation_errors = [ImportRowError(row=4, message="Invalid date")]

        result = asyncio.run(importer.import_drafts(
            session, make_drafts(2), validation_errors=validation_errors
        ))

        assert [(e.row, e.message) for e in result.errors][0] == (4, "Invalid date")
        assert result.errors[1].row == 1
        assert result.imported_count == 1

    def test_balance_failure_counts_as_commit_error(self, importer, session, repository):
        """Test that a balance gap is reported like any commit failure."""
        repository.fail_balance_updates = True

        result = asyncio.run(importer.import_drafts(session, make_drafts(2)))

        assert result.imported_count == 0
        assert [e.row for e in result.errors] == [1, 2]
        # Entries were written even though the balance wasn't
        assert len(repository.entries) == 2

    def test_empty_message_falls_back(self, session, audit_logger):
        """Test the message for exceptions without text."""

        class SilentService:
            async def create(self, session, draft, correlation_id=None):
                raise RuntimeError()

        importer = BatchImporter(SilentService(), audit_logger)
        result = asyncio.run(importer.import_drafts(session, make_drafts(1)))

        assert result.errors[0].message == "Unknown error"

    def test_empty_batch(self, importer, session):
        """Test importing nothing."""
        calls = []
        result = asyncio.run(importer.import_drafts(
            session, [], on_progress=lambda c, t: calls.append((c, t))
        ))
        assert result.imported_count == 0
        assert calls == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
