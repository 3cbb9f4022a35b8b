"""Tests for balance reporting and drift detection."""

import asyncio
from datetime import date
from decimal import Decimal

import pytest

from ledger_engine.models.audit import AuditEventType
from ledger_engine.models.ledger import (
    Currency,
    EntryType,
    LedgerEntryDraft,
)
from ledger_engine.services.ledger_entries import BalanceUpdateError, LedgerEntryService
from ledger_engine.services.reconciliation import BalanceReconciler


def draft(entry_type, amount, currency=Currency.USD, day=date(2026, 2, 1)):
    return LedgerEntryDraft(
        date=day,
        description="x",
        type=entry_type,
        amount=Decimal(amount),
        currency=currency,
        account_id="acc-checking",
    )


@pytest.fixture
def reconciler(repository, audit_logger):
    return BalanceReconciler(repository, audit_logger)


@pytest.fixture
def service(repository, audit_logger):
    return LedgerEntryService(repository, audit_logger)


class TestTotals:
    """Tests for totals and stats."""

    def test_total_balance_across_accounts(self, reconciler, session):
        """Test summing one currency over every account."""
        assert asyncio.run(reconciler.total_balance(session, Currency.COP)) == Decimal("50000")
        assert asyncio.run(reconciler.total_balance(session, Currency.USD)) == Decimal("100")

    def test_entry_stats_skip_transfers(self, reconciler, service, session):
        """Test that transfers are neither income nor expense."""
        asyncio.run(service.create(session, draft(EntryType.INCOME, "500")))
        asyncio.run(service.create(session, draft(EntryType.EXPENSE, "120")))
        asyncio.run(service.create(session, draft(EntryType.TRANSFER, "50")))
        asyncio.run(service.create(session, draft(EntryType.EXPENSE, "7000", Currency.COP)))

        stats = asyncio.run(reconciler.entry_stats(session))

        assert stats.income[Currency.USD] == Decimal("500")
        assert stats.expense[Currency.USD] == Decimal("120")
        assert stats.net(Currency.USD) == Decimal("380")
        assert stats.expense[Currency.COP] == Decimal("7000")

    def test_entry_stats_date_range(self, reconciler, service, session):
        """Test that the range bounds are inclusive."""
        asyncio.run(service.create(session, draft(EntryType.EXPENSE, "1", day=date(2026, 1, 31))))
        asyncio.run(service.create(session, draft(EntryType.EXPENSE, "2", day=date(2026, 2, 1))))
        asyncio.run(service.create(session, draft(EntryType.EXPENSE, "4", day=date(2026, 2, 28))))

        stats = asyncio.run(reconciler.entry_stats(
            session, date_from=date(2026, 2, 1), date_to=date(2026, 2, 28)
        ))

        assert stats.expense[Currency.USD] == Decimal("6")


class TestBalanceDrift:
    """Tests for find_balance_drift."""

    def test_no_drift_after_service_writes(self, reconciler, service, session):
        """Test that service-maintained balances match their entries."""
        asyncio.run(service.create(session, draft(EntryType.INCOME, "30")))
        asyncio.run(service.create(session, draft(EntryType.EXPENSE, "5")))

        drifts = asyncio.run(reconciler.find_balance_drift(
            session,
            opening_balances={
                ("acc-checking", Currency.USD): Decimal("100"),
                ("acc-checking", Currency.COP): Decimal("50000"),
            },
        ))

        assert drifts == []

    def test_drift_after_failed_balance_write(
        self, reconciler, service, session, repository, audit_storage
    ):
        """Test that a balance gap is reported and not corrected."""
        repository.fail_balance_updates = True
        with pytest.raises(BalanceUpdateError):
            asyncio.run(service.create(session, draft(EntryType.EXPENSE, "25")))
        repository.fail_balance_updates = False

        drifts = asyncio.run(reconciler.find_balance_drift(
            session,
            opening_balances={
                ("acc-checking", Currency.USD): Decimal("100"),
                ("acc-checking", Currency.COP): Decimal("50000"),
            },
        ))

        assert len(drifts) == 1
        assert drifts[0].account_id == "acc-checking"
        assert drifts[0].currency == Currency.USD
        assert drifts[0].recorded == Decimal("100")
        assert drifts[0].expected == Decimal("75")
        assert drifts[0].drift == Decimal("25")

        # Report only
        account = asyncio.run(repository.get_account("acc-checking"))
        assert account.balance(Currency.USD) == Decimal("100")
        assert audit_storage.events[-1].event_type == AuditEventType.BALANCE_DRIFT_DETECTED

    def test_missing_opening_balance_counts_as_zero(self, reconciler, session):
        """Test that seeded balances without an opening value show as drift."""
        drifts = asyncio.run(reconciler.find_balance_drift(session))
        assert {(d.account_id, d.currency) for d in drifts} == {
            ("acc-checking", Currency.USD),
            ("acc-checking", Currency.COP),
        }


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
