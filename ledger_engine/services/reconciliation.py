"""
Balance Reconciliation

Read-only reporting over accounts and entries:
- totals across accounts per currency
- income/expense statistics over a date range
- drift between a recorded balance and the sum of its entries

IMPORTANT: Nothing here writes. A detected drift is reported and
audited, never corrected; fixing a balance is a human decision.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from ledger_engine.audit import AuditLogger
from ledger_engine.models.ledger import (
    BalanceDrift,
    Currency,
    EntryStats,
    EntryType,
    SessionContext,
)
from ledger_engine.services.storage import LedgerRepository


class BalanceReconciler:
    """Computes balance reports from a ledger repository."""

    def __init__(
        self,
        repository: LedgerRepository,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._repository = repository
        self._audit = audit_logger or AuditLogger()

    async def total_balance(self, session: SessionContext, currency: Currency) -> Decimal:
        """Sum of one currency's balance across all the user's accounts."""
        accounts = await self._repository.list_accounts(session)
        return sum((a.balance(currency) for a in accounts), Decimal("0"))

    async def entry_stats(
        self,
        session: SessionContext,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> EntryStats:
        """
        Income and expense totals per currency.

        Transfers are neither income nor expense and are left out.
        """
        stats = EntryStats()
        entries = await self._repository.list_entries(
            session, date_from=date_from, date_to=date_to
        )
        for entry in entries:
            if entry.type is EntryType.INCOME:
                stats.income[entry.currency] += entry.amount
            elif entry.type is EntryType.EXPENSE:
                stats.expense[entry.currency] += entry.amount
        return stats

    async def expected_balance(
        self,
        session: SessionContext,
        account_id: str,
        currency: Currency,
        opening_balance: Decimal = Decimal("0"),
    ) -> Decimal:
        """Opening balance plus the signed sum of the account's entries."""
        entries = await self._repository.list_entries(
            session, account_id=account_id, currency=currency
        )
        return opening_balance + sum((e.signed_amount for e in entries), Decimal("0"))

    async def find_balance_drift(
        self,
        session: SessionContext,
        opening_balances: Optional[dict[tuple[str, Currency], Decimal]] = None,
    ) -> list[BalanceDrift]:
        """
        Compare every recorded balance with the one implied by entries.

        Args:
            session: Whose accounts to check
            opening_balances: Balance each (account_id, currency) held
                              before its first entry; zero if absent

        Returns:
            One BalanceDrift per mismatching account/currency pair
        """
        opening_balances = opening_balances or {}
        drifts = []

        for account in await self._repository.list_accounts(session):
            for currency in Currency:
                expected = await self.expected_balance(
                    session,
                    account.id,
                    currency,
                    opening_balances.get((account.id, currency), Decimal("0")),
                )
                recorded = account.balance(currency)
                if recorded == expected:
                    continue

                drifts.append(BalanceDrift(
                    account_id=account.id,
                    currency=currency,
                    recorded=recorded,
                    expected=expected,
                ))
                await self._audit.log_balance_drift(
                    account_id=account.id,
                    currency=currency.value,
                    recorded=str(recorded),
                    expected=str(expected),
                )

        return drifts
