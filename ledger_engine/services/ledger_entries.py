"""
Ledger Entry Service

Creates, updates and deletes ledger entries and keeps every account
balance equal to the signed sum of its entries.

BALANCE RULES:
- income adds its amount to the account balance in its currency
- expense and transfer subtract it
- update reverses the original effect, then applies the new one
- delete reverses the original effect

WARNING: The balance step is a read-modify-write that runs AFTER the
entry record is written. There is no transaction and no rollback. If
the balance write fails, the entry stays persisted, BalanceUpdateError
is raised with its ID and the gap is recorded in the audit log so it
can be reconciled by hand.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from ledger_engine.audit import AuditLogger
from ledger_engine.models.ledger import (
    Currency,
    LedgerEntry,
    LedgerEntryDraft,
    LedgerEntryUpdate,
    SessionContext,
)
from ledger_engine.services.storage import (
    LedgerRepository,
    NotFoundError,
    StorageError,
)


class BalanceUpdateError(StorageError):
    """The entry was written but its balance adjustment failed."""

    def __init__(self, entry_id: str, account_id: str, message: str):
        self.entry_id = entry_id
        self.account_id = account_id
        super().__init__(
            f"Balance of account {account_id} not updated for entry {entry_id}: {message}"
        )


class LedgerEntryService:
    """
    Entry mutations with compensating balance updates.

    Every call is awaited to completion before the next one starts;
    there is no locking between concurrent callers.
    """

    def __init__(
        self,
        repository: LedgerRepository,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._repository = repository
        self._audit = audit_logger or AuditLogger()

    async def _apply_delta(
        self,
        account_id: str,
        currency: Currency,
        delta: Decimal,
        entry_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Read the current balance, add delta and write it back."""
        try:
            account = await self._repository.get_account(account_id)
            if account is None:
                raise NotFoundError(f"Account not found: {account_id}")

            new_balance = account.balance(currency) + delta
            await self._repository.update_account_balance(account_id, currency, new_balance)
        except StorageError as e:
            await self._audit.log_balance_update_failed(
                account_id=account_id,
                entry_id=entry_id,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise BalanceUpdateError(entry_id, account_id, str(e)) from e

        await self._audit.log_balance_adjusted(
            account_id=account_id,
            currency=currency.value,
            delta=str(delta),
            new_balance=str(new_balance),
            correlation_id=correlation_id,
        )

    async def _get_owned(self, session: SessionContext, entry_id: str) -> LedgerEntry:
        entry = await self._repository.get_entry(entry_id)
        if entry is None or entry.user_id not in (None, session.user_id):
            raise NotFoundError(f"Entry not found: {entry_id}")
        return entry

    async def create(
        self,
        session: SessionContext,
        draft: LedgerEntryDraft,
        correlation_id: Optional[UUID] = None,
    ) -> LedgerEntry:
        """
        Persist a new entry, then apply its effect to the account balance.

        Raises:
            StorageError: If the entry can't be written (nothing changed)
            BalanceUpdateError: If the entry was written but the balance wasn't
        """
        entry = await self._repository.create_entry(session, draft)

        await self._audit.log_entry_created(
            entry_id=entry.id,
            entry_type=entry.type.value,
            currency=entry.currency.value,
            amount=str(entry.amount),
            correlation_id=correlation_id,
        )

        await self._apply_delta(
            entry.account_id,
            entry.currency,
            entry.signed_amount,
            entry.id,
            correlation_id,
        )
        return entry

    async def update(
        self,
        session: SessionContext,
        entry_id: str,
        update: LedgerEntryUpdate,
    ) -> LedgerEntry:
        """
        Update an entry and move its balance effect.

        The original effect is reversed on the original account and
        currency, then the new effect is applied using the updated
        fields with unset ones falling back to the original values.
        A change of account or currency moves the effect across.
        """
        original = await self._get_owned(session, entry_id)
        updated = await self._repository.update_entry(entry_id, update)

        await self._audit.log_entry_updated(entry_id, update.changes())

        await self._apply_delta(
            original.account_id,
            original.currency,
            -original.signed_amount,
            entry_id,
        )
        effective = update.apply_to(original)
        await self._apply_delta(
            effective.account_id,
            effective.currency,
            effective.signed_amount,
            entry_id,
        )
        return updated

    async def delete(self, session: SessionContext, entry_id: str) -> None:
        """
        Delete an entry and reverse its balance effect.

        Raises:
            NotFoundError: If the entry doesn't exist for this user
        """
        entry = await self._get_owned(session, entry_id)
        if not await self._repository.delete_entry(entry_id):
            raise NotFoundError(f"Entry not found: {entry_id}")

        await self._audit.log_entry_deleted(entry_id)

        await self._apply_delta(
            entry.account_id,
            entry.currency,
            -entry.signed_amount,
            entry_id,
        )
