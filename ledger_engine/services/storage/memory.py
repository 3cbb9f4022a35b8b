"""
In-Memory Storage Implementation

Dict-backed implementation of the storage interfaces. Used by the
test suite and for local dry runs without a spreadsheet.

Failure hooks let callers simulate a store that rejects individual
writes, which is how partial-failure behaviour is exercised.
"""

from datetime import date
from decimal import Decimal
from typing import Callable, Optional
from uuid import UUID

from ledger_engine.models.audit import AuditEvent
from ledger_engine.models.ledger import (
    Account,
    Category,
    CategoryType,
    Currency,
    LedgerEntry,
    LedgerEntryDraft,
    LedgerEntryUpdate,
    SessionContext,
)
from ledger_engine.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    LedgerRepository,
    NotFoundError,
    StorageError,
)


class InMemoryLedgerRepository(LedgerRepository):
    """
    In-memory ledger store.

    Entities are kept in insertion order and copied on the way in
    and out so callers can't mutate stored state by accident.
    """

    def __init__(self):
        self._accounts: dict[str, Account] = {}
        self._categories: dict[str, Category] = {}
        self._entries: dict[str, LedgerEntry] = {}

        # Failure hooks
        self.reject_entry: Optional[Callable[[LedgerEntryDraft], bool]] = None
        self.fail_category_creation: bool = False
        self.fail_balance_updates: bool = False

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    async def list_accounts(self, session: SessionContext) -> list[Account]:
        return [
            a.model_copy(deep=True)
            for a in self._accounts.values()
            if a.user_id in (None, session.user_id)
        ]

    async def get_account(self, account_id: str) -> Optional[Account]:
        account = self._accounts.get(account_id)
        return account.model_copy(deep=True) if account else None

    async def create_account(self, session: SessionContext, account: Account) -> Account:
        if account.id in self._accounts:
            raise DuplicateError(f"Account already exists: {account.id}")
        stored = account.model_copy(update={"user_id": session.user_id}, deep=True)
        self._accounts[stored.id] = stored
        return stored.model_copy(deep=True)

    async def update_account_balance(
        self,
        account_id: str,
        currency: Currency,
        balance: Decimal,
    ) -> Account:
        if self.fail_balance_updates:
            raise StorageError(f"Failed to update balance of account {account_id}")
        account = self._accounts.get(account_id)
        if account is None:
            raise NotFoundError(f"Account not found: {account_id}")
        account.balances[currency] = balance
        return account.model_copy(deep=True)

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    async def list_categories(
        self,
        session: SessionContext,
        category_type: Optional[CategoryType] = None,
    ) -> list[Category]:
        categories = [
            c.model_copy()
            for c in self._categories.values()
            if c.user_id in (None, session.user_id)
            and (category_type is None or c.type == category_type)
        ]
        return sorted(categories, key=lambda c: c.name.lower())

    async def get_category(self, category_id: str) -> Optional[Category]:
        category = self._categories.get(category_id)
        return category.model_copy() if category else None

    async def create_category(
        self,
        session: SessionContext,
        name: str,
        category_type: CategoryType,
    ) -> Category:
        if self.fail_category_creation:
            raise StorageError(f"Failed to create category: {name}")
        for existing in self._categories.values():
            if (
                existing.user_id in (None, session.user_id)
                and existing.name.lower() == name.strip().lower()
            ):
                raise DuplicateError(f"Category already exists: {name}")
        category = Category(user_id=session.user_id, name=name, type=category_type)
        self._categories[category.id] = category
        return category.model_copy()

    def add_category(self, category: Category) -> Category:
        """Seed a category directly (test/setup helper)."""
        self._categories[category.id] = category.model_copy()
        return category

    def add_account(self, account: Account) -> Account:
        """Seed an account directly (test/setup helper)."""
        self._accounts[account.id] = account.model_copy(deep=True)
        return account

    # -------------------------------------------------------------------------
    # Ledger entries
    # -------------------------------------------------------------------------

    async def get_entry(self, entry_id: str) -> Optional[LedgerEntry]:
        entry = self._entries.get(entry_id)
        return entry.model_copy() if entry else None

    async def list_entries(
        self,
        session: SessionContext,
        account_id: Optional[str] = None,
        currency: Optional[Currency] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[LedgerEntry]:
        entries = []
        for entry in self._entries.values():
            if entry.user_id not in (None, session.user_id):
                continue
            if account_id and entry.account_id != account_id:
                continue
            if currency and entry.currency != currency:
                continue
            if date_from and entry.date < date_from:
                continue
            if date_to and entry.date > date_to:
                continue
            entries.append(entry.model_copy())

        # Newest first
        entries.sort(key=lambda e: e.date, reverse=True)
        return entries

    async def create_entry(
        self,
        session: SessionContext,
        draft: LedgerEntryDraft,
    ) -> LedgerEntry:
        if self.reject_entry is not None and self.reject_entry(draft):
            raise StorageError(f"Store rejected entry: {draft.description}")
        entry = LedgerEntry(**draft.model_dump(), user_id=session.user_id)
        self._entries[entry.id] = entry
        return entry.model_copy()

    async def update_entry(
        self,
        entry_id: str,
        update: LedgerEntryUpdate,
    ) -> LedgerEntry:
        entry = self._entries.get(entry_id)
        if entry is None:
            raise NotFoundError(f"Entry not found: {entry_id}")
        updated = update.apply_to(entry)
        self._entries[entry_id] = updated
        return updated.model_copy()

    async def delete_entry(self, entry_id: str) -> bool:
        return self._entries.pop(entry_id, None) is not None

    @property
    def entries(self) -> list[LedgerEntry]:
        """All stored entries in commit order."""
        return list(self._entries.values())


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only in-memory audit log."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)
