"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep the import engine decoupled from storage implementation

The interface is intentionally narrow - plain CRUD on accounts,
categories and ledger entries. Balance arithmetic lives in the
ledger entry service, not here.
"""

from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from typing import Optional
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


class LedgerRepository(ABC):
    """
    Abstract interface for ledger storage operations.

    Any storage implementation (Google Sheets, PostgreSQL, in-memory)
    must implement these methods. User-scoped queries take the
    session explicitly.
    """

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_accounts(self, session: SessionContext) -> list[Account]:
        """List the session user's accounts."""
        pass

    @abstractmethod
    async def get_account(self, account_id: str) -> Optional[Account]:
        """
        Retrieve an account by ID.

        Returns:
            The account if found, None otherwise
        """
        pass

    @abstractmethod
    async def create_account(self, session: SessionContext, account: Account) -> Account:
        """Persist a new account owned by the session user."""
        pass

    @abstractmethod
    async def update_account_balance(
        self,
        account_id: str,
        currency: Currency,
        balance: Decimal,
    ) -> Account:
        """
        Overwrite one currency balance of an account.

        Raises:
            NotFoundError: If the account doesn't exist
            StorageError: If the write fails
        """
        pass

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_categories(
        self,
        session: SessionContext,
        category_type: Optional[CategoryType] = None,
    ) -> list[Category]:
        """List the session user's categories, ordered by name."""
        pass

    @abstractmethod
    async def get_category(self, category_id: str) -> Optional[Category]:
        pass

    @abstractmethod
    async def create_category(
        self,
        session: SessionContext,
        name: str,
        category_type: CategoryType,
    ) -> Category:
        """
        Create a category and return it with its generated ID.

        Raises:
            DuplicateError: If a category with that name already exists
            StorageError: If the write fails
        """
        pass

    # -------------------------------------------------------------------------
    # Ledger entries
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_entry(self, entry_id: str) -> Optional[LedgerEntry]:
        pass

    @abstractmethod
    async def list_entries(
        self,
        session: SessionContext,
        account_id: Optional[str] = None,
        currency: Optional[Currency] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[LedgerEntry]:
        """
        List entries with optional filters, newest first.
        """
        pass

    @abstractmethod
    async def create_entry(
        self,
        session: SessionContext,
        draft: LedgerEntryDraft,
    ) -> LedgerEntry:
        """
        Persist a draft as a ledger entry. Does NOT touch balances.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def update_entry(
        self,
        entry_id: str,
        update: LedgerEntryUpdate,
    ) -> LedgerEntry:
        """
        Apply a partial update to an entry. Does NOT touch balances.

        Raises:
            NotFoundError: If the entry doesn't exist
        """
        pass

    @abstractmethod
    async def delete_entry(self, entry_id: str) -> bool:
        """
        Delete an entry. Does NOT touch balances.

        Returns:
            True if an entry was deleted
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event to the log."""
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events of one import session, chronologically."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
