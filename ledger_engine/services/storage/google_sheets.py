"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the default remote store because:
1. Users can inspect their ledger directly in Sheets
2. No database setup required
3. Easy to export/migrate later

TRADEOFFS:
- No transactions: an entry row and its balance cell are separate writes
- Limited query capabilities (we filter in Python)
- Every read fetches the whole worksheet

The implementation follows the abstract interface, so we can swap
to PostgreSQL/SQLite later without changing the import engine.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
from gspread.utils import rowcol_to_a1
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from ledger_engine.config import get_settings
from ledger_engine.models.audit import AuditEvent, AuditEventType, AuditSeverity
from ledger_engine.models.ledger import (
    Account,
    Category,
    CategoryType,
    Currency,
    EntryType,
    LedgerEntry,
    LedgerEntryDraft,
    LedgerEntryUpdate,
    SessionContext,
)
from ledger_engine.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    LedgerRepository,
    NotFoundError,
    StorageError,
)


ACCOUNT_COLUMNS = [
    "id",
    "user_id",
    "name",
    "balance_usd",
    "balance_cop",
]

# 1-based sheet column holding each currency's balance
BALANCE_COLUMN = {
    Currency.USD: ACCOUNT_COLUMNS.index("balance_usd") + 1,
    Currency.COP: ACCOUNT_COLUMNS.index("balance_cop") + 1,
}

CATEGORY_COLUMNS = [
    "id",
    "user_id",
    "name",
    "type",
]

ENTRY_COLUMNS = [
    "id",
    "user_id",
    "created_at",
    "updated_at",
    "date",
    "description",
    "type",
    "amount",
    "currency",
    "account_id",
    "category_id",
    "merchant",
    "notes",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


def _safe_getter(row: list):
    """Build an index accessor that tolerates short rows."""
    def safe_get(index: int, default: str = "") -> str:
        try:
            return row[index] if row[index] else default
        except IndexError:
            return default
    return safe_get


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int = 1000,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_accounts_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(self._settings.accounts_sheet_name, ACCOUNT_COLUMNS)

    def get_categories_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(self._settings.categories_sheet_name, CATEGORY_COLUMNS)

    def get_entries_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(
            self._settings.entries_sheet_name, ENTRY_COLUMNS, rows=5000
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


class GoogleSheetsLedgerRepository(LedgerRepository):
    """
    Google Sheets implementation of the ledger repository.

    One worksheet per entity, one entity per row. The balance of each
    currency lives in its own column of the Accounts sheet.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    # -------------------------------------------------------------------------
    # Row conversion
    # -------------------------------------------------------------------------

    @staticmethod
    def _account_to_row(account: Account) -> list:
        return [
            account.id,
            account.user_id or "",
            account.name,
            str(account.balances[Currency.USD]),
            str(account.balances[Currency.COP]),
        ]

    @staticmethod
    def _row_to_account(row: list) -> Account:
        safe_get = _safe_getter(row)
        return Account(
            id=safe_get(0),
            user_id=safe_get(1) or None,
            name=safe_get(2),
            balances={
                Currency.USD: Decimal(safe_get(3, "0")),
                Currency.COP: Decimal(safe_get(4, "0")),
            },
        )

    @staticmethod
    def _category_to_row(category: Category) -> list:
        return [
            category.id,
            category.user_id or "",
            category.name,
            category.type.value,
        ]

    @staticmethod
    def _row_to_category(row: list) -> Category:
        safe_get = _safe_getter(row)
        return Category(
            id=safe_get(0),
            user_id=safe_get(1) or None,
            name=safe_get(2),
            type=CategoryType(safe_get(3)),
        )

    @staticmethod
    def _entry_to_row(entry: LedgerEntry) -> list:
        return [
            entry.id,
            entry.user_id or "",
            entry.created_at.isoformat(),
            entry.updated_at.isoformat(),
            entry.date.isoformat(),
            entry.description,
            entry.type.value,
            str(entry.amount),
            entry.currency.value,
            entry.account_id,
            entry.category_id or "",
            entry.merchant or "",
            entry.notes or "",
        ]

    @staticmethod
    def _row_to_entry(row: list) -> LedgerEntry:
        safe_get = _safe_getter(row)
        return LedgerEntry(
            id=safe_get(0),
            user_id=safe_get(1) or None,
            created_at=datetime.fromisoformat(safe_get(2)),
            updated_at=datetime.fromisoformat(safe_get(3)),
            date=date.fromisoformat(safe_get(4)),
            description=safe_get(5),
            type=EntryType(safe_get(6)),
            amount=Decimal(safe_get(7)),
            currency=Currency(safe_get(8)),
            account_id=safe_get(9),
            category_id=safe_get(10) or None,
            merchant=safe_get(11) or None,
            notes=safe_get(12) or None,
        )

    @staticmethod
    def _find_row(all_rows: list[list], entity_id: str) -> Optional[int]:
        """1-based sheet row index of an entity (row 1 is the header)."""
        for idx, row in enumerate(all_rows[1:], start=2):
            if row and row[0] == entity_id:
                return idx
        return None

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    async def list_accounts(self, session: SessionContext) -> list[Account]:
        try:
            all_rows = self._client.get_accounts_sheet().get_all_values()[1:]
            return [
                self._row_to_account(row)
                for row in all_rows
                if row and row[0] and (len(row) < 2 or row[1] in ("", session.user_id))
            ]
        except Exception as e:
            raise StorageError(f"Failed to list accounts: {e}")

    async def get_account(self, account_id: str) -> Optional[Account]:
        try:
            all_rows = self._client.get_accounts_sheet().get_all_values()[1:]
            for row in all_rows:
                if row and row[0] == account_id:
                    return self._row_to_account(row)
            return None
        except Exception as e:
            raise StorageError(f"Failed to get account: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def create_account(self, session: SessionContext, account: Account) -> Account:
        stored = account.model_copy(update={"user_id": session.user_id}, deep=True)
        try:
            sheet = self._client.get_accounts_sheet()
            sheet.append_row(self._account_to_row(stored), value_input_option="RAW")
            return stored
        except Exception as e:
            raise StorageError(f"Failed to save account: {e}")

    async def update_account_balance(
        self,
        account_id: str,
        currency: Currency,
        balance: Decimal,
    ) -> Account:
        try:
            sheet = self._client.get_accounts_sheet()
            all_rows = sheet.get_all_values()
            idx = self._find_row(all_rows, account_id)
            if idx is None:
                raise NotFoundError(f"Account not found: {account_id}")

            sheet.update(
                range_name=rowcol_to_a1(idx, BALANCE_COLUMN[currency]),
                values=[[str(balance)]],
                value_input_option="RAW",
            )

            account = self._row_to_account(all_rows[idx - 1])
            account.balances[currency] = balance
            return account
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update account balance: {e}")

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    async def list_categories(
        self,
        session: SessionContext,
        category_type: Optional[CategoryType] = None,
    ) -> list[Category]:
        try:
            all_rows = self._client.get_categories_sheet().get_all_values()[1:]

            categories = []
            for row in all_rows:
                if not row or not row[0]:  # Skip empty rows
                    continue
                try:
                    category = self._row_to_category(row)
                except Exception:
                    continue  # Skip malformed rows
                if category.user_id not in (None, session.user_id):
                    continue
                if category_type and category.type != category_type:
                    continue
                categories.append(category)

            categories.sort(key=lambda c: c.name.lower())
            return categories
        except Exception as e:
            raise StorageError(f"Failed to list categories: {e}")

    async def get_category(self, category_id: str) -> Optional[Category]:
        try:
            all_rows = self._client.get_categories_sheet().get_all_values()[1:]
            for row in all_rows:
                if row and row[0] == category_id:
                    return self._row_to_category(row)
            return None
        except Exception as e:
            raise StorageError(f"Failed to get category: {e}")

    async def create_category(
        self,
        session: SessionContext,
        name: str,
        category_type: CategoryType,
    ) -> Category:
        existing = await self.list_categories(session)
        if any(c.name.lower() == name.strip().lower() for c in existing):
            raise DuplicateError(f"Category already exists: {name}")

        category = Category(user_id=session.user_id, name=name, type=category_type)
        try:
            sheet = self._client.get_categories_sheet()
            sheet.append_row(self._category_to_row(category), value_input_option="RAW")
            return category
        except Exception as e:
            raise StorageError(f"Failed to save category: {e}")

    # -------------------------------------------------------------------------
    # Ledger entries
    # -------------------------------------------------------------------------

    async def get_entry(self, entry_id: str) -> Optional[LedgerEntry]:
        try:
            all_rows = self._client.get_entries_sheet().get_all_values()[1:]
            for row in all_rows:
                if row and row[0] == entry_id:
                    return self._row_to_entry(row)
            return None
        except Exception as e:
            raise StorageError(f"Failed to get entry: {e}")

    async def list_entries(
        self,
        session: SessionContext,
        account_id: Optional[str] = None,
        currency: Optional[Currency] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[LedgerEntry]:
        try:
            all_rows = self._client.get_entries_sheet().get_all_values()[1:]

            entries = []
            for row in all_rows:
                if not row or not row[0]:
                    continue
                try:
                    entry = self._row_to_entry(row)
                except Exception:
                    continue
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
                entries.append(entry)

            # Sort by date descending (newest first)
            entries.sort(key=lambda e: e.date, reverse=True)
            return entries
        except Exception as e:
            raise StorageError(f"Failed to list entries: {e}")

    async def create_entry(
        self,
        session: SessionContext,
        draft: LedgerEntryDraft,
    ) -> LedgerEntry:
        # No retry here: a retried append after a lost response would
        # duplicate the entry and its balance delta
        entry = LedgerEntry(**draft.model_dump(), user_id=session.user_id)
        try:
            sheet = self._client.get_entries_sheet()
            sheet.append_row(self._entry_to_row(entry), value_input_option="RAW")
            return entry
        except Exception as e:
            raise StorageError(f"Failed to save entry: {e}")

    async def update_entry(
        self,
        entry_id: str,
        update: LedgerEntryUpdate,
    ) -> LedgerEntry:
        try:
            sheet = self._client.get_entries_sheet()
            all_rows = sheet.get_all_values()
            idx = self._find_row(all_rows, entry_id)
            if idx is None:
                raise NotFoundError(f"Entry not found: {entry_id}")

            updated = update.apply_to(self._row_to_entry(all_rows[idx - 1]))
            new_row = self._entry_to_row(updated)
            sheet.update(
                range_name=f"A{idx}:{rowcol_to_a1(idx, len(new_row))}",
                values=[new_row],
                value_input_option="RAW",
            )
            return updated
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update entry: {e}")

    async def delete_entry(self, entry_id: str) -> bool:
        try:
            sheet = self._client.get_entries_sheet()
            idx = self._find_row(sheet.get_all_values(), entry_id)
            if idx is None:
                return False
            sheet.delete_rows(idx)
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete entry: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @staticmethod
    def _row_to_event(row: list) -> AuditEvent:
        safe_get = _safe_getter(row)
        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=safe_get(5) or None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
            is_user_action=safe_get(10).lower() == "true",
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        try:
            all_rows = self._client.get_audit_sheet().get_all_values()[1:]

            events = []
            for row in all_rows:
                if row and len(row) > 6 and row[6] == str(correlation_id):
                    try:
                        events.append(self._row_to_event(row))
                    except Exception:
                        continue

            # Sort chronologically
            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
