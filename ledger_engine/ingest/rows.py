"""
Row Validator / Batch Processor

Combines the column mapping, per-batch defaults and field coercers to
turn raw rows into validated ledger entry drafts or row-level errors.

DESIGN DECISION: One error per row. Fields are checked in a fixed
order (date, description, type, amount, currency, account, category)
and the first failure rejects the row. A rejected row never produces
a partial draft.

A type or currency cell that is blank or doesn't parse falls back to
the batch default. The account default only applies when no account
column is mapped; a mapped column must name a known account.

Row numbers: data row i (1-based) is reported as row i + 2.
"""

from typing import Optional

from pydantic import ValidationError

from ledger_engine.ingest.coercers import (
    parse_amount,
    parse_currency,
    parse_date,
    parse_entry_type,
)
from ledger_engine.models.ledger import (
    Account,
    Category,
    ColumnMapping,
    FieldDefaults,
    ImportRowError,
    LedgerEntryDraft,
    LedgerField,
    ProcessedRows,
)


# Offset between a 1-based data row index and the reported row number
ROW_NUMBER_OFFSET = 2


class RowRejected(Exception):
    """Internal signal: the current row failed a field check."""
    pass


class RowValidator:
    """
    Validates raw rows against the user's accounts and categories.

    category_overrides maps a lowercased category name to the ID chosen
    during category resolution, or to None for "import uncategorized".
    """

    def __init__(
        self,
        mapping: ColumnMapping,
        accounts: list[Account],
        categories: list[Category],
        defaults: Optional[FieldDefaults] = None,
        category_overrides: Optional[dict[str, Optional[str]]] = None,
    ):
        self._mapping = mapping
        self._defaults = defaults or FieldDefaults()
        self._accounts = {a.name.strip().lower(): a.id for a in accounts}
        self._categories = {c.name.strip().lower(): c.id for c in categories}
        self._overrides = {
            name.strip().lower(): category_id
            for name, category_id in (category_overrides or {}).items()
        }

    def _cell(self, row: list[str], field: LedgerField) -> str:
        """Trimmed cell for a field, or "" if unmapped or past a ragged row's end."""
        index = self._mapping.get(field)
        if index is None or index >= len(row):
            return ""
        return row[index].strip()

    # -------------------------------------------------------------------------
    # Field resolution
    # -------------------------------------------------------------------------

    def _resolve_date(self, row: list[str]):
        raw = self._cell(row, LedgerField.DATE)
        parsed = parse_date(raw)
        if parsed is None:
            raise RowRejected(f'Invalid date: "{raw}". Use YYYY-MM-DD or D/M/YYYY')
        return parsed

    def _resolve_description(self, row: list[str]) -> str:
        description = self._cell(row, LedgerField.DESCRIPTION)
        if not description:
            raise RowRejected("Description is empty")
        return description

    def _resolve_type(self, row: list[str]):
        raw = self._cell(row, LedgerField.TYPE)
        entry_type = parse_entry_type(raw) if raw else None
        if entry_type is None:
            entry_type = self._defaults.type
        if entry_type is None:
            if raw:
                raise RowRejected(
                    f'Invalid type: "{raw}". Use income, expense or transfer'
                )
            raise RowRejected("Type is missing. Use income, expense or transfer")
        return entry_type

    def _resolve_amount(self, row: list[str]):
        raw = self._cell(row, LedgerField.AMOUNT)
        amount = parse_amount(raw)
        if amount is None or amount <= 0:
            raise RowRejected(f'Invalid amount: "{raw}"')
        return amount

    def _resolve_currency(self, row: list[str]):
        raw = self._cell(row, LedgerField.CURRENCY)
        currency = parse_currency(raw) if raw else None
        if currency is None:
            currency = self._defaults.currency
        if currency is None:
            if raw:
                raise RowRejected(f'Invalid currency: "{raw}". Use USD or COP')
            raise RowRejected("Currency is missing. Use USD or COP")
        return currency

    def _resolve_account(self, row: list[str]) -> str:
        # A mapped account column must name a known account, even when blank
        if self._mapping.get(LedgerField.ACCOUNT) is not None:
            name = self._cell(row, LedgerField.ACCOUNT)
            account_id = self._accounts.get(name.lower())
            if account_id is None:
                raise RowRejected(f'Account not found: "{name}"')
            return account_id
        if self._defaults.account_id:
            return self._defaults.account_id
        raise RowRejected("No account assigned")

    def _resolve_category(self, row: list[str]) -> Optional[str]:
        name = self._cell(row, LedgerField.CATEGORY)
        if not name:
            return None

        key = name.lower()
        if key in self._categories:
            return self._categories[key]
        if key in self._overrides:
            return self._overrides[key]
        raise RowRejected(f'Category not found: "{name}"')

    def _optional_text(self, row: list[str], field: LedgerField) -> Optional[str]:
        return self._cell(row, field) or None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def validate_row(self, row: list[str]) -> LedgerEntryDraft:
        """
        Validate one raw row.

        Raises:
            RowRejected: With a user-facing message on the first failure
        """
        return LedgerEntryDraft(
            date=self._resolve_date(row),
            description=self._resolve_description(row),
            type=self._resolve_type(row),
            amount=self._resolve_amount(row),
            currency=self._resolve_currency(row),
            account_id=self._resolve_account(row),
            category_id=self._resolve_category(row),
            merchant=self._optional_text(row, LedgerField.MERCHANT),
            notes=self._optional_text(row, LedgerField.NOTES),
        )

    def process(self, rows: list[list[str]]) -> ProcessedRows:
        """
        Validate every row, collecting drafts and errors in row order.
        """
        result = ProcessedRows()

        for index, row in enumerate(rows, start=1):
            row_number = index + ROW_NUMBER_OFFSET
            try:
                result.valid.append(self.validate_row(row))
            except RowRejected as e:
                result.errors.append(ImportRowError(row=row_number, message=str(e)))
            except ValidationError as e:
                # Parsed fine but broke a draft constraint (e.g. an overlong description)
                first = e.errors()[0]
                field = ".".join(str(part) for part in first["loc"]) or "row"
                result.errors.append(ImportRowError(
                    row=row_number,
                    message=f"Invalid {field}: {first['msg']}",
                ))

        return result


def process_rows(
    rows: list[list[str]],
    mapping: ColumnMapping,
    accounts: list[Account],
    categories: list[Category],
    defaults: Optional[FieldDefaults] = None,
    category_overrides: Optional[dict[str, Optional[str]]] = None,
) -> ProcessedRows:
    """Convenience wrapper around RowValidator.process()."""
    validator = RowValidator(
        mapping=mapping,
        accounts=accounts,
        categories=categories,
        defaults=defaults,
        category_overrides=category_overrides,
    )
    return validator.process(rows)
