"""
Core Data Models for Ledger Engine

These models define the strict schemas for all data flowing through the
import pipeline and the ledger entry service. They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging
4. Support the audit trail

DESIGN DECISION: Amounts are Decimal magnitudes, always positive.
The sign of a ledger entry's effect on a balance comes from its type,
never from the amount itself.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


# Alias so fields named "date" do not shadow the type
DateType = date


def new_id() -> str:
    """Generate an opaque identifier for a stored entity."""
    return str(uuid4())


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class EntryType(str, Enum):
    """
    Ledger entry type.

    Income adds to the account balance, expense and transfer subtract.
    """
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"

    @property
    def sign(self) -> int:
        """Direction of this type's effect on a balance."""
        return 1 if self is EntryType.INCOME else -1


class Currency(str, Enum):
    """
    Supported currencies.

    DESIGN DECISION: Exactly two currencies. Every account carries
    one balance per currency, even if it is zero.
    """
    USD = "USD"
    COP = "COP"


class CategoryType(str, Enum):
    """Category type."""
    INCOME = "income"
    EXPENSE = "expense"


class LedgerField(str, Enum):
    """The nine fields a file column can be mapped to."""
    DATE = "date"
    DESCRIPTION = "description"
    TYPE = "type"
    AMOUNT = "amount"
    CURRENCY = "currency"
    CATEGORY = "category"
    ACCOUNT = "account"
    MERCHANT = "merchant"
    NOTES = "notes"


# Fields every row must resolve (from a column or a default)
REQUIRED_FIELDS = (
    LedgerField.DATE,
    LedgerField.DESCRIPTION,
    LedgerField.TYPE,
    LedgerField.AMOUNT,
    LedgerField.CURRENCY,
    LedgerField.ACCOUNT,
)


class ResolutionAction(str, Enum):
    """What to do with a category name that doesn't exist yet."""
    EXISTING = "existing"  # Bind to a known category
    CREATE = "create"      # Create a new category
    SKIP = "skip"          # Import rows uncategorized


# =============================================================================
# SESSION
# =============================================================================

class SessionContext(BaseModel):
    """
    Explicit session passed into every entry point.

    Replaces ambient "current user" state.
    """
    model_config = ConfigDict(frozen=True)

    user_id: str = Field(
        ...,
        min_length=1,
        description="Owner of every entity created during this session"
    )


# =============================================================================
# LONG-LIVED ENTITIES
# =============================================================================

class Account(BaseModel):
    """
    An account holding one balance per supported currency.

    The balance map always contains every Currency key.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    user_id: Optional[str] = None
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Account name, matched case-insensitively on import"
    )
    balances: dict[Currency, Decimal] = Field(
        default_factory=dict,
        validate_default=True,
        description="Signed balance per currency"
    )

    @field_validator('balances')
    @classmethod
    def fill_all_currencies(cls, v: dict[Currency, Decimal]) -> dict[Currency, Decimal]:
        """Ensure exactly the supported currency keys are present."""
        return {currency: Decimal(v.get(currency, Decimal("0"))) for currency in Currency}

    def balance(self, currency: Currency) -> Decimal:
        return self.balances[currency]


class Category(BaseModel):
    """A user category. Names are unique per user, case-insensitively."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    user_id: Optional[str] = None
    name: str = Field(..., min_length=1, max_length=100)
    type: CategoryType


# =============================================================================
# LEDGER ENTRIES
# =============================================================================

class LedgerEntryDraft(BaseModel):
    """
    A validated, not-yet-committed ledger entry.

    Produced by the row validator, consumed by the batch importer.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    date: DateType
    description: str = Field(..., min_length=1, max_length=500)
    type: EntryType
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Positive magnitude; sign comes from type"
    )
    currency: Currency
    account_id: str = Field(..., min_length=1)
    category_id: Optional[str] = None
    merchant: Optional[str] = None
    notes: Optional[str] = None

    @property
    def signed_amount(self) -> Decimal:
        """This entry's contribution to its account balance."""
        return self.amount * self.type.sign


class LedgerEntry(LedgerEntryDraft):
    """A persisted ledger entry."""

    id: str = Field(default_factory=new_id)
    user_id: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class LedgerEntryUpdate(BaseModel):
    """
    Partial update for a ledger entry.

    Only fields explicitly set are applied; everything else falls back
    to the original entry. category_id, merchant and notes may be
    explicitly cleared with None, the required fields may not.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    date: Optional[DateType] = None
    description: Optional[str] = Field(default=None, min_length=1, max_length=500)
    type: Optional[EntryType] = None
    amount: Optional[Decimal] = Field(default=None, gt=0)
    currency: Optional[Currency] = None
    account_id: Optional[str] = Field(default=None, min_length=1)
    category_id: Optional[str] = None
    merchant: Optional[str] = None
    notes: Optional[str] = None

    @model_validator(mode='after')
    def reject_cleared_required_fields(self) -> 'LedgerEntryUpdate':
        for name in ("date", "description", "type", "amount", "currency", "account_id"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be cleared")
        return self

    def changes(self) -> dict:
        """The explicitly set fields."""
        return self.model_dump(exclude_unset=True)

    def apply_to(self, entry: LedgerEntry) -> LedgerEntry:
        """Return a copy of entry with this update applied."""
        return entry.model_copy(
            update={**self.changes(), "updated_at": datetime.utcnow()}
        )


# =============================================================================
# IMPORT SESSION MODELS
# =============================================================================

class ParsedFile(BaseModel):
    """Output of the delimited text parser."""

    headers: list[str] = Field(default_factory=list)
    rows: list[list[str]] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.headers


class ColumnMapping(BaseModel):
    """
    Which column (if any) feeds each of the nine ledger fields.

    CRITICAL: Two fields may never share a column index.
    Use assign() to change a mapping; it unmaps any field that
    previously held the column.
    """

    date: Optional[int] = Field(default=None, ge=0)
    description: Optional[int] = Field(default=None, ge=0)
    type: Optional[int] = Field(default=None, ge=0)
    amount: Optional[int] = Field(default=None, ge=0)
    currency: Optional[int] = Field(default=None, ge=0)
    category: Optional[int] = Field(default=None, ge=0)
    account: Optional[int] = Field(default=None, ge=0)
    merchant: Optional[int] = Field(default=None, ge=0)
    notes: Optional[int] = Field(default=None, ge=0)

    @model_validator(mode='after')
    def validate_unique_columns(self) -> 'ColumnMapping':
        seen: dict[int, str] = {}
        for field in LedgerField:
            index = getattr(self, field.value)
            if index is None:
                continue
            if index in seen:
                raise ValueError(
                    f"Column {index} is mapped to both {seen[index]} and {field.value}"
                )
            seen[index] = field.value
        return self

    def get(self, field: LedgerField) -> Optional[int]:
        return getattr(self, LedgerField(field).value)

    def field_for_column(self, index: int) -> Optional[LedgerField]:
        """Reverse lookup: which field reads this column."""
        for field in LedgerField:
            if getattr(self, field.value) == index:
                return field
        return None

    def assign(self, field: LedgerField, index: Optional[int]) -> 'ColumnMapping':
        """
        Manually map a field to a column (or unmap it with None).

        Returns a new mapping. Any other field using the same
        column is unmapped.
        """
        field = LedgerField(field)
        values = {f.value: getattr(self, f.value) for f in LedgerField}
        if index is not None:
            for name, current in values.items():
                if current == index and name != field.value:
                    values[name] = None
        values[field.value] = index
        return ColumnMapping(**values)


class FieldDefaults(BaseModel):
    """Fallback values used when a field has no mapped column."""

    type: Optional[EntryType] = None
    currency: Optional[Currency] = None
    account_id: Optional[str] = None


class ImportRowError(BaseModel):
    """
    A single row-level failure.

    Validation errors number rows as file rows; commit errors number
    them by draft position.
    """

    row: int = Field(..., ge=1)
    message: str


class ImportResult(BaseModel):
    """Outcome of an import, returned to the caller."""
    model_config = ConfigDict(populate_by_name=True)

    imported_count: int = Field(
        default=0,
        ge=0,
        serialization_alias="importedCount",
    )
    errors: list[ImportRowError] = Field(default_factory=list)

    @property
    def error_count(self) -> int:
        return len(self.errors)


class ProcessedRows(BaseModel):
    """Row validator output: drafts ready to commit and rejected rows."""

    valid: list[LedgerEntryDraft] = Field(default_factory=list)
    errors: list[ImportRowError] = Field(default_factory=list)


class CategoryResolution(BaseModel):
    """
    The user's decision for one unknown category name.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    action: ResolutionAction
    category_id: Optional[str] = None   # for EXISTING
    new_name: Optional[str] = None      # for CREATE
    new_type: CategoryType = CategoryType.EXPENSE  # for CREATE

    @property
    def is_complete(self) -> bool:
        if self.action is ResolutionAction.EXISTING:
            return bool(self.category_id)
        if self.action is ResolutionAction.CREATE:
            return bool(self.new_name and self.new_name.strip())
        return True


# =============================================================================
# REPORTING MODELS
# =============================================================================

class BalanceDrift(BaseModel):
    """
    Difference between a recorded balance and the balance implied by
    the account's entries.
    """

    account_id: str
    currency: Currency
    recorded: Decimal
    expected: Decimal

    @property
    def drift(self) -> Decimal:
        return self.recorded - self.expected


class EntryStats(BaseModel):
    """Income and expense totals per currency over a period."""

    income: dict[Currency, Decimal] = Field(
        default_factory=lambda: {c: Decimal("0") for c in Currency}
    )
    expense: dict[Currency, Decimal] = Field(
        default_factory=lambda: {c: Decimal("0") for c in Currency}
    )

    def net(self, currency: Currency) -> Decimal:
        return self.income[currency] - self.expense[currency]
