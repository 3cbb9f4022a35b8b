"""
Column Mapping Detector

Infers which ledger field each column holds from its header text,
using a fixed bilingual (Spanish/English) alias table.

DESIGN DECISION: Detection is a suggestion. The first column that
matches a field wins; the user can remap anything afterwards with
ColumnMapping.assign().
"""

import unicodedata
from typing import Optional

from ledger_engine.models.ledger import (
    REQUIRED_FIELDS,
    ColumnMapping,
    FieldDefaults,
    LedgerField,
)


class MappingIncompleteError(ValueError):
    """Required fields have neither a mapped column nor a default."""

    def __init__(self, fields: list[LedgerField]):
        self.fields = fields
        super().__init__(
            "Map a column or set a default for: " + ", ".join(f.value for f in fields)
        )


# Normalized header text -> field
HEADER_ALIASES: dict[str, LedgerField] = {
    # Date
    "fecha": LedgerField.DATE,
    "date": LedgerField.DATE,
    # Description
    "descripcion": LedgerField.DESCRIPTION,
    "description": LedgerField.DESCRIPTION,
    # Type
    "tipo": LedgerField.TYPE,
    "type": LedgerField.TYPE,
    # Amount
    "monto": LedgerField.AMOUNT,
    "amount": LedgerField.AMOUNT,
    "precio unid.": LedgerField.AMOUNT,
    "precio unid": LedgerField.AMOUNT,
    "precio": LedgerField.AMOUNT,
    "valor": LedgerField.AMOUNT,
    "total compra": LedgerField.AMOUNT,
    # Currency
    "moneda": LedgerField.CURRENCY,
    "currency": LedgerField.CURRENCY,
    # Category
    "categoria": LedgerField.CATEGORY,
    "category": LedgerField.CATEGORY,
    "concepto": LedgerField.CATEGORY,
    # Account
    "cuenta": LedgerField.ACCOUNT,
    "account": LedgerField.ACCOUNT,
    "metodo de pago": LedgerField.ACCOUNT,
    # Merchant
    "comercio": LedgerField.MERCHANT,
    "merchant": LedgerField.MERCHANT,
    "establecimiento": LedgerField.MERCHANT,
    "tienda": LedgerField.MERCHANT,
    "compra en": LedgerField.MERCHANT,
    "lugar": LedgerField.MERCHANT,
    # Notes
    "notas": LedgerField.NOTES,
    "notes": LedgerField.NOTES,
}


def normalize_header(header: str) -> str:
    """Trim, lowercase and strip diacritics ("Categoría" -> "categoria")."""
    decomposed = unicodedata.normalize("NFD", header.strip().lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def lookup_field(header: str) -> Optional[LedgerField]:
    return HEADER_ALIASES.get(normalize_header(header))


def detect_column_mapping(headers: list[str]) -> ColumnMapping:
    """
    Auto-detect a column mapping from header text.

    Fields with no recognizable header stay unmapped.
    """
    assigned: dict[str, int] = {}
    for index, header in enumerate(headers):
        field = lookup_field(header)
        if field is not None and field.value not in assigned:
            assigned[field.value] = index
    return ColumnMapping(**assigned)


def missing_required_fields(
    mapping: ColumnMapping,
    defaults: Optional[FieldDefaults] = None,
) -> list[LedgerField]:
    """
    Required fields with neither a mapped column nor a default.

    The import can't start while this list is non-empty.
    """
    defaults = defaults or FieldDefaults()
    fallback = {
        LedgerField.TYPE: defaults.type,
        LedgerField.CURRENCY: defaults.currency,
        LedgerField.ACCOUNT: defaults.account_id,
    }

    missing = []
    for field in REQUIRED_FIELDS:
        if mapping.get(field) is not None:
            continue
        if fallback.get(field):
            continue
        missing.append(field)
    return missing
