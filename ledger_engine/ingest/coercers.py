"""
Field Coercers

Pure functions turning a raw cell string into a typed value.
Every coercer returns None on failure instead of raising, so the
row validator can turn failures into row-level errors.

AMOUNT DISAMBIGUATION:
Files come from both "1,234.56" and "1.234,56" locales. The decimal
separator is decided per value:
- both "." and "," present: the rightmost one is the decimal separator
- only ",": decimal if exactly two digits follow the last comma,
  otherwise thousands ("3,50" -> 3.50, "1,000" -> 1000)
- only ".": two or more dots are thousands ("1.000.000"),
  a single dot is a decimal point ("3.50")

IMPORTANT: Amounts come back as positive magnitudes. Rejecting zero
is the caller's job.
"""

import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional

from ledger_engine.models.ledger import Currency, EntryType


ISO_DATE_PATTERN = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
DAY_FIRST_DATE_PATTERN = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")

CURRENCY_SYMBOLS = re.compile(r"[$€£¥]")
COMMA_DECIMAL_PATTERN = re.compile(r",\d{2}$")
COMMA_THOUSANDS_PATTERN = re.compile(r",\d{3}$")

TYPE_ALIASES: dict[str, EntryType] = {
    "income": EntryType.INCOME,
    "ingreso": EntryType.INCOME,
    "expense": EntryType.EXPENSE,
    "gasto": EntryType.EXPENSE,
    "transfer": EntryType.TRANSFER,
    "transferencia": EntryType.TRANSFER,
}


# =============================================================================
# DATES
# =============================================================================

def normalize_date(value: str) -> Optional[str]:
    """
    Normalize a date cell to YYYY-MM-DD.

    Accepts YYYY-MM-DD verbatim, or D/M/YYYY and DD/MM/YYYY.
    Returns None for any other shape or for an impossible calendar date.
    """
    parsed = parse_date(value)
    return parsed.isoformat() if parsed else None


def parse_date(value: str) -> Optional[date]:
    trimmed = value.strip()

    match = ISO_DATE_PATTERN.match(trimmed)
    if match:
        year, month, day = match.groups()
    else:
        match = DAY_FIRST_DATE_PATTERN.match(trimmed)
        if not match:
            return None
        day, month, year = match.groups()

    try:
        return date(int(year), int(month), int(day))
    except ValueError:
        return None


# =============================================================================
# AMOUNTS
# =============================================================================

def _use_decimal_separator(text: str, decimal_sep: str, thousands_sep: str) -> str:
    """
    Rewrite text with "." as the only decimal point.

    The last decimal_sep becomes the point; every thousands_sep and
    any earlier decimal_sep is dropped.
    """
    text = text.replace(thousands_sep, "")
    whole, _, fraction = text.rpartition(decimal_sep)
    return f"{whole.replace(decimal_sep, '')}.{fraction}"


def normalize_amount_text(value: str) -> str:
    """Strip symbols and resolve separators, leaving a plain number string."""
    cleaned = CURRENCY_SYMBOLS.sub("", value.strip()).strip()

    has_dot = "." in cleaned
    has_comma = "," in cleaned

    if has_dot and has_comma:
        if cleaned.rfind(",") > cleaned.rfind("."):
            # 1.000,50 -> 1000.50
            cleaned = _use_decimal_separator(cleaned, ",", ".")
        else:
            # 1,000.50 -> 1000.50
            cleaned = cleaned.replace(",", "")
    elif has_comma:
        if COMMA_DECIMAL_PATTERN.search(cleaned) and not COMMA_THOUSANDS_PATTERN.search(cleaned):
            # 3,50 -> 3.50
            cleaned = _use_decimal_separator(cleaned, ",", ".")
        else:
            # 1,000 -> 1000
            cleaned = cleaned.replace(",", "")
    elif has_dot and cleaned.count(".") > 1:
        # 1.000.000 -> 1000000
        cleaned = cleaned.replace(".", "")

    return cleaned


def parse_amount(value: str) -> Optional[Decimal]:
    """
    Parse a money cell into a non-negative Decimal.

    "1.234,56", "1,234.56" and "$ 1.234,56" all give Decimal("1234.56").
    """
    cleaned = normalize_amount_text(value)
    if not cleaned:
        return None

    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        return None

    if not amount.is_finite():
        return None
    return abs(amount)


# =============================================================================
# ENUMERATIONS
# =============================================================================

def parse_entry_type(value: str) -> Optional[EntryType]:
    """Accepts English and Spanish names, case-insensitively."""
    return TYPE_ALIASES.get(value.strip().lower())


def parse_currency(value: str) -> Optional[Currency]:
    try:
        return Currency(value.strip().upper())
    except ValueError:
        return None
