"""Tests for field coercers."""

import pytest
from datetime import date
from decimal import Decimal

from ledger_engine.ingest.coercers import (
    normalize_date,
    parse_amount,
    parse_currency,
    parse_date,
    parse_entry_type,
)
from ledger_engine.models.ledger import Currency, EntryType


class TestDates:
    """Tests for date coercion."""

    def test_iso_date_passes_through(self):
        """Test YYYY-MM-DD input."""
        assert normalize_date("2026-02-26") == "2026-02-26"

    def test_day_first_date(self):
        """Test D/M/YYYY and DD/MM/YYYY input."""
        assert normalize_date("26/2/2026") == "2026-02-26"
        assert normalize_date("05/03/2026") == "2026-03-05"
        assert normalize_date(" 1/1/2026 ") == "2026-01-01"

    def test_year_first_slashes_fail(self):
        """Test that YYYY/MM/DD is not accepted."""
        assert normalize_date("2026/02/26") is None

    def test_impossible_date_fails(self):
        """Test that a date the calendar doesn't have is rejected."""
        assert normalize_date("31/02/2026") is None
        assert normalize_date("2026-13-01") is None

    def test_other_shapes_fail(self):
        """Test assorted non-dates."""
        for value in ("", "ayer", "2026-2-26", "26-02-2026", "26/02/26"):
            assert parse_date(value) is None

    def test_parse_date_returns_date(self):
        """Test the typed variant."""
        assert parse_date("26/2/2026") == date(2026, 2, 26)


class TestAmounts:
    """Tests for amount coercion."""

    @pytest.mark.parametrize("raw", ["1.234,56", "1,234.56", "$ 1.234,56", "$1,234.56"])
    def test_both_locales(self, raw):
        """Test that both separator conventions give the same value."""
        assert parse_amount(raw) == Decimal("1234.56")

    def test_dotted_thousands(self):
        """Test that repeated dots are thousands separators."""
        assert parse_amount("1.000.000") == Decimal("1000000")

    def test_single_dot_is_decimal(self):
        """Test a plain decimal point."""
        assert parse_amount("3.50") == Decimal("3.50")

    def test_comma_decimal(self):
        """Test that two digits after a lone comma are decimals."""
        assert parse_amount("3,50") == Decimal("3.50")

    def test_comma_thousands(self):
        """Test that three digits after a lone comma are thousands."""
        assert parse_amount("1,000") == Decimal("1000")
        assert parse_amount("1,000,000") == Decimal("1000000")

    def test_negative_becomes_magnitude(self):
        """Test that the sign is dropped."""
        assert parse_amount("-50") == Decimal("50")

    def test_zero_parses(self):
        """Test that zero is parsed; rejecting it is the caller's job."""
        assert parse_amount("0") == Decimal("0")

    @pytest.mark.parametrize("raw", ["", "   ", "abc", "12abc", "NaN", "Infinity", "$"])
    def test_invalid_amounts(self, raw):
        """Test that non-numbers fail."""
        assert parse_amount(raw) is None


class TestEnumerations:
    """Tests for type and currency coercion."""

    def test_entry_types_bilingual(self):
        """Test English and Spanish names in any case."""
        assert parse_entry_type("Ingreso") == EntryType.INCOME
        assert parse_entry_type("EXPENSE") == EntryType.EXPENSE
        assert parse_entry_type(" gasto ") == EntryType.EXPENSE
        assert parse_entry_type("Transferencia") == EntryType.TRANSFER

    def test_unknown_type(self):
        """Test an unrecognized type."""
        assert parse_entry_type("refund") is None

    def test_currency_case_insensitive(self):
        """Test currency codes in any case."""
        assert parse_currency("usd") == Currency.USD
        assert parse_currency(" COP ") == Currency.COP

    def test_unknown_currency(self):
        """Test an unsupported currency."""
        assert parse_currency("EUR") is None
        assert parse_currency("") is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
