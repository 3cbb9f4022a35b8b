"""Tests for column mapping detection."""

import pytest

from ledger_engine.ingest.mapping import (
    detect_column_mapping,
    missing_required_fields,
    normalize_header,
)
from ledger_engine.models.ledger import (
    ColumnMapping,
    Currency,
    EntryType,
    FieldDefaults,
    LedgerField,
)


class TestDetectColumnMapping:
    """Tests for detect_column_mapping."""

    def test_spanish_headers(self):
        """Test the basic Spanish header set."""
        mapping = detect_column_mapping(["Fecha", "Descripcion", "Monto"])
        assert mapping.date == 0
        assert mapping.description == 1
        assert mapping.amount == 2
        assert mapping.currency is None

    def test_accents_and_case_are_ignored(self):
        """Test diacritic and case folding."""
        mapping = detect_column_mapping(["CATEGORÍA", "Descripción", "Método de pago"])
        assert mapping.category == 0
        assert mapping.description == 1
        assert mapping.account == 2

    def test_english_headers(self):
        """Test the English aliases."""
        headers = ["date", "description", "type", "amount", "currency",
                   "category", "account", "merchant", "notes"]
        mapping = detect_column_mapping(headers)
        for index, field in enumerate(headers):
            assert mapping.get(LedgerField(field)) == index

    def test_first_match_wins(self):
        """Test that a second alias for the same field is ignored."""
        mapping = detect_column_mapping(["Valor", "Monto", "Precio"])
        assert mapping.amount == 0
        assert mapping.field_for_column(1) is None

    def test_store_aliases(self):
        """Test merchant aliases from store exports."""
        mapping = detect_column_mapping(["Tienda", "Total compra", "Concepto"])
        assert mapping.merchant == 0
        assert mapping.amount == 1
        assert mapping.category == 2

    def test_unknown_headers_stay_unmapped(self):
        """Test that unrecognized headers don't map."""
        mapping = detect_column_mapping(["foo", "bar"])
        assert mapping == ColumnMapping()

    def test_normalize_header(self):
        """Test header normalization."""
        assert normalize_header("  Categoría ") == "categoria"


class TestMissingRequiredFields:
    """Tests for missing_required_fields."""

    def test_reports_unmapped_required_fields(self):
        """Test fields with neither column nor default."""
        mapping = ColumnMapping(date=0, description=1, amount=2)
        assert missing_required_fields(mapping) == [
            LedgerField.TYPE,
            LedgerField.CURRENCY,
            LedgerField.ACCOUNT,
        ]

    def test_defaults_cover_missing_columns(self):
        """Test that defaults satisfy type, currency and account."""
        mapping = ColumnMapping(date=0, description=1, amount=2)
        defaults = FieldDefaults(
            type=EntryType.EXPENSE,
            currency=Currency.COP,
            account_id="acc-1",
        )
        assert missing_required_fields(mapping, defaults) == []

    def test_defaults_cannot_replace_amount(self):
        """Test that amount has no default."""
        mapping = ColumnMapping(date=0, description=1)
        defaults = FieldDefaults(
            type=EntryType.EXPENSE,
            currency=Currency.COP,
            account_id="acc-1",
        )
        assert missing_required_fields(mapping, defaults) == [LedgerField.AMOUNT]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
