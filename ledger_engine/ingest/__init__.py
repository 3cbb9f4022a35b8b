"""
Ingestion pipeline: parse -> detect mapping -> validate rows ->
resolve categories -> commit.
"""

from ledger_engine.ingest.categories import (
    CategoryResolutionError,
    CategoryResolver,
    UnresolvedCategoryError,
    default_resolutions,
    find_unknown_categories,
    resolutions_complete,
    unresolved_categories,
)
from ledger_engine.ingest.coercers import (
    normalize_date,
    parse_amount,
    parse_currency,
    parse_date,
    parse_entry_type,
)
from ledger_engine.ingest.importer import BatchImporter, ProgressCallback
from ledger_engine.ingest.mapping import (
    MappingIncompleteError,
    detect_column_mapping,
    missing_required_fields,
    normalize_header,
)
from ledger_engine.ingest.parser import (
    EmptyFileError,
    FileTooLargeError,
    decode_file,
    parse_delimited,
)
from ledger_engine.ingest.rows import RowValidator, process_rows

__all__ = [
    # Parsing
    "EmptyFileError",
    "FileTooLargeError",
    "decode_file",
    "parse_delimited",
    # Mapping
    "MappingIncompleteError",
    "detect_column_mapping",
    "missing_required_fields",
    "normalize_header",
    # Coercers
    "normalize_date",
    "parse_amount",
    "parse_currency",
    "parse_date",
    "parse_entry_type",
    # Rows
    "RowValidator",
    "process_rows",
    # Categories
    "CategoryResolutionError",
    "CategoryResolver",
    "UnresolvedCategoryError",
    "default_resolutions",
    "find_unknown_categories",
    "resolutions_complete",
    "unresolved_categories",
    # Import
    "BatchImporter",
    "ProgressCallback",
]
