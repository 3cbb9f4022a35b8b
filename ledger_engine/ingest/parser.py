"""
Delimited Text Parser

Turns raw file text into a header row and data rows.

RULES:
- Line endings are normalized to "\\n" before scanning
- The separator is chosen from the first line only: ";" when that
  line has a semicolon and no comma, "," otherwise
- Double quotes wrap fields; "" inside quotes is a literal quote;
  separators and newlines inside quotes are literal text
- Rows whose cells are all blank are dropped silently

Cells are returned untrimmed (except headers); trimming is the
row validator's job.
"""

from ledger_engine.models.ledger import ParsedFile


QUOTE = '"'
BYTE_ORDER_MARK = "\ufeff"


class EmptyFileError(ValueError):
    """The file has no readable content (no header row)."""
    pass


class FileTooLargeError(ValueError):
    """The uploaded file exceeds the configured size limit."""

    def __init__(self, size_bytes: int, limit_bytes: int):
        self.size_bytes = size_bytes
        self.limit_bytes = limit_bytes
        super().__init__(
            f"File is {size_bytes} bytes, the limit is {limit_bytes} bytes"
        )


def normalize_line_endings(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def detect_separator(first_line: str) -> str:
    """Pick the field separator from the header line."""
    if ";" in first_line and "," not in first_line:
        return ";"
    return ","


def _is_blank(row: list[str]) -> bool:
    return all(cell.strip() == "" for cell in row)


def split_records(text: str, separator: str) -> list[list[str]]:
    """
    Scan text into records, honoring quotes.

    A trailing record without a final newline is kept only if it
    has content.
    """
    records: list[list[str]] = []
    row: list[str] = []
    current: list[str] = []
    in_quotes = False

    i = 0
    length = len(text)
    while i < length:
        char = text[i]

        if in_quotes:
            if char == QUOTE:
                if i + 1 < length and text[i + 1] == QUOTE:
                    current.append(QUOTE)
                    i += 1  # skip escaped quote
                else:
                    in_quotes = False
            else:
                current.append(char)
        elif char == QUOTE:
            in_quotes = True
        elif char == separator:
            row.append("".join(current))
            current = []
        elif char == "\n":
            row.append("".join(current))
            records.append(row)
            row = []
            current = []
        else:
            current.append(char)

        i += 1

    # Last field/row
    row.append("".join(current))
    if not _is_blank(row):
        records.append(row)

    return records


def parse_delimited(text: str) -> ParsedFile:
    """
    Parse delimited text into headers and data rows.

    Returns an empty ParsedFile when the text has no content.
    """
    text = normalize_line_endings(text).lstrip(BYTE_ORDER_MARK).strip()
    if not text:
        return ParsedFile()

    separator = detect_separator(text.split("\n", 1)[0])
    records = split_records(text, separator)
    if not records:
        return ParsedFile()

    headers = [header.strip() for header in records[0]]
    rows = [record for record in records[1:] if not _is_blank(record)]

    return ParsedFile(headers=headers, rows=rows)


def decode_file(payload: bytes, encoding: str = "utf-8") -> str:
    """
    Decode an uploaded file.

    Invalid byte sequences are replaced rather than raised on, so a
    single bad character only spoils its own cell.
    """
    return payload.decode(encoding, errors="replace")
