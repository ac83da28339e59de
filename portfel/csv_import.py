"""
CSV import - Parse position files into validated Position records.

Expected format (header required, field order fixed):

    symbol,quantity,purchasePrice,purchaseDate
    PKN,100,45.50,2024-01-15
    JSW,50,32.00,2024-02-20

Invalid rows are skipped and reported; valid rows are returned in file order.
"""

import csv
import io
import math
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from portfel.models import Position
from portfel.validation import is_valid_symbol

HEADER = ["symbol", "quantity", "purchasePrice", "purchaseDate"]

# Maximum accepted file size (5MB)
MAX_FILE_BYTES = 5 * 1024 * 1024

_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_INTEGER_PATTERN = re.compile(r"^\+?\d+$")
_DECIMAL_PATTERN = re.compile(r"^\+?(\d+(\.\d*)?|\.\d+)$")

SAMPLE_ROWS = [
    "PKN,100,45.50,2024-01-15",
    "JSW,50,32.00,2024-02-20",
    "CDR,200,150.75,2024-03-10",
]


@dataclass
class CSVImportResult:
    """Result of parsing a CSV file."""

    success: bool
    positions: list[Position] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "positions": [p.to_dict() for p in self.positions],
            "errors": list(self.errors),
        }


@dataclass
class FileCheck:
    valid: bool
    error: Optional[str] = None


class RowError(ValueError):
    """A single row failed validation."""

    pass


def _parse_row(fields: list[str], today: date) -> Position:
    """Validate one data row and convert it to a Position. Raises RowError."""
    if len(fields) > len(HEADER):
        raise RowError(f"Expected {len(HEADER)} fields, got {len(fields)}")

    values = [f.strip() for f in fields] + [""] * (len(HEADER) - len(fields))
    for name, value in zip(HEADER, values):
        if not value:
            raise RowError(f"Missing required field '{name}'")

    raw_symbol, raw_quantity, raw_price, raw_date = values

    symbol = raw_symbol.upper()
    if not is_valid_symbol(symbol):
        raise RowError(f'Invalid symbol "{raw_symbol}" (must be 3-5 letters)')

    quantity = int(raw_quantity) if _INTEGER_PATTERN.match(raw_quantity) else 0
    if quantity <= 0:
        raise RowError(f'Invalid quantity "{raw_quantity}" (must be a positive whole number)')

    price = float(raw_price) if _DECIMAL_PATTERN.match(raw_price) else math.nan
    if not math.isfinite(price) or price <= 0:
        raise RowError(f'Invalid purchase price "{raw_price}" (must be a positive number)')

    if not _DATE_PATTERN.match(raw_date):
        raise RowError(f'Invalid date "{raw_date}" (must be YYYY-MM-DD)')
    try:
        purchase_date = date.fromisoformat(raw_date)
    except ValueError:
        raise RowError(f'Invalid date "{raw_date}"') from None
    if purchase_date > today:
        raise RowError("Purchase date cannot be in the future")

    return Position(
        symbol=symbol,
        quantity=quantity,
        purchase_price=price,
        current_price=price,  # Replaced once a price source updates it
        purchase_date=purchase_date,
    )


def parse_csv(content: str, today: Optional[date] = None) -> CSVImportResult:
    """
    Parse CSV content into positions.

    Args:
        content: Raw CSV text
        today: Reference date for the "not in the future" check (defaults to today)

    Returns:
        CSVImportResult; success is True only when every row parsed and at least
        one position was found
    """
    today = today or date.today()

    if not content or not content.strip():
        return CSVImportResult(success=False, errors=["CSV file is empty"])

    # Strip a UTF-8 BOM left by spreadsheet exports
    reader = csv.reader(io.StringIO(content.lstrip("\ufeff")))
    rows = [row for row in reader if any(cell.strip() for cell in row)]
    if not rows:
        return CSVImportResult(success=False, errors=["CSV file is empty"])

    header = [h.strip().lower() for h in rows[0]]
    if header != [h.lower() for h in HEADER]:
        return CSVImportResult(
            success=False,
            errors=[f"Invalid header: expected \"{','.join(HEADER)}\", got \"{','.join(rows[0])}\""],
        )

    data_rows = rows[1:]
    if not data_rows:
        return CSVImportResult(success=False, errors=["No data rows found in CSV file"])

    positions = []
    errors = []
    for row_num, fields in enumerate(data_rows, start=1):
        try:
            positions.append(_parse_row(fields, today))
        except RowError as e:
            errors.append(f"Data row {row_num}: {e}")

    return CSVImportResult(
        success=not errors and bool(positions),
        positions=positions,
        errors=errors,
    )


def validate_csv_file(
    content: str | bytes, filename: Optional[str] = None, max_bytes: int = MAX_FILE_BYTES
) -> FileCheck:
    """
    Check an uploaded file before parsing.

    Rejects files over ``max_bytes``, names without a .csv extension and
    content that does not look like comma-separated text.
    """
    size = len(content) if isinstance(content, bytes) else len(content.encode("utf-8"))
    if size > max_bytes:
        return FileCheck(False, f"File size exceeds {max_bytes // (1024 * 1024)}MB limit")

    if filename is not None and not filename.lower().endswith(".csv"):
        return FileCheck(False, "File must be a CSV file")

    if isinstance(content, bytes):
        try:
            content = content.decode("utf-8")
        except UnicodeDecodeError:
            return FileCheck(False, "File is not valid UTF-8 text")

    if "," not in content and "\n" not in content:
        return FileCheck(False, "File does not appear to be a valid CSV")

    return FileCheck(True)


def generate_sample_csv() -> str:
    """Sample file in the import format, for the template download."""
    return "\n".join([",".join(HEADER), *SAMPLE_ROWS]) + "\n"
