"""Map arbitrary bank CSV exports onto transaction drafts.

Bank exports differ in column names and date conventions, so the user (or
``detect_mapping``) supplies a ColumnMapping naming the date, description,
details and amount columns plus whether ambiguous dates are day-first (UK)
or month-first (US).
"""

import csv
import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional, TextIO

from dateutil import parser as date_parser

from errors import ValidationError
from schemas import TransactionCreateInput, validate_input
from logger import get_logger

logger = get_logger()

DATE_FORMATS = ("UK", "US")

_DATE_COLUMN = re.compile(r"date|time|day|month|year", re.IGNORECASE)
_DESCRIPTION_COLUMN = re.compile(r"desc|item|title|name|transaction", re.IGNORECASE)
_DETAILS_COLUMN = re.compile(
    r"detail|comment|note|memo|remarks|info|additional", re.IGNORECASE
)
_AMOUNT_COLUMN = re.compile(r"amount|total|sum|price|value|cost", re.IGNORECASE)

_YEAR_FIRST = re.compile(r"^\d{4}[-/.]")
_DEBIT_CREDIT = re.compile(r"\s*(?<![A-Za-z])(DR|CR)\.?$", re.IGNORECASE)
_CURRENCY_CODE = re.compile(r"^[A-Z]{3}\s*|\s*[A-Z]{3}$")
_LETTER = re.compile(r"[^\W\d_]")


@dataclass
class ColumnMapping:
    """Which CSV columns feed which transaction fields."""

    date_column: str
    description_column: str
    amount_column: str
    details_column: Optional[str] = None
    date_format: str = "UK"

    def __post_init__(self):
        self.date_format = self.date_format.upper()
        if self.date_format not in DATE_FORMATS:
            raise ValueError(
                f"Unknown date format '{self.date_format}', expected one of {DATE_FORMATS}"
            )

    def missing_columns(self, columns: List[str]) -> List[str]:
        """Return mapped column names that are not present in columns."""
        wanted = [self.date_column, self.description_column, self.amount_column]
        if self.details_column:
            wanted.append(self.details_column)
        return [column for column in wanted if column not in columns]


@dataclass
class CsvParseResult:
    """Header-keyed rows plus the column list, as read from a CSV file."""

    rows: List[Dict[str, str]]
    columns: List[str]


def parse_csv(source: TextIO) -> CsvParseResult:
    """Read a CSV file with a header row.

    Blank lines are skipped. Missing trailing cells read as empty strings.

    Args:
        source: Open text stream positioned at the header row.

    Returns:
        CsvParseResult with one dict per data row.

    Raises:
        ValidationError: If the file has no header row.
    """
    reader = csv.DictReader(source, restval="")
    if not reader.fieldnames:
        raise ValidationError("CSV file is empty or has no header row")

    columns = [name.strip() for name in reader.fieldnames]
    reader.fieldnames = columns

    rows = []
    for row in reader:
        # Cells beyond the header end up under the None key
        row.pop(None, None)
        if not any((value or "").strip() for value in row.values()):
            continue
        rows.append(row)

    logger.info(f"Parsed {len(rows)} row(s) with columns: {', '.join(columns)}")
    return CsvParseResult(rows=rows, columns=columns)


def detect_mapping(columns: List[str], date_format: str = "UK") -> ColumnMapping:
    """Guess a column mapping from header names.

    Falls back to positional columns (date, description, amount) when no
    header looks like the field.

    Args:
        columns: CSV header names, in file order.
        date_format: "UK" or "US" ordering for ambiguous dates.

    Returns:
        A best-effort ColumnMapping.

    Raises:
        ValidationError: If there are no columns at all.
    """
    if not columns:
        raise ValidationError("Cannot detect a column mapping without columns")

    taken: List[str] = []

    # Each column feeds at most one field, e.g. "Transaction Date" is the date
    def first(pattern: re.Pattern) -> Optional[str]:
        column = next(
            (c for c in columns if c not in taken and pattern.search(c)), None
        )
        if column:
            taken.append(column)
        return column

    def at(index: int) -> str:
        return columns[index] if index < len(columns) else columns[0]

    date_column = first(_DATE_COLUMN) or columns[0]
    amount_column = first(_AMOUNT_COLUMN) or at(2)
    description_column = first(_DESCRIPTION_COLUMN) or at(1)

    return ColumnMapping(
        date_column=date_column,
        description_column=description_column,
        amount_column=amount_column,
        details_column=first(_DETAILS_COLUMN),
        date_format=date_format,
    )


def parse_date(value: str, date_format: str = "UK") -> date:
    """Parse a CSV date cell.

    ISO 8601 is tried first. Other dates that lead with a four-digit year,
    e.g. "2024/01/05", are read year-month-day whatever the date_format;
    anything else is parsed with the day/month ordering given by date_format.

    Args:
        value: Raw cell text.
        date_format: "UK" (day first) or "US" (month first).

    Returns:
        The calendar date.

    Raises:
        ValueError: If the value is empty or cannot be parsed as a date.
    """
    text = (value or "").strip()
    if not text:
        raise ValueError("empty date")

    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass

    if _YEAR_FIRST.match(text):
        options = {"yearfirst": True, "dayfirst": False}
    else:
        options = {"dayfirst": date_format.upper() == "UK"}

    try:
        return date_parser.parse(text, **options).date()
    except (ValueError, OverflowError) as e:
        raise ValueError(f"unrecognised date '{text}'") from e


def parse_amount(value: str) -> Decimal:
    """Parse a CSV amount cell, ignoring currency symbols and separators.

    Parenthesised amounts, e.g. "(12.50)", and a trailing "DR" are read as
    negative; a trailing "CR" as positive. A three-letter currency code
    before or after the number is ignored.

    Raises:
        ValueError: If no number can be read from the value, or letters
            other than those above remain (e.g. "1e3").
    """
    raw = (value or "").strip()
    text = raw.replace("\u2212", "-")
    sign = -1 if text.startswith("(") and text.endswith(")") else None

    marker = _DEBIT_CREDIT.search(text)
    if marker:
        sign = -1 if marker.group(1).upper() == "DR" else 1
        text = text[: marker.start()]
    text = _CURRENCY_CODE.sub("", text)
    if _LETTER.search(text):
        raise ValueError(f"non-numeric amount '{raw}'")

    cleaned = re.sub(r"[^0-9.\-]", "", text)

    try:
        amount = Decimal(cleaned)
    except InvalidOperation as e:
        raise ValueError(f"non-numeric amount '{raw}'") from e
    if not amount.is_finite():
        raise ValueError(f"non-numeric amount '{raw}'")

    if sign is None:
        return amount
    return abs(amount) * sign


def row_to_draft(
    row: Dict[str, str], mapping: ColumnMapping, source_file: Optional[str] = None
) -> TransactionCreateInput:
    """Convert one CSV row into a validated transaction draft.

    Raises:
        ValueError: If the date or amount cannot be parsed.
        ValidationError: If the resulting draft is invalid (e.g. empty description).
    """
    details = (
        (row.get(mapping.details_column) or "").strip()
        if mapping.details_column
        else None
    )
    return validate_input(
        TransactionCreateInput,
        {
            "date": parse_date(row.get(mapping.date_column, ""), mapping.date_format),
            "description": (row.get(mapping.description_column) or "").strip(),
            "details": details or None,
            "amount": parse_amount(row.get(mapping.amount_column, "")),
            "is_unexpected": False,
            "source_file": source_file,
        },
    )


def rows_to_drafts(
    rows: List[Dict[str, str]],
    mapping: ColumnMapping,
    source_file: Optional[str] = None,
) -> List[TransactionCreateInput]:
    """Convert parsed rows to drafts, skipping rows that cannot be read.

    Args:
        rows: Rows from parse_csv.
        mapping: Column mapping to apply.
        source_file: CSV file name recorded on each draft for provenance.

    Returns:
        Drafts for every valid row, in file order.
    """
    drafts = []
    for line_num, row in enumerate(rows, start=2):  # line 1 is the header
        try:
            drafts.append(row_to_draft(row, mapping, source_file))
        except (ValueError, ValidationError) as e:
            logger.warning(f"Skipping line {line_num}: {e}")
            continue

    logger.info(f"Mapped {len(drafts)} of {len(rows)} row(s) to transactions")
    return drafts


def ingest(
    source: TextIO,
    mapping: Optional[ColumnMapping] = None,
    source_file: Optional[str] = None,
    date_format: str = "UK",
) -> List[TransactionCreateInput]:
    """Read a CSV export into transaction drafts.

    Args:
        source: Open text stream of the CSV file.
        mapping: Column mapping; detected from the header when None.
        source_file: File name recorded on each draft.
        date_format: Date ordering used when the mapping is detected.

    Returns:
        Validated drafts, in file order.

    Raises:
        ValidationError: If the file has no header or mapped columns are missing.
    """
    parsed = parse_csv(source)
    if mapping is None:
        mapping = detect_mapping(parsed.columns, date_format)
        logger.info(
            f"Detected columns: date={mapping.date_column}, "
            f"description={mapping.description_column}, "
            f"amount={mapping.amount_column}, details={mapping.details_column}"
        )

    missing = mapping.missing_columns(parsed.columns)
    if missing:
        raise ValidationError(f"CSV file is missing mapped column(s): {', '.join(missing)}")

    return rows_to_drafts(parsed.rows, mapping, source_file)
