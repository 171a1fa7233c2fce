"""Parser for uploaded controller (payroll deduction) reports."""

import csv
import io
import logging
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum

import pandas as pd

from savings_reconciliation.config import settings
from savings_reconciliation.errors import ParseError
from savings_reconciliation.models import ParsedSheet, RawDeductionRecord, SkippedRow

logger = logging.getLogger(__name__)

XLSX_MAGIC = b"PK\x03\x04"
XLS_MAGIC = b"\xd0\xcf\x11\xe0"

_AMOUNT_NOISE = re.compile(r"[^\d.\-]")
_CENTS = Decimal("0.01")


class ScanState(str, Enum):
    SCANNING = "scanning"
    HEADER_FOUND = "header_found"
    COLUMNS_RESOLVED = "columns_resolved"
    FAILED = "failed"


@dataclass(frozen=True)
class ColumnMap:
    header_row: int
    name: int
    deduction: int
    management_unit: int | None = None
    employee_number: int | None = None


def classify_header_cell(cell: str) -> str | None:
    """Return which column a header cell names, checked in priority order."""
    text = cell.lower()
    if "employee" in text and "name" in text:
        return "name"
    if "monthly" in text or "deduction" in text or "amount" in text:
        return "deduction"
    if "management" in text or "unit" in text or "school" in text:
        return "management_unit"
    if "employee" in text and "no" in text:
        return "employee_number"
    return None


class HeaderScanner:
    """Locates the header row within the first few rows of a sheet.

    Rows are fed one at a time. Each row is inspected on its own; the first
    row naming both the employee-name and deduction columns becomes the
    header. The scanner fails once the window is exhausted without one.
    """

    def __init__(self, max_rows: int | None = None) -> None:
        self.max_rows = max_rows if max_rows is not None else settings.header_scan_rows
        self.state = ScanState.SCANNING
        self.rows_seen = 0
        self.columns: ColumnMap | None = None
        self._found: dict[str, int] = {}

    @property
    def done(self) -> bool:
        return self.state in (ScanState.COLUMNS_RESOLVED, ScanState.FAILED)

    def feed(self, row_index: int, cells: list[str]) -> ScanState:
        if self.done:
            return self.state
        if self.rows_seen >= self.max_rows:
            self.state = ScanState.FAILED
            return self.state

        self.rows_seen += 1
        found: dict[str, int] = {}
        for col_index, cell in enumerate(cells):
            kind = classify_header_cell(cell)
            if kind and kind not in found:
                found[kind] = col_index

        if "name" in found and "deduction" in found:
            self._found = found
            self.state = ScanState.HEADER_FOUND
            self._resolve(row_index)
        elif self.rows_seen >= self.max_rows:
            self.state = ScanState.FAILED
        return self.state

    def finish(self) -> ScanState:
        """Mark the scan failed if input ran out before a header was found."""
        if not self.done:
            self.state = ScanState.FAILED
        return self.state

    def _resolve(self, row_index: int) -> None:
        self.columns = ColumnMap(
            header_row=row_index,
            name=self._found["name"],
            deduction=self._found["deduction"],
            management_unit=self._found.get("management_unit"),
            employee_number=self._found.get("employee_number"),
        )
        self.state = ScanState.COLUMNS_RESOLVED


def _stringify(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        if pd.isna(value):
            return ""
        if value.is_integer():
            return str(int(value))
    if value is pd.NaT:
        return ""
    return " ".join(str(value).replace("\xa0", " ").split())


def _read_csv_rows(file_bytes: bytes) -> list[list[str]]:
    try:
        text = file_bytes.decode("utf-8-sig")
    except UnicodeDecodeError:
        text = file_bytes.decode("cp1252")
    reader = csv.reader(io.StringIO(text))
    return [[_stringify(cell) for cell in row] for row in reader]


def _read_excel_rows(file_bytes: bytes, engine: str) -> list[list[str]]:
    frame = pd.read_excel(
        io.BytesIO(file_bytes),
        sheet_name=0,
        header=None,
        dtype=object,
        engine=engine,
    )
    return [[_stringify(cell) for cell in row] for row in frame.itertuples(index=False)]


def read_rows(file_bytes: bytes) -> list[list[str]]:
    """Read the first sheet of a CSV/XLS/XLSX file into a grid of strings."""
    try:
        if file_bytes.startswith(XLSX_MAGIC):
            return _read_excel_rows(file_bytes, engine="openpyxl")
        if file_bytes.startswith(XLS_MAGIC):
            return _read_excel_rows(file_bytes, engine="xlrd")
        return _read_csv_rows(file_bytes)
    except Exception as exc:
        logger.warning("Unreadable controller report: %s", exc)
        raise ParseError(f"Failed to parse file: {exc}") from exc


def parse_amount(value: str) -> Decimal | None:
    """Strip currency noise and return a positive amount, or None."""
    cleaned = _AMOUNT_NOISE.sub("", value)
    if not cleaned:
        return None
    try:
        amount = Decimal(cleaned)
        if not amount.is_finite():
            return None
        amount = amount.quantize(_CENTS)
    except InvalidOperation:
        return None
    if amount <= 0:
        return None
    return amount


def locate_columns(rows: list[list[str]], max_rows: int | None = None) -> ColumnMap:
    scanner = HeaderScanner(max_rows=max_rows)
    for row_index, cells in enumerate(rows):
        if scanner.feed(row_index, cells) in (ScanState.COLUMNS_RESOLVED, ScanState.FAILED):
            break
    else:
        scanner.finish()

    if scanner.state is not ScanState.COLUMNS_RESOLVED or scanner.columns is None:
        raise ParseError(
            "Could not find required columns: Name of Employee and Monthly Deduction"
        )
    return scanner.columns


def _cell(row: list[str], index: int | None) -> str:
    if index is None or index >= len(row):
        return ""
    return row[index].strip()


def extract_records(rows: list[list[str]], columns: ColumnMap) -> ParsedSheet:
    records: list[RawDeductionRecord] = []
    skipped: list[SkippedRow] = []

    for row_index in range(columns.header_row + 1, len(rows)):
        row = rows[row_index]
        row_number = row_index + 1
        if not any(cell.strip() for cell in row):
            continue

        name = _cell(row, columns.name)
        deduction_text = _cell(row, columns.deduction)
        if not name:
            skipped.append(SkippedRow(row_number, "missing employee name"))
            continue
        if not deduction_text:
            skipped.append(SkippedRow(row_number, f"missing monthly deduction for {name}"))
            continue

        amount = parse_amount(deduction_text)
        if amount is None:
            skipped.append(
                SkippedRow(
                    row_number,
                    f"invalid monthly deduction '{deduction_text}' for {name}",
                )
            )
            continue

        records.append(
            RawDeductionRecord(
                employee_name=name,
                monthly_deduction=amount,
                employee_number=_cell(row, columns.employee_number) or None,
                management_unit=_cell(row, columns.management_unit) or None,
                row_number=row_number,
            )
        )

    return ParsedSheet(records=records, skipped_rows=skipped)


def parse(file_bytes: bytes) -> ParsedSheet:
    """Parse an uploaded controller report into deduction records.

    Raises:
        ParseError: the file is unreadable, has no data rows, or no header
            naming the employee-name and deduction columns appears within
            the scan window.
    """
    rows = read_rows(file_bytes)
    if len(rows) < 2:
        raise ParseError("File must contain at least a header row and one data row")

    columns = locate_columns(rows)
    logger.info(
        "Header found on row %s (name=%s, deduction=%s, unit=%s, employee_no=%s)",
        columns.header_row + 1,
        columns.name,
        columns.deduction,
        columns.management_unit,
        columns.employee_number,
    )

    parsed = extract_records(rows, columns)
    if not parsed.records:
        raise ParseError("No valid data found in the file")
    return parsed
