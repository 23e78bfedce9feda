"""
Spreadsheet import for receipts.

Rows follow the download template (see receipt_export.TEMPLATE_HEADER); the
first row is the header. A row that cannot be parsed is never dropped: it is
kept with date "-", every cost set to 0 and is_valid=False, so the batch keeps
its row count and the bad row shows up in the summary table.
"""
import csv
import io
import logging
import math
import re
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, List, Optional, Sequence
from zipfile import BadZipFile

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from silson.exceptions import ImportFormatError
from silson.model import COST_FIELDS, MAX_COST, Facility, ReceiptRecord, TreatmentType

logger = logging.getLogger(__name__)

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
AMOUNT_PATTERN = re.compile(r"^-?\d+(\.\d+)?$")

# spreadsheet serial day 0
SERIAL_EPOCH = datetime(1899, 12, 30)

COLUMN_COUNT = 9
DATE_COL, TYPE_COL, FACILITY_COL = 0, 1, 2
COST_COLS = dict(zip(COST_FIELDS, range(3, 8)))
CODE_COL = 8

# checked in order, later matches win: "상급종합병원" ends up tertiary
FACILITY_KEYWORDS = [
    ("병원", Facility.hospital),
    ("종합", Facility.general),
    ("상급", Facility.tertiary),
    ("약국", Facility.pharmacy),
]

CSV_ENCODINGS = ("utf-8-sig", "cp949")

# xlsx workbooks are zip archives
XLSX_SIGNATURE = b"PK\x03\x04"


def _text(cell: Any) -> str:
    if cell is None:
        return ""
    return str(cell).strip()


def _serial_to_iso(serial) -> str:
    try:
        return (SERIAL_EPOCH + timedelta(days=float(serial))).date().isoformat()
    except (OverflowError, ValueError) as exc:
        raise ValueError(f"date serial {serial!r} out of range") from exc


def parse_date(cell: Any) -> str:
    if isinstance(cell, datetime):
        return cell.date().isoformat()
    if isinstance(cell, date):
        return cell.isoformat()
    if isinstance(cell, bool):
        raise ValueError(f"date {cell!r} is not a date")
    if isinstance(cell, (int, float)):
        return _serial_to_iso(cell)

    text = _text(cell)
    if text.isdigit():
        return _serial_to_iso(int(text))
    if not DATE_PATTERN.match(text):
        raise ValueError(f"date {text!r} is not YYYY-MM-DD")
    # catches month 14, Feb 30, ...
    datetime.strptime(text, "%Y-%m-%d")
    return text


def parse_treatment_type(cell: Any) -> TreatmentType:
    raw = _text(cell)
    if "입원" in raw or raw.lower() == TreatmentType.inpatient.value:
        return TreatmentType.inpatient
    if "통원" in raw or raw.lower() == TreatmentType.outpatient.value:
        return TreatmentType.outpatient
    raise ValueError(f"treatment type {raw!r} is not recognised")


def parse_facility(cell: Any) -> Facility:
    raw = _text(cell)
    try:
        return Facility(raw.lower())
    except ValueError:
        pass

    facility = Facility.clinic
    for keyword, candidate in FACILITY_KEYWORDS:
        if keyword in raw:
            facility = candidate
    return facility


def parse_cost(cell: Any) -> int:
    if cell is None:
        return 0
    if isinstance(cell, bool):
        raise ValueError(f"amount {cell!r} is not numeric")
    if isinstance(cell, int):
        value = cell
    elif isinstance(cell, float):
        if not math.isfinite(cell):
            raise ValueError(f"amount {cell!r} is not finite")
        value = int(cell)
    else:
        text = _text(cell).replace(",", "").replace(" ", "")
        if text.endswith("원"):
            text = text[:-1]
        if not text:
            return 0
        if not AMOUNT_PATTERN.match(text):
            raise ValueError(f"amount {cell!r} is not numeric")
        value = int(Decimal(text))

    if value < 0:
        raise ValueError(f"amount {cell!r} is negative")
    if value > MAX_COST:
        raise ValueError(f"amount {cell!r} exceeds {MAX_COST}")
    return value


def is_blank_row(row: Sequence[Any]) -> bool:
    return not row or all(_text(cell) == "" for cell in row)


def parse_row(row: Sequence[Any]) -> ReceiptRecord:
    cells = list(row) + [None] * (COLUMN_COUNT - len(row))
    problems: List[str] = []

    try:
        receipt_date = parse_date(cells[DATE_COL])
    except ValueError as exc:
        problems.append(str(exc))
        receipt_date = "-"

    try:
        treatment_type = parse_treatment_type(cells[TYPE_COL])
    except ValueError as exc:
        problems.append(str(exc))
        treatment_type = TreatmentType.outpatient

    costs = {}
    for field, col in COST_COLS.items():
        try:
            costs[field] = parse_cost(cells[col])
        except ValueError as exc:
            problems.append(f"{field}: {exc}")
            costs[field] = 0

    facility = parse_facility(cells[FACILITY_COL])
    disease_code = _text(cells[CODE_COL])

    if problems:
        logger.debug("Malformed receipt row %r: %s", list(row), "; ".join(problems))
        return ReceiptRecord(
            date="-",
            treatment_type=treatment_type,
            facility=facility,
            disease_code=disease_code,
            is_valid=False,
        )

    return ReceiptRecord(
        date=receipt_date,
        treatment_type=treatment_type,
        facility=facility,
        disease_code=disease_code,
        is_valid=True,
        **costs,
    )


def parse_rows(rows: Sequence[Sequence[Any]]) -> List[ReceiptRecord]:
    """Parse spreadsheet rows (header first) into receipt records."""
    records = [parse_row(row) for row in rows[1:] if not is_blank_row(row)]
    malformed = sum(1 for r in records if not r.is_valid)
    logger.info("Imported %d receipt rows (%d malformed)", len(records), malformed)
    return records


def decode_csv(content: bytes) -> str:
    for encoding in CSV_ENCODINGS:
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise ImportFormatError(
        "The uploaded file is not a readable CSV file",
        detail={"tried_encodings": list(CSV_ENCODINGS)},
    )


def read_csv(content: bytes) -> List[ReceiptRecord]:
    text = decode_csv(content)
    try:
        rows = list(csv.reader(io.StringIO(text)))
    except csv.Error as exc:
        raise ImportFormatError(f"Invalid CSV: {exc}") from exc
    if not rows:
        return []
    return parse_rows(rows)


def read_xlsx(content: bytes) -> List[ReceiptRecord]:
    """Parse the first sheet of an .xlsx workbook, as the template download lays it out."""
    try:
        workbook = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (BadZipFile, InvalidFileException, KeyError, OSError) as exc:
        raise ImportFormatError(f"Invalid xlsx workbook: {exc}") from exc

    try:
        sheet = workbook.worksheets[0]
        rows = [list(row) for row in sheet.iter_rows(values_only=True)]
    finally:
        workbook.close()
    if not rows:
        return []
    return parse_rows(rows)


def is_xlsx(content: bytes, filename: Optional[str] = None) -> bool:
    if filename and filename.lower().endswith(".xlsx"):
        return True
    return content.startswith(XLSX_SIGNATURE)


def read_spreadsheet(content: bytes, filename: Optional[str] = None) -> List[ReceiptRecord]:
    if is_xlsx(content, filename):
        return read_xlsx(content)
    return read_csv(content)
