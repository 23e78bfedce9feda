"""
Presentation side of the calculator: display labels, money formatting and the
spreadsheets offered for download (input template and result sheet).

Both files come as CSV or as an .xlsx workbook. CSV is written UTF-8 with a
BOM so spreadsheet tools detect Hangul headers.
"""
import csv
import io
from datetime import date
from typing import List

import openpyxl
from openpyxl.utils import get_column_letter

from silson.exceptions import EmptyBatch
from silson.model import GENERATION_KEYS, BatchSummary, Facility, SheetFormat, TreatmentType

TYPE_LABELS = {
    TreatmentType.outpatient: "통원",
    TreatmentType.inpatient: "입원",
}

FACILITY_LABELS = {
    Facility.clinic: "의원",
    Facility.hospital: "병원",
    Facility.general: "종합병원",
    Facility.tertiary: "상급종합병원",
    Facility.pharmacy: "약국",
}

MALFORMED_MARK = " (오타)"

TEMPLATE_HEADER = [
    "진료일자", "진료형태(통원/입원)", "의료기관",
    "급여_본인부담금", "급여_공단부담금", "급여_전액본인부담금",
    "비급여_선택진료료", "비급여_선택외", "질병코드",
]

TEMPLATE_SAMPLE_ROWS = [
    ["2024-02-09", "통원", "의원", 15000, 30000, 0, 0, 2000, "J20"],
    ["2024-02-10", "입원", "병원", 50000, 100000, 0, 10000, 0, "A00"],
]

RESULT_HEADER = [
    "번호", "진료형태", "진료일자", "질병코드", "의료기관",
    "급여_본인부담", "급여_공단부담", "급여_전액본인", "비급여_선택진료", "비급여_이외",
    "진료비총액",
] + [f"{key[-1]}세대_예상지급액" for key in GENERATION_KEYS]

TEMPLATE_STEM = "실손보험_입력양식"
RESULT_STEM = "실손보험_계산결과"

TEMPLATE_SHEET = "입력양식"
RESULT_SHEET = "계산결과"

# column widths in characters
TEMPLATE_WIDTHS = [12, 15, 10, 12, 12, 12, 12, 12, 8]
RESULT_WIDTHS = [6, 8, 12, 10, 15, 12, 12, 12, 12, 12, 15, 15, 15, 15, 15]

MEDIA_TYPES = {
    SheetFormat.csv: "text/csv; charset=utf-8",
    SheetFormat.xlsx: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


def format_won(amount: int) -> str:
    return f"{amount:,}"


def type_label(treatment_type: TreatmentType, is_valid: bool = True) -> str:
    label = TYPE_LABELS[TreatmentType(treatment_type)]
    return label if is_valid else label + MALFORMED_MARK


def facility_label(facility: Facility) -> str:
    return FACILITY_LABELS[Facility(facility)]


def template_filename(fmt: SheetFormat = SheetFormat.csv) -> str:
    return f"{TEMPLATE_STEM}.{SheetFormat(fmt).value}"


def result_filename(on: date = None, fmt: SheetFormat = SheetFormat.csv) -> str:
    on = on or date.today()
    return f"{RESULT_STEM}_{on.isoformat()}.{SheetFormat(fmt).value}"


def _write_csv(rows: List[list]) -> bytes:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\r\n")
    writer.writerows(rows)
    return buffer.getvalue().encode("utf-8-sig")


def _write_xlsx(rows: List[list], title: str, widths: List[int]) -> bytes:
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    sheet.title = title
    for row in rows:
        sheet.append(row)
    for col, width in enumerate(widths, start=1):
        sheet.column_dimensions[get_column_letter(col)].width = width

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def template_rows() -> List[list]:
    return [TEMPLATE_HEADER] + [list(row) for row in TEMPLATE_SAMPLE_ROWS]


def result_rows(summary: BatchSummary) -> List[list]:
    if not summary.rows:
        raise EmptyBatch("데이터가 없습니다.")
    rows = [RESULT_HEADER]
    for row in summary.rows:
        rows.append([
            row.index,
            type_label(row.treatment_type),
            row.date,
            row.disease_code,
            row.facility_label,
            row.pay_self,
            row.pay_nhis,
            row.pay_full,
            row.non_pay_select,
            row.non_pay_other,
            row.total_cost,
        ] + [row.results.amount(key) for key in GENERATION_KEYS])
    return rows


def template_csv() -> bytes:
    return _write_csv(template_rows())


def template_xlsx() -> bytes:
    return _write_xlsx(template_rows(), TEMPLATE_SHEET, TEMPLATE_WIDTHS)


def results_csv(summary: BatchSummary) -> bytes:
    return _write_csv(result_rows(summary))


def results_xlsx(summary: BatchSummary) -> bytes:
    return _write_xlsx(result_rows(summary), RESULT_SHEET, RESULT_WIDTHS)


def render_template(fmt: SheetFormat = SheetFormat.csv) -> bytes:
    if SheetFormat(fmt) is SheetFormat.xlsx:
        return template_xlsx()
    return template_csv()


def render_results(summary: BatchSummary, fmt: SheetFormat = SheetFormat.csv) -> bytes:
    if SheetFormat(fmt) is SheetFormat.xlsx:
        return results_xlsx(summary)
    return results_csv(summary)
