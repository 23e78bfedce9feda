from fastapi import APIRouter, Depends, File, Query, UploadFile
from fastapi.responses import Response
from typing import List
from urllib.parse import quote
import logging

from silson.dependencies import get_api_key
from silson.model import (
    GENERATION_KEYS,
    BatchSummary,
    ComparisonCard,
    GenerationInfo,
    GenerationListResponse,
    ImportResponse,
    ImportRowsRequest,
    ReceiptRecord,
    ReceiptRow,
    SheetFormat,
)
from silson.rule_loader import get_rule_table
from silson.services.generation_rules import get_rule
from silson.services.receipt_export import (
    MEDIA_TYPES,
    render_results,
    render_template,
    result_filename,
    template_filename,
)
from silson.services.receipt_import import parse_rows, read_spreadsheet
from silson.services.reimbursement import build_row, compare_records, summarize

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Calculator"])


def spreadsheet_download(content: bytes, filename: str, fmt: SheetFormat) -> Response:
    return Response(
        content=content,
        media_type=MEDIA_TYPES[fmt],
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"},
    )


@router.get("/generations", response_model=GenerationListResponse)
def list_generations(api_key: str = Depends(get_api_key)):
    return GenerationListResponse(
        rules_version=get_rule_table().rules_version,
        generations=[
            GenerationInfo(
                key=rule.key,
                name=rule.name,
                description=rule.description,
                cap_description=rule.cap_description,
            )
            for rule in map(get_rule, GENERATION_KEYS)
        ],
    )


@router.post("/evaluate", response_model=ReceiptRow)
def evaluate_receipt(record: ReceiptRecord, api_key: str = Depends(get_api_key)):
    return build_row(1, record)


@router.post("/summary", response_model=BatchSummary)
def summarize_receipts(records: List[ReceiptRecord], api_key: str = Depends(get_api_key)):
    return summarize(records)


@router.post("/comparison", response_model=List[ComparisonCard])
def compare_generations(records: List[ReceiptRecord], api_key: str = Depends(get_api_key)):
    return compare_records(records)


@router.post("/import", response_model=ImportResponse)
async def import_receipts_file(
    file: UploadFile = File(..., description="CSV or .xlsx file in the download template layout"),
    api_key: str = Depends(get_api_key),
):
    content = await file.read()
    logger.info("Received receipt import %s (%d bytes)", file.filename, len(content))
    records = read_spreadsheet(content, file.filename)
    return ImportResponse(records=records, summary=summarize(records))


@router.post("/import/rows", response_model=ImportResponse)
def import_receipt_rows(payload: ImportRowsRequest, api_key: str = Depends(get_api_key)):
    records = parse_rows(payload.rows)
    return ImportResponse(records=records, summary=summarize(records))


@router.get("/template")
def download_template(
    format: SheetFormat = Query(SheetFormat.csv, description="csv or xlsx"),
    api_key: str = Depends(get_api_key),
):
    return spreadsheet_download(render_template(format), template_filename(format), format)


@router.post("/export")
def export_results(
    records: List[ReceiptRecord],
    format: SheetFormat = Query(SheetFormat.csv, description="csv or xlsx"),
    api_key: str = Depends(get_api_key),
):
    content = render_results(summarize(records), format)
    return spreadsheet_download(content, result_filename(fmt=format), format)
