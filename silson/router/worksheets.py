from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy.orm import Session
from typing import List

from silson.dependencies import get_api_key
from silson.model import ComparisonCard, ImportRowsRequest, ReceiptRecord, SheetFormat, WorksheetResponse
from silson.router.calculator import spreadsheet_download
from silson.services import worksheet as worksheets
from silson.services.receipt_export import render_results, result_filename
from silson.services.receipt_import import parse_rows, read_spreadsheet
from silson.services.reimbursement import compare_records, summarize
from silson.worksheet_database import Worksheet, get_db

router = APIRouter(tags=["Worksheets"])


def worksheet_response(worksheet: Worksheet) -> WorksheetResponse:
    records = worksheets.list_records(worksheet)
    return WorksheetResponse(
        worksheet_id=worksheet.id,
        records=records,
        summary=summarize(records),
    )


@router.post("", response_model=WorksheetResponse, status_code=201)
def create_worksheet(db: Session = Depends(get_db), api_key: str = Depends(get_api_key)):
    return worksheet_response(worksheets.create_worksheet(db))


@router.get("/{worksheet_id}", response_model=WorksheetResponse)
def get_worksheet(worksheet_id: str, db: Session = Depends(get_db), api_key: str = Depends(get_api_key)):
    return worksheet_response(worksheets.get_worksheet(db, worksheet_id))


@router.post("/{worksheet_id}/receipts", response_model=WorksheetResponse)
def add_receipt(
    worksheet_id: str,
    record: ReceiptRecord,
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key),
):
    worksheet = worksheets.get_worksheet(db, worksheet_id)
    return worksheet_response(worksheets.add_receipt(db, worksheet, record))


@router.delete("/{worksheet_id}/receipts/{position}", response_model=WorksheetResponse)
def delete_receipt(
    worksheet_id: str,
    position: int,
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key),
):
    worksheet = worksheets.get_worksheet(db, worksheet_id)
    return worksheet_response(worksheets.delete_receipt(db, worksheet, position))


@router.delete("/{worksheet_id}/receipts", response_model=WorksheetResponse)
def reset_worksheet(worksheet_id: str, db: Session = Depends(get_db), api_key: str = Depends(get_api_key)):
    worksheet = worksheets.get_worksheet(db, worksheet_id)
    return worksheet_response(worksheets.reset_worksheet(db, worksheet))


@router.get("/{worksheet_id}/comparison", response_model=List[ComparisonCard])
def compare_worksheet(worksheet_id: str, db: Session = Depends(get_db), api_key: str = Depends(get_api_key)):
    worksheet = worksheets.get_worksheet(db, worksheet_id)
    return compare_records(worksheets.list_records(worksheet))


@router.post("/{worksheet_id}/import", response_model=WorksheetResponse)
async def import_into_worksheet(
    worksheet_id: str,
    file: UploadFile = File(..., description="CSV or .xlsx file in the download template layout"),
    overwrite: bool = Query(False, description="Replace the existing receipts instead of appending"),
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key),
):
    worksheet = worksheets.get_worksheet(db, worksheet_id)
    records = read_spreadsheet(await file.read(), file.filename)
    return worksheet_response(worksheets.import_receipts(db, worksheet, records, overwrite=overwrite))


@router.post("/{worksheet_id}/import/rows", response_model=WorksheetResponse)
def import_rows_into_worksheet(
    worksheet_id: str,
    payload: ImportRowsRequest,
    overwrite: bool = Query(False, description="Replace the existing receipts instead of appending"),
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key),
):
    worksheet = worksheets.get_worksheet(db, worksheet_id)
    records = parse_rows(payload.rows)
    return worksheet_response(worksheets.import_receipts(db, worksheet, records, overwrite=overwrite))


@router.get("/{worksheet_id}/export")
def export_worksheet(
    worksheet_id: str,
    format: SheetFormat = Query(SheetFormat.csv, description="csv or xlsx"),
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key),
):
    worksheet = worksheets.get_worksheet(db, worksheet_id)
    summary = summarize(worksheets.list_records(worksheet))
    return spreadsheet_download(render_results(summary, format), result_filename(fmt=format), format)
