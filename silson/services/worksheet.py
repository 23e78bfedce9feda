"""
Worksheets: the list of receipts a user is working on in one session.

Positions are 1-based and always contiguous; deleting a receipt renumbers
the ones after it. Worksheets are temporary and pruned by silson.tasks.
"""
import logging
import uuid
from datetime import date, datetime, timedelta
from typing import Iterable, List

from sqlalchemy.orm import Session

from silson.config import get_worksheet_ttl_hours
from silson.exceptions import ReceiptNotFound, WorksheetNotFound
from silson.model import COST_FIELDS, ReceiptRecord
from silson.worksheet_database import ReceiptEntry, Worksheet

logger = logging.getLogger(__name__)


def blank_receipt(today: date = None) -> ReceiptRecord:
    today = today or date.today()
    return ReceiptRecord(date=today.isoformat())


def to_record(entry: ReceiptEntry) -> ReceiptRecord:
    return ReceiptRecord(
        date=entry.receipt_date,
        treatment_type=entry.treatment_type,
        facility=entry.facility,
        disease_code=entry.disease_code or "",
        is_valid=entry.is_valid,
        **{field: getattr(entry, field) for field in COST_FIELDS},
    )


def _to_entry(record: ReceiptRecord, position: int) -> ReceiptEntry:
    return ReceiptEntry(
        position=position,
        receipt_date=record.date,
        treatment_type=record.treatment_type.value,
        facility=record.facility.value,
        disease_code=record.disease_code,
        is_valid=record.is_valid,
        **{field: getattr(record, field) for field in COST_FIELDS},
    )


def list_records(worksheet: Worksheet) -> List[ReceiptRecord]:
    return [to_record(entry) for entry in worksheet.receipts]


def create_worksheet(db: Session) -> Worksheet:
    worksheet = Worksheet(id=uuid.uuid4().hex)
    worksheet.receipts.append(_to_entry(blank_receipt(), 1))
    db.add(worksheet)
    db.commit()
    db.refresh(worksheet)
    logger.info("Created worksheet %s", worksheet.id)
    return worksheet


def get_worksheet(db: Session, worksheet_id: str) -> Worksheet:
    worksheet = db.query(Worksheet).filter(Worksheet.id == worksheet_id).first()
    if not worksheet:
        raise WorksheetNotFound(f"Worksheet {worksheet_id} not found", detail={"worksheet_id": worksheet_id})
    return worksheet


def _append(worksheet: Worksheet, records: Iterable[ReceiptRecord]) -> None:
    position = len(worksheet.receipts)
    for record in records:
        position += 1
        worksheet.receipts.append(_to_entry(record, position))


def add_receipt(db: Session, worksheet: Worksheet, record: ReceiptRecord) -> Worksheet:
    _append(worksheet, [record])
    db.commit()
    db.refresh(worksheet)
    return worksheet


def delete_receipt(db: Session, worksheet: Worksheet, position: int) -> Worksheet:
    entry = next((e for e in worksheet.receipts if e.position == position), None)
    if entry is None:
        raise ReceiptNotFound(
            f"Receipt #{position} not found",
            detail={"worksheet_id": worksheet.id, "position": position},
        )

    worksheet.receipts.remove(entry)
    for number, remaining in enumerate(worksheet.receipts, start=1):
        remaining.position = number

    db.commit()
    db.refresh(worksheet)
    return worksheet


def reset_worksheet(db: Session, worksheet: Worksheet) -> Worksheet:
    """Clear every receipt and start again from one blank receipt."""
    worksheet.receipts.clear()
    db.flush()
    _append(worksheet, [blank_receipt()])
    db.commit()
    db.refresh(worksheet)
    return worksheet


def import_receipts(db: Session, worksheet: Worksheet, records: List[ReceiptRecord], overwrite: bool = False) -> Worksheet:
    if overwrite:
        worksheet.receipts.clear()
        db.flush()
    _append(worksheet, records)
    db.commit()
    db.refresh(worksheet)
    logger.info(
        "Imported %d receipts into worksheet %s (overwrite=%s)",
        len(records), worksheet.id, overwrite,
    )
    return worksheet


def prune_expired_worksheets(db: Session, now: datetime = None, ttl_hours: int = None) -> int:
    now = now or datetime.utcnow()
    ttl_hours = get_worksheet_ttl_hours() if ttl_hours is None else ttl_hours
    cutoff = now - timedelta(hours=ttl_hours)

    # per-object delete so the receipts cascade; a bulk query delete skips ORM cascades
    expired = db.query(Worksheet).filter(Worksheet.created_at < cutoff).all()
    for worksheet in expired:
        db.delete(worksheet)
    db.commit()
    return len(expired)
