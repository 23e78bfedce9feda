import asyncio
import logging

from silson.config import get_prune_interval_seconds
from silson.services.worksheet import prune_expired_worksheets
from silson.worksheet_database import SessionLocal

logger = logging.getLogger(__name__)


async def prune_old_worksheets():
    while True:
        db = SessionLocal()
        try:
            removed = prune_expired_worksheets(db)
            if removed:
                logger.info("Pruned %d expired worksheets", removed)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        await asyncio.sleep(get_prune_interval_seconds())
