import asyncio
import contextlib
import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from silson.config import get_log_level
from silson.exceptions import BaseAppException
from silson.router.calculator import router as calculator_router
from silson.router.worksheets import router as worksheets_router
from silson.tasks import prune_old_worksheets

logging.basicConfig(
    level=get_log_level(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Starts the prune_old_worksheets task on startup and cancels it on shutdown.
    """
    task = asyncio.create_task(prune_old_worksheets())
    try:
        yield
    finally:
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


app = FastAPI(
    title="Indemnity Insurance Reimbursement Calculator API",
    lifespan=lifespan,
)


app.include_router(calculator_router, prefix="/api")
app.include_router(worksheets_router, prefix="/api/worksheets")


@app.exception_handler(BaseAppException)
async def app_exception_handler(request: Request, exc: BaseAppException):
    if exc.http_status >= 500:
        logger.error("%s on %s: %s", exc.code, request.url.path, exc.message)
    else:
        logger.info("%s on %s: %s", exc.code, request.url.path, exc.message)

    body = {
        "type": exc.type,
        "code": exc.code,
        "message": exc.message,
    }
    if exc.detail is not None:
        body["detail"] = exc.detail
    return JSONResponse(body, status_code=exc.http_status)
