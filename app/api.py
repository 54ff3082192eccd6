"""
FastAPI routes for transaction upload, export and timezone-aware queries.
Every failure is mapped to a JSON response here.
"""
import traceback
from contextlib import asynccontextmanager
from typing import Dict, List, Optional

from fastapi import Body, Depends, FastAPI, File, Header, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response

from core.config import (
    DEFAULT_ERROR_KEY,
    EXCEL_CONTENT_TYPE,
    EXPORT_FILENAME,
    STACK_TRACE_ERROR_KEY,
    USER_TIMEZONE_HEADER,
    VALIDATION_ERRORS_TITLE,
    get_settings,
)
from core.db import get_db
from core.exceptions import (
    DataNotFoundError,
    GeoResolutionError,
    ParsingError,
    TransactionManagerException,
    ValidationError,
)
from core.logger import set_log_level, setup_logger
from core.schema import (
    ClientTimezoneTransaction,
    DateRangeRequest,
    TransactionByDateRequest,
    UserTimezoneTransaction,
)
from services.transaction_service import TransactionService

logger = setup_logger(__name__)
settings = get_settings()

VALUE_ERROR_PREFIX = "Value error, "


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Apply the configured log level and initialize the transaction store."""
    set_log_level(get_settings().log_level)
    get_db()
    logger.info("Transaction store ready")
    yield


# Initialize FastAPI app
app = FastAPI(
    title="Transaction Manager",
    description="Ingest transactions from CSV and query them across timezones",
    version="1.0.0",
    lifespan=lifespan,
)


def get_transaction_service() -> TransactionService:
    return TransactionService()


def error_status(exc: TransactionManagerException) -> int:
    """HTTP status for a domain exception."""
    if isinstance(exc, DataNotFoundError):
        return 404
    if isinstance(exc, (ValidationError, ParsingError, GeoResolutionError)):
        return 400
    return 500


def internal_error_response(exc: Exception) -> JSONResponse:
    content = {DEFAULT_ERROR_KEY: str(exc)}
    if not get_settings().is_production:
        content[STACK_TRACE_ERROR_KEY] = "".join(
            traceback.format_exception(type(exc), exc, exc.__traceback__)
        )
    return JSONResponse(status_code=500, content=content)


@app.exception_handler(TransactionManagerException)
async def domain_exception_handler(request: Request, exc: TransactionManagerException):
    status_code = error_status(exc)
    if status_code == 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}", exc_info=exc)
        return internal_error_response(exc)

    logger.warning(f"{request.method} {request.url.path} -> {status_code}: {exc.message}")
    return JSONResponse(status_code=status_code, content={DEFAULT_ERROR_KEY: exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    validation_errors: Dict[str, List[str]] = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "header", "query")]
        key = loc[-1] if loc else "general"
        message = str(error.get("msg", ""))
        if message.startswith(VALUE_ERROR_PREFIX):
            message = message[len(VALUE_ERROR_PREFIX):]
        validation_errors.setdefault(key, []).append(message)

    logger.warning(f"{request.method} {request.url.path} -> 400: {validation_errors}")
    return JSONResponse(
        status_code=400,
        content={"title": VALIDATION_ERRORS_TITLE, "validationErrors": validation_errors},
    )


@app.middleware("http")
async def api_exception_middleware(request: Request, call_next):
    """Turn unhandled exceptions into 500 JSON responses."""
    try:
        return await call_next(request)
    except Exception as e:
        logger.error(f"{request.method} {request.url.path} failed: {e}", exc_info=True)
        return internal_error_response(e)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "transaction_manager",
        "version": "1.0.0"
    }


@app.post("/api/transaction/upsert")
async def upsert_transactions(
    file: UploadFile = File(...),
    service: TransactionService = Depends(get_transaction_service),
):
    """
    Upload a CSV of transactions and insert or overwrite them by id.

    Expected header: transaction_id,name,email,amount,transaction_date,client_location
    """
    logger.info(f"Received file: {file.filename}")
    content = await file.read()
    count = await service.upsert(content, file.filename or "")
    return {"upserted": count}


@app.post("/api/transaction/export/excel")
async def export_transactions(
    date_range: Optional[DateRangeRequest] = Body(None),
    user_timezone: Optional[str] = Header(None, alias=USER_TIMEZONE_HEADER),
    service: TransactionService = Depends(get_transaction_service),
):
    """
    Export transactions to an .xlsx workbook.

    Without a body every transaction is exported. Unspecified (no offset)
    bounds are read in the User-Timezone header zone; UTC bounds need no header.
    """
    if date_range is None:
        content = await service.export_transactions(user_timezone=user_timezone)
    else:
        content = await service.export_transactions(
            date_range.start_date, date_range.end_date, user_timezone
        )

    return Response(
        content=content,
        media_type=EXCEL_CONTENT_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"'},
    )


@app.post(
    "/api/transaction/get-all/for-user-timezone",
    response_model=List[UserTimezoneTransaction],
)
async def get_transactions_for_user_timezone(
    date_range: DateRangeRequest,
    user_timezone: Optional[str] = Header(None, alias=USER_TIMEZONE_HEADER),
    service: TransactionService = Depends(get_transaction_service),
):
    """Transactions within a range given in the caller's User-Timezone."""
    return await service.get_transactions_for_user_timezone(
        date_range.start_date, date_range.end_date, user_timezone
    )


@app.post(
    "/api/transaction/get-all/for-client-timezone",
    response_model=List[ClientTimezoneTransaction],
)
async def get_transactions_for_client_timezone(
    date_range: DateRangeRequest,
    service: TransactionService = Depends(get_transaction_service),
):
    """Transactions whose local time at their origin falls within the range."""
    return await service.get_transactions_for_client_timezone(
        date_range.start_date, date_range.end_date
    )


@app.post(
    "/api/transaction/get-all/for-client-timezone-by-date",
    response_model=List[ClientTimezoneTransaction],
)
async def get_transactions_for_client_timezone_by_date(
    by_date: TransactionByDateRequest,
    service: TransactionService = Depends(get_transaction_service),
):
    """Transactions whose local date at their origin matches year[/month[/day]]."""
    return await service.get_transactions_for_client_timezone_by_date(
        by_date.year, by_date.month, by_date.day
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port)
