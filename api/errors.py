"""Global exception handlers for FastAPI."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from core.exceptions import (
    InvoicingError,
    NotFoundError,
    NoBillableItemsError,
    ProjectClientMismatchError,
    ConcurrentInvoicingConflictError,
    InvoicedRecordImmutableError,
    OverlappingTimeEntryError,
    InvalidStatusTransitionError,
    TransactionFailureError,
    InvoiceNotEditableError,
)

logger = logging.getLogger(__name__)

# Most specific first; the first isinstance match wins
ERROR_STATUS: list[tuple[type[InvoicingError], int, str]] = [
    (NotFoundError, 404, ErrorCodes.NOT_FOUND),
    (NoBillableItemsError, 400, ErrorCodes.NO_BILLABLE_ITEMS),
    (ProjectClientMismatchError, 400, ErrorCodes.PROJECT_CLIENT_MISMATCH),
    (ConcurrentInvoicingConflictError, 409, ErrorCodes.CONCURRENT_INVOICING_CONFLICT),
    (InvoicedRecordImmutableError, 409, ErrorCodes.RECORD_INVOICED),
    (OverlappingTimeEntryError, 409, ErrorCodes.TIME_ENTRY_OVERLAP),
    (InvalidStatusTransitionError, 409, ErrorCodes.INVALID_STATUS_TRANSITION),
    (InvoiceNotEditableError, 409, ErrorCodes.INVOICE_NOT_EDITABLE),
    (TransactionFailureError, 500, ErrorCodes.TRANSACTION_FAILED),
]


def status_for(exc: InvoicingError) -> tuple[int, str]:
    """HTTP status and error code for an invoicing error."""
    for error_type, status_code, code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code, code
    return 500, ErrorCodes.INTERNAL_ERROR


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the app."""

    @app.exception_handler(InvoicingError)
    async def invoicing_error_handler(request: Request, exc: InvoicingError):
        status_code, code = status_for(exc)
        if status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        else:
            logger.info("%s %s rejected (%s): %s", request.method, request.url.path, code, exc)
        return JSONResponse(
            status_code=status_code,
            content=error_response(
                code, str(exc), exc.details() or None, _request_id(request)
            ).model_dump(mode="json"),
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return JSONResponse(
            status_code=400,
            content=error_response(
                ErrorCodes.INVALID_REQUEST, str(exc), request_id=_request_id(request)
            ).model_dump(mode="json"),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content=error_response(
                ErrorCodes.VALIDATION_ERROR,
                str(exc.errors()),
                request_id=_request_id(request),
            ).model_dump(mode="json"),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        return JSONResponse(
            status_code=500,
            content=error_response(
                ErrorCodes.INTERNAL_ERROR,
                "An internal error occurred",
                request_id=_request_id(request),
            ).model_dump(mode="json"),
        )
