"""Response envelope shared by every endpoint."""

from typing import Any
from datetime import datetime
from uuid import uuid4

from pydantic import BaseModel, Field

from utils.timezone import now_utc


class APIError(BaseModel):
    """Error details in API response."""

    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] | None = Field(None, description="Ids and values behind the error")


class APIMeta(BaseModel):
    """Metadata included in every API response."""

    timestamp: datetime = Field(..., description="Response timestamp (UTC)")
    request_id: str = Field(..., description="Request identifier for tracing")


class APIResponse(BaseModel):
    """
    Envelope returned by all endpoints.

    Exactly one of data and error is set, matching success.
    """

    success: bool
    data: Any | None = None
    error: APIError | None = None
    meta: APIMeta


def _meta(request_id: str | None) -> APIMeta:
    return APIMeta(timestamp=now_utc(), request_id=request_id or str(uuid4()))


def success_response(data: Any, request_id: str | None = None) -> APIResponse:
    """Create a success response."""
    return APIResponse(success=True, data=data, error=None, meta=_meta(request_id))


def error_response(
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> APIResponse:
    """Create an error response."""
    return APIResponse(
        success=False,
        data=None,
        error=APIError(code=code, message=message, details=details),
        meta=_meta(request_id),
    )


class ErrorCodes:
    """Machine-readable error codes carried in APIError.code."""

    # Resource Errors
    NOT_FOUND = "NOT_FOUND"

    # Validation Errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_REQUEST = "INVALID_REQUEST"

    # Invoicing
    NO_BILLABLE_ITEMS = "NO_BILLABLE_ITEMS"
    PROJECT_CLIENT_MISMATCH = "PROJECT_CLIENT_MISMATCH"
    CONCURRENT_INVOICING_CONFLICT = "CONCURRENT_INVOICING_CONFLICT"
    INVALID_STATUS_TRANSITION = "INVALID_STATUS_TRANSITION"
    INVOICE_NOT_EDITABLE = "INVOICE_NOT_EDITABLE"

    # Time & Expenses
    RECORD_INVOICED = "RECORD_INVOICED"
    TIME_ENTRY_OVERLAP = "TIME_ENTRY_OVERLAP"

    # Infrastructure
    TRANSACTION_FAILED = "TRANSACTION_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"
