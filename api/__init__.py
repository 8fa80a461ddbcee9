"""API modules for HTTP interface."""

from api.base import (
    APIError,
    APIMeta,
    APIResponse,
    success_response,
    error_response,
    ErrorCodes,
)
from api.errors import register_error_handlers
from api.middleware import RequestIDMiddleware
from api.invoices import create_invoices_router
from api.clients import create_clients_router
from api.tracking import create_tracking_router
from api.settings import create_settings_router
