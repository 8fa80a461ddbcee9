"""API test fixtures: the real app wired to mocked services."""

from unittest.mock import Mock

import pytest
from starlette.testclient import TestClient

from core.services.client_service import ClientService
from core.services.expense_service import ExpenseService
from core.services.invoice_service import InvoiceService
from core.services.settings_service import SettingsService
from core.services.time_entry_service import TimeEntryService
from main import create_app


# =============================================================================
# SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def invoice_service():
    return Mock(spec=InvoiceService)


@pytest.fixture
def client_service():
    return Mock(spec=ClientService)


@pytest.fixture
def time_entry_service():
    return Mock(spec=TimeEntryService)


@pytest.fixture
def expense_service():
    return Mock(spec=ExpenseService)


@pytest.fixture
def settings_service():
    return Mock(spec=SettingsService)


@pytest.fixture
def services(invoice_service, client_service, time_entry_service, expense_service, settings_service):
    return {
        "invoice": invoice_service,
        "client": client_service,
        "time_entry": time_entry_service,
        "expense": expense_service,
        "settings": settings_service,
    }


# =============================================================================
# APP & CLIENT FIXTURES
# =============================================================================


@pytest.fixture
def app(services):
    """FastAPI app with middleware, error handlers and every router."""
    return create_app(services)


@pytest.fixture
def client(app):
    return TestClient(app, raise_server_exceptions=False)
