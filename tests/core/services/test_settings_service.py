"""Tests for SettingsService: company details and counter reseeding."""

from contextlib import contextmanager
from datetime import date, datetime, timezone
from unittest.mock import Mock

import pytest

from clients.postgres_client import PostgresClient, Transaction
from core.audit import AuditAction, AuditLogger
from core.config import InvoicingConfig
from core.exceptions import NotFoundError
from core.models import SettingsUpdate
from core.services.settings_service import SettingsService

NOW = datetime(2025, 1, 15, tzinfo=timezone.utc)


def settings_row(**overrides):
    row = {
        "id": 1, "company_name": "Acme Consulting", "company_address": "",
        "company_email": "", "company_phone": "", "invoice_footer_markdown": "",
        "next_invoice_number": 5, "created_at": NOW, "updated_at": NOW,
    }
    row.update(overrides)
    return row


@pytest.fixture
def tx():
    return Mock(spec=Transaction)


@pytest.fixture
def postgres(tx):
    pg = Mock(spec=PostgresClient)

    @contextmanager
    def transaction():
        yield tx

    pg.transaction.side_effect = transaction
    return pg


@pytest.fixture
def audit():
    return Mock(spec=AuditLogger)


@pytest.fixture
def service(postgres, audit):
    return SettingsService(postgres, audit, InvoicingConfig())


# =============================================================================
# UNIT
# =============================================================================


class TestGet:
    """get()"""

    def test_adds_configured_timezone(self, service, postgres):
        postgres.execute_single.return_value = settings_row()

        settings = service.get()

        assert settings.next_invoice_number == 5
        assert settings.business_timezone == "Pacific/Auckland"

    def test_missing_row(self, service, postgres):
        postgres.execute_single.return_value = None

        with pytest.raises(NotFoundError):
            service.get()


class TestUpdate:
    """update() locks the row and audits the change."""

    def test_locks_before_writing(self, service, tx):
        tx.execute_single.side_effect = [settings_row(), None]
        tx.execute_returning.return_value = [settings_row(next_invoice_number=50)]

        updated = service.update(SettingsUpdate(next_invoice_number=50))

        assert updated.next_invoice_number == 50
        lock_sql = tx.execute_single.call_args_list[0].args[0]
        assert "FOR UPDATE" in lock_sql
        sql, params = tx.execute_returning.call_args.args
        assert "next_invoice_number = %s" in sql
        assert params[0] == 50

    def test_checks_formatted_number_is_unissued(self, service, tx):
        tx.execute_single.side_effect = [settings_row(), {"id": 3}]

        with pytest.raises(ValueError, match="INV-0003"):
            service.update(SettingsUpdate(next_invoice_number=3))

        tx.execute_returning.assert_not_called()
        assert tx.execute_single.call_args.args[1] == ("INV-0003",)

    def test_company_details_skip_number_check(self, service, tx):
        tx.execute_single.return_value = settings_row()
        tx.execute_returning.return_value = [settings_row(company_name="Renamed Ltd")]

        service.update(SettingsUpdate(company_name="Renamed Ltd"))

        assert tx.execute_single.call_count == 1

    def test_audits_changed_fields(self, service, tx, audit):
        tx.execute_single.side_effect = [settings_row(), None]
        tx.execute_returning.return_value = [settings_row(next_invoice_number=50)]

        service.update(SettingsUpdate(next_invoice_number=50))

        kwargs = audit.log_change.call_args.kwargs
        assert kwargs["entity_type"] == "settings"
        assert kwargs["action"] == AuditAction.UPDATE
        assert kwargs["changes"] == {"next_invoice_number": {"old": 5, "new": 50}}
        assert kwargs["tx"] is tx

    def test_empty_update_returns_current(self, service, tx, audit):
        tx.execute_single.return_value = settings_row()

        current = service.update(SettingsUpdate())

        assert current.company_name == "Acme Consulting"
        tx.execute_returning.assert_not_called()
        audit.log_change.assert_not_called()


# =============================================================================
# DATABASE
# =============================================================================


@pytest.fixture
def settings_service(clean_db):
    return SettingsService(clean_db, AuditLogger(clean_db), InvoicingConfig())


class TestSettingsLive:
    """Reseeding against a real database."""

    def test_reseeded_counter_numbers_next_invoice(self, settings_service, seed):
        from core.models import InvoiceGenerate
        from core.services.invoice_service import InvoiceService

        client_id = seed.client()
        project_id = seed.project(client_id)
        seed.time_entry(
            project_id,
            datetime(2025, 1, 10, 9, tzinfo=timezone.utc),
            datetime(2025, 1, 10, 10, tzinfo=timezone.utc),
            "1.0",
        )

        settings_service.update(SettingsUpdate(next_invoice_number=42))
        invoices = InvoiceService(seed.db, AuditLogger(seed.db), InvoicingConfig())
        result = invoices.generate_for_project(
            project_id, InvoiceGenerate(date_invoiced=date(2025, 1, 15), up_to_date=date(2025, 1, 15))
        )

        assert result.invoice.number == "INV-0042"
        assert settings_service.get().next_invoice_number == 43

    def test_company_details_persist(self, settings_service):
        settings_service.update(SettingsUpdate(company_name="Acme Consulting", company_phone="021 555 0100"))

        settings = settings_service.get()

        assert settings.company_name == "Acme Consulting"
        assert settings.company_phone == "021 555 0100"
        assert settings.next_invoice_number == 1
