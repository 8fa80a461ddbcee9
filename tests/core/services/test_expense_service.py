"""Tests for ExpenseService."""

from contextlib import contextmanager
from datetime import date, datetime, timezone
from decimal import Decimal
from unittest.mock import Mock

import pytest

from clients.postgres_client import PostgresClient, Transaction
from core.audit import AuditLogger
from core.exceptions import InvoicedRecordImmutableError, NotFoundError
from core.models import ExpenseCreate, ExpenseUpdate
from core.services.expense_service import ExpenseService

NOW = datetime(2025, 1, 10, tzinfo=timezone.utc)


def expense_row(id=1, is_invoiced=False, amount="12.50"):
    return {
        "id": id, "project_id": 1, "expense_date": date(2025, 1, 10),
        "description": "Parking", "amount": Decimal(amount), "is_billable": True,
        "is_invoiced": is_invoiced, "invoice_id": 5 if is_invoiced else None,
        "created_at": NOW, "updated_at": NOW,
    }


@pytest.fixture
def tx():
    return Mock(spec=Transaction)


@pytest.fixture
def audit():
    return Mock(spec=AuditLogger)


@pytest.fixture
def service(tx, audit):
    postgres = Mock(spec=PostgresClient)

    @contextmanager
    def transaction():
        yield tx

    postgres.transaction.side_effect = transaction
    return ExpenseService(postgres, audit)


class TestCreate:
    """create()"""

    def test_inserts_and_audits(self, service, tx, audit):
        tx.execute_single.return_value = {"id": 1}
        tx.execute_returning.return_value = [expense_row()]

        expense = service.create(ExpenseCreate(
            project_id=1, expense_date=date(2025, 1, 10), description="Parking",
            amount=Decimal("12.50"),
        ))

        assert expense.amount == Decimal("12.50")
        assert audit.log_change.call_args.kwargs["tx"] is tx

    def test_unknown_project(self, service, tx):
        tx.execute_single.return_value = None

        with pytest.raises(NotFoundError):
            service.create(ExpenseCreate(
                project_id=4, expense_date=date(2025, 1, 10), amount=Decimal("1.00")
            ))


class TestUpdate:
    """update()"""

    def test_invoiced_expense_rejected(self, service, tx):
        tx.execute_single.return_value = expense_row(is_invoiced=True)

        with pytest.raises(InvoicedRecordImmutableError, match="Cannot edit invoiced expense 1"):
            service.update(1, ExpenseUpdate(amount=Decimal("20.00")))

    def test_only_given_fields_updated(self, service, tx, audit):
        tx.execute_single.return_value = expense_row()
        tx.execute_returning.return_value = [expense_row(amount="20.00")]

        service.update(1, ExpenseUpdate(amount=Decimal("20.00")))

        sql, params = tx.execute_returning.call_args.args
        assert "amount = %s" in sql
        assert "description" not in sql
        assert params[0] == Decimal("20.00")
        assert params[-1] == 1
        changes = audit.log_change.call_args.kwargs["changes"]
        assert changes["amount"] == {"old": "12.50", "new": "20.00"}

    def test_empty_update_is_noop(self, service, tx):
        tx.execute_single.return_value = expense_row()

        expense = service.update(1, ExpenseUpdate())

        assert expense.id == 1
        tx.execute_returning.assert_not_called()


class TestDelete:
    """delete()"""

    def test_invoiced_expense_rejected(self, service, tx):
        tx.execute_single.return_value = expense_row(is_invoiced=True)

        with pytest.raises(InvoicedRecordImmutableError):
            service.delete(1)

    def test_missing_expense(self, service, tx):
        tx.execute_single.return_value = None

        with pytest.raises(NotFoundError, match="Expense 2 not found"):
            service.delete(2)
