"""Tests for the invoice, client and tracking routes with mocked services."""

from datetime import date, datetime, timezone
from decimal import Decimal

from core.exceptions import (
    ConcurrentInvoicingConflictError,
    InvalidStatusTransitionError,
    InvoicedRecordImmutableError,
    NoBillableItemsError,
    NotFoundError,
    OverlappingTimeEntryError,
    ProjectClientMismatchError,
    TransactionFailureError,
)
from core.models import (
    GeneratedInvoice,
    Invoice,
    InvoiceLineItem,
    InvoiceStatus,
    ProjectUninvoicedSummary,
    TimeLineDraft,
)

NOW = datetime(2025, 1, 15, tzinfo=timezone.utc)

GENERATE_BODY = {"date_invoiced": "2025-01-15", "up_to_date": "2025-01-15"}


def make_invoice(status=InvoiceStatus.DRAFT) -> Invoice:
    return Invoice(
        id=1, number="INV-0001", client_id=1, project_id=1,
        date_invoiced=date(2025, 1, 15), due_date=date(2025, 2, 14), status=status,
        subtotal=Decimal("100.00"), total=Decimal("100.00"), notes=None,
        created_at=NOW, updated_at=NOW,
    )


def make_line() -> InvoiceLineItem:
    return InvoiceLineItem(
        id=1, invoice_id=1, type="time", description="2025-01-10 - Design",
        quantity=Decimal("1.0"), unit_price=Decimal("100.00"), amount=Decimal("100.00"),
        linked_time_entry_id=10, created_at=NOW, updated_at=NOW,
    )


# =============================================================================
# GENERATION
# =============================================================================


class TestGenerateProjectInvoice:
    """POST /api/projects/{id}/invoices"""

    def test_created(self, client, invoice_service):
        invoice_service.generate_for_project.return_value = GeneratedInvoice(
            invoice=make_invoice(), line_items=[make_line()]
        )

        response = client.post("/api/projects/1/invoices", json=GENERATE_BODY)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["data"]["invoice"]["number"] == "INV-0001"
        assert body["data"]["invoice"]["total"] == "100.00"
        assert body["data"]["line_items"][0]["amount"] == "100.00"

        project_id, options = invoice_service.generate_for_project.call_args.args
        assert project_id == 1
        assert options.up_to_date == date(2025, 1, 15)
        assert options.group_by_day is False
        assert options.include_notes is True

    def test_no_billable_items_is_400(self, client, invoice_service):
        invoice_service.generate_for_project.side_effect = NoBillableItemsError([1], date(2025, 1, 15))

        response = client.post("/api/projects/1/invoices", json=GENERATE_BODY)

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "NO_BILLABLE_ITEMS"
        assert error["details"] == {"project_ids": [1], "up_to_date": "2025-01-15"}

    def test_unknown_project_is_404(self, client, invoice_service):
        invoice_service.generate_for_project.side_effect = NotFoundError("project", 9)

        response = client.post("/api/projects/9/invoices", json=GENERATE_BODY)

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Project 9 not found"

    def test_conflict_is_409(self, client, invoice_service):
        invoice_service.generate_for_project.side_effect = ConcurrentInvoicingConflictError(
            time_entry_ids=[10]
        )

        response = client.post("/api/projects/1/invoices", json=GENERATE_BODY)

        assert response.status_code == 409
        assert response.json()["error"]["details"]["time_entry_ids"] == [10]

    def test_transaction_failure_is_500(self, client, invoice_service):
        invoice_service.generate_for_project.side_effect = TransactionFailureError("rolled back")

        response = client.post("/api/projects/1/invoices", json=GENERATE_BODY)

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "TRANSACTION_FAILED"

    def test_missing_cutoff_is_422(self, client, invoice_service):
        response = client.post("/api/projects/1/invoices", json={"date_invoiced": "2025-01-15"})

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"
        invoice_service.generate_for_project.assert_not_called()

    def test_request_id_echoed_in_meta(self, client, invoice_service):
        invoice_service.generate_for_project.return_value = GeneratedInvoice(
            invoice=make_invoice(), line_items=[]
        )

        response = client.post(
            "/api/projects/1/invoices", json=GENERATE_BODY, headers={"X-Request-ID": "r-1"}
        )

        assert response.json()["meta"]["request_id"] == "r-1"


class TestGenerateClientInvoice:
    """POST /api/clients/{id}/invoices"""

    def test_created(self, client, invoice_service):
        invoice_service.generate_for_client.return_value = GeneratedInvoice(
            invoice=make_invoice(), line_items=[]
        )

        response = client.post(
            "/api/clients/1/invoices", json={**GENERATE_BODY, "project_ids": [2, 1]}
        )

        assert response.status_code == 201
        options = invoice_service.generate_for_client.call_args.args[1]
        assert options.project_ids == [2, 1]

    def test_empty_project_ids_is_422(self, client):
        response = client.post("/api/clients/1/invoices", json={**GENERATE_BODY, "project_ids": []})
        assert response.status_code == 422

    def test_foreign_project_is_400(self, client, invoice_service):
        invoice_service.generate_for_client.side_effect = ProjectClientMismatchError(1, [5])

        response = client.post("/api/clients/1/invoices", json={**GENERATE_BODY, "project_ids": [5]})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "PROJECT_CLIENT_MISMATCH"


class TestPreview:
    """GET /api/projects/{id}/invoice-preview"""

    def test_drafts_include_amount(self, client, invoice_service):
        invoice_service.preview_for_project.return_value = [
            TimeLineDraft(description="Time entries for 2025-01-10", quantity=Decimal("1.5"),
                          unit_price=Decimal("33.33"), time_entry_ids=(1, 2)),
        ]

        response = client.get(
            "/api/projects/1/invoice-preview",
            params={"up_to_date": "2025-01-15", "group_by_day": "true"},
        )

        assert response.status_code == 200
        draft = response.json()["data"][0]
        assert draft["type"] == "time"
        assert draft["amount"] == "50.00"
        invoice_service.preview_for_project.assert_called_once_with(
            1, date(2025, 1, 15), group_by_day=True, include_notes=True
        )


# =============================================================================
# READS AND LIFECYCLE
# =============================================================================


class TestListInvoices:
    """GET /api/invoices"""

    def test_unfiltered(self, client, invoice_service):
        invoice_service.list_invoices.return_value = [make_invoice()]

        response = client.get("/api/invoices")

        assert response.status_code == 200
        assert response.json()["data"][0]["number"] == "INV-0001"
        invoice_service.list_invoices.assert_called_once_with(
            status=None, client_id=None, project_id=None, date_from=None, date_to=None
        )

    def test_filters_passed_through(self, client, invoice_service):
        invoice_service.list_invoices.return_value = []

        response = client.get("/api/invoices", params={
            "status": "sent", "client_id": 3, "project_id": 4,
            "from": "2025-01-01", "to": "2025-01-31",
        })

        assert response.status_code == 200
        invoice_service.list_invoices.assert_called_once_with(
            status=InvoiceStatus.SENT, client_id=3, project_id=4,
            date_from=date(2025, 1, 1), date_to=date(2025, 1, 31),
        )

    def test_unknown_status_is_422(self, client, invoice_service):
        response = client.get("/api/invoices", params={"status": "overdue"})

        assert response.status_code == 422
        invoice_service.list_invoices.assert_not_called()


class TestInvoiceLifecycle:
    """GET /api/invoices/{id} and status changes."""

    def test_history(self, client, invoice_service):
        invoice_service.history.return_value = [{
            "id": 1, "entity_type": "invoice", "entity_id": 1, "action": "create",
            "changes": {"created": {"number": "INV-0001"}}, "created_at": NOW,
        }]

        response = client.get("/api/invoices/1/history")

        assert response.status_code == 200
        entry = response.json()["data"][0]
        assert entry["action"] == "create"
        assert entry["created_at"].startswith("2025-01-15T00:00:00")

    def test_history_of_missing_invoice_is_404(self, client, invoice_service):
        invoice_service.history.side_effect = NotFoundError("invoice", 9)

        response = client.get("/api/invoices/9/history")

        assert response.status_code == 404

    def test_get_with_lines(self, client, invoice_service):
        invoice_service.get_by_id.return_value = make_invoice()
        invoice_service.list_line_items.return_value = [make_line()]

        response = client.get("/api/invoices/1")

        assert response.status_code == 200
        assert len(response.json()["data"]["line_items"]) == 1

    def test_get_missing_is_404(self, client, invoice_service):
        invoice_service.get_by_id.return_value = None

        response = client.get("/api/invoices/404")

        assert response.status_code == 404

    def test_send(self, client, invoice_service):
        invoice_service.send.return_value = make_invoice(InvoiceStatus.SENT)

        response = client.post("/api/invoices/1/send")

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "sent"

    def test_pay_with_date(self, client, invoice_service):
        invoice_service.mark_paid.return_value = make_invoice(InvoiceStatus.PAID)

        response = client.post("/api/invoices/1/pay", json={"date_paid": "2025-02-01"})

        assert response.status_code == 200
        invoice_service.mark_paid.assert_called_once_with(1, date(2025, 2, 1))

    def test_invalid_transition_is_409(self, client, invoice_service):
        invoice_service.cancel.side_effect = InvalidStatusTransitionError(1, "paid", "cancelled")

        response = client.post("/api/invoices/1/cancel")

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "INVALID_STATUS_TRANSITION"


# =============================================================================
# CLIENTS
# =============================================================================


class TestUninvoicedSummary:
    """GET /api/clients/{id}/uninvoiced-summary"""

    def test_summary(self, client, client_service):
        client_service.uninvoiced_summary.return_value = [ProjectUninvoicedSummary(
            project_id=1, project_name="Website", hourly_rate=Decimal("100.00"),
            uninvoiced_hours=Decimal("2.5"), time_amount=Decimal("250.00"),
            expense_amount=Decimal("0.00"), total_amount=Decimal("250.00"),
        )]

        response = client.get("/api/clients/1/uninvoiced-summary", params={"up_to_date": "2025-01-31"})

        assert response.status_code == 200
        assert response.json()["data"][0]["total_amount"] == "250.00"
        client_service.uninvoiced_summary.assert_called_once_with(1, date(2025, 1, 31))


# =============================================================================
# TRACKING
# =============================================================================


class TestTracking:
    """Time entry and expense routes map service errors to 409."""

    def test_overlap_is_409(self, client, time_entry_service):
        time_entry_service.create.side_effect = OverlappingTimeEntryError(4)

        response = client.post("/api/time-entries", json={
            "project_id": 1,
            "start_at": "2025-01-10T09:00:00Z",
            "end_at": "2025-01-10T10:00:00Z",
        })

        assert response.status_code == 409
        assert response.json()["error"]["details"] == {"conflicting_entry_id": 4}

    def test_end_before_start_is_422(self, client, time_entry_service):
        response = client.post("/api/time-entries", json={
            "project_id": 1,
            "start_at": "2025-01-10T10:00:00Z",
            "end_at": "2025-01-10T09:00:00Z",
        })

        assert response.status_code == 422
        time_entry_service.create.assert_not_called()

    def test_delete_invoiced_time_entry_is_409(self, client, time_entry_service):
        time_entry_service.delete.side_effect = InvoicedRecordImmutableError("time_entry", 3, "delete")

        response = client.delete("/api/time-entries/3")

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "RECORD_INVOICED"

    def test_edit_invoiced_expense_is_409(self, client, expense_service):
        expense_service.update.side_effect = InvoicedRecordImmutableError("expense", 2, "edit")

        response = client.put("/api/expenses/2", json={"amount": "20.00"})

        assert response.status_code == 409
        assert response.json()["error"]["message"] == "Cannot edit invoiced expense 2"
