"""Invoice endpoints: generation, preview, lifecycle and draft line editing."""

from datetime import date

from fastapi import APIRouter, Query, Request
from pydantic import BaseModel

from api.base import success_response
from core.exceptions import NotFoundError
from core.models import (
    ClientInvoiceGenerate,
    GeneratedInvoice,
    InvoiceGenerate,
    InvoiceStatus,
    LineItemCreate,
    LineItemUpdate,
)


class PaymentRequest(BaseModel):
    date_paid: date | None = None


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def create_invoices_router(services: dict) -> APIRouter:
    router = APIRouter()

    invoice_svc = services["invoice"]

    def _with_lines(invoice_id: int) -> dict:
        invoice = invoice_svc.get_by_id(invoice_id)
        if invoice is None:
            raise NotFoundError("invoice", invoice_id)
        result = GeneratedInvoice(
            invoice=invoice, line_items=invoice_svc.list_line_items(invoice_id)
        )
        return result.model_dump(mode="json")

    # -------------------------------------------------------------------------
    # Generation
    # -------------------------------------------------------------------------

    @router.post("/projects/{project_id}/invoices", status_code=201)
    def generate_project_invoice(request: Request, project_id: int, body: InvoiceGenerate):
        result = invoice_svc.generate_for_project(project_id, body)
        return success_response(
            result.model_dump(mode="json"), _request_id(request)
        ).model_dump(mode="json")

    @router.get("/projects/{project_id}/invoice-preview")
    def preview_project_invoice(
        request: Request,
        project_id: int,
        up_to_date: date = Query(...),
        group_by_day: bool = Query(False),
        include_notes: bool = Query(True),
    ):
        drafts = invoice_svc.preview_for_project(
            project_id, up_to_date, group_by_day=group_by_day, include_notes=include_notes
        )
        return success_response(
            [d.model_dump(mode="json") for d in drafts], _request_id(request)
        ).model_dump(mode="json")

    @router.post("/clients/{client_id}/invoices", status_code=201)
    def generate_client_invoice(request: Request, client_id: int, body: ClientInvoiceGenerate):
        result = invoice_svc.generate_for_client(client_id, body)
        return success_response(
            result.model_dump(mode="json"), _request_id(request)
        ).model_dump(mode="json")

    # -------------------------------------------------------------------------
    # Reads and lifecycle
    # -------------------------------------------------------------------------

    @router.get("/invoices")
    def list_invoices(
        request: Request,
        status: InvoiceStatus | None = Query(None),
        client_id: int | None = Query(None),
        project_id: int | None = Query(None),
        date_from: date | None = Query(None, alias="from"),
        date_to: date | None = Query(None, alias="to"),
    ):
        invoices = invoice_svc.list_invoices(
            status=status,
            client_id=client_id,
            project_id=project_id,
            date_from=date_from,
            date_to=date_to,
        )
        return success_response(
            [i.model_dump(mode="json") for i in invoices], _request_id(request)
        ).model_dump(mode="json")

    @router.get("/invoices/{invoice_id}")
    def get_invoice(request: Request, invoice_id: int):
        return success_response(_with_lines(invoice_id), _request_id(request)).model_dump(mode="json")

    @router.get("/invoices/{invoice_id}/history")
    def invoice_history(request: Request, invoice_id: int):
        return success_response(invoice_svc.history(invoice_id), _request_id(request)).model_dump(mode="json")

    @router.post("/invoices/{invoice_id}/send")
    def send_invoice(request: Request, invoice_id: int):
        invoice = invoice_svc.send(invoice_id)
        return success_response(invoice.model_dump(mode="json"), _request_id(request)).model_dump(mode="json")

    @router.post("/invoices/{invoice_id}/pay")
    def pay_invoice(request: Request, invoice_id: int, body: PaymentRequest | None = None):
        date_paid = body.date_paid if body else None
        invoice = invoice_svc.mark_paid(invoice_id, date_paid)
        return success_response(invoice.model_dump(mode="json"), _request_id(request)).model_dump(mode="json")

    @router.post("/invoices/{invoice_id}/cancel")
    def cancel_invoice(request: Request, invoice_id: int):
        invoice = invoice_svc.cancel(invoice_id)
        return success_response(invoice.model_dump(mode="json"), _request_id(request)).model_dump(mode="json")

    # -------------------------------------------------------------------------
    # Draft line editing
    # -------------------------------------------------------------------------

    @router.post("/invoices/{invoice_id}/lines", status_code=201)
    def add_line(request: Request, invoice_id: int, body: LineItemCreate):
        line = invoice_svc.add_line_item(invoice_id, body)
        return success_response(line.model_dump(mode="json"), _request_id(request)).model_dump(mode="json")

    @router.put("/invoice-lines/{line_id}")
    def update_line(request: Request, line_id: int, body: LineItemUpdate):
        line = invoice_svc.update_line_item(line_id, body)
        return success_response(line.model_dump(mode="json"), _request_id(request)).model_dump(mode="json")

    @router.delete("/invoice-lines/{line_id}")
    def delete_line(request: Request, line_id: int):
        invoice = invoice_svc.delete_line_item(line_id)
        return success_response(invoice.model_dump(mode="json"), _request_id(request)).model_dump(mode="json")

    return router
