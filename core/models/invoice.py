"""Invoice domain models.

Amounts are currency-precision Decimals (NUMERIC(12, 2) in the database),
rounded half-up to cents per line before any summing.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field

from core.models.line_item import InvoiceLineItem


class InvoiceStatus(str, Enum):
    """Invoice lifecycle status."""

    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    CANCELLED = "cancelled"


# target status -> statuses it may be reached from
ALLOWED_TRANSITIONS: dict[InvoiceStatus, set[InvoiceStatus]] = {
    InvoiceStatus.SENT: {InvoiceStatus.DRAFT},
    InvoiceStatus.PAID: {InvoiceStatus.SENT},
    InvoiceStatus.CANCELLED: {InvoiceStatus.DRAFT, InvoiceStatus.SENT},
}


class InvoiceGenerate(BaseModel):
    """Options for generating an invoice from a project's billable items."""

    date_invoiced: date
    up_to_date: date
    notes: str | None = Field(None, max_length=2000)
    group_by_day: bool = False
    include_notes: bool = True


class ClientInvoiceGenerate(InvoiceGenerate):
    """Options for one invoice spanning several of a client's projects."""

    project_ids: list[int] = Field(..., min_length=1)


class Invoice(BaseModel):
    """Full invoice entity as stored."""

    id: int
    number: str
    client_id: int
    project_id: int
    date_invoiced: date
    due_date: date
    status: InvoiceStatus
    subtotal: Decimal
    total: Decimal
    notes: str | None
    date_sent: date | None = None
    date_paid: date | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @property
    def is_editable(self) -> bool:
        """Line items may only change while the invoice is a draft."""
        return self.status == InvoiceStatus.DRAFT


class GeneratedInvoice(BaseModel):
    """Result of invoice generation: the header and its persisted lines."""

    invoice: Invoice
    line_items: list[InvoiceLineItem]
