"""Invoice line item models.

Drafts are produced by aggregation and carry the ids of every source record
they bill; persisted line items are what the database holds.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, computed_field

from utils.money import round_to_cents


class LineItemType(str, Enum):
    """What a line bills."""

    TIME = "time"
    EXPENSE = "expense"
    MANUAL = "manual"


class _LineDraft(BaseModel):
    description: str
    quantity: Decimal
    unit_price: Decimal

    model_config = {"frozen": True}

    @computed_field
    @property
    def amount(self) -> Decimal:
        """quantity x unit_price, rounded to cents on this line."""
        return round_to_cents(self.quantity * self.unit_price)


class TimeLineDraft(_LineDraft):
    """
    One or more time entries billed as a single line.

    linked_time_entry_id is only set when the line represents exactly one
    entry; time_entry_ids always lists every entry to mark invoiced.
    """

    type: Literal["time"] = "time"
    time_entry_ids: tuple[int, ...]
    linked_time_entry_id: int | None = None


class ExpenseLineDraft(_LineDraft):
    """A single expense billed at its recorded amount."""

    type: Literal["expense"] = "expense"
    linked_expense_id: int


class ManualLineDraft(_LineDraft):
    """A free-form charge with no source record."""

    type: Literal["manual"] = "manual"


LineDraft = Annotated[
    Union[TimeLineDraft, ExpenseLineDraft, ManualLineDraft],
    Field(discriminator="type"),
]


class LineItemCreate(BaseModel):
    """
    A manual charge added to a draft invoice.

    Time and expense lines only come from generation, which links them to
    their source records.
    """

    type: Literal["manual"] = "manual"
    description: str = Field(..., min_length=1, max_length=500)
    quantity: Decimal = Field(Decimal("1"), gt=0, decimal_places=2)
    unit_price: Decimal = Field(..., decimal_places=2)


class LineItemUpdate(BaseModel):
    """Data that can be updated on a line item. All fields optional."""

    description: str | None = Field(None, min_length=1, max_length=500)
    quantity: Decimal | None = Field(None, gt=0, decimal_places=2)
    unit_price: Decimal | None = Field(None, decimal_places=2)


class InvoiceLineItem(BaseModel):
    """Full line item entity as stored."""

    id: int
    invoice_id: int
    type: LineItemType
    description: str
    quantity: Decimal
    unit_price: Decimal
    amount: Decimal
    linked_time_entry_id: int | None = None
    linked_expense_id: int | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
