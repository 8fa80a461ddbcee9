"""Expense domain models."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class ExpenseCreate(BaseModel):
    """Data required to record an expense."""

    project_id: int = Field(..., gt=0)
    expense_date: date
    description: str | None = Field(None, max_length=500)
    amount: Decimal = Field(..., ge=0, decimal_places=2)
    is_billable: bool = True


class ExpenseUpdate(BaseModel):
    """Data that can be updated on an expense. All fields optional."""

    expense_date: date | None = None
    description: str | None = Field(None, max_length=500)
    amount: Decimal | None = Field(None, ge=0, decimal_places=2)
    is_billable: bool | None = None


class Expense(BaseModel):
    """Full expense entity as stored."""

    id: int
    project_id: int
    expense_date: date
    description: str | None
    amount: Decimal
    is_billable: bool
    is_invoiced: bool
    invoice_id: int | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
