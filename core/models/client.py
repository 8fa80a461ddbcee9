"""Client and project domain models."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class Client(BaseModel):
    """Full client entity as stored."""

    id: int
    name: str
    email: str | None = None
    contact_person: str | None = None
    default_hourly_rate: Decimal = Decimal("0")
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class Project(BaseModel):
    """
    Full project entity as stored.

    hourly_rate is the unit price of every time line billed for the project.
    """

    id: int
    client_id: int
    name: str
    hourly_rate: Decimal = Field(..., ge=0)
    active: bool = True
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ProjectUninvoicedSummary(BaseModel):
    """What a project would bill if invoiced now."""

    project_id: int
    project_name: str
    hourly_rate: Decimal
    uninvoiced_hours: Decimal
    time_amount: Decimal
    expense_amount: Decimal
    total_amount: Decimal
