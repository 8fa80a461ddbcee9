"""Time entry domain models."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, model_validator


class TimeEntryCreate(BaseModel):
    """Manually logged time. end_at omitted means a running timer."""

    project_id: int = Field(..., gt=0)
    start_at: datetime
    end_at: datetime | None = None
    note: str | None = Field(None, max_length=2000)

    @model_validator(mode="after")
    def require_ordered_interval(self) -> "TimeEntryCreate":
        """Reject intervals that end before they start."""
        if self.end_at is not None and self.end_at < self.start_at:
            raise ValueError("end_at must not be before start_at")
        return self


class TimeEntryUpdate(BaseModel):
    """Data that can be updated on a time entry. All fields optional."""

    project_id: int | None = Field(None, gt=0)
    start_at: datetime | None = None
    end_at: datetime | None = None
    note: str | None = Field(None, max_length=2000)


class TimeEntry(BaseModel):
    """Full time entry entity as stored."""

    id: int
    project_id: int
    start_at: datetime
    end_at: datetime | None
    total_hours: Decimal
    note: str | None
    is_invoiced: bool
    invoice_id: int | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @property
    def is_running(self) -> bool:
        """Timer still running; never invoiceable."""
        return self.end_at is None
