"""Business settings (singleton row) models."""

from datetime import datetime

from pydantic import BaseModel, Field


class SettingsUpdate(BaseModel):
    """Data that can be updated on the settings row. All fields optional."""

    company_name: str | None = Field(None, min_length=1, max_length=200)
    company_address: str | None = Field(None, max_length=500)
    company_email: str | None = Field(None, max_length=254)
    company_phone: str | None = Field(None, max_length=50)
    invoice_footer_markdown: str | None = Field(None, max_length=5000)
    next_invoice_number: int | None = Field(None, gt=0)


class Settings(BaseModel):
    """
    The settings row (always id=1).

    next_invoice_number is the only source of invoice numbers. Generation
    advances it inside the invoice transaction; updates here reseed it.
    business_timezone comes from configuration, not the database.
    """

    id: int = 1
    company_name: str
    company_address: str
    company_email: str
    company_phone: str
    invoice_footer_markdown: str
    next_invoice_number: int
    business_timezone: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
