"""Invoicing configuration."""

import os

from pydantic import BaseModel, Field, field_validator

from utils.timezone import get_zone


class InvoicingConfig(BaseModel):
    """
    Business-level invoicing policy.

    The timezone decides which calendar day a time entry belongs to, both for
    the cutoff boundary and for grouped-by-day lines. It is never UTC by
    accident: set it to where the work is billed from.
    """

    business_timezone: str = Field(
        default="Pacific/Auckland",
        description="IANA timezone used for calendar-day boundaries",
    )
    payment_terms_days: int = Field(
        default=30,
        description="Days between invoice date and due date",
        ge=0,
        le=365,
    )
    invoice_number_prefix: str = Field(
        default="INV-",
        description="Literal prefix of human-readable invoice numbers",
        max_length=20,
    )
    invoice_number_width: int = Field(
        default=4,
        description="Zero-padded width of the numeric part",
        ge=1,
        le=12,
    )

    @field_validator("business_timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        get_zone(value)
        return value

    def format_invoice_number(self, number: int) -> str:
        """Render a counter value, e.g. 7 -> 'INV-0007'."""
        return f"{self.invoice_number_prefix}{number:0{self.invoice_number_width}d}"


_ENV_FIELDS = {
    "BUSINESS_TIMEZONE": "business_timezone",
    "PAYMENT_TERMS_DAYS": "payment_terms_days",
    "INVOICE_NUMBER_PREFIX": "invoice_number_prefix",
    "INVOICE_NUMBER_WIDTH": "invoice_number_width",
}


def load_config() -> InvoicingConfig:
    """Build config from environment variables, falling back to defaults."""
    values = {
        field: os.environ[env_name]
        for env_name, field in _ENV_FIELDS.items()
        if os.environ.get(env_name)
    }
    return InvoicingConfig(**values)
