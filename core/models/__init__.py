"""Core domain models."""

from core.models.client import Client, Project, ProjectUninvoicedSummary
from core.models.time_entry import TimeEntry, TimeEntryCreate, TimeEntryUpdate
from core.models.expense import Expense, ExpenseCreate, ExpenseUpdate
from core.models.settings import Settings, SettingsUpdate
from core.models.line_item import (
    LineItemType,
    LineDraft,
    TimeLineDraft,
    ExpenseLineDraft,
    ManualLineDraft,
    LineItemCreate,
    LineItemUpdate,
    InvoiceLineItem,
)
from core.models.invoice import (
    Invoice,
    InvoiceStatus,
    InvoiceGenerate,
    ClientInvoiceGenerate,
    GeneratedInvoice,
    ALLOWED_TRANSITIONS,
)

__all__ = [
    # Client / Project
    "Client", "Project", "ProjectUninvoicedSummary",
    # TimeEntry
    "TimeEntry", "TimeEntryCreate", "TimeEntryUpdate",
    # Expense
    "Expense", "ExpenseCreate", "ExpenseUpdate",
    # Settings
    "Settings", "SettingsUpdate",
    # LineItem
    "LineItemType", "LineDraft", "TimeLineDraft", "ExpenseLineDraft", "ManualLineDraft",
    "LineItemCreate", "LineItemUpdate", "InvoiceLineItem",
    # Invoice
    "Invoice", "InvoiceStatus", "InvoiceGenerate", "ClientInvoiceGenerate",
    "GeneratedInvoice", "ALLOWED_TRANSITIONS",
]
