"""Typed exceptions for invoicing failures."""

from datetime import date
from typing import Any, Iterable


class InvoicingError(Exception):
    """Base class for invoicing errors."""

    def details(self) -> dict[str, Any]:
        """Structured context for API error bodies."""
        return {}


class NotFoundError(InvoicingError):
    """Referenced entity does not exist."""

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity.capitalize()} {entity_id} not found")

    def details(self) -> dict[str, Any]:
        return {"entity": self.entity, "id": self.entity_id}


class NoBillableItemsError(InvoicingError):
    """
    Nothing uninvoiced to bill.

    Raised before any write, so no invoice row exists and the invoice
    counter is untouched.
    """

    def __init__(self, project_ids: Iterable[int], up_to_date: date):
        self.project_ids = list(project_ids)
        self.up_to_date = up_to_date
        super().__init__(
            f"No uninvoiced time entries or billable expenses up to {up_to_date.isoformat()}"
        )

    def details(self) -> dict[str, Any]:
        return {"project_ids": self.project_ids, "up_to_date": self.up_to_date.isoformat()}


class ProjectClientMismatchError(InvoicingError):
    """Requested projects are not all owned by the client."""

    def __init__(self, client_id: int, project_ids: Iterable[int]):
        self.client_id = client_id
        self.project_ids = list(project_ids)
        super().__init__(
            f"Projects {self.project_ids} do not belong to this client ({client_id})"
        )

    def details(self) -> dict[str, Any]:
        return {"client_id": self.client_id, "project_ids": self.project_ids}


class ConcurrentInvoicingConflictError(InvoicingError):
    """
    Another transaction consumed some of the selected items first.

    Safe to retry: selection is re-run and sees the committed state.
    """

    def __init__(
        self,
        time_entry_ids: Iterable[int] = (),
        expense_ids: Iterable[int] = (),
        message: str | None = None,
    ):
        self.time_entry_ids = list(time_entry_ids)
        self.expense_ids = list(expense_ids)
        super().__init__(message or "Selected items were invoiced by a concurrent request")

    def details(self) -> dict[str, Any]:
        return {"time_entry_ids": self.time_entry_ids, "expense_ids": self.expense_ids}


class InvoicedRecordImmutableError(InvoicingError):
    """Time entry or expense is attached to an invoice and cannot change."""

    def __init__(self, entity: str, entity_id: int, action: str = "modify"):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"Cannot {action} invoiced {entity.replace('_', ' ')} {entity_id}")

    def details(self) -> dict[str, Any]:
        return {"entity": self.entity, "id": self.entity_id}


class OverlappingTimeEntryError(InvoicingError):
    """New or edited time entry overlaps an existing one on the same project."""

    def __init__(self, conflicting_entry_id: int):
        self.conflicting_entry_id = conflicting_entry_id
        super().__init__("Time entry overlaps with existing entry")

    def details(self) -> dict[str, Any]:
        return {"conflicting_entry_id": self.conflicting_entry_id}


class InvalidStatusTransitionError(InvoicingError):
    """Invoice status change not allowed from the current status."""

    def __init__(self, invoice_id: int, current: str, target: str):
        self.invoice_id = invoice_id
        self.current = current
        self.target = target
        super().__init__(f"Invoice {invoice_id} cannot move from {current} to {target}")

    def details(self) -> dict[str, Any]:
        return {"invoice_id": self.invoice_id, "current": self.current, "target": self.target}


class TransactionFailureError(InvoicingError):
    """
    Persistence failed mid-transaction.

    Everything was rolled back; the whole operation may be retried.
    """


class InvoiceNotEditableError(InvoicingError):
    """Line items can only change while the invoice is a draft."""

    def __init__(self, invoice_id: int, status: str):
        self.invoice_id = invoice_id
        self.status = status
        super().__init__(f"Invoice {invoice_id} is {status} and its lines cannot change")

    def details(self) -> dict[str, Any]:
        return {"invoice_id": self.invoice_id, "status": self.status}
