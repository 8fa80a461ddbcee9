"""
Billable-item selection.

Finds the uninvoiced work a new invoice may consume: finished time entries
started on or before the end of the cutoff day (business timezone), and
billable expenses dated on or before the cutoff.

Selection runs inside the invoicing transaction with row locks, so two
requests racing for the same project serialize: the second one waits, then
re-evaluates the rows and no longer sees what the first one invoiced.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable

from clients.postgres_client import Transaction
from core.exceptions import NoBillableItemsError
from core.models import Expense, TimeEntry
from utils.timezone import end_of_day

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BillableItems:
    """Uninvoiced time entries and expenses, each in chronological order."""

    time_entries: list[TimeEntry] = field(default_factory=list)
    expenses: list[Expense] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.time_entries and not self.expenses

    def for_project(self, project_id: int) -> "BillableItems":
        """Subset belonging to one project, order preserved."""
        return BillableItems(
            time_entries=[e for e in self.time_entries if e.project_id == project_id],
            expenses=[e for e in self.expenses if e.project_id == project_id],
        )


def select_billable_items(
    tx: Transaction,
    project_ids: Iterable[int],
    up_to_date: date,
    tz_name: str,
    lock: bool = True,
) -> BillableItems:
    """
    Select everything invoiceable for the given projects up to a cutoff.

    Args:
        tx: Open transaction; rows are locked FOR UPDATE when lock is set
        project_ids: Projects to bill
        up_to_date: Inclusive cutoff day
        tz_name: Business timezone defining where that day ends
        lock: Take row locks (disable only for read-only previews)

    Returns:
        BillableItems with time entries ordered by start_at, expenses by expense_date

    Raises:
        NoBillableItemsError: If neither list has anything in it
    """
    ids = list(project_ids)
    cutoff = end_of_day(up_to_date, tz_name)
    lock_clause = "FOR UPDATE" if lock else ""

    entry_rows = tx.execute(
        f"""
        SELECT * FROM time_entries
        WHERE project_id = ANY(%s)
          AND is_invoiced = false
          AND end_at IS NOT NULL
          AND start_at <= %s
        ORDER BY start_at ASC, id ASC
        {lock_clause}
        """,
        (ids, cutoff)
    )

    expense_rows = tx.execute(
        f"""
        SELECT * FROM expenses
        WHERE project_id = ANY(%s)
          AND is_invoiced = false
          AND is_billable = true
          AND expense_date <= %s
        ORDER BY expense_date ASC, id ASC
        {lock_clause}
        """,
        (ids, up_to_date)
    )

    items = BillableItems(
        time_entries=[TimeEntry.model_validate(row) for row in entry_rows],
        expenses=[Expense.model_validate(row) for row in expense_rows],
    )

    if items.is_empty:
        raise NoBillableItemsError(ids, up_to_date)

    logger.debug(
        "Selected %d time entries and %d expenses for projects %s up to %s",
        len(items.time_entries), len(items.expenses), ids, up_to_date,
    )
    return items
