"""Expense service. Invoiced expenses are frozen like invoiced time."""

import logging

from clients.postgres_client import PostgresClient, Transaction
from core.audit import AuditLogger, AuditAction, compute_changes
from core.exceptions import InvoicedRecordImmutableError, NotFoundError
from core.models import Expense, ExpenseCreate, ExpenseUpdate
from core.services.persistence import translate_db_errors
from utils.money import round_to_cents
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

_UPDATABLE_COLUMNS = {"expense_date", "description", "amount", "is_billable"}


class ExpenseService:
    """Service for expense operations."""

    def __init__(self, postgres: PostgresClient, audit: AuditLogger):
        self.postgres = postgres
        self.audit = audit

    def create(self, data: ExpenseCreate) -> Expense:
        """
        Record an expense against a project.

        Raises:
            NotFoundError: Project does not exist
        """
        with translate_db_errors("Expense create"):
            with self.postgres.transaction() as tx:
                if tx.execute_single("SELECT id FROM projects WHERE id = %s", (data.project_id,)) is None:
                    raise NotFoundError("project", data.project_id)

                now = now_utc()
                row = tx.execute_returning(
                    """
                    INSERT INTO expenses (
                        project_id, expense_date, description, amount,
                        is_billable, is_invoiced, created_at, updated_at
                    ) VALUES (%s, %s, %s, %s, %s, false, %s, %s)
                    RETURNING *
                    """,
                    (
                        data.project_id, data.expense_date, data.description,
                        round_to_cents(data.amount), data.is_billable,
                        now, now
                    )
                )[0]
                expense = Expense.model_validate(row)

                self.audit.log_change(
                    entity_type="expense",
                    entity_id=expense.id,
                    action=AuditAction.CREATE,
                    changes={"created": data.model_dump(mode="json", exclude_none=True)},
                    tx=tx,
                )

        return expense

    def get_by_id(self, expense_id: int) -> Expense | None:
        row = self.postgres.execute_single(
            "SELECT * FROM expenses WHERE id = %s",
            (expense_id,)
        )
        return Expense.model_validate(row) if row else None

    def update(self, expense_id: int, data: ExpenseUpdate) -> Expense:
        """
        Edit an uninvoiced expense.

        Raises:
            NotFoundError: Expense does not exist
            InvoicedRecordImmutableError: Expense is already invoiced
        """
        with translate_db_errors("Expense update"):
            with self.postgres.transaction() as tx:
                current = self._lock_uninvoiced(tx, expense_id, "edit")

                updates = {
                    k: v for k, v in data.model_dump(exclude_none=True).items()
                    if k in _UPDATABLE_COLUMNS
                }
                if not updates:
                    return current
                if "amount" in updates:
                    updates["amount"] = round_to_cents(updates["amount"])

                set_parts = [f"{column} = %s" for column in updates]
                params = list(updates.values())
                set_parts.append("updated_at = %s")
                params.append(now_utc())
                params.append(expense_id)

                row = tx.execute_returning(
                    f"""
                    UPDATE expenses
                    SET {', '.join(set_parts)}
                    WHERE id = %s
                    RETURNING *
                    """,
                    tuple(params)
                )[0]
                updated = Expense.model_validate(row)

                changes = compute_changes(
                    current.model_dump(mode="json"),
                    updated.model_dump(mode="json"),
                )
                if changes:
                    self.audit.log_change(
                        entity_type="expense",
                        entity_id=expense_id,
                        action=AuditAction.UPDATE,
                        changes=changes,
                        tx=tx,
                    )

        return updated

    def delete(self, expense_id: int) -> bool:
        """
        Delete an uninvoiced expense.

        Raises:
            NotFoundError: Expense does not exist
            InvoicedRecordImmutableError: Expense is already invoiced
        """
        with translate_db_errors("Expense delete"):
            with self.postgres.transaction() as tx:
                current = self._lock_uninvoiced(tx, expense_id, "delete")
                tx.execute("DELETE FROM expenses WHERE id = %s", (expense_id,))

                self.audit.log_change(
                    entity_type="expense",
                    entity_id=expense_id,
                    action=AuditAction.DELETE,
                    changes={"deleted": current.model_dump(mode="json")},
                    tx=tx,
                )

        return True

    def _lock_uninvoiced(self, tx: Transaction, expense_id: int, action: str) -> Expense:
        row = tx.execute_single(
            "SELECT * FROM expenses WHERE id = %s FOR UPDATE",
            (expense_id,)
        )
        if row is None:
            raise NotFoundError("expense", expense_id)

        expense = Expense.model_validate(row)
        if expense.is_invoiced:
            raise InvoicedRecordImmutableError("expense", expense_id, action)
        return expense
