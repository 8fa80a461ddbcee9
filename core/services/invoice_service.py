"""
Invoice service: generation, status lifecycle, and draft line editing.

Generation runs the whole pipeline inside one transaction:

    lock + select billable items -> aggregate into line drafts
    -> reserve invoice number -> insert header -> insert lines
    -> mark sources invoiced -> recompute totals -> audit

Any failure rolls all of it back, including the counter increment, so a
retry sees exactly the state the failed attempt started from.
"""

import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Sequence

from clients.postgres_client import PostgresClient, Transaction
from core.aggregation import aggregate_client, aggregate_project, invoiced_source_ids
from core.audit import AuditLogger, AuditAction, compute_changes
from core.config import InvoicingConfig
from core.event_bus import EventBus
from core.events import InvoiceGenerated, InvoiceSent, InvoicePaid, InvoiceCancelled
from core.exceptions import (
    ConcurrentInvoicingConflictError,
    InvalidStatusTransitionError,
    InvoiceNotEditableError,
    NotFoundError,
    ProjectClientMismatchError,
    TransactionFailureError,
)
from core.models import (
    ALLOWED_TRANSITIONS,
    ClientInvoiceGenerate,
    GeneratedInvoice,
    Invoice,
    InvoiceGenerate,
    InvoiceLineItem,
    InvoiceStatus,
    LineDraft,
    LineItemCreate,
    LineItemUpdate,
    Project,
    TimeLineDraft,
    ExpenseLineDraft,
)
from core.selection import select_billable_items
from core.services.persistence import translate_db_errors
from utils.money import round_to_cents
from utils.timezone import now_utc, today_in

logger = logging.getLogger(__name__)


class InvoiceService:
    """Service for invoice operations."""

    def __init__(
        self,
        postgres: PostgresClient,
        audit: AuditLogger,
        config: InvoicingConfig,
        event_bus: EventBus | None = None,
    ):
        self.postgres = postgres
        self.audit = audit
        self.config = config
        self.event_bus = event_bus or EventBus()

    # -------------------------------------------------------------------------
    # Generation
    # -------------------------------------------------------------------------

    def generate_for_project(self, project_id: int, options: InvoiceGenerate) -> GeneratedInvoice:
        """
        Invoice a project's uninvoiced work up to options.up_to_date.

        Args:
            project_id: Project to bill
            options: Invoice date, cutoff, notes and aggregation policy

        Returns:
            The new DRAFT invoice and its line items

        Raises:
            NotFoundError: Project does not exist
            NoBillableItemsError: Nothing to invoice (no writes happened)
            ConcurrentInvoicingConflictError: Another request took the items
            TransactionFailureError: Database failure; fully rolled back
        """
        with translate_db_errors("Invoice generation"):
            with self.postgres.transaction() as tx:
                project = self._get_project(tx, project_id)
                items = select_billable_items(
                    tx, [project.id], options.up_to_date, self.config.business_timezone
                )
                drafts = aggregate_project(
                    project,
                    items,
                    self.config.business_timezone,
                    group_by_day=options.group_by_day,
                    include_notes=options.include_notes,
                )
                result = self._persist(tx, project.client_id, project.id, drafts, options)

        self._announce(result)
        return result

    def generate_for_client(self, client_id: int, options: ClientInvoiceGenerate) -> GeneratedInvoice:
        """
        Invoice several of one client's projects on a single invoice.

        Each project is billed at its own rate and its lines are labelled
        with the project name. The header's project_id is the first project.

        Raises:
            NotFoundError: Client does not exist
            ProjectClientMismatchError: A project is unknown or owned by another client
            NoBillableItemsError: Nothing to invoice across all projects
            ConcurrentInvoicingConflictError: Another request took the items
            TransactionFailureError: Database failure; fully rolled back
        """
        project_ids = list(dict.fromkeys(options.project_ids))

        with translate_db_errors("Client invoice generation"):
            with self.postgres.transaction() as tx:
                client = tx.execute_single("SELECT id FROM clients WHERE id = %s", (client_id,))
                if client is None:
                    raise NotFoundError("client", client_id)

                projects = self._get_client_projects(tx, client_id, project_ids)
                items = select_billable_items(
                    tx, project_ids, options.up_to_date, self.config.business_timezone
                )
                drafts = aggregate_client(
                    projects,
                    items,
                    self.config.business_timezone,
                    group_by_day=options.group_by_day,
                    include_notes=options.include_notes,
                )
                result = self._persist(tx, client_id, projects[0].id, drafts, options)

        self._announce(result)
        return result

    def preview_for_project(
        self,
        project_id: int,
        up_to_date: date,
        group_by_day: bool = False,
        include_notes: bool = True,
    ) -> list[LineDraft]:
        """
        Line drafts a generation would produce right now, without writing.

        Raises:
            NotFoundError: Project does not exist
            NoBillableItemsError: Nothing to invoice
        """
        with translate_db_errors("Invoice preview"):
            with self.postgres.transaction() as tx:
                project = self._get_project(tx, project_id)
                items = select_billable_items(
                    tx, [project.id], up_to_date, self.config.business_timezone, lock=False
                )

        return aggregate_project(
            project,
            items,
            self.config.business_timezone,
            group_by_day=group_by_day,
            include_notes=include_notes,
        )

    def _get_project(self, tx: Transaction, project_id: int) -> Project:
        row = tx.execute_single("SELECT * FROM projects WHERE id = %s", (project_id,))
        if row is None:
            raise NotFoundError("project", project_id)
        return Project.model_validate(row)

    def _get_client_projects(
        self, tx: Transaction, client_id: int, project_ids: Sequence[int]
    ) -> list[Project]:
        """Projects in requested order; all must exist and belong to the client."""
        rows = tx.execute(
            "SELECT * FROM projects WHERE id = ANY(%s)",
            (list(project_ids),)
        )
        by_id = {row["id"]: Project.model_validate(row) for row in rows}

        foreign = [
            pid for pid in project_ids
            if pid not in by_id or by_id[pid].client_id != client_id
        ]
        if foreign:
            raise ProjectClientMismatchError(client_id, foreign)

        return [by_id[pid] for pid in project_ids]

    def _persist(
        self,
        tx: Transaction,
        client_id: int,
        project_id: int,
        drafts: Sequence[LineDraft],
        options: InvoiceGenerate,
    ) -> GeneratedInvoice:
        """Steps that write. Order matters: each reads ids or sums from the one before."""
        number = self._reserve_invoice_number(tx)
        due_date = options.date_invoiced + timedelta(days=self.config.payment_terms_days)
        now = now_utc()

        header = tx.execute_returning(
            """
            INSERT INTO invoices (
                number, client_id, project_id,
                date_invoiced, due_date, status,
                subtotal, total, notes,
                created_at, updated_at
            ) VALUES (
                %s, %s, %s,
                %s, %s, %s,
                %s, %s, %s,
                %s, %s
            )
            RETURNING *
            """,
            (
                number, client_id, project_id,
                options.date_invoiced, due_date, InvoiceStatus.DRAFT.value,
                Decimal("0.00"), Decimal("0.00"), options.notes,
                now, now
            )
        )[0]
        invoice_id = header["id"]

        line_items = [self._insert_line(tx, invoice_id, draft, now) for draft in drafts]

        time_entry_ids, expense_ids = invoiced_source_ids(drafts)
        self._mark_invoiced(tx, "time_entries", time_entry_ids, invoice_id, now)
        self._mark_invoiced(tx, "expenses", expense_ids, invoice_id, now)

        invoice = self._recalculate_totals(tx, invoice_id)

        self.audit.log_change(
            entity_type="invoice",
            entity_id=invoice.id,
            action=AuditAction.CREATE,
            changes={
                "created": {
                    "number": invoice.number,
                    "total": str(invoice.total),
                    "line_count": len(line_items),
                    "time_entry_ids": time_entry_ids,
                    "expense_ids": expense_ids,
                }
            },
            tx=tx,
        )

        return GeneratedInvoice(invoice=invoice, line_items=line_items)

    def _reserve_invoice_number(self, tx: Transaction) -> str:
        """
        Take the next invoice number.

        A single UPDATE increments in place and row-locks the settings row
        until commit, so concurrent generators queue here and each sees the
        previous one's increment.
        """
        reserved = tx.execute_scalar(
            """
            UPDATE settings
            SET next_invoice_number = next_invoice_number + 1, updated_at = %s
            WHERE id = 1
            RETURNING next_invoice_number - 1
            """,
            (now_utc(),)
        )
        if reserved is None:
            raise TransactionFailureError("Settings row is missing; cannot number invoice")
        return self.config.format_invoice_number(reserved)

    def _insert_line(self, tx: Transaction, invoice_id: int, draft: LineDraft, now) -> InvoiceLineItem:
        linked_time_entry_id = draft.linked_time_entry_id if isinstance(draft, TimeLineDraft) else None
        linked_expense_id = draft.linked_expense_id if isinstance(draft, ExpenseLineDraft) else None

        row = tx.execute_returning(
            """
            INSERT INTO invoice_line_items (
                invoice_id, type, description,
                quantity, unit_price, amount,
                linked_time_entry_id, linked_expense_id,
                created_at, updated_at
            ) VALUES (
                %s, %s, %s,
                %s, %s, %s,
                %s, %s,
                %s, %s
            )
            RETURNING *
            """,
            (
                invoice_id, draft.type, draft.description,
                draft.quantity, draft.unit_price, draft.amount,
                linked_time_entry_id, linked_expense_id,
                now, now
            )
        )[0]
        return InvoiceLineItem.model_validate(row)

    def _mark_invoiced(
        self, tx: Transaction, table: str, ids: list[int], invoice_id: int, now
    ) -> None:
        """
        Flag source rows as consumed by invoice_id.

        The is_invoiced = false guard makes this the last line of defence:
        if any row was already taken, the affected count comes up short and
        the whole invoice is abandoned.
        """
        if not ids:
            return

        updated = tx.execute_rowcount(
            f"""
            UPDATE {table}
            SET is_invoiced = true, invoice_id = %s, updated_at = %s
            WHERE id = ANY(%s) AND is_invoiced = false
            """,
            (invoice_id, now, ids)
        )
        if updated == len(ids):
            return

        taken = [
            row["id"] for row in tx.execute(
                f"SELECT id FROM {table} WHERE id = ANY(%s) AND invoice_id IS DISTINCT FROM %s",
                (ids, invoice_id)
            )
        ]
        if table == "time_entries":
            raise ConcurrentInvoicingConflictError(time_entry_ids=taken)
        raise ConcurrentInvoicingConflictError(expense_ids=taken)

    def _recalculate_totals(self, tx: Transaction, invoice_id: int) -> Invoice:
        """subtotal = total = sum of already-rounded line amounts."""
        line_sum = tx.execute_scalar(
            "SELECT COALESCE(SUM(amount), 0) FROM invoice_line_items WHERE invoice_id = %s",
            (invoice_id,)
        )
        subtotal = round_to_cents(line_sum)

        row = tx.execute_returning(
            """
            UPDATE invoices
            SET subtotal = %s, total = %s, updated_at = %s
            WHERE id = %s
            RETURNING *
            """,
            (subtotal, subtotal, now_utc(), invoice_id)
        )[0]
        return Invoice.model_validate(row)

    def _announce(self, result: GeneratedInvoice) -> None:
        invoice = result.invoice
        logger.info(
            "Generated invoice %s (id=%s) with %d lines, total %s",
            invoice.number, invoice.id, len(result.line_items), invoice.total,
        )
        self.event_bus.publish(InvoiceGenerated.create(invoice, result.line_items))

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_by_id(self, invoice_id: int) -> Invoice | None:
        """
        Get invoice by ID.

        Returns:
            Invoice if found, None otherwise.
        """
        row = self.postgres.execute_single(
            "SELECT * FROM invoices WHERE id = %s",
            (invoice_id,)
        )

        if row is None:
            return None

        return Invoice.model_validate(row)

    def list_line_items(self, invoice_id: int) -> list[InvoiceLineItem]:
        """Line items of an invoice in insertion order."""
        rows = self.postgres.execute(
            "SELECT * FROM invoice_line_items WHERE invoice_id = %s ORDER BY id",
            (invoice_id,)
        )
        return [InvoiceLineItem.model_validate(row) for row in rows]

    def list_invoices(
        self,
        status: InvoiceStatus | None = None,
        client_id: int | None = None,
        project_id: int | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[Invoice]:
        """
        Invoices matching every given filter, newest invoice date first.

        date_from and date_to bound date_invoiced inclusively.
        """
        conditions = []
        params: list = []

        if status is not None:
            conditions.append("status = %s")
            params.append(status.value)
        if client_id is not None:
            conditions.append("client_id = %s")
            params.append(client_id)
        if project_id is not None:
            conditions.append("project_id = %s")
            params.append(project_id)
        if date_from is not None:
            conditions.append("date_invoiced >= %s")
            params.append(date_from)
        if date_to is not None:
            conditions.append("date_invoiced <= %s")
            params.append(date_to)

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        rows = self.postgres.execute(
            f"SELECT * FROM invoices {where} ORDER BY date_invoiced DESC, id DESC",
            tuple(params)
        )
        return [Invoice.model_validate(row) for row in rows]

    def history(self, invoice_id: int) -> list[dict]:
        """
        Audit entries for an invoice, newest first.

        Raises:
            NotFoundError: Invoice does not exist
        """
        if self.get_by_id(invoice_id) is None:
            raise NotFoundError("invoice", invoice_id)
        return self.audit.get_entity_history("invoice", invoice_id)

    # -------------------------------------------------------------------------
    # Status lifecycle
    # -------------------------------------------------------------------------

    def send(self, invoice_id: int) -> Invoice:
        """DRAFT -> SENT, stamping date_sent."""
        invoice = self._transition(invoice_id, InvoiceStatus.SENT, "date_sent")
        self.event_bus.publish(InvoiceSent.create(invoice=invoice))
        return invoice

    def mark_paid(self, invoice_id: int, date_paid: date | None = None) -> Invoice:
        """SENT -> PAID, stamping date_paid (today in the business timezone by default)."""
        invoice = self._transition(invoice_id, InvoiceStatus.PAID, "date_paid", date_paid)
        self.event_bus.publish(InvoicePaid.create(invoice=invoice))
        return invoice

    def cancel(self, invoice_id: int) -> Invoice:
        """
        DRAFT or SENT -> CANCELLED.

        Source time entries and expenses stay invoiced; a cancelled invoice
        never releases work for re-billing.
        """
        invoice = self._transition(invoice_id, InvoiceStatus.CANCELLED)
        self.event_bus.publish(InvoiceCancelled.create(invoice=invoice))
        return invoice

    def _transition(
        self,
        invoice_id: int,
        target: InvoiceStatus,
        date_column: str | None = None,
        on_date: date | None = None,
    ) -> Invoice:
        with translate_db_errors("Invoice status change"):
            with self.postgres.transaction() as tx:
                current = self._lock_invoice(tx, invoice_id)

                if current.status not in ALLOWED_TRANSITIONS[target]:
                    raise InvalidStatusTransitionError(
                        invoice_id, current.status.value, target.value
                    )

                set_parts = ["status = %s", "updated_at = %s"]
                params: list = [target.value, now_utc()]
                if date_column:
                    set_parts.append(f"{date_column} = %s")
                    params.append(on_date or today_in(self.config.business_timezone))
                params.append(invoice_id)

                row = tx.execute_returning(
                    f"""
                    UPDATE invoices
                    SET {', '.join(set_parts)}
                    WHERE id = %s
                    RETURNING *
                    """,
                    tuple(params)
                )[0]
                updated = Invoice.model_validate(row)

                self.audit.log_change(
                    entity_type="invoice",
                    entity_id=invoice_id,
                    action=AuditAction.STATUS_CHANGE,
                    changes=compute_changes(
                        current.model_dump(mode="json"),
                        updated.model_dump(mode="json"),
                    ),
                    tx=tx,
                )

        logger.info("Invoice %s moved %s -> %s", updated.number, current.status.value, target.value)
        return updated

    def _lock_invoice(self, tx: Transaction, invoice_id: int) -> Invoice:
        row = tx.execute_single(
            "SELECT * FROM invoices WHERE id = %s FOR UPDATE",
            (invoice_id,)
        )
        if row is None:
            raise NotFoundError("invoice", invoice_id)
        return Invoice.model_validate(row)

    # -------------------------------------------------------------------------
    # Draft line editing
    # -------------------------------------------------------------------------

    def add_line_item(self, invoice_id: int, data: LineItemCreate) -> InvoiceLineItem:
        """
        Add a line to a draft invoice and recompute its totals.

        Raises:
            NotFoundError: Invoice does not exist
            InvoiceNotEditableError: Invoice is no longer a draft
        """
        with translate_db_errors("Line item create"):
            with self.postgres.transaction() as tx:
                self._lock_editable_invoice(tx, invoice_id)
                now = now_utc()

                row = tx.execute_returning(
                    """
                    INSERT INTO invoice_line_items (
                        invoice_id, type, description,
                        quantity, unit_price, amount,
                        created_at, updated_at
                    ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                    RETURNING *
                    """,
                    (
                        invoice_id, data.type, data.description,
                        data.quantity, data.unit_price,
                        round_to_cents(data.quantity * data.unit_price),
                        now, now
                    )
                )[0]
                line = InvoiceLineItem.model_validate(row)
                self._recalculate_totals(tx, invoice_id)

                self.audit.log_change(
                    entity_type="invoice_line_item",
                    entity_id=line.id,
                    action=AuditAction.CREATE,
                    changes={"created": line.model_dump(mode="json")},
                    tx=tx,
                )

        return line

    def update_line_item(self, line_id: int, data: LineItemUpdate) -> InvoiceLineItem:
        """
        Edit a draft invoice's line; amount is recomputed from quantity x unit price.

        Raises:
            NotFoundError: Line does not exist
            InvoiceNotEditableError: Its invoice is no longer a draft
        """
        with translate_db_errors("Line item update"):
            with self.postgres.transaction() as tx:
                current = self._get_line(tx, line_id)
                self._lock_editable_invoice(tx, current.invoice_id)

                quantity = data.quantity if data.quantity is not None else current.quantity
                unit_price = data.unit_price if data.unit_price is not None else current.unit_price
                description = data.description if data.description is not None else current.description

                row = tx.execute_returning(
                    """
                    UPDATE invoice_line_items
                    SET description = %s, quantity = %s, unit_price = %s, amount = %s, updated_at = %s
                    WHERE id = %s
                    RETURNING *
                    """,
                    (
                        description, quantity, unit_price,
                        round_to_cents(quantity * unit_price),
                        now_utc(), line_id
                    )
                )[0]
                updated = InvoiceLineItem.model_validate(row)
                self._recalculate_totals(tx, current.invoice_id)

                changes = compute_changes(
                    current.model_dump(mode="json"),
                    updated.model_dump(mode="json"),
                )
                if changes:
                    self.audit.log_change(
                        entity_type="invoice_line_item",
                        entity_id=line_id,
                        action=AuditAction.UPDATE,
                        changes=changes,
                        tx=tx,
                    )

        return updated

    def delete_line_item(self, line_id: int) -> Invoice:
        """
        Remove a line from a draft invoice.

        Linked time entries and expenses stay invoiced.

        Returns:
            The invoice with recomputed totals
        """
        with translate_db_errors("Line item delete"):
            with self.postgres.transaction() as tx:
                current = self._get_line(tx, line_id)
                self._lock_editable_invoice(tx, current.invoice_id)

                tx.execute("DELETE FROM invoice_line_items WHERE id = %s", (line_id,))
                invoice = self._recalculate_totals(tx, current.invoice_id)

                self.audit.log_change(
                    entity_type="invoice_line_item",
                    entity_id=line_id,
                    action=AuditAction.DELETE,
                    changes={"deleted": current.model_dump(mode="json")},
                    tx=tx,
                )

        return invoice

    def _get_line(self, tx: Transaction, line_id: int) -> InvoiceLineItem:
        row = tx.execute_single("SELECT * FROM invoice_line_items WHERE id = %s", (line_id,))
        if row is None:
            raise NotFoundError("line item", line_id)
        return InvoiceLineItem.model_validate(row)

    def _lock_editable_invoice(self, tx: Transaction, invoice_id: int) -> Invoice:
        invoice = self._lock_invoice(tx, invoice_id)
        if not invoice.is_editable:
            raise InvoiceNotEditableError(invoice_id, invoice.status.value)
        return invoice
