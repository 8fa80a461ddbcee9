"""
Time entry service for manually logged work.

Billable hours are computed here, rounded up to 6-minute steps, so invoice
generation can treat total_hours as final. Once an entry is invoiced it is
frozen: edits and deletes are refused.
"""

import logging
from datetime import datetime
from decimal import Decimal

from clients.postgres_client import PostgresClient, Transaction
from core.audit import AuditLogger, AuditAction, compute_changes
from core.exceptions import InvoicedRecordImmutableError, NotFoundError, OverlappingTimeEntryError
from core.models import TimeEntry, TimeEntryCreate, TimeEntryUpdate
from core.services.persistence import translate_db_errors
from utils.money import round_up_to_six_minutes
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class TimeEntryService:
    """Service for time entry operations."""

    def __init__(self, postgres: PostgresClient, audit: AuditLogger):
        self.postgres = postgres
        self.audit = audit

    def create(self, data: TimeEntryCreate) -> TimeEntry:
        """
        Log a time entry.

        Raises:
            NotFoundError: Project does not exist
            OverlappingTimeEntryError: Interval overlaps another entry on the project
        """
        total_hours = (
            round_up_to_six_minutes(data.start_at, data.end_at)
            if data.end_at is not None else Decimal("0")
        )

        with translate_db_errors("Time entry create"):
            with self.postgres.transaction() as tx:
                project = tx.execute_single("SELECT id FROM projects WHERE id = %s", (data.project_id,))
                if project is None:
                    raise NotFoundError("project", data.project_id)

                if data.end_at is not None:
                    self._check_overlap(tx, data.project_id, data.start_at, data.end_at)

                now = now_utc()
                row = tx.execute_returning(
                    """
                    INSERT INTO time_entries (
                        project_id, start_at, end_at, total_hours, note,
                        is_invoiced, created_at, updated_at
                    ) VALUES (%s, %s, %s, %s, %s, false, %s, %s)
                    RETURNING *
                    """,
                    (
                        data.project_id, data.start_at, data.end_at, total_hours, data.note,
                        now, now
                    )
                )[0]
                entry = TimeEntry.model_validate(row)

                self.audit.log_change(
                    entity_type="time_entry",
                    entity_id=entry.id,
                    action=AuditAction.CREATE,
                    changes={"created": data.model_dump(mode="json", exclude_none=True)},
                    tx=tx,
                )

        return entry

    def get_by_id(self, entry_id: int) -> TimeEntry | None:
        row = self.postgres.execute_single(
            "SELECT * FROM time_entries WHERE id = %s",
            (entry_id,)
        )
        return TimeEntry.model_validate(row) if row else None

    def update(self, entry_id: int, data: TimeEntryUpdate) -> TimeEntry:
        """
        Edit an uninvoiced entry; hours are recomputed when the interval is complete.

        Raises:
            NotFoundError: Entry (or new project) does not exist
            InvoicedRecordImmutableError: Entry is already invoiced
            OverlappingTimeEntryError: New interval overlaps another entry
        """
        with translate_db_errors("Time entry update"):
            with self.postgres.transaction() as tx:
                current = self._lock_uninvoiced(tx, entry_id, "edit")

                updates = data.model_dump(exclude_unset=True)
                if not updates:
                    return current

                project_id = updates.get("project_id") or current.project_id
                start_at = updates.get("start_at") or current.start_at
                end_at = updates["end_at"] if "end_at" in updates else current.end_at
                note = updates["note"] if "note" in updates else current.note

                if project_id != current.project_id:
                    if tx.execute_single("SELECT id FROM projects WHERE id = %s", (project_id,)) is None:
                        raise NotFoundError("project", project_id)

                total_hours = current.total_hours
                if end_at is not None:
                    total_hours = round_up_to_six_minutes(start_at, end_at)
                    self._check_overlap(tx, project_id, start_at, end_at, exclude_id=entry_id)

                row = tx.execute_returning(
                    """
                    UPDATE time_entries
                    SET project_id = %s, start_at = %s, end_at = %s,
                        total_hours = %s, note = %s, updated_at = %s
                    WHERE id = %s
                    RETURNING *
                    """,
                    (project_id, start_at, end_at, total_hours, note, now_utc(), entry_id)
                )[0]
                updated = TimeEntry.model_validate(row)

                changes = compute_changes(
                    current.model_dump(mode="json"),
                    updated.model_dump(mode="json"),
                )
                if changes:
                    self.audit.log_change(
                        entity_type="time_entry",
                        entity_id=entry_id,
                        action=AuditAction.UPDATE,
                        changes=changes,
                        tx=tx,
                    )

        return updated

    def delete(self, entry_id: int) -> bool:
        """
        Delete an uninvoiced entry.

        Raises:
            NotFoundError: Entry does not exist
            InvoicedRecordImmutableError: Entry is already invoiced
        """
        with translate_db_errors("Time entry delete"):
            with self.postgres.transaction() as tx:
                current = self._lock_uninvoiced(tx, entry_id, "delete")
                tx.execute("DELETE FROM time_entries WHERE id = %s", (entry_id,))

                self.audit.log_change(
                    entity_type="time_entry",
                    entity_id=entry_id,
                    action=AuditAction.DELETE,
                    changes={"deleted": current.model_dump(mode="json")},
                    tx=tx,
                )

        return True

    def _lock_uninvoiced(self, tx: Transaction, entry_id: int, action: str) -> TimeEntry:
        """Row-lock the entry so invoicing cannot take it between check and write."""
        row = tx.execute_single(
            "SELECT * FROM time_entries WHERE id = %s FOR UPDATE",
            (entry_id,)
        )
        if row is None:
            raise NotFoundError("time entry", entry_id)

        entry = TimeEntry.model_validate(row)
        if entry.is_invoiced:
            raise InvoicedRecordImmutableError("time_entry", entry_id, action)
        return entry

    def _check_overlap(
        self,
        tx: Transaction,
        project_id: int,
        start_at: datetime,
        end_at: datetime,
        exclude_id: int | None = None,
    ) -> None:
        conflict = tx.execute_scalar(
            """
            SELECT id FROM time_entries
            WHERE project_id = %s
              AND start_at < %s
              AND end_at > %s
              AND (%s::bigint IS NULL OR id <> %s::bigint)
            ORDER BY start_at
            LIMIT 1
            """,
            (project_id, end_at, start_at, exclude_id, exclude_id)
        )
        if conflict is not None:
            raise OverlappingTimeEntryError(conflict)
