"""Client lookups and the uninvoiced-work summary behind client-level invoicing."""

import logging
from datetime import date

from clients.postgres_client import PostgresClient
from core.config import InvoicingConfig
from core.exceptions import NotFoundError
from core.models import Client, Project, ProjectUninvoicedSummary
from utils.timezone import end_of_day

logger = logging.getLogger(__name__)


class ClientService:
    """Service for client reads."""

    def __init__(self, postgres: PostgresClient, config: InvoicingConfig):
        self.postgres = postgres
        self.config = config

    def get_by_id(self, client_id: int) -> Client | None:
        row = self.postgres.execute_single(
            "SELECT * FROM clients WHERE id = %s",
            (client_id,)
        )
        return Client.model_validate(row) if row else None

    def list_projects(self, client_id: int, active_only: bool = False) -> list[Project]:
        """Client's projects ordered by name."""
        rows = self.postgres.execute(
            """
            SELECT * FROM projects
            WHERE client_id = %s AND (%s = false OR active = true)
            ORDER BY name, id
            """,
            (client_id, active_only)
        )
        return [Project.model_validate(row) for row in rows]

    def uninvoiced_summary(
        self, client_id: int, up_to_date: date | None = None
    ) -> list[ProjectUninvoicedSummary]:
        """
        Per-project totals of what is currently billable.

        Uses the same eligibility rules as invoice generation and the same
        per-entry cent rounding as an ungrouped invoice. Projects with
        nothing to bill are left out.

        Args:
            client_id: Client to summarise
            up_to_date: Optional inclusive cutoff day; no cutoff when omitted

        Raises:
            NotFoundError: Client does not exist
        """
        if self.get_by_id(client_id) is None:
            raise NotFoundError("client", client_id)

        cutoff = end_of_day(up_to_date, self.config.business_timezone) if up_to_date else None

        rows = self.postgres.execute(
            """
            WITH time_totals AS (
                SELECT t.project_id,
                       SUM(t.total_hours) AS hours,
                       SUM(ROUND(t.total_hours * p.hourly_rate, 2)) AS amount
                FROM time_entries t
                JOIN projects p ON p.id = t.project_id
                WHERE p.client_id = %(client_id)s
                  AND t.is_invoiced = false
                  AND t.end_at IS NOT NULL
                  AND (%(cutoff)s::timestamptz IS NULL OR t.start_at <= %(cutoff)s::timestamptz)
                GROUP BY t.project_id
            ),
            expense_totals AS (
                SELECT e.project_id, SUM(ROUND(e.amount, 2)) AS amount
                FROM expenses e
                JOIN projects p ON p.id = e.project_id
                WHERE p.client_id = %(client_id)s
                  AND e.is_invoiced = false
                  AND e.is_billable = true
                  AND (%(up_to)s::date IS NULL OR e.expense_date <= %(up_to)s::date)
                GROUP BY e.project_id
            )
            SELECT p.id AS project_id,
                   p.name AS project_name,
                   p.hourly_rate,
                   COALESCE(tt.hours, 0) AS uninvoiced_hours,
                   COALESCE(tt.amount, 0) AS time_amount,
                   COALESCE(et.amount, 0) AS expense_amount
            FROM projects p
            LEFT JOIN time_totals tt ON tt.project_id = p.id
            LEFT JOIN expense_totals et ON et.project_id = p.id
            WHERE p.client_id = %(client_id)s
              AND (tt.project_id IS NOT NULL OR et.project_id IS NOT NULL)
            ORDER BY p.name, p.id
            """,
            {"client_id": client_id, "cutoff": cutoff, "up_to": up_to_date}
        )

        return [
            ProjectUninvoicedSummary(
                **row,
                total_amount=row["time_amount"] + row["expense_amount"],
            )
            for row in rows
        ]
