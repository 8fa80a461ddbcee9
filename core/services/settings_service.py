"""Settings service: company details and the invoice counter."""

import logging

from clients.postgres_client import PostgresClient, Transaction
from core.audit import AuditLogger, AuditAction, compute_changes
from core.config import InvoicingConfig
from core.exceptions import NotFoundError
from core.models import Settings, SettingsUpdate
from core.services.persistence import translate_db_errors
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

_UPDATABLE_COLUMNS = {
    "company_name",
    "company_address",
    "company_email",
    "company_phone",
    "invoice_footer_markdown",
    "next_invoice_number",
}


class SettingsService:
    """Service for the singleton settings row."""

    def __init__(self, postgres: PostgresClient, audit: AuditLogger, config: InvoicingConfig):
        self.postgres = postgres
        self.audit = audit
        self.config = config

    def get(self) -> Settings:
        row = self.postgres.execute_single("SELECT * FROM settings WHERE id = 1")
        if row is None:
            raise NotFoundError("settings", 1)
        return self._to_model(row)

    def update(self, data: SettingsUpdate) -> Settings:
        """
        Update company details and/or reseed the invoice counter.

        The settings row is locked first, so a reseed waits for any invoice
        generation holding the counter and never interleaves with one.

        Raises:
            NotFoundError: Settings row is missing
            ValueError: The reseeded counter would reissue an existing number
        """
        with translate_db_errors("Settings update"):
            with self.postgres.transaction() as tx:
                current = self._lock(tx)

                updates = {
                    k: v for k, v in data.model_dump(exclude_none=True).items()
                    if k in _UPDATABLE_COLUMNS
                }
                if not updates:
                    return current

                if "next_invoice_number" in updates:
                    self._check_unissued(tx, updates["next_invoice_number"])

                set_parts = [f"{column} = %s" for column in updates]
                params = list(updates.values())
                set_parts.append("updated_at = %s")
                params.append(now_utc())

                row = tx.execute_returning(
                    f"""
                    UPDATE settings
                    SET {', '.join(set_parts)}
                    WHERE id = 1
                    RETURNING *
                    """,
                    tuple(params)
                )[0]
                updated = self._to_model(row)

                changes = compute_changes(
                    current.model_dump(mode="json"),
                    updated.model_dump(mode="json"),
                )
                if changes:
                    self.audit.log_change(
                        entity_type="settings",
                        entity_id=1,
                        action=AuditAction.UPDATE,
                        changes=changes,
                        tx=tx,
                    )

        if "next_invoice_number" in updates:
            logger.info(
                "Invoice counter reseeded %d -> %d",
                current.next_invoice_number, updated.next_invoice_number,
            )
        return updated

    def _lock(self, tx: Transaction) -> Settings:
        row = tx.execute_single("SELECT * FROM settings WHERE id = 1 FOR UPDATE")
        if row is None:
            raise NotFoundError("settings", 1)
        return self._to_model(row)

    def _check_unissued(self, tx: Transaction, next_number: int) -> None:
        number = self.config.format_invoice_number(next_number)
        if tx.execute_single("SELECT id FROM invoices WHERE number = %s", (number,)) is not None:
            raise ValueError(f"Invoice number {number} has already been issued")

    def _to_model(self, row: dict) -> Settings:
        return Settings.model_validate({**row, "business_timezone": self.config.business_timezone})
