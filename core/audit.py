"""
Audit trail for billing-relevant changes.

The audit log is:
- Append-only (entries never modified or deleted)
- Detailed (captures old and new values)
- Transactional when written through a Transaction: an invoice that rolls
  back leaves no audit entry behind.
"""

from enum import Enum
from typing import Any

from psycopg2.extras import Json

from clients.postgres_client import PostgresClient, Transaction
from utils.timezone import now_utc


class AuditAction(Enum):
    """Kind of change recorded against an entity."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    STATUS_CHANGE = "status_change"


# Touched by every UPDATE; excluded from diffs.
_ALWAYS_IGNORED = frozenset({"updated_at", "created_at"})


def compute_changes(
    old: dict[str, Any],
    new: dict[str, Any],
    exclude_fields: set[str] | None = None
) -> dict[str, dict[str, Any]]:
    """
    Field-level diff of two serialized states.

    Returns {field: {"old": ..., "new": ...}} for every field whose value
    differs, skipping timestamps and anything in exclude_fields. A field
    present on only one side counts as None on the other.
    """
    skip = _ALWAYS_IGNORED | (exclude_fields or set())
    return {
        key: {"old": old.get(key), "new": new.get(key)}
        for key in sorted(old.keys() | new.keys())
        if key not in skip and old.get(key) != new.get(key)
    }


class AuditLogger:
    """
    Audit trail for entity changes.

    Always use model_dump(mode="json") when passing Pydantic models so
    Decimals, dates and datetimes are JSON-serializable.

    Usage:
        audit = AuditLogger(postgres)

        with postgres.transaction() as tx:
            ...
            audit.log_change(
                entity_type="invoice",
                entity_id=invoice.id,
                action=AuditAction.CREATE,
                changes={"created": invoice.model_dump(mode="json")},
                tx=tx,
            )

        history = audit.get_entity_history("invoice", invoice.id)
    """

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def log_change(
        self,
        entity_type: str,
        entity_id: int,
        action: AuditAction,
        changes: dict[str, Any],
        tx: Transaction | None = None,
    ) -> None:
        """
        Log an entity change.

        Args:
            entity_type: Type of entity ("invoice", "time_entry", etc.)
            entity_id: ID of the entity
            action: The action performed (CREATE, UPDATE, DELETE)
            changes: The changes made (format depends on action)
            tx: Write inside this transaction instead of committing on its own

        Changes format by action:
        - CREATE: {"created": {full entity data}}
        - UPDATE: {"field": {"old": old_val, "new": new_val}, ...}
        - DELETE: {"deleted": {full entity data at deletion}}
        """
        target = tx if tx is not None else self.postgres
        target.execute(
            """
            INSERT INTO audit_log (entity_type, entity_id, action, changes, created_at)
            VALUES (%s, %s, %s, %s, %s)
            """,
            (
                entity_type,
                entity_id,
                action.value,
                Json(changes),
                now_utc()
            )
        )

    def get_entity_history(
        self,
        entity_type: str,
        entity_id: int
    ) -> list[dict[str, Any]]:
        """
        Get full audit history for an entity.

        Returns:
            List of audit entries, newest first.
        """
        return self.postgres.execute(
            """
            SELECT id, entity_type, entity_id, action, changes, created_at
            FROM audit_log
            WHERE entity_type = %s AND entity_id = %s
            ORDER BY created_at DESC, id DESC
            """,
            (entity_type, entity_id)
        )
