"""Mapping of database failures onto invoicing errors."""

import logging
from contextlib import contextmanager

import psycopg2
import psycopg2.errors

from core.exceptions import ConcurrentInvoicingConflictError, TransactionFailureError

logger = logging.getLogger(__name__)

# Raised by PostgreSQL when concurrent transactions collide on the same rows
_CONFLICT_ERRORS = (
    psycopg2.errors.SerializationFailure,
    psycopg2.errors.DeadlockDetected,
    psycopg2.errors.LockNotAvailable,
)


@contextmanager
def translate_db_errors(operation: str):
    """
    Re-raise psycopg2 errors from the wrapped block as typed errors.

    Wrap this around a whole `with postgres.transaction()` block so the
    rollback has already happened by the time the caller sees the error.
    InvoicingError subclasses pass through untouched.
    """
    try:
        yield
    except _CONFLICT_ERRORS as e:
        logger.warning("%s hit a concurrent transaction: %s", operation, e)
        raise ConcurrentInvoicingConflictError(
            message=f"{operation} conflicted with a concurrent request; retry"
        ) from e
    except psycopg2.Error as e:
        logger.error("%s failed and was rolled back: %s", operation, e)
        raise TransactionFailureError(f"{operation} failed and was rolled back") from e
