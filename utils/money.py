"""Monetary and billable-hour rounding primitives."""

import math
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")
HOUR_TENTH = Decimal("0.1")


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """Coerce a number to Decimal. Floats go through str to keep their printed value."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round_to_cents(value: Decimal | int | float | str) -> Decimal:
    """Round half-up to 2 decimal places."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def round_up_to_six_minutes(start_at: datetime, end_at: datetime) -> Decimal:
    """
    Billable hours between two instants, rounded up to the next 0.1 hour.

    Elapsed time is first rounded up to whole minutes, then up to the next
    6-minute step. A zero-length interval bills 0.0 hours.

    Raises:
        ValueError: If end_at is before start_at
    """
    seconds = (end_at - start_at).total_seconds()
    if seconds < 0:
        raise ValueError("end_at must not be before start_at")

    minutes = math.ceil(seconds / 60)
    tenths = math.ceil(minutes / 6)
    return Decimal(tenths) * HOUR_TENTH
