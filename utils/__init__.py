"""Utility modules for cross-cutting concerns."""

from utils.timezone import (
    now_utc,
    to_local,
    end_of_day,
    local_date,
    today_in,
)
from utils.money import round_to_cents, round_up_to_six_minutes
