"""UTC storage, business-timezone calendar math."""

from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def now_utc() -> datetime:
    """
    Current time in UTC.

    Use this instead of datetime.now() everywhere.
    """
    return datetime.now(timezone.utc)


def get_zone(tz_name: str) -> ZoneInfo:
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown timezone: {tz_name}")


def to_local(dt: datetime, tz_name: str) -> datetime:
    """
    Convert UTC datetime to the given IANA timezone.

    Raises:
        ValueError: If datetime is naive or timezone name is invalid
    """
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot convert naive datetime. Datetime must be timezone-aware."
        )
    return dt.astimezone(get_zone(tz_name))


def end_of_day(day: date, tz_name: str) -> datetime:
    """
    Last instant of a calendar day in the business timezone, as UTC.

    Comparisons against this bound must be inclusive (<=).
    """
    local = datetime.combine(day, time.max, tzinfo=get_zone(tz_name))
    return local.astimezone(timezone.utc)


def local_date(dt: datetime, tz_name: str) -> date:
    """Calendar date of a timestamp as seen in the business timezone."""
    return to_local(dt, tz_name).date()


def today_in(tz_name: str) -> date:
    """Today's date in the business timezone."""
    return local_date(now_utc(), tz_name)
