"""
Time and period helpers.

All stored timestamps are ISO-8601 UTC strings with millisecond precision,
e.g. ``2024-01-15T10:00:00.000Z``. Week and month identifiers follow the
``YYYY-Wxx`` (ISO week) and ``YYYY-MM`` formats and are derived in the
Europe/Stockholm timezone.
"""

import re
from datetime import datetime, timedelta, timezone, date
from typing import Optional
from zoneinfo import ZoneInfo

STOCKHOLM_TIMEZONE = ZoneInfo("Europe/Stockholm")

# Earliest representable instant, used when a cutoff underflows
EARLIEST = datetime.min.replace(tzinfo=timezone.utc)

WEEK_ID_PATTERN = re.compile(r"^(\d{4})-W(\d{2})$")
MONTH_ID_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    """Format a datetime as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat(timespec="milliseconds") + "Z"


def now_iso() -> str:
    return to_iso(utc_now())


def parse_iso(value: str) -> datetime:
    """
    Parse an ISO-8601 timestamp or date into an aware UTC datetime.

    Naive values and plain dates are interpreted as UTC.

    Raises:
        ValueError: If the value is not a valid ISO-8601 string.
    """
    if not isinstance(value, str) or not value:
        raise ValueError(f"Invalid timestamp: {value!r}")

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"

    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def subtract_days(moment: datetime, days: int) -> datetime:
    """
    Subtract whole days, clamping to ``EARLIEST`` instead of overflowing.

    A naive ``moment`` is taken as UTC; the result is always aware.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    try:
        return moment - timedelta(days=days)
    except OverflowError:
        return EARLIEST


def week_id_for(moment: datetime) -> str:
    """ISO week id (``YYYY-Wxx``) of a moment, in Stockholm time."""
    local = moment.astimezone(STOCKHOLM_TIMEZONE) if moment.tzinfo else moment
    iso_year, iso_week, _ = local.isocalendar()
    return f"{iso_year}-W{iso_week:02d}"


def month_id_for(moment: datetime) -> str:
    """Month id (``YYYY-MM``) of a moment, in Stockholm time."""
    local = moment.astimezone(STOCKHOLM_TIMEZONE) if moment.tzinfo else moment
    return f"{local.year}-{local.month:02d}"


def current_week_id(now: Optional[datetime] = None) -> str:
    return week_id_for(now or utc_now())


def current_month_id(now: Optional[datetime] = None) -> str:
    return month_id_for(now or utc_now())


def is_valid_week_id(value: str) -> bool:
    match = WEEK_ID_PATTERN.match(value or "")
    return bool(match) and 1 <= int(match.group(2)) <= 53


def is_valid_month_id(value: str) -> bool:
    match = MONTH_ID_PATTERN.match(value or "")
    return bool(match) and 1 <= int(match.group(2)) <= 12


def add_days_to_date(day: str, days: int) -> str:
    """Shift a ``YYYY-MM-DD`` date string by a number of days."""
    return (date.fromisoformat(day) + timedelta(days=days)).isoformat()
