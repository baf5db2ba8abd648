"""
utils/dates.py — Calendar-date arithmetic on canonical YYYY-MM-DD strings.

All dates are civil calendar dates (datetime.date), never timezone-aware
instants, so day arithmetic is free of daylight-saving skew. "Today" is the
current UTC date.

Provides:
- today_utc / parse_iso_date / is_valid_iso_date / to_date_key
- add_days / add_months / days_between
- start_of_week (weeks start on Sunday) / start_of_month_grid

Malformed or impossible dates (e.g. "2024-13-40", "2023-02-30") fall back to
today's UTC date and a warning is logged. Arithmetic that would leave years
1-9999 raises DateOutOfRange.
"""

import calendar
import logging
import re
from datetime import date, datetime, timedelta, timezone

logger = logging.getLogger(__name__)

ISO_DATE_RE = re.compile(r'^\d{4}-\d{2}-\d{2}$')


class DateOutOfRange(ValueError):
    """Date arithmetic left the representable range (years 1-9999)."""


def today_utc() -> str:
    """Current UTC calendar date as YYYY-MM-DD."""
    return datetime.now(timezone.utc).date().isoformat()


def is_valid_iso_date(value) -> bool:
    """True if value is a real calendar date in strict YYYY-MM-DD form."""
    if not isinstance(value, str) or not ISO_DATE_RE.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def parse_iso_date(value) -> date:
    """
    Parse a YYYY-MM-DD string into a date.

    Never raises: anything that is not a valid calendar date falls back to
    today's UTC date, and the fallback is logged so bad upstream data can
    be traced.
    """
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    if is_valid_iso_date(value):
        return date.fromisoformat(value)
    fallback = datetime.now(timezone.utc).date()
    logger.warning("Invalid calendar date %r, falling back to today (%s)", value, fallback.isoformat())
    return fallback


def to_date_key(value) -> str:
    """
    Reduce a date or timestamp to its YYYY-MM-DD date part.

    "2024-03-01T08:30:00+00:00" -> "2024-03-01". Uses the same fallback
    as parse_iso_date for unusable input.
    """
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, str):
        value = value[:10]
    return parse_iso_date(value).isoformat()


def add_days(date_iso, days: int) -> str:
    """
    Add (or subtract) whole days, rolling over months, years and leap days.

    Raises:
        DateOutOfRange: if the result is outside 0001-01-01 .. 9999-12-31.
    """
    d = parse_iso_date(date_iso)
    try:
        return (d + timedelta(days=int(days))).isoformat()
    except OverflowError as e:
        raise DateOutOfRange(f"{d.isoformat()} {int(days):+d} days is out of range") from e


def add_months(date_iso, months: int) -> str:
    """
    Shift by calendar months, clamping the day to the target month's length.

    2024-01-31 + 1 month -> 2024-02-29.

    Raises:
        DateOutOfRange: if the result is outside 0001-01-01 .. 9999-12-31.
    """
    d = parse_iso_date(date_iso)
    index = d.year * 12 + (d.month - 1) + int(months)
    year, month = divmod(index, 12)
    month += 1
    if not date.min.year <= year <= date.max.year:
        raise DateOutOfRange(f"{d.isoformat()} {int(months):+d} months is out of range")
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day).isoformat()


def days_between(start_iso, end_iso) -> int:
    """Signed number of days from start to end."""
    return (parse_iso_date(end_iso) - parse_iso_date(start_iso)).days


def start_of_week(date_iso) -> str:
    """Return the Sunday on or before the given date."""
    d = parse_iso_date(date_iso)
    # weekday(): Monday=0 ... Sunday=6
    offset = (d.weekday() + 1) % 7
    return add_days(d, -offset)


def start_of_month_grid(year: int, month: int) -> str:
    """
    First cell of the 6-week month grid: the Sunday on or before the 1st.

    Args:
        year: Calendar year.
        month: Month number, 1-12.
    """
    return start_of_week(date(int(year), int(month), 1).isoformat())
