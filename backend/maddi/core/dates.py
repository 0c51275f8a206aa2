"""
Date-only helpers.

Bookings, blocked dates and pricing overrides store calendar days
(``YYYY-MM-DD``) without a time component. Comparing them by parsing the
string through a timezone-aware constructor shifts the day across UTC
boundaries, so every range comparison goes through this module instead:

- A date-only value becomes a *naive* local datetime at the start
  (00:00:00.000) or end (23:59:59.999) of that calendar day. Year, month and
  day are taken literally.
- "Today" and "now" are read in the platform operating timezone
  (``settings.TIMEZONE``) and returned naive as well, so both sides of every
  comparison live on the same local calendar.
"""

import calendar
from datetime import date, datetime, time
from zoneinfo import ZoneInfo

from maddi.core.config import get_settings
from maddi.core.errors import ValidationError

START_OF_DAY = time(0, 0, 0, 0)
END_OF_DAY = time(23, 59, 59, 999000)

DateLike = str | date


def _calendar_day(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        year, month, day = (int(part) for part in value.strip().split("-"))
        return date(year, month, day)
    except (AttributeError, ValueError, TypeError):
        raise ValidationError(f"Invalid date {value!r}, expected YYYY-MM-DD")


def parse_date_only(value: DateLike) -> date:
    """Parse ``YYYY-MM-DD`` (or pass a ``date`` through) as a calendar day."""
    return _calendar_day(value)


def parse_date_only_start(value: DateLike) -> datetime:
    """Local start of the given calendar day (00:00:00.000)."""
    return datetime.combine(_calendar_day(value), START_OF_DAY)


def parse_date_only_end(value: DateLike) -> datetime:
    """Local end of the given calendar day (23:59:59.999)."""
    return datetime.combine(_calendar_day(value), END_OF_DAY)


def now_local() -> datetime:
    """Current wall-clock time in the operating timezone, without tzinfo."""
    tz = ZoneInfo(get_settings().TIMEZONE)
    return datetime.now(tz).replace(tzinfo=None)


def today() -> date:
    return now_local().date()


def today_start() -> datetime:
    return parse_date_only_start(today())


def today_end() -> datetime:
    return parse_date_only_end(today())


def ranges_overlap(
    a_start: DateLike,
    a_end: DateLike,
    b_start: DateLike,
    b_end: DateLike,
) -> bool:
    """Inclusive overlap of two date-only ranges."""
    return (
        parse_date_only_start(a_start) <= parse_date_only_end(b_end)
        and parse_date_only_start(b_start) <= parse_date_only_end(a_end)
    )


def _is_last_day_of_month(d: date) -> bool:
    return d.day == calendar.monthrange(d.year, d.month)[1]


def whole_months_between(start: DateLike, end: DateLike) -> int:
    """
    Number of complete months from ``start`` to ``end`` (never negative).

    A month whose end day falls short of the start day is incomplete, except
    a single month ending on the last day of a shorter month: Jan 31 to
    Feb 28 counts as one month.
    """
    s, e = _calendar_day(start), _calendar_day(end)
    months = (e.year - s.year) * 12 + (e.month - s.month)
    if months < 1:
        return 0
    if e.day < s.day and not (months == 1 and _is_last_day_of_month(e)):
        months -= 1
    return months
