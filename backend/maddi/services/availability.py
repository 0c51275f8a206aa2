"""
Availability evaluator.

Pure functions over a snapshot of a billboard's bookings and blocked dates.
Callers keep the snapshot fresh (change feed subscription); the approval
overlap check in the booking service remains the final authority, this module
is only the optimistic hint shown to users.

Inputs are any objects exposing ``start_date`` / ``end_date`` (date-only, as
``date`` or ``YYYY-MM-DD``) and, for bookings, ``status`` - ORM rows and
Pydantic schemas both qualify.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Iterable, Optional, Protocol

from maddi.core import dates
from maddi.core.errors import ValidationError

# Statuses that occupy calendar days
OCCUPYING_STATUSES = ("approved", "pending")


class DateRange(Protocol):
    start_date: dates.DateLike
    end_date: dates.DateLike


class BookingLike(DateRange, Protocol):
    status: str


class DayStatus(str, Enum):
    AVAILABLE = "available"
    PENDING = "pending"
    BOOKED = "booked"
    BLOCKED = "blocked"


@dataclass(frozen=True)
class CalendarDay:
    date: date
    status: DayStatus
    selectable: bool


def _contains(entry: DateRange, day: dates.DateLike) -> bool:
    instant = dates.parse_date_only_start(day)
    return (
        dates.parse_date_only_start(entry.start_date)
        <= instant
        <= dates.parse_date_only_end(entry.end_date)
    )


def classify_day(
    day: dates.DateLike,
    bookings: Iterable[BookingLike],
    blocked_dates: Iterable[DateRange],
) -> DayStatus:
    """
    Classify one calendar day.

    Blocked ranges win outright. Otherwise every booking is scanned and an
    approved match wins over a pending one regardless of list order, since
    pending requests are never exclusivity-checked and may overlap approvals.
    """
    for blocked in blocked_dates:
        if _contains(blocked, day):
            return DayStatus.BLOCKED

    has_pending = False
    for booking in bookings:
        if booking.status not in OCCUPYING_STATUSES or not _contains(booking, day):
            continue
        if booking.status == "approved":
            return DayStatus.BOOKED
        has_pending = True

    return DayStatus.PENDING if has_pending else DayStatus.AVAILABLE


def is_selectable(
    day: dates.DateLike,
    bookings: Iterable[BookingLike],
    blocked_dates: Iterable[DateRange],
    is_digital: bool,
    today: Optional[date] = None,
) -> bool:
    """
    Whether a business may pick this day for a new request.

    Past days and blocked days never are. Static billboards also exclude
    approved (booked) days; pending days stay selectable because competing
    requests are resolved by the owner. Digital billboards rotate campaigns,
    so bookings never restrict them.
    """
    today_start = dates.parse_date_only_start(today) if today else dates.today_start()
    if dates.parse_date_only_start(day) < today_start:
        return False

    status = classify_day(day, bookings, blocked_dates)
    if status == DayStatus.BLOCKED:
        return False
    if is_digital:
        return True
    return status != DayStatus.BOOKED


def build_calendar(
    start: dates.DateLike,
    end: dates.DateLike,
    bookings: Iterable[BookingLike],
    blocked_dates: Iterable[DateRange],
    is_digital: bool,
    today: Optional[date] = None,
    max_days: int = 366,
) -> list[CalendarDay]:
    """Evaluate every day in ``[start, end]``."""
    first, last = dates.parse_date_only(start), dates.parse_date_only(end)
    if first > last:
        raise ValidationError("start must not be after end")
    span = (last - first).days + 1
    if span > max_days:
        raise ValidationError(f"Range too long: {span} days (max {max_days})")

    bookings = list(bookings)
    blocked_dates = list(blocked_dates)
    today = today or dates.today()

    calendar = []
    for offset in range(span):
        day = first + timedelta(days=offset)
        calendar.append(
            CalendarDay(
                date=day,
                status=classify_day(day, bookings, blocked_dates),
                selectable=is_selectable(day, bookings, blocked_dates, is_digital, today=today),
            )
        )
    return calendar


def find_conflicting_booking(
    start: dates.DateLike,
    end: dates.DateLike,
    bookings: Iterable[BookingLike],
    exclude_id: Optional[int] = None,
):
    """First approved booking overlapping ``[start, end]``, or None."""
    for booking in bookings:
        if booking.status != "approved":
            continue
        if exclude_id is not None and getattr(booking, "id", None) == exclude_id:
            continue
        if dates.ranges_overlap(start, end, booking.start_date, booking.end_date):
            return booking
    return None
