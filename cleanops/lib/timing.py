"""
Time rules for bookings.

- Effective status: a past booking counts as COMPLETED unless it was cancelled.
- Cancellation fee: applies when the booking starts inside the window.
- Date filters: admin date pickers send calendar dates in the business timezone.

Naive datetimes are treated as UTC throughout.
"""

import os
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple, Union

import pytz

from ..models import Booking, BookingStatus


DEFAULT_BUSINESS_TIMEZONE = "America/New_York"

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Union[datetime, str, None]) -> Optional[datetime]:
    """Parse Supabase timestamps and normalize to aware UTC."""
    if value is None:
        return None

    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def effective_status(
    stored_status: BookingStatus,
    scheduled_date: datetime,
    now: Optional[datetime] = None,
) -> BookingStatus:
    """Derived lifecycle status. Never written back."""
    now = as_utc(now) or utcnow()
    stored_status = BookingStatus(stored_status)

    if stored_status != BookingStatus.CANCELLED and as_utc(scheduled_date) < now:
        return BookingStatus.COMPLETED
    return stored_status


def with_effective_status(booking: Booking, now: Optional[datetime] = None) -> Booking:
    """Copy of the booking with effective_status filled in."""
    return booking.model_copy(update={
        "effective_status": effective_status(booking.status, booking.scheduled_date, now),
    })


def hours_until(scheduled_date: datetime, now: Optional[datetime] = None) -> float:
    now = as_utc(now) or utcnow()
    return (as_utc(scheduled_date) - now).total_seconds() / 3600


def cancellation_fee_applies(
    scheduled_date: datetime,
    window_hours: float,
    now: Optional[datetime] = None,
) -> bool:
    """True when the booking starts less than window_hours from now."""
    return hours_until(scheduled_date, now) < window_hours


def business_timezone():
    return pytz.timezone(os.environ.get("BUSINESS_TIMEZONE", DEFAULT_BUSINESS_TIMEZONE))


def day_range(
    start_date: Optional[date],
    end_date: Optional[date],
) -> Tuple[Optional[datetime], Optional[datetime]]:
    """
    Turn an inclusive calendar-date range into UTC instants.
    start -> midnight local on start_date
    end   -> midnight local on the day after end_date (exclusive)
    """
    tz = business_timezone()
    start = end = None

    if start_date:
        start = tz.localize(datetime.combine(start_date, time.min)).astimezone(timezone.utc)

    if end_date:
        next_day = end_date + timedelta(days=1)
        end = tz.localize(datetime.combine(next_day, time.min)).astimezone(timezone.utc)

    return start, end


def in_range(
    value: Union[datetime, str, None],
    start: Optional[datetime],
    end: Optional[datetime],
) -> bool:
    """Check a timestamp against a day_range() window. Missing values fail."""
    if start is None and end is None:
        return True

    value = as_utc(value)
    if value is None:
        return False
    if start is not None and value < start:
        return False
    if end is not None and value >= end:
        return False
    return True
