"""Time parsing, overlap detection and the cancellation cutoff"""

import re
from datetime import date, datetime, time
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from ...config import CANCELLATION_CUTOFF_HOURS, SERVICE_TIMEZONE
from ...errors import ValidationError
from ...models_booking import Booking

_TIME_12H = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*(AM|PM)\s*$", re.IGNORECASE)
_TIME_24H = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$")


def parse_time_str(value: str) -> tuple[int, int]:
    """
    Parse "14:30" or "2:30 PM" into (hour, minute) on a 24-hour clock.

    Raises:
        ValidationError: If the string matches neither format
    """
    if not value:
        raise ValidationError("Time is required")

    match12 = _TIME_12H.match(value)
    if match12:
        hours = int(match12.group(1))
        minutes = int(match12.group(2))
        meridian = match12.group(3).upper()
        if not 1 <= hours <= 12 or minutes > 59:
            raise ValidationError(f"Invalid time: {value}")
        if meridian == "PM" and hours != 12:
            hours += 12
        if meridian == "AM" and hours == 12:
            hours = 0
        return hours, minutes

    match24 = _TIME_24H.match(value)
    if match24:
        hours = int(match24.group(1))
        minutes = int(match24.group(2))
        if hours > 23 or minutes > 59:
            raise ValidationError(f"Invalid time: {value}")
        return hours, minutes

    raise ValidationError(f"Invalid time format: {value}. Use HH:MM or h:mm AM/PM")


def to_hour(value: str) -> int:
    """Hour a booking starts in (minutes are dropped)"""
    return parse_time_str(value)[0]


def hour_span(start_time: str, end_time: str) -> tuple[int, int]:
    """
    Whole hours [start, end) a booking occupies.

    A partial end hour counts as occupied, so 09:15-09:45 holds [9, 10)
    and 09:00-10:30 holds [9, 11).
    """
    start = to_hour(start_time)
    end_hours, end_minutes = parse_time_str(end_time)
    end = end_hours + 1 if end_minutes else end_hours
    return start, max(end, start + 1)


def to_minutes(value: str) -> int:
    hours, minutes = parse_time_str(value)
    return hours * 60 + minutes


def intervals_overlap(new_start: int, new_end: int, exist_start: int, exist_end: int) -> bool:
    return new_start < exist_end and new_end > exist_start


def find_overlap(start_time: str, end_time: str, existing: Iterable[Booking]) -> Optional[Booking]:
    """
    Return the first existing booking whose hour interval overlaps [start_time, end_time).

    Comparison is at whole-hour precision, so two bookings sharing any part of
    an hour collide (09:00-10:30 and 10:45-11:00 included).
    """
    new_start, new_end = hour_span(start_time, end_time)
    for booking in existing:
        if intervals_overlap(new_start, new_end, *hour_span(booking.start_time, booking.end_time)):
            return booking
    return None


def service_timezone() -> ZoneInfo:
    return ZoneInfo(SERVICE_TIMEZONE)


def booking_start(booking_date: date, start_time: str, tz: Optional[ZoneInfo] = None) -> datetime:
    """Compose the booking's calendar date and start time into an aware datetime"""
    hours, minutes = parse_time_str(start_time)
    return datetime.combine(booking_date, time(hours, minutes), tzinfo=tz or service_timezone())


def hours_until_start(booking_date: date, start_time: str, now: Optional[datetime] = None) -> float:
    tz = service_timezone()
    now = now or datetime.now(tz)
    start = booking_start(booking_date, start_time, tz)
    return (start - now).total_seconds() / 3600


def within_cancellation_cutoff(
    booking_date: date, start_time: str, now: Optional[datetime] = None
) -> bool:
    """True when the booking starts CANCELLATION_CUTOFF_HOURS or less from now"""
    return hours_until_start(booking_date, start_time, now) <= CANCELLATION_CUTOFF_HOURS
