"""
Datetime utility functions.
"""

from datetime import date, datetime, time
from typing import Optional, Union
import pytz

from teamtango.config import get_settings


def utcnow() -> datetime:
    """
    Get current UTC datetime using pytz.UTC.

    Returns:
        Current UTC datetime with pytz timezone information
    """
    return datetime.now(pytz.UTC)


def local_now() -> datetime:
    """Current time in the configured application timezone (Asia/Kolkata by default)."""
    return datetime.now(pytz.timezone(get_settings().APP_TIMEZONE))


def is_in_future(slot_date: date, start_time: time) -> bool:
    """
    Check whether a local date and start time lie strictly after now.

    The pair is interpreted in the application timezone, so a booking for
    "today 18:00" in Pune is compared against Pune wall-clock time.
    """
    tz = pytz.timezone(get_settings().APP_TIMEZONE)
    starts_at = tz.localize(datetime.combine(slot_date, start_time))
    return starts_at > local_now()


def hours_between(start_time: time, end_time: time) -> float:
    """Duration in hours between two times on the same day."""
    start = datetime.combine(date.min, start_time)
    end = datetime.combine(date.min, end_time)
    return (end - start).total_seconds() / 3600


def parse_date(value: Union[str, date, None]) -> Optional[date]:
    """
    Parse an ISO date ("2026-01-21"). Dates pass through unchanged.

    Raises:
        ValueError: If the string is not a valid ISO date
    """
    if value is None or isinstance(value, date):
        return value
    return datetime.strptime(value.strip(), "%Y-%m-%d").date()


def parse_time(value: Union[str, time, None]) -> Optional[time]:
    """
    Parse "HH:MM" or "HH:MM:SS". Times pass through unchanged.

    Raises:
        ValueError: If the string matches neither format
    """
    if value is None or isinstance(value, time):
        return value
    text = value.strip()
    fmt = "%H:%M:%S" if text.count(":") == 2 else "%H:%M"
    return datetime.strptime(text, fmt).time()
