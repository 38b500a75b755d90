"""
Date and time utilities for NHL API dates.
"""

import datetime
import pytz


def parse_nhl_date(value: str) -> datetime.datetime:
    """Parse an NHL API date (e.g. "2016-10-12T02:00:00Z") into an aware UTC datetime

    Raises:
        ValueError: if the value is not a valid ISO date
    """
    if not isinstance(value, str):
        raise ValueError(f"Invalid date [{value!r}]")
    if value.endswith('Z'):
        value = value[:-1] + '+00:00'
    date = datetime.datetime.fromisoformat(value)
    if date.tzinfo is None:
        date = pytz.UTC.localize(date)
    return date.astimezone(pytz.UTC)


def to_local(date: datetime.datetime, timezone) -> datetime.datetime:
    """Convert an aware datetime to the given pytz timezone"""
    return date.astimezone(timezone)


def format_local(date: datetime.datetime, timezone, fmt: str = "%A %d/%b/%Y %I:%M%p") -> str:
    """Format an aware datetime in the given timezone, with zone abbreviation"""
    local = to_local(date, timezone)
    return f"{local.strftime(fmt)} {local.tzname()}"


def now_utc() -> datetime.datetime:
    return datetime.datetime.now(pytz.UTC)
