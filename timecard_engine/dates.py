"""
Calendar date helpers.

Everything in the engine works on calendar dates, never instants, so that
daylight-saving transitions and client time zones cannot move an entry into
a neighbouring day.
"""

from datetime import date, datetime
from typing import Any

from config.settings import DATE_LABEL_FORMAT
from .errors import InvalidDateError


def parse_calendar_date(value: Any) -> date:
    """
    Parse an ISO-8601 date or RFC 3339 timestamp into a calendar date.

    Timestamps keep the calendar date as written; no time zone conversion is
    applied.

    Args:
        value: date, datetime or string such as "2025-01-05" or
            "2025-01-05T00:00:00Z"

    Returns:
        The calendar date

    Raises:
        InvalidDateError: If the value cannot be interpreted as a date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise InvalidDateError(f"Invalid date value: {value!r}", value)

    text = value.strip()
    try:
        if len(text) == 10:
            return date.fromisoformat(text)
        if text.endswith('Z') or text.endswith('z'):
            text = text[:-1] + '+00:00'
        return datetime.fromisoformat(text).date()
    except ValueError:
        raise InvalidDateError(f"Invalid date value: {value!r}", value)


def format_date_label(day: date) -> str:
    """Format a date for a column header (MM-DD-YY)."""
    return day.strftime(DATE_LABEL_FORMAT)
