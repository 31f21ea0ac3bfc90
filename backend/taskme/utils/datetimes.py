"""Date-time helpers for task scheduling.

Task date-times are stored as ISO-8601 strings in UTC with millisecond
precision and a ``Z`` suffix (``2024-06-01T10:00:00.000Z``), so sorting the
strings sorts the tasks chronologically.
"""

import calendar
from datetime import datetime, timedelta, timezone


def parse_date_time(value: str | datetime) -> datetime:
    """Parse an ISO-8601 value into an aware datetime.

    Naive values are interpreted as UTC.

    Raises:
        ValueError: if the string is not ISO-8601
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def normalize_date_time(value: str | datetime) -> str:
    """Render a date-time in the canonical stored form."""
    parsed = parse_date_time(value).astimezone(timezone.utc)
    return parsed.strftime("%Y-%m-%dT%H:%M:%S.") + f"{parsed.microsecond // 1000:03d}Z"


def add_months(value: datetime, months: int) -> datetime:
    """Shift by calendar months, clamping the day to the target month's length."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def next_occurrence(value: str, repeat: str) -> str | None:
    """Date-time of the next occurrence for a recurrence tag, or None."""
    current = parse_date_time(value)
    if repeat == "daily":
        following = current + timedelta(days=1)
    elif repeat == "weekly":
        following = current + timedelta(weeks=1)
    elif repeat == "monthly":
        following = add_months(current, 1)
    else:
        return None
    return normalize_date_time(following)
