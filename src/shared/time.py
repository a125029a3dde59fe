from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional

DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%m/%d/%y")


def parse_date(value: object) -> Optional[date]:
    """Best-effort conversion of a stored date value to a calendar date.

    Returns None for anything that cannot be interpreted so callers can fall
    back instead of failing the whole batch.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def parse_timestamp(value: object) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            only_date = parse_date(value)
            if only_date is None:
                return None
            parsed = datetime(only_date.year, only_date.month, only_date.day)
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def days_until(target: date, today: date) -> int:
    # Whole calendar days, midnight to midnight.
    return (target - today).days


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
