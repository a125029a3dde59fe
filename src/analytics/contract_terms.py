from __future__ import annotations

from datetime import date
from math import ceil


def duration_months(start: date, end: date) -> int:
    """Whole months from start to end; a partial final month counts as a month.

    Apr 15 -> Apr 15 of the next year is exactly 12, Apr 15 -> Apr 16 is 13.
    Inverted spans are not rejected here and come back zero or negative.
    """
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if end.day > start.day:
        months += 1
    return months


def contract_years(months: int) -> int:
    # Fixed billing policy: the first three years use hard thresholds, beyond
    # that exact multiples of 12 do not round up.
    if months <= 12:
        return 1
    if months <= 24:
        return 2
    if months <= 36:
        return 3
    if months % 12 == 0:
        return months // 12
    return ceil(months / 12)
