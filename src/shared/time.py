from __future__ import annotations

from datetime import date, timedelta


def is_weekend(value: date) -> bool:
    return value.weekday() >= 5


def business_days_between(start: date, end: date) -> int:
    """Count weekdays in the half-open range ``[start, end)``.

    Negative when ``end`` precedes ``start``, so ``business_days_between(a, b)``
    equals ``-business_days_between(b, a)``.
    """
    calendar_days = (end - start).days
    sign = -1 if calendar_days < 0 else 1
    weeks = abs(calendar_days) // 7
    result = weeks * 5 * sign
    moving = start + timedelta(days=weeks * 7 * sign)
    while moving != end:
        if not is_weekend(moving):
            result += sign
        moving += timedelta(days=sign)
    return result
