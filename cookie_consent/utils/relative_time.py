"""
Relative Time Expressions

Resolves human-readable offsets such as ``"+2 years"``, ``"-6 months"`` or
``"+1 week 3 days"`` against a reference datetime. Used for the consent
expiration setting and for the archive cutoff menu.
"""

import calendar
import re
from datetime import datetime, timedelta

_TERM_RE = re.compile(
    r"([+-]?\s*\d+)\s*(seconds?|secs?|minutes?|mins?|hours?|days?|weeks?|fortnights?|months?|years?)",
    re.IGNORECASE,
)

_FIXED_UNITS = {
    "sec": timedelta(seconds=1),
    "second": timedelta(seconds=1),
    "min": timedelta(minutes=1),
    "minute": timedelta(minutes=1),
    "hour": timedelta(hours=1),
    "day": timedelta(days=1),
    "week": timedelta(weeks=1),
    "fortnight": timedelta(weeks=2),
}


def _add_months(value: datetime, months: int) -> datetime:
    """Shift by calendar months, clamping the day to the target month's length."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def parse_offset(expression: str) -> list[tuple[int, str]]:
    """
    Split an offset expression into ``(amount, unit)`` terms.

    Raises:
        ValueError: If the expression is empty or contains anything other
            than signed integer/unit pairs.
    """
    text = (expression or "").strip()
    if not text:
        raise ValueError("Empty relative time expression")

    terms = []
    position = 0
    for match in _TERM_RE.finditer(text):
        if text[position : match.start()].strip():
            raise ValueError(f"Invalid relative time expression: {expression!r}")
        amount = int(match.group(1).replace(" ", ""))
        unit = match.group(2).lower().rstrip("s")
        terms.append((amount, unit))
        position = match.end()

    if not terms or text[position:].strip():
        raise ValueError(f"Invalid relative time expression: {expression!r}")
    return terms


def resolve_offset(expression: str, now: datetime) -> datetime:
    """Return ``now`` shifted by the relative time ``expression``."""
    result = now
    for amount, unit in parse_offset(expression):
        if unit == "year":
            result = _add_months(result, amount * 12)
        elif unit == "month":
            result = _add_months(result, amount)
        else:
            result = result + _FIXED_UNITS[unit] * amount
    return result
