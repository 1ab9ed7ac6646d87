"""SQL literal conversion and timestamp helpers.

Everything the ORM writes into SQL text goes through ``make_value()``; every
timestamp it reads back from a driver goes through ``sql_to_time()``.

Literal policy:
    ==================  =====================================
    Python value        SQL literal
    ==================  =====================================
    ``bool``            ``1`` / ``0``
    ``int``             bare digits
    ``Float32``         fixed, 4 decimal places
    ``float``           fixed, 6 decimal places
    ``Decimal``         fixed-point text
    ``str``             single-quoted, ``'`` doubled
    ``uuid.UUID``       quoted canonical text
    ``datetime``        ``'YYYY-MM-DD HH:MM:SS.mmm'`` in UTC
    anything else       ``None`` (caller drops the value)
    ==================  =====================================

Trailing zeros are never stripped, so ``73.12`` renders ``73.120000`` and
``Float32(73.12)`` renders ``73.1200``.

Examples:
    >>> make_value("O'Connor")
    "'O''Connor'"
    >>> make_value(Float32(13.23))
    '13.2300'
    >>> make_value(object()) is None
    True
"""

from __future__ import annotations

import math
import re
import uuid
from datetime import UTC, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any


class Float32(float):
    """A ``float`` that should be stored and rendered as single precision."""

    __slots__ = ()


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def to_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def time_to_sql(value: datetime) -> str:
    """Format a datetime as ``YYYY-MM-DD HH:MM:SS.mmm`` in UTC."""
    value = to_utc(value)
    return (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d} "
        f"{value.hour:02d}:{value.minute:02d}:{value.second:02d}."
        f"{value.microsecond // 1000:03d}"
    )


_TIME_PATTERN = re.compile(
    r"^\s*(\d{4})-(\d{1,2})-(\d{1,2})"
    r"(?:[ T](\d{1,2}):(\d{2}):(\d{2})(?:\.(\d+))?)?"
    r"\s*(Z|[+-]\d{2}:?\d{2})?\s*$"
)


def sql_to_time(text: str) -> datetime | None:
    """Parse a driver timestamp string into an aware UTC datetime.

    Accepts a date, or a date and time separated by a space or ``T``, with an
    optional fraction of any length and an optional ``Z``/``±HH:MM`` suffix.
    Returns None when the text is not a timestamp.
    """
    match = _TIME_PATTERN.match(text)
    if not match:
        return None
    year, month, day, hour, minute, second, fraction, offset = match.groups()

    micro = int((fraction or "0")[:6].ljust(6, "0"))
    tz = UTC
    if offset and offset != "Z":
        sign = -1 if offset[0] == "-" else 1
        digits = offset[1:].replace(":", "")
        delta = timedelta(hours=int(digits[:2]), minutes=int(digits[2:]))
        tz = timezone(sign * delta)

    try:
        parsed = datetime(
            int(year), int(month), int(day),
            int(hour or 0), int(minute or 0), int(second or 0),
            micro, tzinfo=tz,
        )
    except ValueError:
        return None
    return parsed.astimezone(UTC)


def make_value(value: Any) -> str | None:
    """Convert a Python value to a SQL literal, or None when unsupported."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, int):
        return str(int(value))
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        if isinstance(value, Float32):
            return f"{value:.4f}"
        return f"{value:.6f}"
    if isinstance(value, Decimal):
        if not value.is_finite():
            return None
        return format(value, "f")
    if isinstance(value, str):
        return "'" + value.replace("'", "''") + "'"
    if isinstance(value, uuid.UUID):
        return f"'{value}'"
    if isinstance(value, datetime):
        return f"'{time_to_sql(value)}'"
    return None


__all__ = [
    "Float32",
    "utc_now",
    "to_utc",
    "time_to_sql",
    "sql_to_time",
    "make_value",
]
