"""Shared service helpers: clocks, parsing, rounding and interval maths."""

import math
from datetime import datetime, date, timedelta, timezone
from typing import Optional

from ..utils.constants import DATE_FMT, DATETIME_FMT


def utcnow() -> datetime:
    """Naive UTC 'now'. Wrapper for easier testing/mocking."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _today() -> date:
    return utcnow().date()


def start_of_day(d) -> datetime:
    if isinstance(d, datetime):
        d = d.date()
    return datetime(d.year, d.month, d.day)


def start_of_month(d) -> datetime:
    return datetime(d.year, d.month, 1)


def previous_month(d) -> datetime:
    """First day of the month before the month of `d`."""
    first = start_of_month(d)
    return start_of_month(first - timedelta(days=1))


# -------- parsing --------
def parse_datetime(value) -> Optional[datetime]:
    """
    Parse a form/query value into a naive UTC datetime.
    Accepts datetime/date objects, 'YYYY-MM-DD', 'YYYY-MM-DDTHH:MM[:SS]'
    and ISO strings with a 'Z' or offset suffix. Returns None when empty or invalid.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return start_of_day(value)

    s = str(value).strip()
    if not s:
        return None
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        for fmt in (DATETIME_FMT, DATE_FMT):
            try:
                dt = datetime.strptime(s, fmt)
                break
            except ValueError:
                continue
        else:
            return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def to_float_safe(value) -> Optional[float]:
    """Safely convert to float; return None if invalid."""
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def to_int_safe(value) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def to_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in ("1", "true", "yes", "on")


# -------- math --------
def round2(x) -> float:
    return round(float(x or 0), 2)


def overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """
    Check overlap between [a_start, a_end) and [b_start, b_end).
    A booking ending exactly when another starts does not conflict.
    """
    return a_start < b_end and a_end > b_start


def rental_days(start: datetime, end: datetime) -> int:
    """Billable days: every started 24h block counts, never fewer than one."""
    hours = (end - start).total_seconds() / 3600.0
    if hours <= 0:
        return 1
    return max(1, math.ceil(hours / 24.0))


def percentage_of(amount: float, pct) -> float:
    return float(amount) * float(pct or 0) / 100.0


# -------- normalizers --------
def _lc(s):
    """Safe lowercase for case-insensitive compare."""
    return (s or "").lower()


def clean(s) -> str:
    return (s or "").strip()


def fmt_dt(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat(timespec="minutes") if dt else None
