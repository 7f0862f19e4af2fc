"""Jinja filters and date/money formatting helpers."""
from datetime import datetime, timezone

import pytz
from flask import current_app, has_app_context

DEFAULT_TZ = "Asia/Kuala_Lumpur"


def _display_tz():
    name = DEFAULT_TZ
    if has_app_context():
        name = current_app.config.get("DISPLAY_TIMEZONE") or DEFAULT_TZ
    try:
        return pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        return pytz.timezone(DEFAULT_TZ)


def _parse(value):
    """datetime from a datetime or an ISO-ish string; None when it cannot be read."""
    if isinstance(value, datetime):
        return value
    s = str(value).strip().replace("T", " ")
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(s)
    except ValueError:
        pass
    for fmt in ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M"):
        try:
            return datetime.strptime(s, fmt)
        except ValueError:
            continue
    return None


def fmt_iso_local(value, use_12h: bool = False) -> str:
    """
    Format a stored UTC date/datetime into the display timezone (Kuala Lumpur by default).
    Supports:
      - datetime objects (naive ones are taken as UTC)
      - 'YYYY-MM-DD' (shown as a date, no conversion)
      - 'YYYY-MM-DD HH:MM[:SS]' / 'YYYY-MM-DDTHH:MM[:SS]', optionally with 'Z' or an offset
    On parse error, returns the original value (so the UI never goes blank).
    """
    if value is None:
        return ""
    s = str(value).strip()
    if not s:
        return ""

    if not isinstance(value, datetime) and len(s) == 10:
        try:
            return datetime.strptime(s, "%Y-%m-%d").strftime("%d/%m/%Y")
        except ValueError:
            return s

    dt = _parse(value)
    if dt is None:
        return s
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    local = dt.astimezone(_display_tz())

    if use_12h:
        # %-I is not portable; strip the leading zero by hand
        hh = local.strftime("%I").lstrip("0") or "0"
        return f"{local.strftime('%d %b %Y')}, {hh}:{local.strftime('%M %p')}"
    return local.strftime("%d/%m/%Y %H:%M")


def fmt_money(value, currency: str = None) -> str:
    """RM 1,234.50 style amounts."""
    if currency is None:
        currency = current_app.config.get("CURRENCY", "RM") if has_app_context() else "RM"
    try:
        amount = float(value or 0)
    except (TypeError, ValueError):
        return str(value)
    return f"{currency} {amount:,.2f}"
