"""
Date formatting helpers.
Stored timestamps are timezone-naive UTC; everything shown to clients is
rendered in the configured display timezone.
"""

from datetime import date, datetime, timezone
from typing import Any, Optional
from zoneinfo import ZoneInfo

from app.core.config import settings


def display_zone() -> ZoneInfo:
    return ZoneInfo(settings.display_timezone)


def today_local() -> date:
    """Current calendar date in the display timezone."""
    return datetime.now(display_zone()).date()


def _to_local(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(display_zone())
    if isinstance(value, str):
        try:
            return _to_local(datetime.fromisoformat(value))
        except ValueError:
            return None
    return None


def format_date_to_local(value: Any) -> Optional[str]:
    """Render a date/datetime as YYYY-MM-DD in the display timezone."""
    if value is None or value == "":
        return None
    # Plain DATE columns carry no time component to shift
    if isinstance(value, date) and not isinstance(value, datetime):
        return value.isoformat()
    local = _to_local(value)
    if local is None:
        return str(value)
    return local.strftime("%Y-%m-%d")


def format_datetime_to_local(value: Any) -> Optional[str]:
    """Render a datetime as YYYY-MM-DD HH:MM:SS in the display timezone."""
    if value is None or value == "":
        return None
    if isinstance(value, date) and not isinstance(value, datetime):
        return f"{value.isoformat()} 00:00:00"
    local = _to_local(value)
    if local is None:
        return str(value)
    return local.strftime("%Y-%m-%d %H:%M:%S")

