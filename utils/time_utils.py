"""
utils/time_utils.py

Purpose: Time helpers

- Naive-UTC timestamps for storage
- Local calendar-day keys (APP_TIMEZONE) for per-day aggregation
- Parsing of client and payment-provider timestamps
"""

from datetime import datetime, timezone
from typing import Any, Optional
from zoneinfo import ZoneInfo

from treinai.core.config import settings


def utc_now() -> datetime:
    """Naive UTC now, the storage convention for every document timestamp."""
    return datetime.utcnow()


def app_timezone() -> ZoneInfo:
    return ZoneInfo(settings.APP_TIMEZONE)


def local_day_key(dt: Optional[datetime]) -> Optional[str]:
    """
    Calendar day (YYYY-MM-DD) of a timestamp in the application timezone.

    Naive datetimes are treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(app_timezone()).strftime("%Y-%m-%d")


def is_same_local_day(a: Optional[datetime], b: Optional[datetime]) -> bool:
    key_a = local_day_key(a)
    return key_a is not None and key_a == local_day_key(b)


def from_unix(ts: Any) -> Optional[datetime]:
    """Unix seconds (as sent by Stripe) to naive UTC."""
    if ts in (None, ""):
        return None
    try:
        return datetime.utcfromtimestamp(int(ts))
    except (TypeError, ValueError, OverflowError):
        return None


def parse_client_datetime(value: Any) -> Optional[datetime]:
    """
    Parses an ISO-8601 string or datetime sent by a client to naive UTC.

    Returns None when the value cannot be parsed.
    """
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt
