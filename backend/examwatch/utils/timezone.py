"""
Time helpers. The service keeps naive UTC in the database and speaks
ISO-8601 with a trailing ``Z`` on the wire, matching browser ``toISOString()``.
"""
from datetime import datetime
import pytz
from typing import Optional


UTC = pytz.UTC


def utc_now() -> datetime:
    """Current time, timezone-aware UTC"""
    return datetime.now(UTC)


def utc_now_naive() -> datetime:
    """Current UTC time without tzinfo, as stored in the database"""
    return utc_now().replace(tzinfo=None)


def to_iso(dt: Optional[datetime]) -> Optional[str]:
    """Format a datetime as ISO-8601 UTC with millisecond precision and ``Z``"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = UTC.localize(dt)
    else:
        dt = dt.astimezone(UTC)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def iso_now() -> str:
    return to_iso(utc_now())
