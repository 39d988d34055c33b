"""
Timezone helpers. Everything is stored as naive UTC; the display timezone is
only applied when rendering for people.
"""
from datetime import datetime
import pytz

from ..core.config import settings


def utc_now() -> datetime:
    """Current wall-clock time as naive UTC, the storage convention."""
    return datetime.now(pytz.UTC).replace(tzinfo=None)


def to_naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(pytz.UTC).replace(tzinfo=None)


def format_display_time(dt: datetime, format_str: str = "%d.%m.%Y, %H:%M:%S") -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=pytz.UTC)
    return dt.astimezone(pytz.timezone(settings.display_timezone)).strftime(format_str)
