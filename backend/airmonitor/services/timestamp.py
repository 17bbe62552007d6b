"""
Timestamp Utilities

Parsing of Supabase ISO timestamps, bucket alignment for history charts,
and conversion to campus-local time for operating-hours splits.
"""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo


def parse_timestamp(value) -> datetime:
    """
    Parse a Supabase timestamp into an aware UTC datetime.

    Accepts datetime objects (naive values are treated as UTC) and ISO
    strings with either a "Z" suffix or an explicit offset.
    """
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def align_timestamp(ts: datetime, interval_seconds: float) -> datetime:
    """
    Align timestamp to the previous interval boundary.

    All readings within the same interval share the identical bucket start.

    Examples:
        14:30:17 with 300s   → 14:30:00
        14:30:17 with 3600s  → 14:00:00
        15:45:00 with 21600s → 12:00:00 (6-hour boundary)
    """
    if interval_seconds <= 0:
        return ts

    epoch = ts.timestamp()
    aligned_epoch = (epoch // interval_seconds) * interval_seconds

    tz = ts.tzinfo or timezone.utc
    return datetime.fromtimestamp(aligned_epoch, tz)


def to_campus_time(value, tz_name: str) -> datetime:
    """Convert a timestamp to campus-local time."""
    return parse_timestamp(value).astimezone(ZoneInfo(tz_name))


def campus_hour(value, tz_name: str) -> int:
    """Hour of day (0-23) in campus-local time."""
    return to_campus_time(value, tz_name).hour


def is_operating_hour(hour: int, start: int = 8, end: int = 18) -> bool:
    """Operating hours are inclusive at both ends (08:00 through 18:59 by default)."""
    return start <= hour <= end


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
