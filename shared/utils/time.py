"""Time utilities for the Pesapal gateway.

All helpers work with timezone-aware UTC datetimes.

Functions provided:

* ``utc_now()`` – current UTC datetime.
* ``to_timestamp(dt)`` – convert a datetime to an integer Unix timestamp.
* ``now_ms()`` – current UTC time in milliseconds.
* ``parse_iso8601(s)`` – parse an ISO-8601 string into a UTC datetime.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone

# Pesapal returns .NET style timestamps with 7 fractional digits
_FRACTION_RE = re.compile(r"\.(\d+)")


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_timestamp(dt: datetime) -> int:
    """Convert a datetime to an integer Unix timestamp (UTC).

    :param dt: datetime instance; if naive, it is assumed to be in UTC.
    :returns: The integer number of seconds since the Unix epoch.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp())


def now_ms() -> int:
    return int(utc_now().timestamp() * 1000)


def parse_iso8601(s: str) -> datetime:
    """Parse an ISO-8601 formatted string into a UTC datetime.

    This leverages ``datetime.fromisoformat`` and normalizes the
    resulting datetime to UTC.  If the string lacks timezone
    information, UTC is assumed.  A trailing ``Z`` is treated as UTC and
    fractional seconds longer than microseconds
    (e.g. ``2021-08-26T12:29:30.5177702Z``) are truncated.

    :raises ValueError: if ``s`` is not a valid ISO-8601 timestamp.
    """
    s = s.strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    s = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), s, count=1)
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
