"""Timestamp parsing and formatting.

All timestamps in the store are UTC ISO 8601 strings with a trailing Z, so
they compare correctly as text.
"""
from __future__ import annotations

import math
from datetime import datetime, timezone

ISO_FMT = "%Y-%m-%dT%H:%M:%SZ"

# Unix values above this are treated as milliseconds.
_MS_CUTOFF = 1e11


def now_utc() -> str:
    """Current UTC time as ISO 8601 string."""
    return datetime.now(timezone.utc).strftime(ISO_FMT)


def to_iso(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime(ISO_FMT)


def parse_timestamp(value) -> datetime:
    """Parse unix seconds, unix milliseconds or an ISO 8601 string to UTC.

    Raises:
        ValueError: if the value is empty or cannot be parsed.
    """
    if value is None or value == "":
        raise ValueError("missing timestamp")
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        dt = _from_unix(float(value))
    else:
        text = str(value).strip()
        try:
            dt = _from_unix(float(text))
        except ValueError:
            dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _from_unix(ts: float) -> datetime:
    if not math.isfinite(ts) or ts < 0:
        raise ValueError(f"bad unix timestamp: {ts}")
    if ts > _MS_CUTOFF:
        ts /= 1000.0
    return datetime.fromtimestamp(ts, tz=timezone.utc)
