"""Time helpers."""

from __future__ import annotations

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(tz=timezone.utc)


def iso_now() -> str:
    """Return the current UTC time as an ISO-8601 string with milliseconds."""
    return utc_now().isoformat(timespec="milliseconds")
