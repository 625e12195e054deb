"""Common time utilities.

Starring timestamps travel through the crawler as integer unix seconds, which
keeps cached payloads compact and the statistics arithmetic exact.
"""

from __future__ import annotations

import datetime as dt

SECONDS_PER_DAY = 24 * 60 * 60


def utcnow() -> dt.datetime:
    """Return an aware UTC timestamp."""
    return dt.datetime.now(dt.UTC)


def unix_seconds(value: dt.datetime) -> int:
    """Convert an aware datetime into whole unix seconds."""
    return int(value.timestamp())


def parse_github_timestamp(value: str) -> int:
    """Parse a GitHub ISO-8601 timestamp into unix seconds."""
    parsed = dt.datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        msg = f"GitHub datetime missing timezone: {value}"
        raise ValueError(msg)
    return unix_seconds(parsed)


def start_of_week(now: dt.datetime) -> int:
    """Return the most recent Monday 00:00 UTC at or before ``now``.

    >>> start_of_week(dt.datetime(2024, 7, 10, 15, 30, tzinfo=dt.UTC))
    1720396800

    """
    midnight = now.astimezone(dt.UTC).replace(hour=0, minute=0, second=0, microsecond=0)
    monday = midnight - dt.timedelta(days=midnight.weekday())
    return unix_seconds(monday)


def days_between(earlier: int, later: int, *, decimals: int = 1) -> float:
    """Return ``later - earlier`` expressed in days, rounded."""
    return round((later - earlier) / SECONDS_PER_DAY, decimals)
