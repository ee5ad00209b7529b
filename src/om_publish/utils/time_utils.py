"""Time utility helpers for UTC-safe timestamps."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

# 100 ns ticks between 0001-01-01T00:00:00Z and the Unix epoch.
UNIX_EPOCH_TICKS = 621_355_968_000_000_000
NANOS_PER_TICK = 100


def now_utc() -> datetime:
    """Return current timezone-aware UTC timestamp."""

    return datetime.now(timezone.utc)


def ns_to_ticks(epoch_ns: int) -> int:
    """Convert nanoseconds since the Unix epoch to 100 ns ticks since year 1."""

    return UNIX_EPOCH_TICKS + epoch_ns // NANOS_PER_TICK


def utc_from_ns(epoch_ns: int) -> datetime:
    """Return a UTC datetime for an epoch-nanosecond timestamp (microsecond precision)."""

    seconds, remainder_ns = divmod(epoch_ns, 1_000_000_000)
    return datetime.fromtimestamp(seconds, tz=timezone.utc) + timedelta(microseconds=remainder_ns // 1000)
