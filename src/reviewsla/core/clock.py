"""Injectable clocks.

The engine never calls ``datetime.now`` directly; elapsed time is always
measured against an ``IClock`` so tests can move time deterministically.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone


class SystemClock:
    """Production IClock returning the current UTC time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class ManualClock:
    """IClock that only moves when told to.

    Usage:
        clock = ManualClock(datetime(2026, 1, 1, tzinfo=timezone.utc))
        clock.advance(hours=49)
    """

    def __init__(self, start: datetime | None = None) -> None:
        start = start or datetime(2026, 1, 1, tzinfo=timezone.utc)
        if start.tzinfo is None:
            start = start.replace(tzinfo=timezone.utc)
        self._now = start

    def now(self) -> datetime:
        return self._now

    def advance(self, hours: float = 0.0, minutes: float = 0.0) -> datetime:
        self._now = self._now + timedelta(hours=hours, minutes=minutes)
        return self._now

    def set(self, when: datetime) -> None:
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        self._now = when
