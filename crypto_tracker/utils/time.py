"""
Clock abstractions for cache age and display timestamps.

Every component that decides freshness receives a Clock instead of calling
time.time() itself. Production code uses SystemClock; tests and replays use
ManualClock and advance it explicitly.
"""

import time
from datetime import datetime, tzinfo
from typing import Optional, Protocol


class Clock(Protocol):
    """Source of the current time in epoch milliseconds."""

    def now_ms(self) -> int:
        ...


class SystemClock:
    """Wall-clock time."""

    def now_ms(self) -> int:
        return int(time.time() * 1000)


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start_ms: int = 0):
        self._now_ms = start_ms

    def now_ms(self) -> int:
        return self._now_ms

    def advance(self, ms: int) -> int:
        """Move the clock forward and return the new time."""
        if ms < 0:
            raise ValueError("ManualClock cannot move backwards")
        self._now_ms += ms
        return self._now_ms

    def advance_seconds(self, seconds: float) -> int:
        return self.advance(int(seconds * 1000))

    def set(self, now_ms: int) -> None:
        self._now_ms = now_ms


def age_ms(written_at_ms: int, now_ms: int) -> int:
    """Age of an entry; entries stamped in the future count as age zero."""
    return max(0, now_ms - written_at_ms)


def format_clock_time(timestamp_ms: int, tz: Optional[tzinfo] = None) -> str:
    """
    Format a timestamp as a 12-hour clock label, e.g. "03:04:05 PM".

    Args:
        timestamp_ms: Epoch milliseconds
        tz: Optional tzinfo; local time when omitted

    Returns:
        Formatted time string
    """
    dt = datetime.fromtimestamp(timestamp_ms / 1000, tz=tz)
    return dt.strftime("%I:%M:%S %p")
