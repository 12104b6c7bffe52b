"""
Utility functions module.

Time Semantics:
- All cache timestamps are epoch milliseconds taken from an injected clock
- Freshness decisions never read the wall clock directly, so tests can
  advance time deterministically
- Display labels ("last updated") are rendered in local time
"""
from .time import Clock, ManualClock, SystemClock, format_clock_time

__all__ = ["Clock", "ManualClock", "SystemClock", "format_clock_time"]
