"""
Clock abstraction for the detector timers.

The detector never reads the wall clock directly. Production code passes a
SystemClock, tests pass a ManualClock and move time forward explicitly.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Optional


class Clock(ABC):
    """Source of the current time in seconds."""

    @abstractmethod
    def now(self) -> float:
        pass


class SystemClock(Clock):
    """Wall clock (Unix timestamp)."""

    def now(self) -> float:
        return time.time()


class ManualClock(Clock):
    """
    Externally driven clock.

    Example:
        clock = ManualClock(start=946684800.0)
        detector = EntryDetector(background, clock=clock)
        clock.advance(61)
    """

    def __init__(self, start: Optional[float] = None):
        self._now = time.time() if start is None else float(start)

    def now(self) -> float:
        return self._now

    def set(self, timestamp: float) -> None:
        self._now = float(timestamp)

    def advance(self, seconds: float) -> float:
        """Move the clock forward and return the new time."""
        self._now += seconds
        return self._now
