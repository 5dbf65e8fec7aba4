"""
Tests for the clock implementations.
"""

import time

from runtime.clock import ManualClock, SystemClock


class TestManualClock:
    def test_starts_at_given_time(self):
        assert ManualClock(start=100.0).now() == 100.0

    def test_advance(self):
        clock = ManualClock(start=100.0)

        assert clock.advance(2.5) == 102.5
        assert clock.now() == 102.5

    def test_set(self):
        clock = ManualClock(start=100.0)
        clock.set(50)

        assert clock.now() == 50.0

    def test_default_start_is_now(self):
        before = time.time()
        clock = ManualClock()

        assert before <= clock.now() <= time.time()


class TestSystemClock:
    def test_follows_wall_clock(self):
        before = time.time()
        now = SystemClock().now()

        assert before <= now <= time.time()
