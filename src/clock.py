"""
Clock Source
============
Wall-clock access for the session core.

Timers and checkpoints compare timestamps that must survive a process
restart, so the clock reports epoch milliseconds rather than monotonic
time. Components take a clock in their constructor; tests substitute a
manually advanced clock.

Module: clock
Version: 1.0.0
"""

import time


class ClockSource:
    """Interface for epoch-millisecond clocks."""

    def now_ms(self):
        """
        Get the current time.

        Returns:
            Integer epoch milliseconds
        """
        raise NotImplementedError


class SystemClock(ClockSource):
    """ClockSource backed by time.time()."""

    def now_ms(self):
        return int(time.time() * 1000)
