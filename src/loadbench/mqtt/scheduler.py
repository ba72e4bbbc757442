# src/loadbench/mqtt/scheduler.py

import itertools

from ..errors import ConfigError


class RateScheduler:
    """
    Absolute send deadlines for a fixed publish interval.

    Deadline k is ``start_time + k * interval``. Deadlines are anchored at the
    start, never at the previous send, so a slow send does not push back the
    ones after it and the average rate converges to 1 / interval.
    """

    def __init__(self, start_time, interval):
        if not interval > 0:
            raise ConfigError(f"interval must be positive: {interval}")
        self.start_time = start_time
        self.interval = interval

    def next_deadline(self, k):
        if k < 0:
            raise ValueError(f"deadline index must not be negative: {k}")
        # multiply rather than accumulate, so float error does not build up
        return self.start_time + k * self.interval

    def last_due(self, now):
        """Index of the latest deadline at or before now (-1 before the start)."""
        if now < self.start_time:
            return -1
        return int((now - self.start_time) // self.interval)

    def __iter__(self):
        return (self.next_deadline(k) for k in itertools.count())

    def __repr__(self):
        return f"RateScheduler(start_time={self.start_time!r}, interval={self.interval!r})"
