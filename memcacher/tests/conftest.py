import heapq
import itertools

import pytest


class FakeScheduler:
    """Manual clock for expiry tests. Time is kept in whole milliseconds."""

    def __init__(self, now_ms: int = 0):
        self.now_ms = now_ms
        self.delays = []
        self.timers = []
        self.order = itertools.count()

    def now(self) -> float:
        return self.now_ms / 1000

    def call_later(self, delay, callback):
        self.delays.append(delay)
        due = self.now_ms + round(delay * 1000)
        heapq.heappush(self.timers, (due, next(self.order), callback))

    def advance(self, ms: int):
        target = self.now_ms + ms
        while self.timers and self.timers[0][0] <= target:
            due, _, callback = heapq.heappop(self.timers)
            self.now_ms = due
            callback()
        self.now_ms = target


@pytest.fixture
def clock():
    return FakeScheduler()
