import heapq
import itertools
import threading
import time
from collections.abc import Callable
from typing import Protocol

from loguru import logger


class Scheduler(Protocol):
    def now(self) -> float: ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> None: ...


class TimerScheduler:
    """Wall clock plus fire-and-forget delayed callbacks.

    All callbacks share one daemon thread that sleeps until the earliest due
    time, so timers survive the event loop that armed them and the number of
    threads stays at one however many entries are pending.
    """

    def __init__(self):
        self.timers: list[tuple[float, int, Callable[[], None]]] = []
        self.order = itertools.count()
        self.condition = threading.Condition()
        self.thread: threading.Thread | None = None

    def now(self) -> float:
        return time.time()

    def call_later(self, delay: float, callback: Callable[[], None]) -> None:
        due = time.monotonic() + max(delay, 0)
        with self.condition:
            heapq.heappush(self.timers, (due, next(self.order), callback))
            if self.thread is None:
                self.thread = threading.Thread(
                    target=self.run, name="memcacher-timers", daemon=True
                )
                self.thread.start()
            self.condition.notify()

    def pending(self) -> int:
        with self.condition:
            return len(self.timers)

    def run(self):
        while True:
            callback = self.next_due()
            try:
                callback()
            except Exception:
                logger.exception("Expiry callback failed")

    def next_due(self) -> Callable[[], None]:
        with self.condition:
            while True:
                now = time.monotonic()
                if self.timers and self.timers[0][0] <= now:
                    return heapq.heappop(self.timers)[2]
                timeout = None
                if self.timers:
                    # waits longer than TIMEOUT_MAX overflow
                    timeout = min(self.timers[0][0] - now, threading.TIMEOUT_MAX)
                self.condition.wait(timeout)


DEFAULT_SCHEDULER = TimerScheduler()
