import threading
import time

from memcacher.cache import wrap
from memcacher.timers import TimerScheduler


def wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_callbacks_fire_in_due_order():
    scheduler = TimerScheduler()
    fired = []
    scheduler.call_later(0.05, lambda: fired.append("late"))
    scheduler.call_later(0.01, lambda: fired.append("early"))
    assert wait_for(lambda: len(fired) == 2)
    assert fired == ["early", "late"]
    assert scheduler.pending() == 0


def test_failing_callback_does_not_stop_the_thread():
    scheduler = TimerScheduler()
    fired = threading.Event()

    def boom():
        raise RuntimeError("boom")

    scheduler.call_later(0, boom)
    scheduler.call_later(0.01, fired.set)
    assert fired.wait(2)


def test_many_pending_timers_share_one_thread():
    scheduler = TimerScheduler()
    before = threading.active_count()
    memoized = wrap(lambda x: x, {"max_age": 60_000}, scheduler=scheduler)
    for i in range(200):
        memoized(i)
    assert scheduler.pending() == 200
    assert threading.active_count() <= before + 1


def test_far_future_expiration_date():
    scheduler = TimerScheduler()
    memoized = wrap(
        lambda x: x, {"expiration_date": "2500-01-01T00:00:00+00:00"}, scheduler=scheduler
    )
    for i in range(50):
        memoized(i)
    time.sleep(0.05)
    assert scheduler.thread.is_alive()
    assert scheduler.pending() == 50
    assert len(memoized.cache) == 50
