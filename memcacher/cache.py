import asyncio
import inspect
import threading
from collections.abc import Callable, Hashable, Mapping
from dataclasses import dataclass
from functools import wraps
from typing import Any, ParamSpec, TypeVar

from loguru import logger

from memcacher.errors import InvalidOption
from memcacher.keys import derive_key
from memcacher.options import CacheOptions, ExpiryPolicy, NoExpiry
from memcacher.timers import DEFAULT_SCHEDULER, Scheduler

P = ParamSpec("P")
R = TypeVar("R")


@dataclass(eq=False)
class CacheEntry:
    value: Any
    stored_at: float
    expires_at: float | None = None

    def expired(self, now: float) -> bool:
        return self.expires_at is not None and self.expires_at <= now


class Cache:
    def __init__(
        self, policy: ExpiryPolicy | None = None, scheduler: Scheduler | None = None
    ):
        self.policy = policy or NoExpiry()
        self.scheduler = scheduler or DEFAULT_SCHEDULER
        self.store: dict[Hashable, CacheEntry] = {}
        # timer callbacks may run on the scheduler's own thread
        self.lock = threading.Lock()

    def get(self, key) -> tuple[Any, bool]:
        with self.lock:
            entry = self.store.get(key)
            if entry is None:
                return None, False
            # a timer that never fired must not keep an expired entry alive
            if entry.expired(self.scheduler.now()):
                del self.store[key]
                return None, False
            return entry.value, True

    def set(self, key, value):
        now = self.scheduler.now()
        delay = self.policy.delay_ms(now * 1000)
        entry = CacheEntry(value, now, None if delay is None else now + delay / 1000)
        with self.lock:
            self.store[key] = entry
        if delay is not None:
            self.scheduler.call_later(delay / 1000, lambda: self._expire(key, entry))

    def _expire(self, key, entry):
        with self.lock:
            # a timer only removes the entry that armed it
            if self.store.get(key) is not entry:
                return
            del self.store[key]
        logger.debug(f"Evicted {key} after {self.scheduler.now() - entry.stored_at:.3f}s")

    def __contains__(self, key) -> bool:
        return self.get(key)[1]

    def __len__(self) -> int:
        with self.lock:
            return len(self.store)


class SharedCoroutine:
    """A coroutine that any number of callers can await.

    The task is created on first await, in whatever loop is running then.
    """

    def __init__(self, coro):
        self.coro = coro
        self.task: asyncio.Future | None = None

    def future(self) -> asyncio.Future:
        if self.task is None:
            self.task = asyncio.ensure_future(self.coro)
        return self.task


async def resolve(shared: SharedCoroutine):
    # one caller being cancelled must not cancel the shared task
    return await asyncio.shield(shared.future())


def wrap(
    func: Callable[P, R],
    options: CacheOptions | Mapping[str, Any] | None = None,
    *,
    scheduler: Scheduler | None = None,
) -> Callable[P, R]:
    """Memoize ``func``, evicting results according to ``options``.

    Options are validated here, so a misconfigured wrapper is never built.
    Results are keyed by `derive_key` over the call's arguments. For
    coroutine functions the task is cached before it finishes, and identical
    calls made while it runs await the same task.
    """
    policy = CacheOptions.from_value(options).policy()
    cache = Cache(policy, scheduler)
    name = getattr(func, "__qualname__", repr(func))
    if not isinstance(policy, NoExpiry):
        logger.info(f"Memoizing {name} with {policy}")

    if inspect.iscoroutinefunction(func):

        @wraps(func)
        async def memoizer(*args, **kwargs):
            key = derive_key(args, kwargs)
            task, cached = cache.get(key)
            if cached:
                logger.debug(f"Cache hit for {name}")
            else:
                logger.debug(f"Cache miss for {name}")
                task = asyncio.ensure_future(func(*args, **kwargs))
                cache.set(key, task)
            # one caller being cancelled must not cancel the shared task
            return await asyncio.shield(task)

    else:

        @wraps(func)
        def memoizer(*args, **kwargs):
            key = derive_key(args, kwargs)
            result, cached = cache.get(key)
            if cached:
                logger.debug(f"Cache hit for {name}")
            else:
                logger.debug(f"Cache miss for {name}")
                result = func(*args, **kwargs)
                # a bare coroutine can only be awaited once
                if inspect.iscoroutine(result):
                    result = SharedCoroutine(result)
                cache.set(key, result)
            if isinstance(result, SharedCoroutine):
                return resolve(result)
            return result

    memoizer.cache = cache
    return memoizer


class Memoize:
    def __init__(
        self,
        options: CacheOptions | Mapping[str, Any] | None = None,
        *,
        scheduler: Scheduler | None = None,
        **option_kwargs,
    ):
        if options is not None and option_kwargs:
            raise InvalidOption("options", "cannot be combined with keyword options")
        self.options = CacheOptions.from_value(
            options if options is not None else option_kwargs
        )
        self.scheduler = scheduler

    def __call__(self, func: Callable[P, R]) -> Callable[P, R]:
        return wrap(func, self.options, scheduler=self.scheduler)
