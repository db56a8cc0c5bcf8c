from loguru import logger

from memcacher.cache import Cache, Memoize, wrap
from memcacher.errors import (
    ConflictingOptions,
    InvalidArgument,
    InvalidOption,
    MemCacherError,
)
from memcacher.keys import CacheKey, derive_key
from memcacher.options import CacheOptions
from memcacher.timers import Scheduler, TimerScheduler

# applications opt in with logger.enable("memcacher")
logger.disable("memcacher")

__all__ = [
    "Cache",
    "CacheKey",
    "CacheOptions",
    "ConflictingOptions",
    "InvalidArgument",
    "InvalidOption",
    "Memoize",
    "MemCacherError",
    "Scheduler",
    "TimerScheduler",
    "derive_key",
    "wrap",
]
