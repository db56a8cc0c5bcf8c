import math
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, fields
from datetime import date, datetime
from typing import Any

from memcacher.errors import ConflictingOptions, InvalidOption

ALIASES = {"maxAge": "max_age", "expirationDate": "expiration_date"}


def parse_date(value: Any) -> datetime | None:
    """Return ``value`` as a datetime, or None when it is not a date.

    Accepts datetimes, dates (local midnight) and ISO-8601 strings. Naive
    results are interpreted as local time wherever they are converted to a
    timestamp.
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    return None


class ExpiryPolicy(ABC):
    @abstractmethod
    def delay_ms(self, now_ms: float) -> int | None:
        """Milliseconds until an entry stored at ``now_ms`` is evicted, or None to keep it."""


@dataclass(frozen=True)
class NoExpiry(ExpiryPolicy):
    def delay_ms(self, now_ms: float) -> None:
        return None


@dataclass(frozen=True)
class MaxAge(ExpiryPolicy):
    ms: int

    def delay_ms(self, now_ms: float) -> int:
        return self.ms


@dataclass(frozen=True)
class ExpirationDate(ExpiryPolicy):
    instant_ms: float

    def delay_ms(self, now_ms: float) -> int:
        # an instant already in the past still waits for the size of the gap
        return math.ceil(abs(self.instant_ms - now_ms))


@dataclass(frozen=True)
class CacheOptions:
    max_age: int | None = None
    expiration_date: datetime | date | str | None = None

    def __post_init__(self):
        if self.max_age is not None and self.expiration_date is not None:
            raise ConflictingOptions("max_age", "expiration_date")
        if self.max_age is not None:
            if isinstance(self.max_age, bool) or not isinstance(self.max_age, int):
                raise InvalidOption("max_age", "is not an integer")
            if self.max_age <= 0:
                raise InvalidOption("max_age", "must be positive")
        if self.expiration_date is not None and parse_date(self.expiration_date) is None:
            raise InvalidOption("expiration_date", "is not a date")

    @classmethod
    def from_value(cls, options: "CacheOptions | Mapping[str, Any] | None") -> "CacheOptions":
        if options is None:
            return cls()
        if isinstance(options, cls):
            return options
        if not isinstance(options, Mapping):
            raise InvalidOption(
                "options", f"must be a mapping, not {type(options).__name__}"
            )
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for name, value in options.items():
            field_name = ALIASES.get(name, name)
            if field_name not in known:
                raise InvalidOption(name, "is not a recognized option")
            if field_name in kwargs:
                raise InvalidOption(field_name, "is given more than once")
            kwargs[field_name] = value
        return cls(**kwargs)

    def policy(self) -> ExpiryPolicy:
        if self.max_age is not None:
            return MaxAge(self.max_age)
        if self.expiration_date is not None:
            instant = parse_date(self.expiration_date)
            return ExpirationDate(instant.timestamp() * 1000)
        return NoExpiry()
