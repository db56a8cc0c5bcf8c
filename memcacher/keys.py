import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from memcacher.errors import InvalidArgument

NAN = ("float", "nan")


@dataclass(frozen=True)
class CacheKey:
    """Canonical, hashable form of one call's arguments.

    Built by `derive_key`. Two calls whose arguments are equal value for value
    (dict and set ordering aside) get equal keys.
    """

    args: tuple
    kwargs: tuple = ()


def derive_key(args: tuple, kwargs: Mapping[str, Any] | None = None) -> CacheKey:
    path: set[int] = set()
    return CacheKey(
        tuple(encode(arg, path) for arg in args),
        tuple(sorted((name, encode(value, path)) for name, value in (kwargs or {}).items())),
    )


def encode(value: Any, path: set[int]) -> Any:
    """Encode a single argument.

    ``path`` holds the ids of the containers currently being encoded, so a
    container that contains itself is reported instead of recursing forever.
    """
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, bool):
        return ("bool", value)
    if isinstance(value, float) and math.isnan(value):
        return NAN
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, (list, tuple, dict, set, frozenset)):
        marker = id(value)
        if marker in path:
            raise InvalidArgument(
                f"cyclic {type(value).__name__} cannot be used as a cache key"
            )
        path.add(marker)
        try:
            return encode_container(value, path)
        finally:
            path.discard(marker)
    if callable(value):
        raise InvalidArgument(f"{value!r} is callable and cannot be used as a cache key")
    try:
        hash(value)
    except TypeError as exc:
        raise InvalidArgument(
            f"unhashable {type(value).__name__} cannot be used as a cache key"
        ) from exc
    cls = type(value)
    return ("obj", cls.__module__, cls.__qualname__, value)


def encode_container(value: Any, path: set[int]) -> tuple:
    # every encoded value is hashable, so unordered containers become
    # frozensets and compare equal whatever their iteration order
    if isinstance(value, dict):
        return ("dict", frozenset((encode(k, path), encode(v, path)) for k, v in value.items()))
    if isinstance(value, (set, frozenset)):
        return ("set", frozenset(encode(v, path) for v in value))
    tag = "list" if isinstance(value, list) else "tuple"
    return (tag, tuple(encode(v, path) for v in value))
