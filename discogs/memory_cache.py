"""TTL caches for Discogs gateway results."""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Callable
from functools import wraps
from typing import TYPE_CHECKING, TypeVar

from cachetools import TTLCache  # type: ignore[import-untyped]

if TYPE_CHECKING:
    from config.settings import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


def make_cache_key(func_name: str, *args, **kwargs) -> str:
    """Generate a deterministic cache key from function name and arguments.

    Args:
        func_name: Name of the function being cached
        *args: Positional arguments to the function
        **kwargs: Keyword arguments to the function

    Returns:
        MD5 hash of the serialized arguments
    """
    key_data = {
        "fn": func_name,
        "args": list(args),
        "kwargs": dict(sorted(kwargs.items())),
    }
    key_string = json.dumps(key_data, sort_keys=True, default=str)
    return hashlib.md5(key_string.encode()).hexdigest()


class DiscogsCaches:
    """The set of caches owned by one gateway."""

    def __init__(self, maxsize: int = 1000, search_ttl: int = 3600, release_ttl: int = 14400):
        self.search: TTLCache = TTLCache(maxsize=maxsize, ttl=search_ttl)
        self.release: TTLCache = TTLCache(maxsize=max(1, maxsize // 2), ttl=release_ttl)

    @classmethod
    def from_settings(cls, settings: Settings) -> DiscogsCaches:
        return cls(
            maxsize=settings.discogs_cache_maxsize,
            search_ttl=settings.discogs_search_cache_ttl,
            release_ttl=settings.discogs_release_cache_ttl,
        )

    def clear_all_caches(self) -> None:
        """Drop every cached entry."""
        self.search.clear()
        self.release.clear()


def async_cached(cache_name: str) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Decorator caching an async method's result in ``self.caches.<cache_name>``.

    Exceptions propagate and are never cached, nor are None results. Methods
    on an instance whose ``caches`` is None run uncached.

    Args:
        cache_name: Attribute of DiscogsCaches to store results in

    Returns:
        Decorator function
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def wrapper(self, *args, **kwargs) -> T:
            caches: DiscogsCaches | None = getattr(self, "caches", None)
            if caches is None:
                return await func(self, *args, **kwargs)  # type: ignore[misc, no-any-return]

            cache: TTLCache = getattr(caches, cache_name)
            key = make_cache_key(func.__name__, *args, **kwargs)

            if key in cache:
                logger.debug(f"Cache hit for {func.__name__}")
                return cache[key]  # type: ignore[no-any-return]

            logger.debug(f"Cache miss for {func.__name__}")
            result = await func(self, *args, **kwargs)  # type: ignore[misc]

            if result is not None:
                cache[key] = result

            return result  # type: ignore[no-any-return]

        return wrapper  # type: ignore[return-value]

    return decorator
