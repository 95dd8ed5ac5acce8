"""
Base lookup source.
"""

from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger

from platebot.services.cache import ResultCache
from platebot.services.fetcher import ResilientFetcher

T = TypeVar("T")


class BaseLookupSource(ABC):
    """
    Abstract base class for cached upstream lookups.

    All lookup sources should:
    - Use ResilientFetcher for HTTP requests (retry + classification)
    - Share one ResultCache, separating lookup kinds by key namespace
    - Return Pydantic models or plain values
    """

    def __init__(self, fetcher: ResilientFetcher, cache: ResultCache):
        self.fetcher = fetcher
        self.cache = cache

    @property
    @abstractmethod
    def service_id(self) -> str:
        """Unique identifier for this source."""
        ...

    @abstractmethod
    def is_configured(self) -> bool:
        """Check if the source is properly configured."""
        ...

    async def cached_lookup(
        self,
        namespace: str,
        query: str,
        loader: Callable[[], Awaitable[T]],
        ttl: timedelta | None = None,
    ) -> T:
        """
        Return the cached value for `namespace:query`, or load and cache it.

        A cached None is a hit: "looked up, nothing there".
        """
        key = ResultCache.make_key(namespace, query)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"Cache hit for {key}")
            return cached.data

        value = await loader()
        self.cache.set(key, value, ttl)
        logger.debug(f"Cached {self.service_id} result for {key}")
        return value

    def get_stats(self) -> dict[str, Any]:
        return {
            "service_id": self.service_id,
            "fetcher": self.fetcher.get_stats(),
            "cache": self.cache.get_stats().to_dict(),
        }
