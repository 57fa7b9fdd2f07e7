"""Cache-related behavior for the app."""

from abc import ABC, abstractmethod
import logging

from flask import Flask

logger = logging.getLogger('medifind.cache')


class CacheStrategy(ABC):
    """Abstract base class for caching computed price reports."""

    @abstractmethod
    def invalidate(self, medicine_id: int):
        """Invalidate the cache for the given medicine."""

        raise NotImplementedError

    @abstractmethod
    def update(self, medicine_id: int, report: dict):
        """Update the cache for the given medicine to point to the given report."""

        raise NotImplementedError

    @abstractmethod
    def retrieve(self, medicine_id: int) -> dict | None:
        """Retrieve the cache entry (or None) for the given medicine."""

        raise NotImplementedError

    @abstractmethod
    def debug_info(self):
        """Get information for dev testing to watch the cache happening."""

        raise NotImplementedError


class InMemoryCacheStrategy(CacheStrategy):
    """Simple in-memory caching for local dev testing."""

    def __init__(self):
        self.cache = {}

    def invalidate(self, medicine_id: int):
        """Invalidate the cache for the given medicine."""

        if medicine_id in self.cache:
            logger.debug('Invalidating cached report for medicine %d',
                         medicine_id)
            del self.cache[medicine_id]

    def update(self, medicine_id: int, report: dict):
        """Update the cache for the given medicine to point to the given report."""

        self.cache[medicine_id] = report

    def retrieve(self, medicine_id: int) -> dict | None:
        """Retrieve the cache entry (or None) for the given medicine."""

        return self.cache.get(medicine_id, None)

    def debug_info(self):
        """Get information for dev testing to watch the cache happening."""

        return {str(key): value for key, value in self.cache.items()}


def get_cache_strategy(app: Flask | None) -> CacheStrategy:
    """
    Factory function to get a cache strategy based on the environment.

    Args:
        app (Flask|None): the Flask app to base caching on (None if unit
            testing)

    Returns:
        subclass of CacheStrategy to use for caching
    """

    # TODO: add a RedisCacheStrategy once more than one worker process serves the API
    return InMemoryCacheStrategy()
