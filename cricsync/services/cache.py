"""In-memory caching service with TTL support."""

import time
from functools import lru_cache
from typing import Any, Callable, Optional
from cachetools import TTLCache
import threading

from cricsync import config


class CacheService:
    """Thread-safe in-memory cache with different TTLs for different regions."""

    def __init__(self, timer: Callable[[], float] = time.monotonic) -> None:
        """Initialize cache regions with appropriate TTLs.

        Args:
            timer: Clock used for expiry; tests pass a fake clock
        """
        # Resolved pause window settings
        self._pause_window_cache: TTLCache = TTLCache(
            maxsize=4, ttl=config.PAUSE_WINDOW_CACHE_TTL, timer=timer
        )
        # Admin settings (cron toggles, emergency flag, retention)
        self._settings_cache: TTLCache = TTLCache(
            maxsize=100, ttl=config.PAUSE_WINDOW_CACHE_TTL, timer=timer
        )

        # Lock for thread safety
        self._lock = threading.RLock()

    def _get_cache(self, cache_type: str) -> TTLCache:
        """Get the appropriate cache based on type."""
        caches = {
            "pause_window": self._pause_window_cache,
            "settings": self._settings_cache,
        }
        return caches.get(cache_type, self._settings_cache)

    def get(self, key: str, cache_type: str = "settings") -> Optional[Any]:
        """Get a value from the cache.

        Args:
            key: The cache key
            cache_type: Region name (pause_window, settings)

        Returns:
            Cached value or None if not found/expired
        """
        with self._lock:
            cache = self._get_cache(cache_type)
            return cache.get(key)

    def set(self, key: str, value: Any, cache_type: str = "settings") -> None:
        """Set a value in the cache."""
        with self._lock:
            cache = self._get_cache(cache_type)
            cache[key] = value

    def delete(self, key: str, cache_type: str = "settings") -> bool:
        """Delete a value from the cache.

        Returns:
            True if key was deleted, False if not found
        """
        with self._lock:
            cache = self._get_cache(cache_type)
            if key in cache:
                del cache[key]
                return True
            return False

    def clear(self, cache_type: Optional[str] = None) -> None:
        """Clear cache(s).

        Args:
            cache_type: Region to clear, or None to clear all
        """
        with self._lock:
            if cache_type:
                self._get_cache(cache_type).clear()
            else:
                self._pause_window_cache.clear()
                self._settings_cache.clear()

    def stats(self) -> dict[str, dict[str, int]]:
        """Get cache statistics.

        Returns:
            Dictionary with size and maxsize for each region
        """
        with self._lock:
            return {
                "pause_window": {
                    "size": len(self._pause_window_cache),
                    "maxsize": self._pause_window_cache.maxsize,
                },
                "settings": {
                    "size": len(self._settings_cache),
                    "maxsize": self._settings_cache.maxsize,
                },
            }


@lru_cache
def get_cache_service() -> CacheService:
    """Get the global cache service instance."""
    return CacheService()
