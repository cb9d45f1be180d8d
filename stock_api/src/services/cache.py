from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

# Cache keys
DASHBOARD_STATS_KEY = "dashboard:stats"


class CacheService:
    """
    In-process async TTL cache.

    Values are stored as-is (no serialization) with an absolute monotonic expiry;
    expired entries are evicted lazily on read.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._lock = asyncio.Lock()

    # PUBLIC_INTERFACE
    async def get(self, key: str) -> Optional[Any]:
        """Return the cached value for key, or None when missing or expired."""
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                logger.debug("Cache MISS for %s", key)
                return None
            expires_at, value = entry
            if expires_at <= time.monotonic():
                del self._entries[key]
                logger.debug("Cache EXPIRED for %s", key)
                return None
            logger.debug("Cache HIT for %s", key)
            return value

    # PUBLIC_INTERFACE
    async def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        """Store value under key for ttl_seconds."""
        async with self._lock:
            self._entries[key] = (time.monotonic() + ttl_seconds, value)

    # PUBLIC_INTERFACE
    async def remove(self, key: str) -> None:
        """Invalidate a single key."""
        async with self._lock:
            if self._entries.pop(key, None) is not None:
                logger.debug("Cache invalidated: %s", key)

    # PUBLIC_INTERFACE
    async def clear(self) -> None:
        """Drop every cached entry."""
        async with self._lock:
            self._entries.clear()


# Singleton instance
cache_service = CacheService()
