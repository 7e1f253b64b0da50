"""
In-process read-through cache for slow-changing list reads

Counters are never stored here; only list-style results such as liked post
listings go through this cache.
"""
import asyncio
import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Pattern, Union

from .config import settings

logger = logging.getLogger(__name__)

_MISSING = object()


@dataclass
class CacheEntry:
    """Cached value with its storage and expiry times"""
    key: str
    value: Any
    stored_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class ReadThroughCache:
    """TTL-keyed cache fronting idempotent reads"""

    def __init__(
        self,
        default_ttl: float = settings.LIST_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._sweeper: Optional[asyncio.Task] = None

    def _lookup(self, key: str) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return _MISSING
        if entry.is_expired(self._clock()):
            del self._entries[key]
            return _MISSING
        return entry.value

    def get(self, key: str) -> Optional[Any]:
        """Get a value, or None if absent or expired"""
        value = self._lookup(key)
        return None if value is _MISSING else value

    def has(self, key: str) -> bool:
        """Check if key exists and is not expired"""
        return self._lookup(key) is not _MISSING

    def set(self, key: str, value: Any, ttl: Optional[float] = None):
        """Store a value for `ttl` seconds"""
        now = self._clock()
        ttl = self.default_ttl if ttl is None else ttl
        self._entries[key] = CacheEntry(
            key=key, value=value, stored_at=now, expires_at=now + ttl
        )

    def delete(self, key: str):
        """Delete a single entry"""
        self._entries.pop(key, None)

    def clear(self):
        """Drop every entry"""
        self._entries.clear()

    async def get_or_fetch(
        self,
        key: str,
        fetch_fn: Callable[[], Awaitable[Any]],
        ttl: Optional[float] = None,
    ) -> Any:
        """
        Return the cached value for `key`, calling `fetch_fn` on a miss

        Args:
            key: Cache key
            fetch_fn: Coroutine function producing the value
            ttl: Time to live in seconds (defaults to the cache's TTL)
        """
        cached = self._lookup(key)
        if cached is not _MISSING:
            return cached

        value = await fetch_fn()
        self.set(key, value, ttl)
        return value

    def invalidate_pattern(self, pattern: Union[str, Pattern]) -> int:
        """Drop every key matching the regular expression; returns the count"""
        regex = re.compile(pattern) if isinstance(pattern, str) else pattern
        keys = [key for key in self._entries if regex.search(key)]
        for key in keys:
            del self._entries[key]
        if keys:
            logger.debug(f"Invalidated {len(keys)} cache keys matching {regex.pattern}")
        return len(keys)

    def clear_expired(self) -> int:
        """Remove expired entries; returns how many were removed"""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics"""
        keys: List[str] = list(self._entries)
        return {"size": len(keys), "keys": keys}

    async def _sweep(self, interval: float):
        while True:
            await asyncio.sleep(interval)
            removed = self.clear_expired()
            if removed:
                logger.debug(f"Swept {removed} expired cache entries")

    def start_sweeper(self, interval: float = settings.CACHE_SWEEP_INTERVAL):
        """Start the background task that removes expired entries"""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep(interval))

    async def stop_sweeper(self):
        """Stop the background sweep task"""
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None
