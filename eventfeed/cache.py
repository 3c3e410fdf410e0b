"""
Response Cache
Time-windowed memoization in front of expensive or external reads
"""
import asyncio
import time
import logging
from collections import OrderedDict
from typing import Any, Awaitable, Callable, Optional

from fastapi import Request
from prometheus_client import Counter

logger = logging.getLogger(__name__)

CACHE_LOOKUPS = Counter('eventfeed_cache_lookups_total', 'Response cache lookups', ['result'])


class ResponseCache:
    """
    Process-local TTL cache keyed by request identity.

    Entries expire `ttl` seconds after they are stored and are dropped lazily
    the next time their key is read. With `max_entries` set the least
    recently used entry is evicted once the bound is reached; by default the
    cache is unbounded.
    """

    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic, max_entries: Optional[int] = None):
        self.ttl = ttl
        self.clock = clock
        self.max_entries = max_entries
        self._entries: "OrderedDict[str, tuple[float, Any]]" = OrderedDict()
        self._lock = asyncio.Lock()

    async def get(self, key: str):
        """Return (True, value) for a live entry, (False, None) otherwise"""
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False, None
            expires, value = entry
            if self.clock() >= expires:
                del self._entries[key]
                return False, None
            self._entries.move_to_end(key)
            return True, value

    async def set(self, key: str, value: Any):
        async with self._lock:
            self._entries[key] = (self.clock() + self.ttl, value)
            self._entries.move_to_end(key)
            if self.max_entries is not None:
                while len(self._entries) > self.max_entries:
                    evicted, _ = self._entries.popitem(last=False)
                    logger.debug(f"Cache evicted {evicted}")

    async def wrap(self, key: str, compute: Callable[[], Awaitable[Any]]):
        """Serve `key` from cache, or await `compute()` and store its result.

        Failures raised by compute propagate untouched and nothing is stored.
        """
        hit, value = await self.get(key)
        if hit:
            CACHE_LOOKUPS.labels('hit').inc()
            return value
        CACHE_LOOKUPS.labels('miss').inc()
        value = await compute()
        await self.set(key, value)
        return value

    def __len__(self):
        return len(self._entries)


def request_cache_key(request: Request) -> str:
    """Path plus query string, verbatim"""
    query = request.url.query
    return f"{request.url.path}?{query}" if query else request.url.path


def get_feed_cache(request: Request) -> ResponseCache:
    return request.app.state.feed_cache
