"""Response cache backed by Redis with an in-process fallback."""

from __future__ import annotations

import hashlib
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

from redis.exceptions import RedisError

from .redis_store import RedisStore

logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = "cache:"


def hash_key(key: str) -> str:
    """Return the sha1 hex digest used as the storage key."""

    return hashlib.sha1(key.encode("utf-8")).hexdigest()


@dataclass(slots=True)
class _MemoryEntry:
    value: Any
    expires_at: float


class MemoryCache:
    """Bounded dictionary cache with expiry checked on read."""

    def __init__(
        self,
        max_entries: int = 5_000,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._entries: dict[str, _MemoryEntry] = {}
        self._max_entries = max_entries
        self._clock = clock

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            self._entries.pop(key, None)
            return None
        return entry.value

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        if ttl_seconds <= 0:
            return
        self._entries.pop(key, None)
        self._entries[key] = _MemoryEntry(value, self._clock() + ttl_seconds)
        if len(self._entries) > self._max_entries:
            self._sweep()

    def _sweep(self) -> None:
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired:
            del self._entries[key]
        # Insertion order doubles as age order.
        while len(self._entries) > self._max_entries:
            oldest = next(iter(self._entries))
            del self._entries[oldest]


class ResponseCache:
    """Cache JSON payloads under hashed keys in Redis or process memory."""

    def __init__(self, redis: RedisStore, memory: MemoryCache | None = None) -> None:
        self._redis = redis
        self._memory = memory or MemoryCache()

    @property
    def backend(self) -> str:
        return "redis" if self._redis.ready else "memory"

    async def get(self, key: str) -> Any | None:
        hashed = hash_key(key)
        if self._redis.ready:
            try:
                raw = await self._redis.client.get(f"{CACHE_KEY_PREFIX}{hashed}")
            except (RedisError, OSError) as exc:
                logger.warning("Redis cache read failed for %s: %s", key, exc)
                return None
            if raw is None:
                return None
            try:
                return json.loads(raw)
            except (TypeError, ValueError):
                logger.warning("Discarding undecodable cache entry for %s", key)
                return None
        return self._memory.get(hashed)

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        hashed = hash_key(key)
        if self._redis.ready:
            try:
                await self._redis.client.set(
                    f"{CACHE_KEY_PREFIX}{hashed}",
                    json.dumps(value, separators=(",", ":")),
                    ex=int(ttl_seconds),
                )
            except (RedisError, OSError, TypeError, ValueError) as exc:
                logger.warning("Redis cache write failed for %s: %s", key, exc)
            return
        self._memory.set(hashed, value, ttl_seconds)
