"""Optional Redis connection with readiness tracking."""

from __future__ import annotations

import logging
from typing import Any

from redis import asyncio as aioredis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class RedisStore:
    """Own the async Redis client and report whether it can be used.

    The service runs without Redis: when ``REDIS_URL`` is unset or the server
    cannot be reached, :attr:`ready` stays ``False`` and callers fall back to
    in-process storage or skip their work.
    """

    def __init__(self, url: str | None, client: Any | None = None) -> None:
        self._url = url
        self._client = client
        self._ready = False

    @property
    def client(self) -> Any | None:
        return self._client

    @property
    def ready(self) -> bool:
        return self._ready and self._client is not None

    async def connect(self) -> bool:
        """Create the client and ping it, recording the outcome."""

        if self._client is None:
            if not self._url:
                logger.info("REDIS_URL not configured; using in-memory cache")
                return False
            self._client = aioredis.from_url(
                self._url,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
            )
        try:
            await self._client.ping()
        except (RedisError, OSError) as exc:
            logger.warning("Redis unavailable, continuing without it: %s", exc)
            self._ready = False
            return False
        self._ready = True
        logger.info("Connected to Redis")
        return True

    async def close(self) -> None:
        if self._client is None:
            return
        try:
            await self._client.aclose()
        except (RedisError, OSError) as exc:  # pragma: no cover - shutdown path
            logger.debug("Error closing Redis client: %s", exc)
        finally:
            self._ready = False
