"""Pytest configuration and test helpers."""

from __future__ import annotations

import sys
from collections import defaultdict
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest


# Ensure the application package is importable when running tests without an
# editable install. This mirrors the expected runtime layout where ``app`` sits
# at the project root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.config import Settings  # noqa: E402
from app.services.cache import ResponseCache  # noqa: E402
from app.services.redis_store import RedisStore  # noqa: E402
from app.services.tmdb import TMDBClient  # noqa: E402


class FakeRedis:
    """In-memory stand-in for the subset of ``redis.asyncio`` the app uses."""

    def __init__(self) -> None:
        self.values: dict[str, Any] = {}
        self.hashes: dict[str, dict[str, str]] = defaultdict(dict)
        self.sorted_sets: dict[str, dict[str, float]] = defaultdict(dict)
        self.sets: dict[str, set[str]] = defaultdict(set)
        self.expiry: dict[str, int] = {}
        self.closed = False

    async def ping(self) -> bool:
        return True

    async def get(self, key: str) -> Any:
        return self.values.get(key)

    async def set(self, key: str, value: Any, ex: int | None = None) -> bool:
        self.values[key] = value
        if ex:
            self.expiry[key] = ex
        return True

    async def incrby(self, key: str, amount: int = 1) -> int:
        current = int(self.values.get(key, 0)) + amount
        self.values[key] = str(current)
        return current

    async def hincrby(self, key: str, field: str, amount: int = 1) -> int:
        current = int(self.hashes[key].get(field, 0)) + amount
        self.hashes[key][field] = str(current)
        return current

    async def hgetall(self, key: str) -> dict[str, str]:
        return dict(self.hashes.get(key, {}))

    async def zadd(self, key: str, mapping: dict[str, float]) -> int:
        self.sorted_sets[key].update(mapping)
        return len(mapping)

    async def zrange(
        self,
        key: str,
        start: int,
        end: int,
        desc: bool = False,
        withscores: bool = False,
    ) -> list[Any]:
        rows = sorted(
            self.sorted_sets.get(key, {}).items(), key=lambda row: row[1], reverse=desc
        )[start : end + 1]
        return rows if withscores else [member for member, _ in rows]

    async def sadd(self, key: str, *members: str) -> int:
        before = len(self.sets[key])
        self.sets[key].update(members)
        return len(self.sets[key]) - before

    async def expire(self, key: str, seconds: int) -> bool:
        self.expiry[key] = seconds
        return True

    async def scard(self, key: str) -> int:
        return len(self.sets.get(key, set()))

    async def aclose(self) -> None:
        self.closed = True


def build_settings(**overrides: Any) -> Settings:
    """Return settings isolated from the developer's environment."""

    base: dict[str, Any] = {
        "TMDB_API_KEY": "tmdb-key",
        "REDIS_URL": None,
        "DATABASE_URL": "sqlite+aiosqlite:///:memory:",
    }
    base.update(overrides)
    return Settings(_env_file=None, **base)  # type: ignore[arg-type]


def tmdb_path(request: httpx.Request) -> str:
    """Return the TMDB resource path without the ``/3`` version prefix."""

    path = request.url.path
    return path[2:] if path.startswith("/3/") else path


def build_tmdb(
    handler: Callable[[httpx.Request], httpx.Response],
    settings: Settings | None = None,
    redis: RedisStore | None = None,
) -> tuple[TMDBClient, ResponseCache, httpx.AsyncClient]:
    """Wire a TMDB client to a mock transport and a memory-only cache."""

    settings = settings or build_settings()
    http_client = httpx.AsyncClient(
        base_url=str(settings.tmdb_base_url), transport=httpx.MockTransport(handler)
    )
    cache = ResponseCache(redis or RedisStore(None))
    return TMDBClient(settings, http_client, cache), cache, http_client


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()
