"""Usage metrics in Redis and the queued analytics event log."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Iterable

from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db_models import AnalyticsEvent
from .redis_store import RedisStore

logger = logging.getLogger(__name__)

ACTIVE_USER_TTL_SECONDS = 7 * 24 * 60 * 60


class EventType:
    USER_SIGNUP = "user.signup"
    USER_LOGIN = "user.login"
    USER_LOGOUT = "user.logout"
    SEARCH_QUERY = "search.query"
    SEARCH_RESULT_CLICK = "search.result_click"
    MOVIE_VIEW = "movie.view"
    TV_VIEW = "tv.view"
    MOVIE_DETAILS = "movie.details"
    TV_DETAILS = "tv.details"
    WATCHLIST_ADD = "watchlist.add"
    WATCHLIST_REMOVE = "watchlist.remove"
    FAVORITE_ADD = "favorite.add"
    FAVORITE_REMOVE = "favorite.remove"
    API_REQUEST = "api.request"
    API_ERROR = "api.error"
    CACHE_HIT = "cache.hit"
    CACHE_MISS = "cache.miss"

    @classmethod
    def values(cls) -> frozenset[str]:
        return frozenset(
            value
            for name, value in vars(cls).items()
            if name.isupper() and isinstance(value, str)
        )


class MetricKeys:
    TOTAL_REQUESTS = "metrics:requests:total"
    TOTAL_ERRORS = "metrics:errors:total"
    REQUESTS_BY_ENDPOINT = "metrics:requests:by_endpoint"
    ERRORS_BY_ENDPOINT = "metrics:errors:by_endpoint"
    RESPONSE_TIMES_BY_ENDPOINT = "metrics:response_times:by_endpoint"
    STATUS_CODES = "metrics:status_codes"
    ACTIVE_USERS = "metrics:active_users"
    POPULAR_SEARCHES = "metrics:popular_searches"
    POPULAR_MOVIES = "metrics:popular_movies"
    POPULAR_TV = "metrics:popular_tv"
    CACHE_HITS = "metrics:cache:hits"
    CACHE_MISSES = "metrics:cache:misses"

    @staticmethod
    def requests_per_hour(hour: str) -> str:
        return f"metrics:requests:hour:{hour}"

    @staticmethod
    def requests_per_day(day: str) -> str:
        return f"metrics:requests:day:{day}"

    @classmethod
    def active_users_on(cls, day: str) -> str:
        return f"{cls.ACTIVE_USERS}:{day}"


def _now_ms() -> int:
    return int(time.time() * 1000)


def _today() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


def _to_int(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


class MetricsStore:
    """Redis primitives that never raise.

    Each call returns a neutral value when Redis is not ready or the command
    fails, so tracking code can stay free of error handling.
    """

    def __init__(self, redis: RedisStore):
        self._redis = redis

    @property
    def ready(self) -> bool:
        return self._redis.ready

    async def _run(self, description: str, default: Any, command) -> Any:
        if not self._redis.ready:
            logger.debug("Redis not ready, skipping %s", description)
            return default
        try:
            return await command(self._redis.client)
        except (RedisError, OSError) as exc:
            logger.error("Redis %s failed: %s", description, exc)
            return default

    async def increment(self, key: str, amount: int = 1) -> bool:
        async def command(client):
            await client.incrby(key, amount)
            return True

        return await self._run(f"incrby {key}", False, command)

    async def increment_field(self, key: str, field: str, amount: int = 1) -> bool:
        async def command(client):
            await client.hincrby(key, field, amount)
            return True

        return await self._run(f"hincrby {key}", False, command)

    async def add_scored(self, key: str, score: float, member: str) -> bool:
        async def command(client):
            await client.zadd(key, {member: score})
            return True

        return await self._run(f"zadd {key}", False, command)

    async def top_scored(self, key: str, limit: int) -> list[tuple[str, float]]:
        async def command(client):
            rows = await client.zrange(key, 0, max(limit, 1) - 1, desc=True, withscores=True)
            return [(str(member), float(score)) for member, score in rows]

        return await self._run(f"zrange {key}", [], command)

    async def hash(self, key: str) -> dict[str, str]:
        async def command(client):
            return dict(await client.hgetall(key) or {})

        return await self._run(f"hgetall {key}", {}, command)

    async def value(self, key: str) -> Any:
        async def command(client):
            raw = await client.get(key)
            if raw is None:
                return None
            try:
                return json.loads(raw)
            except (TypeError, ValueError):
                return raw

        return await self._run(f"get {key}", None, command)

    async def add_member(self, key: str, member: str, ttl_seconds: int) -> bool:
        async def command(client):
            await client.sadd(key, member)
            await client.expire(key, ttl_seconds)
            return True

        return await self._run(f"sadd {key}", False, command)

    async def count_members(self, key: str) -> int:
        async def command(client):
            return int(await client.scard(key) or 0)

        return await self._run(f"scard {key}", 0, command)


class MetricsService:
    """Record and read request, search and content metrics."""

    def __init__(self, store: MetricsStore):
        self._store = store

    @property
    def ready(self) -> bool:
        return self._store.ready

    async def track_request(
        self,
        endpoint: str,
        method: str,
        status_code: int,
        response_ms: int,
        user_id: str | None = None,
    ) -> None:
        endpoint_key = f"{method}:{endpoint}"
        await asyncio.gather(
            self._store.increment(MetricKeys.TOTAL_REQUESTS),
            self._store.increment_field(MetricKeys.REQUESTS_BY_ENDPOINT, endpoint_key),
            self._store.increment_field(MetricKeys.STATUS_CODES, str(status_code)),
            self._store.increment_field(
                MetricKeys.RESPONSE_TIMES_BY_ENDPOINT, endpoint_key, int(response_ms)
            ),
        )
        now = datetime.now(timezone.utc)
        await self._store.increment(MetricKeys.requests_per_hour(now.strftime("%Y-%m-%dT%H")))
        await self._store.increment(MetricKeys.requests_per_day(now.strftime("%Y-%m-%d")))
        if user_id:
            await self.track_active_user(user_id)

    async def track_error(self, endpoint: str, method: str) -> None:
        endpoint_key = f"{method}:{endpoint}"
        await asyncio.gather(
            self._store.increment(MetricKeys.TOTAL_ERRORS),
            self._store.increment_field(MetricKeys.ERRORS_BY_ENDPOINT, endpoint_key),
        )

    async def track_active_user(self, user_id: str) -> None:
        await self._store.add_member(
            MetricKeys.active_users_on(_today()), user_id, ACTIVE_USER_TTL_SECONDS
        )

    async def track_search(self, query: str, user_id: str | None = None) -> None:
        await self._store.add_scored(MetricKeys.POPULAR_SEARCHES, _now_ms(), query)
        if user_id:
            await self.track_active_user(user_id)

    async def track_movie_view(
        self, movie_id: Any, title: str | None, user_id: str | None = None
    ) -> None:
        member = json.dumps({"id": movie_id, "title": title})
        await self._store.add_scored(MetricKeys.POPULAR_MOVIES, _now_ms(), member)
        if user_id:
            await self.track_active_user(user_id)

    async def track_tv_view(
        self, tv_id: int, title: str | None, user_id: str | None = None
    ) -> None:
        # Scored by the show id, as earlier deployments did.
        member = json.dumps({"id": tv_id, "title": title})
        await self._store.add_scored(MetricKeys.POPULAR_TV, float(tv_id), member)
        if user_id:
            await self.track_active_user(user_id)

    async def track_cache_hit(self) -> None:
        await self._store.increment(MetricKeys.CACHE_HITS)

    async def track_cache_miss(self) -> None:
        await self._store.increment(MetricKeys.CACHE_MISSES)

    async def overview(self) -> dict[str, Any]:
        (
            total_requests,
            total_errors,
            by_endpoint,
            status_codes,
            cache_hits,
            cache_misses,
        ) = await asyncio.gather(
            self._store.value(MetricKeys.TOTAL_REQUESTS),
            self._store.value(MetricKeys.TOTAL_ERRORS),
            self._store.hash(MetricKeys.REQUESTS_BY_ENDPOINT),
            self._store.hash(MetricKeys.STATUS_CODES),
            self._store.value(MetricKeys.CACHE_HITS),
            self._store.value(MetricKeys.CACHE_MISSES),
        )
        requests = _to_int(total_requests)
        errors = _to_int(total_errors)
        hits = _to_int(cache_hits)
        misses = _to_int(cache_misses)
        error_rate = errors / requests * 100 if requests else 0.0
        hit_rate = hits / (hits + misses) * 100 if hits + misses else 0.0
        return {
            "totalRequests": requests,
            "totalErrors": errors,
            "errorRate": f"{error_rate:.2f}",
            "requestsByEndpoint": by_endpoint,
            "statusCodes": status_codes,
            "cache": {"hits": hits, "misses": misses, "hitRate": f"{hit_rate:.2f}"},
        }

    async def popular_searches(self, limit: int = 10) -> list[dict[str, Any]]:
        rows = await self._store.top_scored(MetricKeys.POPULAR_SEARCHES, limit)
        return [{"query": member, "score": score} for member, score in rows]

    @staticmethod
    def _decode_views(rows: Iterable[tuple[str, float]]) -> list[dict[str, Any]]:
        decoded = []
        for member, score in rows:
            try:
                payload = json.loads(member)
            except ValueError:
                payload = None
            if isinstance(payload, dict):
                decoded.append({**payload, "views": score})
            else:
                decoded.append({"data": member, "views": score})
        return decoded

    async def popular_movies(self, limit: int = 10) -> list[dict[str, Any]]:
        return self._decode_views(await self._store.top_scored(MetricKeys.POPULAR_MOVIES, limit))

    async def popular_tv(self, limit: int = 10) -> list[dict[str, Any]]:
        return self._decode_views(await self._store.top_scored(MetricKeys.POPULAR_TV, limit))

    async def active_users_count(self) -> int:
        return await self._store.count_members(MetricKeys.active_users_on(_today()))

    async def performance(self) -> dict[str, dict[str, Any]]:
        requests_by, times_by, errors_by = await asyncio.gather(
            self._store.hash(MetricKeys.REQUESTS_BY_ENDPOINT),
            self._store.hash(MetricKeys.RESPONSE_TIMES_BY_ENDPOINT),
            self._store.hash(MetricKeys.ERRORS_BY_ENDPOINT),
        )
        metrics: dict[str, dict[str, Any]] = {}
        for endpoint, raw_requests in requests_by.items():
            requests = _to_int(raw_requests)
            total_time = _to_int(times_by.get(endpoint))
            errors = _to_int(errors_by.get(endpoint))
            metrics[endpoint] = {
                "requests": requests,
                "averageResponseTime": f"{total_time / requests:.2f}" if requests else 0,
                "errors": errors,
                "errorRate": f"{errors / requests * 100:.2f}" if requests else 0,
            }
        return metrics


class AnalyticsService:
    """Queue analytics events and flush them to the database in batches."""

    def __init__(
        self,
        metrics: MetricsService,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        environment: str = "development",
        flush_threshold: int = 100,
        flush_interval_seconds: float = 30.0,
        batch_size: int = 50,
    ):
        self._metrics = metrics
        self._session_factory = session_factory
        self._environment = environment
        self._flush_threshold = flush_threshold
        self._flush_interval = flush_interval_seconds
        self._batch_size = batch_size
        self._queue: list[dict[str, Any]] = []
        self._processing = False
        self._task: asyncio.Task[None] | None = None
        self._pending: set[asyncio.Task[Any]] = set()

    @property
    def metrics(self) -> MetricsService:
        return self._metrics

    @property
    def queued(self) -> int:
        return len(self._queue)

    async def start(self) -> None:
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._run())
        logger.info("Analytics service started")

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        await self.flush()
        logger.info("Analytics service stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._flush_interval)
            await self.flush()

    def track_event(
        self,
        event_type: str,
        data: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> bool:
        """Validate and enqueue an event; returns ``False`` if rejected."""

        if not isinstance(event_type, str) or event_type not in EventType.values():
            logger.error("Rejected analytics event with type %r", event_type)
            return False
        if data is not None and not isinstance(data, dict):
            logger.error("Rejected analytics event %s: data must be a mapping", event_type)
            return False

        self._queue.append(
            {
                "type": event_type,
                "timestamp": _now_ms(),
                "data": dict(data or {}),
                "metadata": {**(metadata or {}), "environment": self._environment},
            }
        )
        if len(self._queue) >= self._flush_threshold:
            self._schedule_flush()
        return True

    def _schedule_flush(self) -> None:
        try:
            task = asyncio.get_running_loop().create_task(self.flush())
        except RuntimeError:
            return
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def flush(self) -> int:
        """Persist queued events and return how many were stored.

        Batches commit one at a time; the failed batch and everything after it
        go back on the front of the queue.
        """

        if self._processing or not self._queue:
            return 0
        self._processing = True
        events, self._queue = self._queue, []
        stored = 0
        try:
            for start in range(0, len(events), self._batch_size):
                batch = events[start : start + self._batch_size]
                await self._store(batch)
                stored += len(batch)
        except SQLAlchemyError as exc:
            logger.error(
                "Failed to flush %d analytics events: %s", len(events) - stored, exc
            )
            self._queue[:0] = events[stored:]
            return stored
        finally:
            self._processing = False
        logger.debug("Flushed %d analytics events", len(events))
        return len(events)

    async def _store(self, batch: list[dict[str, Any]]) -> None:
        async with self._session_factory() as session:
            session.add_all(
                AnalyticsEvent(
                    type=event["type"],
                    timestamp=event["timestamp"],
                    data=event["data"],
                    event_metadata=event["metadata"],
                )
                for event in batch
            )
            await session.commit()

    async def overview(self) -> dict[str, Any]:
        return await self._metrics.overview()

    async def popular_searches(self, limit: int = 10) -> list[dict[str, Any]]:
        return await self._metrics.popular_searches(limit)

    async def popular_content(self, limit: int = 10) -> dict[str, Any]:
        movies, shows = await asyncio.gather(
            self._metrics.popular_movies(limit), self._metrics.popular_tv(limit)
        )
        return {"movies": movies, "tvShows": shows}

    async def user_engagement(self) -> dict[str, Any]:
        return {"activeUsersToday": await self._metrics.active_users_count()}

    async def performance(self) -> dict[str, dict[str, Any]]:
        return await self._metrics.performance()
