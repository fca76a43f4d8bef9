"""Redis metrics and the queued analytics event log."""

from __future__ import annotations

import json

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from app.database import Database
from app.db_models import AnalyticsEvent
from app.services.analytics import (
    AnalyticsService,
    EventType,
    MetricKeys,
    MetricsService,
    MetricsStore,
)
from app.services.redis_store import RedisStore


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO tests to run on asyncio without requiring trio."""

    return "asyncio"


async def connected_metrics(client) -> MetricsService:
    store = RedisStore(None, client=client)
    await store.connect()
    return MetricsService(MetricsStore(store))


@pytest.mark.anyio("asyncio")
async def test_overview_reports_rates_as_two_decimal_strings(fake_redis) -> None:
    metrics = await connected_metrics(fake_redis)
    await metrics.track_request("/api/movies/popular", "GET", 200, 100, "user-1")
    await metrics.track_request("/api/movies/popular", "GET", 500, 300)
    await metrics.track_error("/api/movies/popular", "GET")
    for _ in range(3):
        await metrics.track_cache_hit()
    await metrics.track_cache_miss()

    overview = await metrics.overview()
    performance = await metrics.performance()

    assert overview["totalRequests"] == 2
    assert overview["totalErrors"] == 1
    assert overview["errorRate"] == "50.00"
    assert overview["statusCodes"] == {"200": "1", "500": "1"}
    assert overview["cache"] == {"hits": 3, "misses": 1, "hitRate": "75.00"}
    assert performance["GET:/api/movies/popular"] == {
        "requests": 2,
        "averageResponseTime": "200.00",
        "errors": 1,
        "errorRate": "50.00",
    }
    assert await metrics.active_users_count() == 1


@pytest.mark.anyio("asyncio")
async def test_popular_content_decodes_view_members(fake_redis) -> None:
    metrics = await connected_metrics(fake_redis)
    await metrics.track_movie_view(272, "Batman Begins")
    await metrics.track_tv_view(1399, "Game of Thrones")
    await metrics.track_search("batman")
    fake_redis.sorted_sets[MetricKeys.POPULAR_MOVIES]["not-json"] = 1.0

    movies = await metrics.popular_movies()
    shows = await metrics.popular_tv()
    searches = await metrics.popular_searches()

    assert movies[0]["id"] == 272
    assert movies[0]["title"] == "Batman Begins"
    assert movies[-1] == {"data": "not-json", "views": 1.0}
    assert shows == [{"id": 1399, "title": "Game of Thrones", "views": 1399.0}]
    assert searches[0]["query"] == "batman"
    member = next(iter(fake_redis.sorted_sets[MetricKeys.POPULAR_TV]))
    assert json.loads(member) == {"id": 1399, "title": "Game of Thrones"}


@pytest.mark.anyio("asyncio")
async def test_metrics_are_neutral_without_redis() -> None:
    metrics = MetricsService(MetricsStore(RedisStore(None)))
    await metrics.track_request("/api/health", "GET", 200, 5)

    overview = await metrics.overview()

    assert metrics.ready is False
    assert overview["totalRequests"] == 0
    assert overview["errorRate"] == "0.00"
    assert await metrics.popular_movies() == []
    assert await metrics.performance() == {}


@pytest.mark.anyio("asyncio")
async def test_track_event_validates_type_and_data(tmp_path) -> None:
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'events.db'}")
    analytics = AnalyticsService(
        MetricsService(MetricsStore(RedisStore(None))),
        database.session_factory,
        environment="test",
    )

    assert analytics.track_event("movie.rated", {"id": 1}) is False
    assert analytics.track_event(EventType.SEARCH_QUERY, ["batman"]) is False  # type: ignore[arg-type]
    assert analytics.track_event(EventType.SEARCH_QUERY, {"query": "batman"}) is True
    assert analytics.queued == 1
    await database.dispose()


@pytest.mark.anyio("asyncio")
async def test_flush_persists_events_in_batches(tmp_path) -> None:
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'events.db'}")
    await database.create_all()
    analytics = AnalyticsService(
        MetricsService(MetricsStore(RedisStore(None))),
        database.session_factory,
        environment="test",
        batch_size=2,
    )
    try:
        for index in range(5):
            analytics.track_event(EventType.MOVIE_VIEW, {"id": index}, {"userId": "user-1"})
        flushed = await analytics.flush()

        async with database.session() as session:
            count = await session.scalar(select(func.count()).select_from(AnalyticsEvent))
            first = (await session.execute(select(AnalyticsEvent).limit(1))).scalar_one()
    finally:
        await database.dispose()

    assert flushed == 5
    assert analytics.queued == 0
    assert count == 5
    assert first.type == "movie.view"
    assert first.event_metadata == {"userId": "user-1", "environment": "test"}


@pytest.mark.anyio("asyncio")
async def test_failed_flush_keeps_events_queued(tmp_path) -> None:
    """Without the events table the batch is put back on the queue."""

    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'missing.db'}")
    analytics = AnalyticsService(
        MetricsService(MetricsStore(RedisStore(None))), database.session_factory
    )
    try:
        analytics.track_event(EventType.API_ERROR, {"endpoint": "/api/x"})
        flushed = await analytics.flush()
    finally:
        await database.dispose()

    assert flushed == 0
    assert analytics.queued == 1


@pytest.mark.anyio("asyncio")
async def test_partial_flush_requeues_only_unstored_batches(tmp_path, monkeypatch) -> None:
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'events.db'}")
    analytics = AnalyticsService(
        MetricsService(MetricsStore(RedisStore(None))),
        database.session_factory,
        batch_size=2,
    )
    stored: list[list[int]] = []

    async def store_until_second_batch(batch) -> None:
        if stored:
            raise SQLAlchemyError("disk full")
        stored.append([event["data"]["id"] for event in batch])

    monkeypatch.setattr(analytics, "_store", store_until_second_batch)
    try:
        for index in range(5):
            analytics.track_event(EventType.MOVIE_VIEW, {"id": index})
        flushed = await analytics.flush()
    finally:
        await database.dispose()

    assert flushed == 2
    assert stored == [[0, 1]]
    assert analytics.queued == 3


@pytest.mark.anyio("asyncio")
async def test_threshold_triggers_flush_and_stop_drains_queue(tmp_path) -> None:
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'events.db'}")
    await database.create_all()
    analytics = AnalyticsService(
        MetricsService(MetricsStore(RedisStore(None))),
        database.session_factory,
        flush_threshold=2,
        flush_interval_seconds=3600,
    )
    try:
        await analytics.start()
        analytics.track_event(EventType.FAVORITE_ADD, {"id": 1})
        analytics.track_event(EventType.FAVORITE_ADD, {"id": 2})
        analytics.track_event(EventType.FAVORITE_REMOVE, {"id": 1})
        await analytics.stop()

        async with database.session() as session:
            count = await session.scalar(select(func.count()).select_from(AnalyticsEvent))
    finally:
        await database.dispose()

    assert analytics.queued == 0
    assert count == 3
