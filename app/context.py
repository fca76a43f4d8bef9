"""Process-lifetime resources shared by every request."""

from __future__ import annotations

import time
from dataclasses import dataclass, field

import httpx
from fastapi import Request

from .auth import Authenticator, IdentityVerifier, TokenCache
from .config import Settings
from .database import Database
from .rate_limit import FixedWindowRateLimiter
from .services.analytics import AnalyticsService, MetricsService, MetricsStore
from .services.cache import MemoryCache, ResponseCache
from .services.compat import LegacyTranslator
from .services.favorites import FavoritesService
from .services.genres import GenreService
from .services.identifiers import IdentifierResolver
from .services.profiles import ProfileService
from .services.redis_store import RedisStore
from .services.tmdb import TMDBClient
from .services.trending import TrendingService
from .services.watchlists import WatchlistService


@dataclass(slots=True)
class AppContext:
    settings: Settings
    database: Database
    redis: RedisStore
    cache: ResponseCache
    tmdb: TMDBClient
    resolver: IdentifierResolver
    genres: GenreService
    trending: TrendingService
    translator: LegacyTranslator
    profiles: ProfileService
    favorites: FavoritesService
    watchlists: WatchlistService
    metrics: MetricsService
    analytics: AnalyticsService
    authenticator: Authenticator
    global_limiter: FixedWindowRateLimiter
    search_limiter: FixedWindowRateLimiter
    ml_client: httpx.AsyncClient
    started_at: float = field(default_factory=time.time)


def build_context(
    settings: Settings,
    *,
    database: Database,
    redis: RedisStore,
    tmdb_http: httpx.AsyncClient,
    identity_http: httpx.AsyncClient,
    ml_http: httpx.AsyncClient,
) -> AppContext:
    """Wire services together from already opened resources."""

    cache = ResponseCache(redis, MemoryCache(settings.memory_cache_max_entries))
    metrics = MetricsService(MetricsStore(redis))
    tmdb = TMDBClient(settings, tmdb_http, cache, metrics)
    genres = GenreService(tmdb, cache)
    return AppContext(
        settings=settings,
        database=database,
        redis=redis,
        cache=cache,
        tmdb=tmdb,
        resolver=IdentifierResolver(tmdb),
        genres=genres,
        trending=TrendingService(tmdb, cache),
        translator=LegacyTranslator(tmdb, genres, settings.image_base_url),
        profiles=ProfileService(database.session_factory),
        favorites=FavoritesService(database.session_factory),
        watchlists=WatchlistService(database.session_factory),
        metrics=metrics,
        analytics=AnalyticsService(
            metrics, database.session_factory, environment=settings.environment
        ),
        authenticator=Authenticator(
            IdentityVerifier(settings, identity_http),
            TokenCache(settings.auth_cache_ttl_seconds, settings.auth_cache_max_entries),
        ),
        global_limiter=FixedWindowRateLimiter(
            settings.rate_limit_max, settings.rate_limit_window_seconds
        ),
        search_limiter=FixedWindowRateLimiter(
            settings.search_rate_limit_max, settings.rate_limit_window_seconds
        ),
        ml_client=ml_http,
    )


def get_context(request: Request) -> AppContext:
    context = getattr(request.app.state, "context", None)
    if not isinstance(context, AppContext):
        raise RuntimeError("Application context not initialised")
    return context
