"""Client for The Movie Database (TMDB) with response caching."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import TYPE_CHECKING, Any, Literal

import httpx

from ..config import Settings
from ..errors import UpstreamError, ValidationError
from .cache import ResponseCache

if TYPE_CHECKING:
    from .analytics import MetricsService

logger = logging.getLogger(__name__)

MediaType = Literal["movie", "tv"]
CacheSource = Literal["cache", "tmdb"]

HOUR = 60 * 60
DAY = 24 * HOUR

LIST_TTL = 6 * HOUR
DETAIL_TTL = DAY
RECOMMENDATIONS_TTL = 6 * HOUR
REVIEWS_TTL = 12 * HOUR
SEARCH_TTL = HOUR
TRENDING_TTL = 3 * HOUR
GENRE_TTL = 7 * DAY
EXTERNAL_IDS_TTL = DAY

MOVIE_LISTS = {
    "popular": "/movie/popular",
    "top-rated": "/movie/top_rated",
    "now-playing": "/movie/now_playing",
    "upcoming": "/movie/upcoming",
}
TV_LISTS = {
    "popular": "/tv/popular",
    "top-rated": "/tv/top_rated",
    "airing-today": "/tv/airing_today",
    "on-the-air": "/tv/on_the_air",
}
DETAIL_RESOURCES = {
    "credits": "/credits",
    "videos": "/videos",
    "images": "/images",
    "watch-providers": "/watch/providers",
}


def cache_key(path: str, params: dict[str, Any] | None) -> str:
    """Return the semantic cache key for a TMDB request."""

    return f"tmdb:{path}:{json.dumps(params or {}, separators=(',', ':'))}"


class TMDBClient:
    """Single entry point for outbound TMDB calls.

    :meth:`get` always hits the network and normalises every failure into
    :class:`UpstreamError`. :meth:`cached` layers the response cache on top
    and reports whether the payload came from the cache or from TMDB.
    """

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient,
        cache: ResponseCache,
        metrics: MetricsService | None = None,
    ):
        self._settings = settings
        self._client = http_client
        self._cache = cache
        self._metrics = metrics
        self._timeout = settings.tmdb_timeout_seconds
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def configured(self) -> bool:
        return bool(self._settings.tmdb_api_key)

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """Perform a GET request against TMDB and return the decoded JSON."""

        query = {**(params or {}), "api_key": self._settings.tmdb_api_key or ""}
        started = time.perf_counter()
        logger.info("TMDB request: %s params=%s", path, sorted((params or {}).keys()))
        try:
            response = await self._client.get(path, params=query, timeout=self._timeout)
        except httpx.HTTPError as exc:
            elapsed = (time.perf_counter() - started) * 1000
            logger.error("TMDB transport error: %s (%.0fms): %s", path, elapsed, exc)
            raise UpstreamError(str(exc) or "TMDB request failed") from exc

        elapsed = (time.perf_counter() - started) * 1000
        if response.status_code >= 400:
            message = _status_message(response) or f"TMDB request failed ({response.status_code})"
            logger.error(
                "TMDB error: %s (%.0fms) status=%s message=%s",
                path,
                elapsed,
                response.status_code,
                message,
            )
            raise UpstreamError(message, upstream_status=response.status_code)

        logger.info("TMDB response: %s (%.0fms)", path, elapsed)
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError("TMDB returned an invalid JSON payload") from exc

    async def cached(
        self, path: str, params: dict[str, Any] | None, ttl_seconds: int
    ) -> tuple[Any, CacheSource]:
        """Return ``(payload, source)`` for ``path`` using the response cache."""

        key = cache_key(path, params)
        hit = await self._cache.get(key)
        self._count_lookup(hit is not None)
        if hit is not None:
            return hit, "cache"
        data = await self.get(path, params)
        await self._cache.set(key, data, ttl_seconds)
        return data, "tmdb"

    def _count_lookup(self, hit: bool) -> None:
        """Schedule the cache hit/miss counter without waiting on Redis."""

        if self._metrics is None or not self._metrics.ready:
            return
        record = self._metrics.track_cache_hit if hit else self._metrics.track_cache_miss
        task = asyncio.get_running_loop().create_task(record())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def cached_value(self, key: str, path: str, params: dict[str, Any] | None, ttl_seconds: int) -> Any:
        """Fetch ``path`` and cache it under an explicit key."""

        hit = await self._cache.get(key)
        if hit is not None:
            return hit
        data = await self.get(path, params)
        await self._cache.set(key, data, ttl_seconds)
        return data

    # Lists -----------------------------------------------------------------

    async def movie_list(self, kind: str, page: int = 1) -> tuple[Any, CacheSource]:
        try:
            path = MOVIE_LISTS[kind]
        except KeyError as exc:
            raise ValidationError(f"Unknown movie list: {kind}") from exc
        return await self.cached(path, {"page": page}, LIST_TTL)

    async def tv_list(self, kind: str, page: int = 1) -> tuple[Any, CacheSource]:
        try:
            path = TV_LISTS[kind]
        except KeyError as exc:
            raise ValidationError(f"Unknown tv list: {kind}") from exc
        return await self.cached(path, {"page": page}, LIST_TTL)

    # Details ---------------------------------------------------------------

    async def details(self, media_type: MediaType, tmdb_id: int) -> tuple[Any, CacheSource]:
        return await self.cached(f"/{media_type}/{tmdb_id}", {}, DETAIL_TTL)

    async def detail_resource(
        self, media_type: MediaType, tmdb_id: int, resource: str
    ) -> tuple[Any, CacheSource]:
        """Fetch credits, videos, images or watch providers for a title."""

        try:
            suffix = DETAIL_RESOURCES[resource]
        except KeyError as exc:
            raise ValidationError(f"Unknown resource: {resource}") from exc
        return await self.cached(f"/{media_type}/{tmdb_id}{suffix}", {}, DETAIL_TTL)

    async def credits(self, media_type: MediaType, tmdb_id: int) -> tuple[Any, CacheSource]:
        return await self.detail_resource(media_type, tmdb_id, "credits")

    async def recommendations(
        self, media_type: str, tmdb_id: int, page: int = 1
    ) -> tuple[Any, CacheSource]:
        if media_type not in ("movie", "tv"):
            raise ValidationError("media_type must be movie or tv")
        return await self.cached(
            f"/{media_type}/{tmdb_id}/recommendations", {"page": page}, RECOMMENDATIONS_TTL
        )

    async def reviews(
        self, media_type: MediaType, tmdb_id: int, page: int = 1
    ) -> tuple[Any, CacheSource]:
        return await self.cached(f"/{media_type}/{tmdb_id}/reviews", {"page": page}, REVIEWS_TTL)

    async def tv_season(self, tmdb_id: int, season_number: int) -> tuple[Any, CacheSource]:
        return await self.cached(f"/tv/{tmdb_id}/season/{season_number}", {}, DETAIL_TTL)

    async def tv_episode(
        self, tmdb_id: int, season_number: int, episode_number: int
    ) -> tuple[Any, CacheSource]:
        return await self.cached(
            f"/tv/{tmdb_id}/season/{season_number}/episode/{episode_number}",
            {},
            DETAIL_TTL,
        )

    async def tv_season_videos(self, tmdb_id: int, season_number: int) -> tuple[Any, CacheSource]:
        return await self.cached(f"/tv/{tmdb_id}/season/{season_number}/videos", {}, DETAIL_TTL)

    async def person_combined_credits(self, person_id: int) -> tuple[Any, CacheSource]:
        return await self.cached(f"/person/{person_id}/combined_credits", {}, DETAIL_TTL)

    # Search & trending -----------------------------------------------------

    async def search(self, kind: str, query: str, page: int = 1) -> tuple[Any, CacheSource]:
        if kind not in ("multi", "movie", "tv", "person"):
            raise ValidationError(f"Unknown search type: {kind}")
        return await self.cached(f"/search/{kind}", {"query": query, "page": page}, SEARCH_TTL)

    async def trending(self, media_type: str, window: str) -> tuple[Any, CacheSource]:
        return await self.cached(f"/trending/{media_type}/{window}", {}, TRENDING_TTL)

    async def discover(self, media_type: MediaType, params: dict[str, Any]) -> Any:
        return await self.get(f"/discover/{media_type}", params)

    async def configuration(self) -> Any:
        return await self.get("/configuration")

    # External ids ----------------------------------------------------------

    async def find_by_imdb_id(self, imdb_id: str) -> Any:
        return await self.cached_value(
            f"tmdb:/find:{imdb_id}",
            f"/find/{imdb_id}",
            {"external_source": "imdb_id"},
            EXTERNAL_IDS_TTL,
        )

    async def external_ids(self, media_type: MediaType, tmdb_id: int) -> Any:
        path = f"/{media_type}/{tmdb_id}/external_ids"
        return await self.cached_value(f"tmdb:{path}", path, None, EXTERNAL_IDS_TTL)

    async def genre_list(self, media_type: MediaType) -> Any:
        return await self.get(f"/genre/{media_type}/list")


def _status_message(response: httpx.Response) -> str | None:
    try:
        payload = response.json()
    except ValueError:
        return None
    if isinstance(payload, dict):
        message = payload.get("status_message")
        if isinstance(message, str) and message:
            return message
    return None
