"""Trending lists and search keyword suggestions."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from ..errors import AppError
from .cache import ResponseCache
from .tmdb import CacheSource, TMDBClient

logger = logging.getLogger(__name__)

KEYWORDS_CACHE_KEY = "trending:search:keywords"
KEYWORDS_TTL = 6 * 60 * 60
MAX_KEYWORDS = 30

POPULAR_SEARCHES = (
    "action",
    "comedy",
    "thriller",
    "horror",
    "anime",
    "drama",
    "romance",
    "sci-fi",
    "documentary",
)
FALLBACK_KEYWORDS = [
    "action",
    "comedy",
    "drama",
    "thriller",
    "horror",
    "sci-fi",
    "anime",
    "romance",
    "adventure",
    "fantasy",
    "documentary",
    "mystery",
]


def _keep_hit(media_type: str, item: Any) -> bool:
    if not isinstance(item, dict):
        return False
    if media_type in ("movie", "tv"):
        return item.get("media_type") == media_type
    if media_type == "all":
        return item.get("media_type") in ("movie", "tv")
    return True


class TrendingService:
    def __init__(self, tmdb: TMDBClient, cache: ResponseCache):
        self._tmdb = tmdb
        self._cache = cache

    async def trending(self, media_type: str, window: str) -> tuple[Any, CacheSource]:
        """Return TMDB trending results; people are dropped from ``all``."""

        data, source = await self._tmdb.trending(media_type, window)
        if isinstance(data, dict) and isinstance(data.get("results"), list):
            data = {
                **data,
                "results": [item for item in data["results"] if _keep_hit(media_type, item)],
            }
        return data, source

    async def search_keywords(self) -> list[str]:
        """Suggest search keywords from this week's trending titles."""

        hit = await self._cache.get(KEYWORDS_CACHE_KEY)
        if hit is not None:
            return list(hit)

        try:
            (movies, _), (shows, _) = await asyncio.gather(
                self.trending("movie", "week"), self.trending("tv", "week")
            )
        except AppError as exc:
            logger.warning("Falling back to static search keywords: %s", exc.message)
            return list(FALLBACK_KEYWORDS)

        keywords: list[str] = []
        for item in (movies.get("results") or [])[:10]:
            if item.get("title"):
                keywords.append(item["title"])
        for item in (shows.get("results") or [])[:10]:
            if item.get("name"):
                keywords.append(item["name"])

        combined = [*keywords, *POPULAR_SEARCHES][:MAX_KEYWORDS]
        await self._cache.set(KEYWORDS_CACHE_KEY, combined, KEYWORDS_TTL)
        return combined
