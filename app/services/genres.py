"""Genre name lookup and keyword driven discovery."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from .cache import ResponseCache
from .tmdb import GENRE_TTL, MediaType, TMDBClient

logger = logging.getLogger(__name__)

GENRE_KEYWORDS: dict[str, int] = {
    "action": 28,
    "adventure": 12,
    "animation": 16,
    "comedy": 35,
    "crime": 80,
    "documentary": 99,
    "drama": 18,
    "family": 10751,
    "fantasy": 14,
    "history": 36,
    "horror": 27,
    "music": 10402,
    "mystery": 9648,
    "romance": 10749,
    "science fiction": 878,
    "sci-fi": 878,
    "sci fi": 878,
    "scifi": 878,
    "thriller": 53,
    "war": 10752,
    "western": 37,
    # TV only
    "action & adventure": 10759,
    "kids": 10762,
    "news": 10763,
    "reality": 10764,
    "soap": 10766,
    "talk": 10767,
    "war & politics": 10768,
}


@dataclass(frozen=True, slots=True)
class SpecialKeyword:
    genre: int | None = None
    keyword: int | None = None
    origin_country: str | None = None

    def discover_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {}
        if self.genre:
            params["with_genres"] = self.genre
        if self.keyword:
            params["with_keywords"] = self.keyword
        if self.origin_country:
            params["with_origin_country"] = self.origin_country
        return params


SPECIAL_KEYWORDS: dict[str, SpecialKeyword] = {
    "anime": SpecialKeyword(genre=16, keyword=210),
    "bollywood": SpecialKeyword(keyword=1562, origin_country="IN"),
    "hollywood": SpecialKeyword(origin_country="US"),
    "korean": SpecialKeyword(origin_country="KR"),
    "japanese": SpecialKeyword(origin_country="JP"),
}

MAX_GENRE_RESULTS = 20


@dataclass(slots=True)
class GenreSearchResult:
    results: list[dict[str, Any]] = field(default_factory=list)
    total_results: int = 0


def media_types_for(type_filter: str | None) -> tuple[MediaType, ...]:
    if type_filter == "movie":
        return ("movie",)
    if type_filter in ("series", "tv"):
        return ("tv",)
    return ("movie", "tv")


class GenreService:
    """Serve cached genre maps and keyword based discovery searches."""

    def __init__(self, tmdb: TMDBClient, cache: ResponseCache):
        self._tmdb = tmdb
        self._cache = cache

    async def genre_map(self, media_type: MediaType) -> dict[int, str]:
        """Return ``{genre_id: name}`` for ``media_type``, cached for a week."""

        key = f"tmdb:genres:{media_type}"
        hit = await self._cache.get(key)
        if hit is not None:
            return {int(genre_id): name for genre_id, name in hit.items()}

        payload = await self._tmdb.genre_list(media_type)
        mapping: dict[int, str] = {}
        for genre in payload.get("genres") or []:
            if isinstance(genre, dict) and genre.get("id") is not None and genre.get("name"):
                mapping[int(genre["id"])] = str(genre["name"])
        # JSON object keys are strings, so store them that way.
        await self._cache.set(key, {str(k): v for k, v in mapping.items()}, GENRE_TTL)
        return mapping

    async def search_by_genre(
        self, genre: str, type_filter: str | None = None, page: int = 1
    ) -> GenreSearchResult:
        """Discover popular titles for a genre name or special keyword."""

        name = genre.strip().lower()
        special = SPECIAL_KEYWORDS.get(name)
        if special is not None:
            params = special.discover_params()
        else:
            genre_id = GENRE_KEYWORDS.get(name)
            if genre_id is None:
                logger.debug("Unknown genre keyword %r", genre)
                return GenreSearchResult()
            params = {"with_genres": genre_id}

        results: list[dict[str, Any]] = []
        for media_type in media_types_for(type_filter):
            payload = await self._tmdb.discover(
                media_type, {**params, "sort_by": "popularity.desc", "page": page}
            )
            results.extend(payload.get("results") or [])

        return GenreSearchResult(
            results=results[:MAX_GENRE_RESULTS], total_results=len(results)
        )
