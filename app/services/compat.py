"""Translate TMDB payloads into the flat OMDb schema used by older clients.

Every documented field is always present. Missing source data becomes the
literal string ``"N/A"`` because the mobile client pattern-matches on it.
Secondary lookups (credits, external ids, per-person credits) degrade to
``"N/A"`` or an empty contribution instead of failing the translation.
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Any

from ..errors import AppError
from ..utils import (
    NA,
    format_count,
    format_rating,
    format_runtime,
    join_names,
    poster_url,
    text_or_na,
    year_from_date,
)
from .genres import GenreSearchResult, GenreService
from .identifiers import ResolvedReference, local_id
from .tmdb import MediaType, TMDBClient

logger = logging.getLogger(__name__)

MAX_PEOPLE = 3
MAX_PERSON_WORKS = 20
MIN_CAST_VOTES = 50
OVERVIEW_SNIPPET = 100


def _media_title(item: dict[str, Any], media_type: str) -> Any:
    return item.get("name") if media_type == "tv" else item.get("title")


def _media_date(item: dict[str, Any], media_type: str) -> Any:
    return item.get("first_air_date") if media_type == "tv" else item.get("release_date")


def _legacy_type(media_type: str) -> str:
    return "series" if media_type == "tv" else "movie"


def _results(payload: Any) -> list[dict[str, Any]]:
    if not isinstance(payload, dict):
        return []
    results = payload.get("results")
    if not isinstance(results, list):
        return []
    return [item for item in results if isinstance(item, dict)]


def _genre_names(genre_ids: Any, genre_map: dict[int, str] | None) -> list[str]:
    if not genre_map or not isinstance(genre_ids, list):
        return []
    return [genre_map[gid] for gid in genre_ids if gid in genre_map]


def _work_score(work: dict[str, Any]) -> float:
    popularity = work.get("popularity") or 0
    votes = work.get("vote_count") or 1
    return popularity * math.log10(votes + 1)


def _is_significant(work: dict[str, Any], *, crew: bool) -> bool:
    media_type = work.get("media_type")
    if crew:
        if media_type == "movie":
            return work.get("job") == "Director"
        if media_type == "tv":
            return work.get("job") in ("Executive Producer", "Creator")
        return False
    if media_type not in ("movie", "tv"):
        return False
    character = work.get("character")
    if not isinstance(character, str) or not character.strip():
        return False
    return (work.get("vote_count") or 0) > MIN_CAST_VOTES


class LegacyTranslator:
    """Produce OMDb shaped documents from TMDB data."""

    def __init__(self, tmdb: TMDBClient, genres: GenreService, image_base_url: str):
        self._tmdb = tmdb
        self._genres = genres
        self._image_base_url = image_base_url

    def poster(self, path: str | None) -> str:
        return poster_url(self._image_base_url, path)

    # Search ----------------------------------------------------------------

    async def search(
        self, q: str | None, type_filter: str | None = None, page: int = 1
    ) -> dict[str, Any]:
        """Return an OMDb search page for ``q``."""

        query = (q or "").strip()
        if not query:
            return {"Search": [], "totalResults": "0", "Response": "False"}

        forced: MediaType | None = None
        kind = "multi"
        if type_filter == "movie":
            forced, kind = "movie", "movie"
        elif type_filter in ("series", "tv"):
            forced, kind = "tv", "tv"

        data, _ = await self._tmdb.search(kind, query, page)
        hits = _results(data)
        if forced is None:
            hits = [hit for hit in hits if hit.get("media_type") in ("movie", "tv")]

        genre_maps = await self._genre_maps({forced} if forced else {h["media_type"] for h in hits})

        entries = []
        for hit in hits:
            media_type = forced or hit["media_type"]
            genres = ", ".join(_genre_names(hit.get("genre_ids"), genre_maps.get(media_type)))
            entries.append(
                {
                    "Title": text_or_na(_media_title(hit, media_type)),
                    "Year": year_from_date(_media_date(hit, media_type)),
                    "imdbID": local_id(media_type, hit.get("id")),
                    "Type": _legacy_type(media_type),
                    "Poster": self.poster(hit.get("poster_path")),
                    "_genres": genres,
                    "Genre": genres,
                    "Actors": (hit.get("overview") or "")[:OVERVIEW_SNIPPET],
                    "Director": "",
                    "_tmdbId": hit.get("id"),
                }
            )

        total = data.get("total_results") if isinstance(data, dict) else None
        return {
            "Search": entries,
            "totalResults": str(total or len(entries) or 0),
            "Response": "True" if entries else "False",
        }

    async def _genre_maps(self, media_types: set[Any]) -> dict[str, dict[int, str]]:
        maps: dict[str, dict[int, str]] = {}
        for media_type in sorted(t for t in media_types if t in ("movie", "tv")):
            try:
                maps[media_type] = await self._genres.genre_map(media_type)
            except AppError as exc:
                logger.warning("Genre lookup for %s failed: %s", media_type, exc.message)
                maps[media_type] = {}
        return maps

    # Details ---------------------------------------------------------------

    async def _legacy_id(self, ref: ResolvedReference) -> str:
        if ref.legacy_id:
            return ref.legacy_id
        try:
            external = await self._tmdb.external_ids(ref.media_type, ref.native_id)
        except AppError as exc:
            logger.info("External ids unavailable for %s: %s", ref, exc.message)
            external = None
        imdb_id = external.get("imdb_id") if isinstance(external, dict) else None
        return imdb_id or local_id(ref.media_type, ref.native_id)

    async def movie_details(self, ref: ResolvedReference) -> dict[str, Any]:
        """Return the OMDb detail document for a movie."""

        movie_result, credits_result = await asyncio.gather(
            self._tmdb.details("movie", ref.native_id),
            self._tmdb.credits("movie", ref.native_id),
            return_exceptions=True,
        )
        if isinstance(movie_result, BaseException):
            raise movie_result
        movie, _ = movie_result
        if isinstance(credits_result, AppError):
            logger.info("Credits unavailable for movie %s: %s", ref.native_id, credits_result.message)
            credits: dict[str, Any] = {}
        elif isinstance(credits_result, BaseException):
            raise credits_result
        else:
            credits = credits_result[0] if isinstance(credits_result[0], dict) else {}

        crew = [c for c in credits.get("crew") or [] if isinstance(c, dict)]
        cast = [c for c in credits.get("cast") or [] if isinstance(c, dict)]
        directors = [c for c in crew if c.get("job") == "Director"]
        writers = [c for c in crew if c.get("department") == "Writing"]

        return {
            "Title": text_or_na(movie.get("title")),
            "Year": year_from_date(movie.get("release_date")),
            "Rated": NA,
            "Released": text_or_na(movie.get("release_date")),
            "Runtime": format_runtime(movie.get("runtime")),
            "Genre": join_names(movie.get("genres") or []),
            "Director": join_names(directors),
            "Writer": join_names(writers, 5),
            "Actors": join_names(cast, 5),
            "Plot": text_or_na(movie.get("overview")),
            "Language": text_or_na(movie.get("original_language")),
            "Country": join_names(movie.get("production_countries") or []),
            "Awards": NA,
            "Poster": self.poster(movie.get("poster_path")),
            "imdbRating": format_rating(movie.get("vote_average")),
            "imdbVotes": format_count(movie.get("vote_count")),
            "imdbID": await self._legacy_id(ref),
            "Type": "movie",
        }

    async def tv_details(self, ref: ResolvedReference) -> dict[str, Any]:
        """Return the OMDb detail document for a series."""

        show, _ = await self._tmdb.details("tv", ref.native_id)
        run_times = show.get("episode_run_time") or []
        countries = [str(c) for c in show.get("origin_country") or [] if c]

        return {
            "Title": text_or_na(show.get("name")),
            "Year": year_from_date(show.get("first_air_date")),
            "Rated": NA,
            "Released": text_or_na(show.get("first_air_date")),
            "Runtime": format_runtime(run_times[0] if run_times else None),
            "Genre": join_names(show.get("genres") or []),
            "Director": NA,
            "Writer": NA,
            "Actors": NA,
            "Plot": text_or_na(show.get("overview")),
            "Language": text_or_na(show.get("original_language")),
            "Country": ", ".join(countries) or NA,
            "Awards": NA,
            "Poster": self.poster(show.get("poster_path")),
            "imdbRating": format_rating(show.get("vote_average")),
            "imdbVotes": format_count(show.get("vote_count")),
            "imdbID": await self._legacy_id(ref),
            "Type": "series",
            "totalSeasons": show.get("number_of_seasons") or 0,
        }

    async def details(self, ref: ResolvedReference) -> dict[str, Any]:
        if ref.media_type == "tv":
            return await self.tv_details(ref)
        return await self.movie_details(ref)

    async def season(self, tv_id: int, season_number: int) -> dict[str, Any]:
        data, _ = await self._tmdb.tv_season(tv_id, season_number)
        episodes = [
            {
                "Title": text_or_na(episode.get("name")),
                "Released": text_or_na(episode.get("air_date")),
                "Episode": str(episode.get("episode_number") or ""),
                "imdbRating": format_rating(episode.get("vote_average")),
                "Runtime": format_runtime(episode.get("runtime")),
            }
            for episode in data.get("episodes") or []
            if isinstance(episode, dict)
        ]
        return {
            "Season": str(season_number),
            "Episodes": episodes,
            "Response": "True" if episodes else "False",
        }

    async def episode(self, tv_id: int, season_number: int, episode_number: int) -> dict[str, Any]:
        data, _ = await self._tmdb.tv_episode(tv_id, season_number, episode_number)
        return {
            "Title": text_or_na(data.get("name")),
            "Released": text_or_na(data.get("air_date")),
            "Season": str(season_number),
            "Episode": str(episode_number),
            "Runtime": format_runtime(data.get("runtime")),
            "imdbRating": NA,
            "Response": "True",
        }

    # People & genres -------------------------------------------------------

    async def search_people(self, q: str | None, page: int = 1) -> dict[str, Any]:
        """Return the best known works of the top matching people."""

        query = (q or "").strip()
        if not query:
            return {"results": [], "totalResults": 0}

        data, _ = await self._tmdb.search("person", query, page)
        people = _results(data)[:MAX_PEOPLE]
        per_person = await asyncio.gather(*(self._person_works(person) for person in people))
        flat = [work for works in per_person for work in works]
        return {"results": flat, "totalResults": len(flat)}

    async def _person_works(self, person: dict[str, Any]) -> list[dict[str, Any]]:
        person_id = person.get("id")
        name = person.get("name")
        if not person_id:
            return []
        try:
            credits, _ = await self._tmdb.person_combined_credits(int(person_id))
        except AppError as exc:
            logger.info("Combined credits for person %s failed: %s", person_id, exc.message)
            return []

        cast = [w for w in credits.get("cast") or [] if isinstance(w, dict)]
        crew = [w for w in credits.get("crew") or [] if isinstance(w, dict)]
        works = [w for w in cast if _is_significant(w, crew=False)]
        works.extend(w for w in crew if _is_significant(w, crew=True))
        works.sort(key=_work_score, reverse=True)

        shaped = []
        for work in works[:MAX_PERSON_WORKS]:
            media_type = work["media_type"]
            shaped.append(
                {
                    "Title": text_or_na(_media_title(work, media_type)),
                    "Year": year_from_date(_media_date(work, media_type)),
                    "imdbID": local_id(media_type, work.get("id")),
                    "Type": _legacy_type(media_type),
                    "Poster": self.poster(work.get("poster_path")),
                    "Actors": name,
                    "imdbRating": format_rating(work.get("vote_average")),
                    "_tmdbId": work.get("id"),
                    "_personMatch": name,
                    "_popularity": work.get("popularity"),
                }
            )
        return shaped

    async def search_by_genre(self, genre_results: GenreSearchResult) -> dict[str, Any]:
        if not genre_results.results:
            return {"Search": [], "totalResults": "0", "Response": "False"}

        def infer(hit: dict[str, Any]) -> str:
            return hit.get("media_type") or ("tv" if hit.get("first_air_date") else "movie")

        genre_maps = await self._genre_maps({infer(hit) for hit in genre_results.results})
        entries = []
        for hit in genre_results.results:
            media_type = infer(hit)
            entries.append(
                {
                    "Title": text_or_na(_media_title(hit, media_type)),
                    "Year": year_from_date(_media_date(hit, media_type)),
                    "imdbID": local_id(media_type, hit.get("id")),
                    "Type": _legacy_type(media_type),
                    "Poster": self.poster(hit.get("poster_path")),
                    "Genre": ", ".join(
                        _genre_names(hit.get("genre_ids"), genre_maps.get(media_type))
                    ),
                    "imdbRating": format_rating(hit.get("vote_average")),
                    "_tmdbId": hit.get("id"),
                    "_isGenreSearch": True,
                }
            )
        return {
            "Search": entries,
            "totalResults": str(genre_results.total_results or len(entries)),
            "Response": "True",
        }

    # Recommendations -------------------------------------------------------

    async def legacy_recommendations(self, title: str, top_n: int = 10) -> list[dict[str, Any]]:
        """Recommend movies similar to the first search hit for ``title``."""

        search, _ = await self._tmdb.search("movie", title, 1)
        hits = _results(search)
        first = hits[0] if hits else None
        if not first or not first.get("id"):
            return []

        data, _ = await self._tmdb.recommendations("movie", int(first["id"]), 1)
        genre_map = (await self._genre_maps({"movie"})).get("movie")
        recommendations = []
        for item in _results(data)[:top_n]:
            recommendations.append(
                {
                    "title": item.get("title"),
                    "release_year": year_from_date(item.get("release_date")),
                    "genres": ", ".join(_genre_names(item.get("genre_ids"), genre_map)),
                    "imdbID": local_id("movie", item.get("id")),
                    "Poster": self.poster(item.get("poster_path")),
                    "imdbRating": format_rating(item.get("vote_average")),
                    "Runtime": NA,
                }
            )
        return recommendations
