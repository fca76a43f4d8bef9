"""Movie endpoints: OMDb shaped legacy routes and TMDB shaped modern ones."""

from __future__ import annotations

import logging
from typing import Annotated, Any, Literal

from fastapi import APIRouter, BackgroundTasks, Query

from ..auth import OptionalUser
from ..errors import AppError
from ..models import BatchDetailsRequest
from ..services.analytics import EventType
from ..utils import ok
from .deps import (
    Ctx,
    EpisodeNumber,
    LegacyIdParam,
    Page,
    SeasonNumber,
    TmdbId,
    track_later,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/movies", tags=["movies"])

SearchType = Literal["movie", "series", "episode", "all"]


def _uid(user) -> str | None:
    return user.uid if user is not None else None


# Legacy endpoints ----------------------------------------------------------


@router.get("/search")
async def legacy_search(
    context: Ctx,
    background_tasks: BackgroundTasks,
    user: OptionalUser,
    q: Annotated[str, Query(min_length=1, max_length=200)],
    type: SearchType | None = None,
    page: Page = 1,
) -> dict[str, Any]:
    track_later(context, background_tasks, context.metrics.track_search, q.strip(), _uid(user))
    context.analytics.track_event(EventType.SEARCH_QUERY, {"query": q.strip()})
    type_filter = type if type and type != "all" else None
    return ok(await context.translator.search(q, type_filter, page))


@router.get("/details/{id}")
async def legacy_details(
    context: Ctx,
    background_tasks: BackgroundTasks,
    user: OptionalUser,
    id: LegacyIdParam,
) -> dict[str, Any]:
    ref = await context.resolver.resolve(id)
    data = await context.translator.details(ref)
    if ref.media_type == "movie":
        track_later(
            context,
            background_tasks,
            context.metrics.track_movie_view,
            ref.native_id,
            data["Title"],
            _uid(user),
        )
        context.analytics.track_event(EventType.MOVIE_DETAILS, ref.to_dict())
    else:
        track_later(
            context,
            background_tasks,
            context.metrics.track_tv_view,
            ref.native_id,
            data["Title"],
            _uid(user),
        )
        context.analytics.track_event(EventType.TV_DETAILS, ref.to_dict())
    return ok(data)


@router.get("/season/{id}/{season}")
async def legacy_season(
    context: Ctx, id: LegacyIdParam, season: SeasonNumber
) -> dict[str, Any]:
    ref = await context.resolver.resolve(id)
    if ref.media_type != "tv":
        return ok({"Season": str(season), "Episodes": [], "Response": "False"})
    return ok(await context.translator.season(ref.native_id, season))


@router.get("/episode/{id}/{season}/{episode}")
async def legacy_episode(
    context: Ctx,
    id: LegacyIdParam,
    season: SeasonNumber,
    episode: EpisodeNumber,
) -> dict[str, Any]:
    ref = await context.resolver.resolve(id)
    if ref.media_type != "tv":
        return ok({"Response": "False"})
    return ok(await context.translator.episode(ref.native_id, season, episode))


@router.post("/batch-details")
async def batch_details(context: Ctx, body: BatchDetailsRequest) -> dict[str, Any]:
    results: list[dict[str, Any]] = []
    for raw_id in body.imdbIDs:
        try:
            ref = await context.resolver.resolve(raw_id)
            data = await context.translator.details(ref)
        except AppError as exc:
            logger.info("Batch details for %s failed: %s", raw_id, exc.message)
            results.append({"imdbID": raw_id, "data": None, "error": exc.message or "Failed"})
            continue
        results.append({"imdbID": raw_id, "data": data, "error": None})
    return ok({"results": results})


# Modern endpoints ----------------------------------------------------------


async def _movie_list(context, kind: str, page: int) -> dict[str, Any]:
    data, source = await context.tmdb.movie_list(kind, page)
    return ok(data, source)


@router.get("/popular")
async def popular(context: Ctx, page: Page = 1) -> dict[str, Any]:
    return await _movie_list(context, "popular", page)


@router.get("/top-rated")
async def top_rated(context: Ctx, page: Page = 1) -> dict[str, Any]:
    return await _movie_list(context, "top-rated", page)


@router.get("/now-playing")
async def now_playing(context: Ctx, page: Page = 1) -> dict[str, Any]:
    return await _movie_list(context, "now-playing", page)


@router.get("/upcoming")
async def upcoming(context: Ctx, page: Page = 1) -> dict[str, Any]:
    return await _movie_list(context, "upcoming", page)


@router.get("/{id}")
async def details(context: Ctx, id: TmdbId) -> dict[str, Any]:
    data, source = await context.tmdb.details("movie", id)
    return ok(data, source)


@router.get("/{id}/credits")
async def credits(context: Ctx, id: TmdbId) -> dict[str, Any]:
    data, source = await context.tmdb.detail_resource("movie", id, "credits")
    return ok(data, source)


@router.get("/{id}/videos")
async def videos(context: Ctx, id: TmdbId) -> dict[str, Any]:
    data, source = await context.tmdb.detail_resource("movie", id, "videos")
    return ok(data, source)


@router.get("/{id}/images")
async def images(context: Ctx, id: TmdbId) -> dict[str, Any]:
    data, source = await context.tmdb.detail_resource("movie", id, "images")
    return ok(data, source)


@router.get("/{id}/recommendations")
async def recommendations(context: Ctx, id: TmdbId, page: Page = 1) -> dict[str, Any]:
    data, source = await context.tmdb.recommendations("movie", id, page)
    return ok(data, source)


@router.get("/{id}/watch-providers")
async def watch_providers(context: Ctx, id: TmdbId) -> dict[str, Any]:
    data, source = await context.tmdb.detail_resource("movie", id, "watch-providers")
    return ok(data, source)


@router.get("/{id}/reviews")
async def reviews(context: Ctx, id: TmdbId, page: Page = 1) -> dict[str, Any]:
    data, source = await context.tmdb.reviews("movie", id, page)
    return ok(data, source)
