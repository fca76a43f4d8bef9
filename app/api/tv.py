"""TV endpoints mirroring TMDB's response shape."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from ..utils import ok
from .deps import Ctx, EpisodeNumber, Page, SeasonNumber, TmdbId

router = APIRouter(prefix="/tv", tags=["tv"])


@router.get("/popular")
async def popular(context: Ctx, page: Page = 1) -> dict[str, Any]:
    data, source = await context.tmdb.tv_list("popular", page)
    return ok(data, source)


@router.get("/top-rated")
async def top_rated(context: Ctx, page: Page = 1) -> dict[str, Any]:
    data, source = await context.tmdb.tv_list("top-rated", page)
    return ok(data, source)


@router.get("/airing-today")
async def airing_today(context: Ctx, page: Page = 1) -> dict[str, Any]:
    data, source = await context.tmdb.tv_list("airing-today", page)
    return ok(data, source)


@router.get("/on-the-air")
async def on_the_air(context: Ctx, page: Page = 1) -> dict[str, Any]:
    data, source = await context.tmdb.tv_list("on-the-air", page)
    return ok(data, source)


@router.get("/{id}")
async def details(context: Ctx, id: TmdbId) -> dict[str, Any]:
    data, source = await context.tmdb.details("tv", id)
    return ok(data, source)


@router.get("/{id}/season/{season}")
async def season(context: Ctx, id: TmdbId, season: SeasonNumber) -> dict[str, Any]:
    data, source = await context.tmdb.tv_season(id, season)
    return ok(data, source)


@router.get("/{id}/season/{season}/episode/{episode}")
async def episode(
    context: Ctx, id: TmdbId, season: SeasonNumber, episode: EpisodeNumber
) -> dict[str, Any]:
    data, source = await context.tmdb.tv_episode(id, season, episode)
    return ok(data, source)


@router.get("/{id}/season/{season}/videos")
async def season_videos(context: Ctx, id: TmdbId, season: SeasonNumber) -> dict[str, Any]:
    data, source = await context.tmdb.tv_season_videos(id, season)
    return ok(data, source)


@router.get("/{id}/credits")
async def credits(context: Ctx, id: TmdbId) -> dict[str, Any]:
    data, source = await context.tmdb.detail_resource("tv", id, "credits")
    return ok(data, source)


@router.get("/{id}/videos")
async def videos(context: Ctx, id: TmdbId) -> dict[str, Any]:
    data, source = await context.tmdb.detail_resource("tv", id, "videos")
    return ok(data, source)


@router.get("/{id}/images")
async def images(context: Ctx, id: TmdbId) -> dict[str, Any]:
    data, source = await context.tmdb.detail_resource("tv", id, "images")
    return ok(data, source)


@router.get("/{id}/recommendations")
async def recommendations(context: Ctx, id: TmdbId, page: Page = 1) -> dict[str, Any]:
    data, source = await context.tmdb.recommendations("tv", id, page)
    return ok(data, source)


@router.get("/{id}/watch-providers")
async def watch_providers(context: Ctx, id: TmdbId) -> dict[str, Any]:
    data, source = await context.tmdb.detail_resource("tv", id, "watch-providers")
    return ok(data, source)


@router.get("/{id}/reviews")
async def reviews(context: Ctx, id: TmdbId, page: Page = 1) -> dict[str, Any]:
    data, source = await context.tmdb.reviews("tv", id, page)
    return ok(data, source)
