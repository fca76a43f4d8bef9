"""Authenticated user sub-API: profile, favorites, watchlists, subscriptions."""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Path, Query

from ..auth import CurrentUser, require_user
from ..models import (
    LegacyMovieBody,
    MediaItem,
    MediaType,
    ProfileUpdate,
    SubscriptionsUpdate,
    WatchlistCreate,
)
from ..services.analytics import EventType
from ..utils import ok
from .deps import Ctx, TmdbId, WatchlistName

router = APIRouter(prefix="/user", tags=["user"], dependencies=[Depends(require_user)])

ItemId = Annotated[str, Path(min_length=1)]


@router.get("/profile")
async def get_profile(context: Ctx, user: CurrentUser) -> dict[str, Any]:
    return ok(await context.profiles.get_profile(user.uid))


@router.put("/profile")
async def update_profile(
    context: Ctx, user: CurrentUser, body: ProfileUpdate
) -> dict[str, Any]:
    return ok(await context.profiles.upsert_profile(user.uid, body.patch()))


@router.get("/favorites")
async def list_favorites(context: Ctx, user: CurrentUser) -> dict[str, Any]:
    return ok(await context.favorites.list(user.uid))


@router.post("/favorites")
async def add_favorite(
    context: Ctx,
    user: CurrentUser,
    body: Annotated[MediaItem | LegacyMovieBody, Body()],
) -> dict[str, Any]:
    if isinstance(body, LegacyMovieBody):
        item = body.movie.model_dump(exclude_unset=True)
    else:
        item = body.model_dump(exclude_unset=True)
    favorites = await context.favorites.add(user.uid, item)
    context.analytics.track_event(EventType.FAVORITE_ADD, {"item": item}, {"userId": user.uid})
    return ok(favorites)


@router.delete("/favorites/{item_id}")
async def remove_favorite(
    context: Ctx,
    user: CurrentUser,
    item_id: ItemId,
    media_type: Annotated[MediaType | None, Query()] = None,
) -> dict[str, Any]:
    """Remove a favorite by IMDb id or TMDB id.

    A bare TMDB id matches either media type unless ``media_type`` narrows it.
    """

    result = await context.favorites.remove(user.uid, item_id.strip(), media_type)
    if result["removed"]:
        context.analytics.track_event(
            EventType.FAVORITE_REMOVE, {"id": item_id}, {"userId": user.uid}
        )
    return ok(result)


@router.get("/watchlists")
async def list_watchlists(context: Ctx, user: CurrentUser) -> dict[str, Any]:
    return ok(await context.watchlists.list(user.uid))


@router.post("/watchlists")
async def create_watchlist(
    context: Ctx, user: CurrentUser, body: WatchlistCreate
) -> dict[str, Any]:
    return ok(await context.watchlists.create(user.uid, body.name, body.description))


@router.get("/watchlists/{name}")
async def get_watchlist(context: Ctx, user: CurrentUser, name: WatchlistName) -> dict[str, Any]:
    return ok(await context.watchlists.get(user.uid, name))


@router.delete("/watchlists/{name}")
async def delete_watchlist(
    context: Ctx, user: CurrentUser, name: WatchlistName
) -> dict[str, Any]:
    return ok(await context.watchlists.delete(user.uid, name))


@router.post("/watchlists/{name}/movies")
async def add_watchlist_movie(
    context: Ctx, user: CurrentUser, name: WatchlistName, body: LegacyMovieBody
) -> dict[str, Any]:
    movie = body.movie.model_dump(exclude_unset=True)
    result = await context.watchlists.add_movie_legacy(user.uid, name, movie)
    if result["added"]:
        context.analytics.track_event(
            EventType.WATCHLIST_ADD, {"watchlist": name, "imdbID": movie["imdbID"]}
        )
    return ok(result)


@router.patch("/watchlists/{name}/movies/{imdb_id}/watched")
async def toggle_watchlist_movie(
    context: Ctx, user: CurrentUser, name: WatchlistName, imdb_id: ItemId
) -> dict[str, Any]:
    return ok(await context.watchlists.toggle_watched_legacy(user.uid, name, imdb_id))


@router.delete("/watchlists/{name}/movies/{imdb_id}")
async def remove_watchlist_movie(
    context: Ctx, user: CurrentUser, name: WatchlistName, imdb_id: ItemId
) -> dict[str, Any]:
    result = await context.watchlists.remove_movie_legacy(user.uid, name, imdb_id)
    context.analytics.track_event(
        EventType.WATCHLIST_REMOVE, {"watchlist": name, "imdbID": imdb_id}
    )
    return ok(result)


@router.post("/watchlists/{name}/items")
async def add_watchlist_item(
    context: Ctx, user: CurrentUser, name: WatchlistName, body: MediaItem
) -> dict[str, Any]:
    item = body.model_dump(exclude_unset=True)
    result = await context.watchlists.add_item(user.uid, name, item)
    if result["added"]:
        context.analytics.track_event(
            EventType.WATCHLIST_ADD, {"watchlist": name, "tmdb_id": body.tmdb_id}
        )
    return ok(result)


@router.delete("/watchlists/{name}/items/{tmdb_id}")
async def remove_watchlist_item(
    context: Ctx, user: CurrentUser, name: WatchlistName, tmdb_id: TmdbId
) -> dict[str, Any]:
    result = await context.watchlists.remove_item(user.uid, name, tmdb_id)
    context.analytics.track_event(
        EventType.WATCHLIST_REMOVE, {"watchlist": name, "tmdb_id": tmdb_id}
    )
    return ok(result)


@router.patch("/watchlists/{name}/items/{tmdb_id}/watched")
async def toggle_watchlist_item(
    context: Ctx, user: CurrentUser, name: WatchlistName, tmdb_id: TmdbId
) -> dict[str, Any]:
    return ok(await context.watchlists.toggle_watched(user.uid, name, tmdb_id))


@router.get("/subscriptions")
async def get_subscriptions(context: Ctx, user: CurrentUser) -> dict[str, Any]:
    return ok({"subscriptions": await context.profiles.get_subscriptions(user.uid)})


@router.put("/subscriptions")
async def update_subscriptions(
    context: Ctx, user: CurrentUser, body: SubscriptionsUpdate
) -> dict[str, Any]:
    return ok(await context.profiles.update_subscriptions(user.uid, body.subscriptions))
