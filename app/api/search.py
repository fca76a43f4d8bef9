"""Search endpoints, limited by the stricter search rate window."""

from __future__ import annotations

from typing import Annotated, Any, Literal

from fastapi import APIRouter, BackgroundTasks, Depends, Query

from ..auth import OptionalUser
from ..rate_limit import enforce_search_limit
from ..utils import ok
from .deps import Ctx, Page, track_later

router = APIRouter(
    prefix="/search", tags=["search"], dependencies=[Depends(enforce_search_limit)]
)

SearchQuery = Annotated[str, Query(min_length=1, max_length=200)]


async def _search(
    context, background_tasks: BackgroundTasks, user, kind: str, query: str, page: int
) -> dict[str, Any]:
    query = query.strip()
    if kind != "person":
        track_later(
            context,
            background_tasks,
            context.metrics.track_search,
            query,
            user.uid if user is not None else None,
        )
    data, source = await context.tmdb.search(kind, query, page)
    return ok(data, source)


@router.get("/multi")
async def multi(
    context: Ctx,
    background_tasks: BackgroundTasks,
    user: OptionalUser,
    query: SearchQuery,
    page: Page = 1,
) -> dict[str, Any]:
    return await _search(context, background_tasks, user, "multi", query, page)


@router.get("/movie")
async def movie(
    context: Ctx,
    background_tasks: BackgroundTasks,
    user: OptionalUser,
    query: SearchQuery,
    page: Page = 1,
) -> dict[str, Any]:
    return await _search(context, background_tasks, user, "movie", query, page)


@router.get("/tv")
async def tv(
    context: Ctx,
    background_tasks: BackgroundTasks,
    user: OptionalUser,
    query: SearchQuery,
    page: Page = 1,
) -> dict[str, Any]:
    return await _search(context, background_tasks, user, "tv", query, page)


@router.get("/person")
async def person(
    context: Ctx,
    background_tasks: BackgroundTasks,
    user: OptionalUser,
    query: SearchQuery,
    page: Page = 1,
) -> dict[str, Any]:
    return await _search(context, background_tasks, user, "person", query, page)


@router.get("/by-person")
async def by_person(context: Ctx, query: SearchQuery, page: Page = 1) -> dict[str, Any]:
    return ok(await context.translator.search_people(query, page))


@router.get("/by-genre")
async def by_genre(
    context: Ctx,
    genre: Annotated[str, Query(min_length=1, max_length=50)],
    type: Literal["movie", "series"] | None = None,
    page: Page = 1,
) -> dict[str, Any]:
    results = await context.genres.search_by_genre(genre, type, page)
    return ok(await context.translator.search_by_genre(results))
