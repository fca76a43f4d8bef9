"""Trending endpoints."""

from __future__ import annotations

from typing import Annotated, Any, Literal

from fastapi import APIRouter, Path

from ..utils import ok
from .deps import Ctx

router = APIRouter(prefix="/trending", tags=["trending"])


@router.get("/search/keywords")
async def search_keywords(context: Ctx) -> dict[str, Any]:
    return ok({"keywords": await context.trending.search_keywords()})


@router.get("/{media_type}/{time_window}")
async def trending(
    context: Ctx,
    media_type: Annotated[Literal["all", "movie", "tv", "person"], Path()],
    time_window: Annotated[Literal["day", "week"], Path()],
) -> dict[str, Any]:
    data, source = await context.trending.trending(media_type, time_window)
    return ok(data, source)
