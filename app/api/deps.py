"""Shared dependencies for the routers."""

from __future__ import annotations

from typing import Annotated, Any, Awaitable, Callable

from fastapi import BackgroundTasks, Depends, Path, Query

from ..context import AppContext, get_context

Ctx = Annotated[AppContext, Depends(get_context)]
Page = Annotated[int, Query(ge=1)]
TmdbId = Annotated[int, Path(ge=1)]
SeasonNumber = Annotated[int, Path(ge=0)]
EpisodeNumber = Annotated[int, Path(ge=1)]
LegacyIdParam = Annotated[str, Path(min_length=1, max_length=64)]
WatchlistName = Annotated[str, Path(min_length=1, max_length=100)]


def track_later(
    context: AppContext,
    background_tasks: BackgroundTasks,
    func: Callable[..., Awaitable[Any]],
    *args: Any,
) -> None:
    """Run a metrics call after the response, only when Redis is up."""

    if context.metrics.ready:
        background_tasks.add_task(func, *args)
