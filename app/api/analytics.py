"""Read-only analytics endpoints."""

from __future__ import annotations

import logging
from typing import Annotated, Any, Awaitable, Callable

from fastapi import APIRouter, Query

from ..auth import OptionalUser
from ..errors import AppError
from ..utils import ok, utc_now_iso
from .deps import Ctx

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analytics", tags=["analytics"])

Limit = Annotated[int, Query(ge=1, le=100)]


async def _guarded(description: str, call: Callable[[], Awaitable[Any]]) -> Any:
    try:
        return await call()
    except AppError:
        raise
    except Exception as exc:
        logger.error("Failed to retrieve %s: %s", description, exc)
        raise AppError(
            f"Failed to retrieve {description}", code="ANALYTICS_ERROR"
        ) from exc


@router.get("/overview")
async def overview(context: Ctx, _user: OptionalUser) -> dict[str, Any]:
    async def load() -> dict[str, Any]:
        data = await context.analytics.overview()
        engagement = await context.analytics.user_engagement()
        return {**data, "engagement": engagement, "timestamp": utc_now_iso()}

    return ok(await _guarded("analytics overview", load))


@router.get("/popular-searches")
async def popular_searches(
    context: Ctx, _user: OptionalUser, limit: Limit = 10
) -> dict[str, Any]:
    searches = await _guarded(
        "popular searches", lambda: context.analytics.popular_searches(limit)
    )
    return ok({"searches": searches, "count": len(searches)})


@router.get("/popular-content")
async def popular_content(
    context: Ctx, _user: OptionalUser, limit: Limit = 10
) -> dict[str, Any]:
    return ok(
        await _guarded("popular content", lambda: context.analytics.popular_content(limit))
    )


@router.get("/user-engagement")
async def user_engagement(context: Ctx, _user: OptionalUser) -> dict[str, Any]:
    return ok(await _guarded("user engagement", context.analytics.user_engagement))


@router.get("/performance")
async def performance(context: Ctx, _user: OptionalUser) -> dict[str, Any]:
    endpoints = await _guarded("performance metrics", context.analytics.performance)
    return ok({"endpoints": endpoints, "timestamp": utc_now_iso()})
