"""Health and status endpoints."""

from __future__ import annotations

import logging
import time
from typing import Any

from fastapi import APIRouter
from sqlalchemy.exc import SQLAlchemyError

from ..config import APP_VERSION
from ..errors import AppError
from ..utils import ok, utc_now_iso
from .deps import Ctx

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


def _cache_status(context) -> str:
    return "healthy" if context.redis.ready else "disabled-or-not-ready"


@router.get("/health")
async def health(context: Ctx) -> dict[str, Any]:
    return ok(
        {
            "status": "healthy",
            "version": APP_VERSION,
            "timestamp": utc_now_iso(),
            "services": {"cache": _cache_status(context)},
        }
    )


@router.get("/health/deep")
async def deep_health(context: Ctx) -> dict[str, Any]:
    services = {"cache": _cache_status(context), "database": "unknown", "tmdb": "unknown"}

    try:
        await context.database.ping()
        services["database"] = "healthy"
    except (SQLAlchemyError, OSError) as exc:
        logger.warning("Database health check failed: %s", exc)
        services["database"] = "unhealthy"

    try:
        await context.tmdb.configuration()
        services["tmdb"] = "healthy"
    except AppError as exc:
        logger.warning("TMDB health check failed: %s", exc.message)
        services["tmdb"] = "unhealthy"

    return ok(
        {
            "status": "degraded" if "unhealthy" in services.values() else "healthy",
            "version": APP_VERSION,
            "timestamp": utc_now_iso(),
            "services": services,
        }
    )


@router.get("/status")
async def status(context: Ctx) -> dict[str, Any]:
    return ok(
        {
            "environment": context.settings.environment,
            "uptimeSeconds": int(time.time() - context.started_at),
            "timestamp": utc_now_iso(),
        }
    )
