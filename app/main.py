"""Entry point for the FastAPI-powered CineLink API."""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from .api import analytics, health, movies, recommendations, search, trending, tv, user
from .config import APP_VERSION, Settings, settings
from .context import AppContext, build_context
from .database import Database
from .errors import RateLimitError, register_exception_handlers
from .rate_limit import client_key, rate_limit_headers
from .services.redis_store import RedisStore

logging.basicConfig(level=settings.log_level.upper())
logger = logging.getLogger(__name__)

LOCAL_ORIGIN_RE = r"https?://(localhost|127\.0\.0\.1)(:\d+)?"

app: FastAPI


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    exit_stack = AsyncExitStack()
    tmdb_http = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            base_url=str(settings.tmdb_base_url),
            timeout=httpx.Timeout(settings.tmdb_timeout_seconds, connect=10.0),
        )
    )
    identity_http = await exit_stack.enter_async_context(
        httpx.AsyncClient(timeout=httpx.Timeout(15.0, connect=5.0))
    )
    ml_http = await exit_stack.enter_async_context(
        httpx.AsyncClient(timeout=httpx.Timeout(120.0, connect=10.0))
    )
    database = Database(settings.database_url)
    await database.create_all()

    redis = RedisStore(settings.redis_url)
    await redis.connect()

    context = build_context(
        settings,
        database=database,
        redis=redis,
        tmdb_http=tmdb_http,
        identity_http=identity_http,
        ml_http=ml_http,
    )
    if not context.tmdb.configured:
        logger.warning("TMDB_API_KEY is not set; upstream calls will fail")

    fastapi_app.state.context = context
    await context.analytics.start()

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await context.analytics.stop()
        await redis.close()
        await database.dispose()
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Backend-for-frontend serving TMDB data in the legacy OMDb shape",
        version=APP_VERSION,
        lifespan=lifespan,
    )

    install_middleware(fastapi_app, settings)
    register_exception_handlers(fastapi_app)
    register_routes(fastapi_app, settings.api_prefix)
    return fastapi_app


def get_app_context(fastapi_app: FastAPI) -> AppContext | None:
    context = getattr(fastapi_app.state, "context", None)
    return context if isinstance(context, AppContext) else None


def install_middleware(fastapi_app: FastAPI, app_settings: Settings) -> None:
    """Add CORS, the global rate limit and request logging/metrics."""

    origins = list(app_settings.cors_origins)
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=origins or ["*"],
        allow_origin_regex=(
            LOCAL_ORIGIN_RE if origins and app_settings.environment != "production" else None
        ),
        allow_credentials=bool(origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    background: set[asyncio.Task[Any]] = set()
    fastapi_app.state.metrics_tasks = background

    @fastapi_app.middleware("http")
    async def observe_request(request: Request, call_next) -> Response:
        context = get_app_context(fastapi_app)
        started = time.perf_counter()

        if context is not None and request.url.path.startswith(app_settings.api_prefix):
            status = context.global_limiter.hit(client_key(request))
            if not status.allowed:
                error = RateLimitError()
                logger.warning(
                    "Rate limit exceeded for %s on %s", client_key(request), request.url.path
                )
                return JSONResponse(
                    status_code=error.status_code,
                    content=error.to_payload(),
                    headers=rate_limit_headers(status),
                )

        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "%s %s %s %.0fms",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )

        if context is not None and context.metrics.ready:
            route = request.scope.get("route")
            endpoint = getattr(route, "path", None) or request.url.path
            user = getattr(request.state, "user", None)
            task = asyncio.create_task(
                _record_request(
                    context,
                    endpoint,
                    request.method,
                    response.status_code,
                    round(elapsed_ms),
                    getattr(user, "uid", None),
                )
            )
            background.add(task)
            task.add_done_callback(background.discard)
        return response


async def _record_request(
    context: AppContext,
    endpoint: str,
    method: str,
    status_code: int,
    elapsed_ms: int,
    user_id: str | None,
) -> None:
    await context.metrics.track_request(endpoint, method, status_code, elapsed_ms, user_id)
    if status_code >= 400:
        await context.metrics.track_error(endpoint, method)


def register_routes(fastapi_app: FastAPI, api_prefix: str = "/api") -> None:
    for module in (health, analytics, movies, tv, search, trending, recommendations, user):
        fastapi_app.include_router(module.router, prefix=api_prefix)


app = create_app()
