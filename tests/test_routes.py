"""HTTP surface tests driven through FastAPI's TestClient."""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.context import build_context
from app.database import Database
from app.errors import register_exception_handlers
from app.main import install_middleware, register_routes
from app.services.redis_store import RedisStore
from app.services.trending import FALLBACK_KEYWORDS
from conftest import build_settings, tmdb_path

AUTH = {"Authorization": "Bearer good-token"}

BATMAN = {
    "id": 272,
    "media_type": "movie",
    "title": "Batman Begins",
    "release_date": "2005-06-10",
    "genre_ids": [28],
}

TMDB_ROUTES: dict[str, Any] = {
    "/genre/movie/list": {"genres": [{"id": 28, "name": "Action"}]},
    "/genre/tv/list": {"genres": []},
    "/search/multi": {"total_results": 1, "results": [BATMAN]},
    "/search/movie": {"total_results": 1, "results": [BATMAN]},
    "/find/tt0372784": {"movie_results": [{"id": 272}], "tv_results": []},
    "/movie/272": {"title": "Batman Begins", "release_date": "2005-06-10", "runtime": 140},
    "/movie/272/credits": {"cast": [], "crew": []},
    "/movie/popular": {"page": 1, "results": [BATMAN]},
    "/configuration": {"images": {}},
}


def tmdb_handler(routes: dict[str, Any]):
    def handler(request: httpx.Request) -> httpx.Response:
        path = tmdb_path(request)
        if path not in routes:
            return httpx.Response(
                404, json={"status_message": "The resource you requested could not be found."}
            )
        return httpx.Response(200, json=routes[path])

    return handler


def identity_handler(request: httpx.Request) -> httpx.Response:
    if b"good-token" in request.content:
        return httpx.Response(200, json={"users": [{"localId": "user-1", "email": "neo@example.com"}]})
    return httpx.Response(400, json={"error": {"message": "INVALID_ID_TOKEN"}})


def ml_failure(request: httpx.Request) -> httpx.Response:
    return httpx.Response(500, text="model warming up")


def build_app(
    tmp_path,
    tmdb_routes: dict[str, Any] | None = None,
    *,
    ml_handler=ml_failure,
    **overrides: Any,
) -> FastAPI:
    """Return a bare app with the routers and a fully wired context."""

    settings = build_settings(**{"IDENTITY_API_KEY": "web-key", **overrides})
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'routes.db'}")

    async def prepare() -> None:
        await database.create_all()
        await database.dispose()

    asyncio.run(prepare())

    context = build_context(
        settings,
        database=database,
        redis=RedisStore(None),
        tmdb_http=httpx.AsyncClient(
            base_url=str(settings.tmdb_base_url),
            transport=httpx.MockTransport(tmdb_handler(TMDB_ROUTES if tmdb_routes is None else tmdb_routes)),
        ),
        identity_http=httpx.AsyncClient(transport=httpx.MockTransport(identity_handler)),
        ml_http=httpx.AsyncClient(transport=httpx.MockTransport(ml_handler)),
    )
    app = FastAPI()
    install_middleware(app, settings)
    register_exception_handlers(app)
    register_routes(app, settings.api_prefix)
    app.state.context = context
    return app


def test_health_reports_cache_not_ready(tmp_path) -> None:
    app = build_app(tmp_path)

    with TestClient(app) as client:
        response = client.get("/api/health")
        status = client.get("/api/status")

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert payload["data"]["status"] == "healthy"
    assert payload["data"]["services"] == {"cache": "disabled-or-not-ready"}
    assert status.json()["data"]["environment"] == "development"


def test_deep_health_checks_database_and_tmdb(tmp_path) -> None:
    app = build_app(tmp_path, {})

    with TestClient(app) as client:
        response = client.get("/api/health/deep")

    data = response.json()["data"]
    assert data["services"]["database"] == "healthy"
    assert data["services"]["tmdb"] == "unhealthy"
    assert data["status"] == "degraded"


def test_user_routes_require_bearer_token(tmp_path) -> None:
    app = build_app(tmp_path)

    with TestClient(app) as client:
        missing = client.get("/api/user/profile")
        invalid = client.get("/api/user/profile", headers={"Authorization": "Bearer nope"})

    assert missing.status_code == 401
    assert missing.json() == {
        "success": False,
        "error": {"code": "UNAUTHORIZED", "message": "Missing Authorization bearer token"},
    }
    assert invalid.status_code == 401
    assert invalid.json()["error"]["message"] == "Invalid or expired token"


def test_unknown_route_uses_error_envelope(tmp_path) -> None:
    app = build_app(tmp_path)

    with TestClient(app) as client:
        response = client.get("/api/nope")

    assert response.status_code == 404
    assert response.json()["error"] == {
        "code": "NOT_FOUND",
        "message": "Route not found: GET /api/nope",
    }


def test_query_validation_failures_are_bad_requests(tmp_path) -> None:
    app = build_app(tmp_path)

    with TestClient(app) as client:
        response = client.get("/api/movies/search")

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert error["details"][0]["loc"] == ["query", "q"]


def test_legacy_search_and_details(tmp_path) -> None:
    app = build_app(tmp_path)

    with TestClient(app) as client:
        search = client.get("/api/movies/search", params={"q": "Batman Begins"})
        details = client.get("/api/movies/details/tt0372784")
        season = client.get("/api/movies/season/tt0372784/1")

    hit = search.json()["data"]["Search"][0]
    assert hit["Year"] == "2005"
    assert hit["imdbID"] == "tmdb:movie:272"
    document = details.json()["data"]
    assert document["Title"] == "Batman Begins"
    assert document["imdbID"] == "tt0372784"
    assert document["Runtime"] == "140 min"
    assert season.json()["data"] == {"Season": "1", "Episodes": [], "Response": "False"}


def test_batch_details_reports_failures_per_id(tmp_path) -> None:
    app = build_app(tmp_path)

    with TestClient(app) as client:
        response = client.post(
            "/api/movies/batch-details", json={"imdbIDs": ["tmdb:movie:272", "bogus"]}
        )

    results = response.json()["data"]["results"]
    assert results[0]["data"]["Title"] == "Batman Begins"
    assert results[0]["error"] is None
    assert results[1] == {"imdbID": "bogus", "data": None, "error": "Unsupported id format"}


def test_modern_routes_report_cache_source(tmp_path) -> None:
    app = build_app(tmp_path)

    with TestClient(app) as client:
        first = client.get("/api/movies/popular")
        second = client.get("/api/movies/popular")
        missing = client.get("/api/movies/999")

    assert first.json()["meta"] == {"source": "tmdb"}
    assert second.json()["meta"] == {"source": "cache"}
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "TMDB_ERROR"


def test_search_routes_apply_their_own_rate_limit(tmp_path) -> None:
    app = build_app(tmp_path, SEARCH_RATE_LIMIT_MAX=1)

    with TestClient(app) as client:
        allowed = client.get("/api/search/multi", params={"query": "batman"})
        blocked = client.get("/api/search/multi", params={"query": "batman"})

    assert allowed.status_code == 200
    assert blocked.status_code == 429
    assert blocked.json()["error"]["code"] == "RATE_LIMITED"


def test_global_rate_limit_returns_envelope_with_headers(tmp_path) -> None:
    app = build_app(tmp_path, RATE_LIMIT_MAX=2)

    with TestClient(app) as client:
        client.get("/api/health")
        client.get("/api/health")
        blocked = client.get("/api/health")

    assert blocked.status_code == 429
    assert blocked.json()["error"]["code"] == "RATE_LIMITED"
    assert blocked.headers["RateLimit-Limit"] == "2"
    assert blocked.headers["RateLimit-Remaining"] == "0"


def test_profile_favorites_and_watchlists_flow(tmp_path) -> None:
    app = build_app(tmp_path)

    with TestClient(app) as client:
        profile = client.put(
            "/api/user/profile",
            headers=AUTH,
            json={"username": "neo", "preferences": {"theme": "dark"}},
        )
        client.post("/api/user/favorites", headers=AUTH, json={"tmdb_id": 550, "media_type": "movie"})
        favorites = client.post(
            "/api/user/favorites", headers=AUTH, json={"tmdb_id": 550, "media_type": "movie"}
        )
        legacy = client.post(
            "/api/user/favorites",
            headers=AUTH,
            json={"movie": {"imdbID": "tt0372784", "Title": "Batman Begins"}},
        )
        created = client.post("/api/user/watchlists", headers=AUTH, json={"name": "Weekend"})
        conflict = client.post("/api/user/watchlists", headers=AUTH, json={"name": "Weekend"})
        empty = client.get("/api/user/watchlists/Weekend", headers=AUTH)
        added = client.post(
            "/api/user/watchlists/Weekend/items",
            headers=AUTH,
            json={"tmdb_id": 1399, "media_type": "tv"},
        )
        toggled = client.patch("/api/user/watchlists/Weekend/items/1399/watched", headers=AUTH)
        subscriptions = client.put(
            "/api/user/subscriptions", headers=AUTH, json={"subscriptions": [8, 337]}
        )
        listed = client.get("/api/user/subscriptions", headers=AUTH)

    assert profile.json()["data"]["username"] == "neo"
    assert profile.json()["data"]["uid"] == "user-1"
    assert favorites.json()["data"] == [{"tmdb_id": 550, "media_type": "movie"}]
    assert legacy.json()["data"][-1] == {"imdbID": "tt0372784", "Title": "Batman Begins"}
    assert created.json()["data"]["movies"] == []
    assert conflict.status_code == 409
    assert conflict.json()["error"]["message"] == "Watchlist already exists"
    assert empty.json()["data"]["movies"] == []
    assert added.json()["data"] == {"added": True}
    assert toggled.json()["data"] == {"watched": True}
    assert subscriptions.json()["data"]["streamingSubscriptions"] == [8, 337]
    assert listed.json()["data"] == {"subscriptions": [8, 337]}


def test_ml_recommendations_report_unavailable_service(tmp_path) -> None:
    app = build_app(tmp_path)

    with TestClient(app) as client:
        response = client.post("/api/recommendations/ml", json={"titles": ["Heat"]})

    assert response.status_code == 503
    assert response.json()["error"]["code"] == "ML_UNAVAILABLE"


def test_ml_recommendations_forward_upstream_results(tmp_path) -> None:
    def ml_success(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"recommendations": [{"title": "Collateral"}], "found_titles": ["Heat"]},
        )

    app = build_app(tmp_path, ml_handler=ml_success)

    with TestClient(app) as client:
        response = client.post("/api/recommendations/ml", json={"titles": ["Heat"], "top_n": 3})

    data = response.json()["data"]
    assert data["recommendations"] == [{"title": "Collateral"}]
    assert data["found_titles"] == ["Heat"]
    assert data["source"] == "external_ml_api"


def test_trending_keywords_fall_back_when_tmdb_fails(tmp_path) -> None:
    app = build_app(tmp_path, {})

    with TestClient(app) as client:
        response = client.get("/api/trending/search/keywords")

    assert response.json()["data"] == {"keywords": FALLBACK_KEYWORDS}


def test_analytics_overview_is_zeroed_without_redis(tmp_path) -> None:
    app = build_app(tmp_path)

    with TestClient(app) as client:
        response = client.get("/api/analytics/overview")

    data = response.json()["data"]
    assert data["totalRequests"] == 0
    assert data["errorRate"] == "0.00"
    assert data["engagement"] == {"activeUsersToday": 0}
