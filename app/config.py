"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

APP_VERSION = "1.0.0"


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="CineLink API", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=5001, alias="PORT")
    environment: Literal["development", "test", "production"] = Field(
        default="development",
        alias="ENVIRONMENT",
        validation_alias=AliasChoices("ENVIRONMENT", "NODE_ENV"),
    )
    api_prefix: str = Field(default="/api", alias="API_PREFIX")
    cors_origin: str = Field(default="", alias="CORS_ORIGIN")
    log_level: Literal["critical", "error", "warning", "info", "debug"] = Field(
        default="info", alias="LOG_LEVEL"
    )

    tmdb_api_key: str | None = Field(default=None, alias="TMDB_API_KEY")
    tmdb_base_url: HttpUrl = Field(
        default="https://api.themoviedb.org/3", alias="TMDB_BASE_URL"
    )
    tmdb_image_base_url: HttpUrl = Field(
        default="https://image.tmdb.org/t/p", alias="TMDB_IMAGE_BASE_URL"
    )
    tmdb_timeout_seconds: float = Field(
        default=30.0, alias="TMDB_TIMEOUT_SECONDS", gt=0, le=120
    )

    redis_url: str | None = Field(default=None, alias="REDIS_URL")
    database_url: str = Field(
        default="sqlite+aiosqlite:///./cinelink.db", alias="DATABASE_URL"
    )

    identity_api_key: str | None = Field(
        default=None,
        alias="IDENTITY_API_KEY",
        validation_alias=AliasChoices("IDENTITY_API_KEY", "FIREBASE_WEB_API_KEY"),
    )
    identity_lookup_url: HttpUrl = Field(
        default="https://identitytoolkit.googleapis.com/v1/accounts:lookup",
        alias="IDENTITY_LOOKUP_URL",
    )
    auth_cache_ttl_seconds: int = Field(
        default=300, alias="AUTH_CACHE_TTL_SECONDS", ge=0, le=3_600
    )
    auth_cache_max_entries: int = Field(
        default=1_000, alias="AUTH_CACHE_MAX_ENTRIES", ge=1
    )
    memory_cache_max_entries: int = Field(
        default=5_000, alias="MEMORY_CACHE_MAX_ENTRIES", ge=1
    )

    rate_limit_window_seconds: int = Field(
        default=60, alias="RATE_LIMIT_WINDOW_SECONDS", ge=1
    )
    rate_limit_max: int = Field(default=120, alias="RATE_LIMIT_MAX", ge=1)
    search_rate_limit_max: int = Field(
        default=40, alias="SEARCH_RATE_LIMIT_MAX", ge=1
    )

    ml_recommendations_url: HttpUrl = Field(
        default="https://movie-reco-api.onrender.com/recommend",
        alias="ML_RECOMMENDATIONS_URL",
    )

    @field_validator("redis_url", mode="before")
    @classmethod
    def _validate_redis_url(cls, value: object) -> str | None:
        if value is None:
            return None
        text = str(value).strip()
        if not text:
            return None
        if not text.startswith(("redis://", "rediss://")):
            raise ValueError("REDIS_URL must start with redis:// or rediss://")
        return text

    @field_validator("api_prefix", mode="before")
    @classmethod
    def _normalise_prefix(cls, value: object) -> str:
        text = str(value or "").strip().rstrip("/")
        if text and not text.startswith("/"):
            text = f"/{text}"
        return text

    @property
    def cors_origins(self) -> tuple[str, ...]:
        """Return the comma separated CORS_ORIGIN value as a tuple."""

        return tuple(
            part.strip().rstrip("/")
            for part in self.cors_origin.split(",")
            if part.strip()
        )

    @property
    def image_base_url(self) -> str:
        """Return the TMDB image base URL without a trailing slash."""

        return str(self.tmdb_image_base_url).rstrip("/")

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", populate_by_name=True
    )


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
