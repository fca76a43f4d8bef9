"""Pydantic models describing request bodies."""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

MediaType = Literal["movie", "tv"]


class LegacyMovie(BaseModel):
    """OMDb shaped movie as stored by older app builds."""

    model_config = ConfigDict(extra="allow")

    imdbID: str = Field(min_length=1)
    Title: str | None = None
    Year: str | None = None
    Type: str | None = None
    Poster: str | None = None

    @field_validator("imdbID")
    @classmethod
    def _strip_id(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("imdbID must not be blank")
        return value


class LegacyMovieBody(BaseModel):
    movie: LegacyMovie


class MediaItem(BaseModel):
    """Modern favorite or watchlist entry keyed by TMDB id."""

    model_config = ConfigDict(extra="allow")

    tmdb_id: int = Field(ge=1)
    media_type: MediaType
    metadata: dict[str, Any] | None = None


class ProfileUpdate(BaseModel):
    username: str | None = Field(default=None, min_length=1, max_length=64)
    preferences: dict[str, Any] | None = None

    @field_validator("username")
    @classmethod
    def _strip_username(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        if not value:
            raise ValueError("username must not be blank")
        return value

    def patch(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True, exclude_none=True)


class SubscriptionsUpdate(BaseModel):
    subscriptions: list[Annotated[int, Field(ge=1)]]


class WatchlistCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("name must not be blank")
        return value


class BatchDetailsRequest(BaseModel):
    imdbIDs: list[str] = Field(min_length=1, max_length=50)


class RecommendationByIdRequest(BaseModel):
    media_type: MediaType
    tmdb_id: int = Field(ge=1)
    page: int = Field(default=1, ge=1)


class RecommendationByTitleRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    top_n: int = Field(default=10, ge=1, le=20)

    @field_validator("title")
    @classmethod
    def _strip_title(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("title must not be blank")
        return value


class MLRecommendationRequest(BaseModel):
    titles: list[str] = Field(min_length=1, max_length=5)
    top_n: int = Field(default=10, ge=1, le=20)

    @field_validator("titles")
    @classmethod
    def _strip_titles(cls, value: list[str]) -> list[str]:
        titles = [title.strip() for title in value]
        if any(not title for title in titles):
            raise ValueError("titles must not be blank")
        return titles
