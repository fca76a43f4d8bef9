"""Resolve legacy media identifiers to TMDB ``(media_type, id)`` pairs."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Literal

from ..errors import NotFoundError, ValidationError
from .tmdb import TMDBClient

logger = logging.getLogger(__name__)

IMDB_PREFIX = "tt"
LOCAL_PREFIX = "tmdb"


@dataclass(frozen=True, slots=True)
class ParsedId:
    """Classification of a raw identifier before any network access."""

    kind: Literal["imdb", "tmdb"]
    value: str
    media_type: Literal["movie", "tv"] | None = None
    native_id: int | None = None


@dataclass(frozen=True, slots=True)
class ResolvedReference:
    """A legacy identifier bound to the TMDB media type and numeric id."""

    media_type: Literal["movie", "tv"]
    native_id: int
    legacy_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "media_type": self.media_type,
            "tmdb_id": self.native_id,
            "imdb_id": self.legacy_id,
        }


def local_id(media_type: str, native_id: int | str) -> str:
    """Return the synthesized ``tmdb:<type>:<id>`` identifier."""

    return f"{LOCAL_PREFIX}:{media_type}:{native_id}"


def parse_legacy_id(raw: str | None) -> ParsedId:
    """Classify ``raw`` by prefix without performing I/O."""

    value = (raw or "").strip()
    if not value:
        raise ValidationError("Missing id")
    if value.startswith(IMDB_PREFIX):
        return ParsedId(kind="imdb", value=value)

    for media_type in ("movie", "tv"):
        prefix = f"{LOCAL_PREFIX}:{media_type}:"
        if value.startswith(prefix):
            tail = value[len(prefix):]
            if not tail.isdigit():
                raise ValidationError(f"Invalid TMDB id in {value}")
            return ParsedId(
                kind="tmdb", value=value, media_type=media_type, native_id=int(tail)
            )

    # WARNING: bare numbers are assumed to be movies. Older app builds sent
    # TMDB movie ids without a prefix; a tv id in this form resolves to the
    # wrong title. Do not extend this guess to other shapes.
    if value.isdigit():
        return ParsedId(kind="tmdb", value=value, media_type="movie", native_id=int(value))

    raise ValidationError("Unsupported id format")


class IdentifierResolver:
    """Turn legacy identifiers into :class:`ResolvedReference` objects."""

    def __init__(self, tmdb: TMDBClient):
        self._tmdb = tmdb

    async def resolve(self, raw: str | None) -> ResolvedReference:
        parsed = parse_legacy_id(raw)
        if parsed.kind == "tmdb":
            if parsed.media_type is None or parsed.native_id is None:
                raise ValidationError("Unsupported id format")
            return ResolvedReference(parsed.media_type, parsed.native_id, None)

        found = await self._tmdb.find_by_imdb_id(parsed.value)
        for media_type, field in (("movie", "movie_results"), ("tv", "tv_results")):
            results = found.get(field) if isinstance(found, dict) else None
            first = results[0] if isinstance(results, list) and results else None
            if isinstance(first, dict) and first.get("id"):
                return ResolvedReference(media_type, int(first["id"]), parsed.value)

        logger.info("No TMDB match for %s", parsed.value)
        raise NotFoundError("Unable to resolve IMDb ID in TMDB")
