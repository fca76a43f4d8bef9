"""Favorites stored as an array on the user's profile document."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..utils import utc_now_iso
from .profiles import FAVORITES_FIELD, load_document, normalise_document

logger = logging.getLogger(__name__)


def _matches(item: Any, identifier: str, media_type: str | None = None) -> bool:
    if not isinstance(item, dict):
        return False
    if item.get("imdbID") is not None and str(item["imdbID"]) == identifier:
        return True
    if item.get("tmdb_id") is None or str(item["tmdb_id"]) != identifier:
        return False
    # Native ids are only unique per media type.
    return media_type is None or item.get("media_type") == media_type


class FavoritesService:
    """Add and remove favorites with set semantics.

    Removal finds the first element matching the identifier and then drops
    every element equal to it, so two entries for the same title that differ
    in metadata are removed one call at a time.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def list(self, uid: str) -> list[Any]:
        async with self._session_factory() as session:
            document = await load_document(session, uid, create=False)
            if document is None:
                return []
            favorites = normalise_document(document.data).get(FAVORITES_FIELD)
            return list(favorites) if isinstance(favorites, list) else []

    async def add(self, uid: str, item: dict[str, Any]) -> list[Any]:
        async with self._session_factory() as session:
            document = await load_document(session, uid)
            data = normalise_document(document.data)
            favorites = list(data.get(FAVORITES_FIELD) or [])
            if item not in favorites:
                favorites.append(item)
            data[FAVORITES_FIELD] = favorites
            document.data = data
            document.updated_at = utc_now_iso()
            await session.commit()
            return favorites

    async def remove(
        self, uid: str, identifier: str, media_type: str | None = None
    ) -> dict[str, bool]:
        async with self._session_factory() as session:
            document = await load_document(session, uid, create=False)
            if document is None:
                return {"removed": False}
            data = normalise_document(document.data)
            favorites = list(data.get(FAVORITES_FIELD) or [])
            target = next(
                (item for item in favorites if _matches(item, identifier, media_type)), None
            )
            if target is None:
                return {"removed": False}
            data[FAVORITES_FIELD] = [item for item in favorites if item != target]
            document.data = data
            document.updated_at = utc_now_iso()
            await session.commit()
            logger.debug("Removed favorite %s for %s", identifier, uid)
            return {"removed": True}
