"""Named per-user watchlists."""

from __future__ import annotations

import logging
from typing import Any, Callable

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db_models import Watchlist
from ..errors import ConflictError, NotFoundError
from ..utils import utc_now_iso

logger = logging.getLogger(__name__)

ITEMS_FIELD = "movies"
LEGACY_ITEMS_FIELD = "items"
MAX_WATCHLISTS = 200


def watchlist_items(data: dict[str, Any] | None) -> list[Any]:
    """Return the item array, accepting the older ``items`` field name."""

    data = data or {}
    items = data.get(ITEMS_FIELD)
    if items is None:
        items = data.get(LEGACY_ITEMS_FIELD)
    return list(items) if isinstance(items, list) else []


def watchlist_payload(watchlist: Watchlist) -> dict[str, Any]:
    extra = {
        key: value
        for key, value in (watchlist.data or {}).items()
        if key not in (ITEMS_FIELD, LEGACY_ITEMS_FIELD)
    }
    payload: dict[str, Any] = {
        **extra,
        "id": watchlist.name,
        "name": watchlist.name,
        "movies": watchlist_items(watchlist.data),
        "createdAt": watchlist.created_at,
        "updatedAt": watchlist.updated_at,
    }
    if watchlist.description is not None:
        payload["description"] = watchlist.description
    return payload


def _same(left: Any, right: Any) -> bool:
    return left is not None and right is not None and str(left) == str(right)


class WatchlistService:
    """CRUD over watchlist rows; each mutation rewrites the item array."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def _fetch(self, session: AsyncSession, uid: str, name: str) -> Watchlist | None:
        result = await session.execute(
            select(Watchlist).where(Watchlist.user_id == uid, Watchlist.name == name)
        )
        return result.scalar_one_or_none()

    async def _require(self, session: AsyncSession, uid: str, name: str) -> Watchlist:
        watchlist = await self._fetch(session, uid, name)
        if watchlist is None:
            raise NotFoundError("Watchlist not found")
        return watchlist

    @staticmethod
    def _store_items(watchlist: Watchlist, items: list[Any]) -> None:
        data = {
            key: value
            for key, value in (watchlist.data or {}).items()
            if key != LEGACY_ITEMS_FIELD
        }
        data[ITEMS_FIELD] = items
        watchlist.data = data
        watchlist.updated_at = utc_now_iso()

    async def list(self, uid: str) -> list[dict[str, Any]]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Watchlist)
                .where(Watchlist.user_id == uid)
                .order_by(Watchlist.created_at.desc(), Watchlist.id.desc())
                .limit(MAX_WATCHLISTS)
            )
            return [watchlist_payload(row) for row in result.scalars()]

    async def create(self, uid: str, name: str, description: str | None = None) -> dict[str, Any]:
        async with self._session_factory() as session:
            if await self._fetch(session, uid, name) is not None:
                raise ConflictError("Watchlist already exists")
            now = utc_now_iso()
            watchlist = Watchlist(
                user_id=uid,
                name=name,
                description=description,
                data={ITEMS_FIELD: []},
                created_at=now,
                updated_at=now,
            )
            session.add(watchlist)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise ConflictError("Watchlist already exists") from exc
            logger.info("Created watchlist %r for %s", name, uid)
            return watchlist_payload(watchlist)

    async def get(self, uid: str, name: str) -> dict[str, Any]:
        async with self._session_factory() as session:
            return watchlist_payload(await self._require(session, uid, name))

    async def delete(self, uid: str, name: str) -> dict[str, bool]:
        async with self._session_factory() as session:
            await session.execute(
                delete(Watchlist).where(Watchlist.user_id == uid, Watchlist.name == name)
            )
            await session.commit()
        return {"removed": True}

    async def _append(
        self,
        uid: str,
        name: str,
        is_duplicate: Callable[[dict[str, Any]], bool],
        new_item: dict[str, Any],
    ) -> dict[str, bool]:
        async with self._session_factory() as session:
            watchlist = await self._require(session, uid, name)
            items = watchlist_items(watchlist.data)
            if any(isinstance(item, dict) and is_duplicate(item) for item in items):
                return {"added": False}
            self._store_items(watchlist, [*items, new_item])
            await session.commit()
            return {"added": True}

    async def add_item(self, uid: str, name: str, item: dict[str, Any]) -> dict[str, bool]:
        """Add a ``{tmdb_id, media_type, metadata?}`` item."""

        new_item = {**item, "watched": False, "addedAt": utc_now_iso()}
        return await self._append(
            uid,
            name,
            lambda existing: _same(existing.get("tmdb_id"), item.get("tmdb_id"))
            and existing.get("media_type") == item.get("media_type"),
            new_item,
        )

    async def add_movie_legacy(self, uid: str, name: str, movie: dict[str, Any]) -> dict[str, bool]:
        """Add an OMDb shaped movie, keyed by ``imdbID``."""

        new_item = {
            "imdbID": movie.get("imdbID"),
            "title": movie.get("Title") or None,
            "poster": movie.get("Poster") or None,
            "watched": False,
            "addedAt": utc_now_iso(),
            "metadata": movie,
        }
        return await self._append(
            uid,
            name,
            lambda existing: _same(existing.get("imdbID"), movie.get("imdbID")),
            new_item,
        )

    async def _remove(self, uid: str, name: str, field: str, value: Any) -> dict[str, bool]:
        async with self._session_factory() as session:
            watchlist = await self._require(session, uid, name)
            items = [
                item
                for item in watchlist_items(watchlist.data)
                if not (isinstance(item, dict) and _same(item.get(field), value))
            ]
            self._store_items(watchlist, items)
            await session.commit()
        return {"removed": True}

    async def remove_item(self, uid: str, name: str, tmdb_id: int | str) -> dict[str, bool]:
        return await self._remove(uid, name, "tmdb_id", tmdb_id)

    async def remove_movie_legacy(self, uid: str, name: str, imdb_id: str) -> dict[str, bool]:
        return await self._remove(uid, name, "imdbID", imdb_id)

    async def _toggle(self, uid: str, name: str, field: str, value: Any) -> dict[str, bool]:
        async with self._session_factory() as session:
            watchlist = await self._require(session, uid, name)
            items = watchlist_items(watchlist.data)
            index = next(
                (
                    position
                    for position, item in enumerate(items)
                    if isinstance(item, dict) and _same(item.get(field), value)
                ),
                None,
            )
            if index is None:
                raise NotFoundError("Item not found in watchlist")
            watched = not bool(items[index].get("watched"))
            items[index] = {
                **items[index],
                "watched": watched,
                "watchedAt": utc_now_iso() if watched else None,
            }
            self._store_items(watchlist, items)
            await session.commit()
        return {"watched": watched}

    async def toggle_watched(self, uid: str, name: str, tmdb_id: int | str) -> dict[str, bool]:
        return await self._toggle(uid, name, "tmdb_id", tmdb_id)

    async def toggle_watched_legacy(self, uid: str, name: str, imdb_id: str) -> dict[str, bool]:
        return await self._toggle(uid, name, "imdbID", imdb_id)
