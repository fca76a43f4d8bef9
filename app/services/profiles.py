"""Per-user profile documents and streaming subscriptions."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db_models import UserDocument
from ..utils import utc_now_iso

logger = logging.getLogger(__name__)

FAVORITES_FIELD = "userFavorites"
LEGACY_FAVORITES_FIELD = "favorites"
SUBSCRIPTIONS_FIELD = "streamingSubscriptions"
RESERVED_FIELDS = frozenset({"uid", "createdAt", "updatedAt"})


def normalise_document(data: dict[str, Any] | None) -> dict[str, Any]:
    """Return ``data`` with favorites stored under their current field name."""

    normalised = dict(data or {})
    legacy = normalised.pop(LEGACY_FAVORITES_FIELD, None)
    if FAVORITES_FIELD not in normalised and isinstance(legacy, list):
        normalised[FAVORITES_FIELD] = legacy
    return normalised


def document_payload(document: UserDocument) -> dict[str, Any]:
    """Serialise a stored document as returned to clients."""

    payload = normalise_document(document.data)
    payload["uid"] = document.uid
    payload["createdAt"] = document.created_at
    payload["updatedAt"] = document.updated_at
    return payload


async def load_document(
    session: AsyncSession, uid: str, *, create: bool = True
) -> UserDocument | None:
    """Fetch the document for ``uid``, creating an empty one when asked.

    Must run before any other change in ``session``: losing the insert race to
    a concurrent request rolls the session back and re-reads the winner's row.
    """

    document = await session.get(UserDocument, uid)
    if document is not None or not create:
        return document

    now = utc_now_iso()
    document = UserDocument(uid=uid, data={}, created_at=now, updated_at=now)
    session.add(document)
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        logger.debug("User document for %s was created concurrently", uid)
        return await session.get(UserDocument, uid)
    logger.info("Created user document for %s", uid)
    return document


class ProfileService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_profile(self, uid: str) -> dict[str, Any]:
        async with self._session_factory() as session:
            document = await load_document(session, uid)
            await session.commit()
            return document_payload(document)

    async def upsert_profile(self, uid: str, patch: dict[str, Any]) -> dict[str, Any]:
        """Merge ``patch`` into the profile, keeping ``createdAt`` intact."""

        async with self._session_factory() as session:
            document = await load_document(session, uid)
            data = normalise_document(document.data)
            for key, value in patch.items():
                if key in RESERVED_FIELDS:
                    continue
                current = data.get(key)
                if isinstance(current, dict) and isinstance(value, dict):
                    data[key] = {**current, **value}
                else:
                    data[key] = value
            document.data = data
            document.updated_at = utc_now_iso()
            await session.commit()
            return document_payload(document)

    async def get_subscriptions(self, uid: str) -> list[Any]:
        async with self._session_factory() as session:
            document = await load_document(session, uid, create=False)
            if document is None:
                return []
            subscriptions = (document.data or {}).get(SUBSCRIPTIONS_FIELD)
            return list(subscriptions) if isinstance(subscriptions, list) else []

    async def update_subscriptions(self, uid: str, subscriptions: list[int]) -> dict[str, Any]:
        async with self._session_factory() as session:
            document = await load_document(session, uid)
            data = normalise_document(document.data)
            data[SUBSCRIPTIONS_FIELD] = list(subscriptions)
            document.data = data
            document.updated_at = utc_now_iso()
            await session.commit()
            return document_payload(document)
