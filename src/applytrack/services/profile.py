"""User profile service.

A profile is stored in the users collection under the owner's id and is
cached under the owner's settings key. Writes touch a single record, so
they invalidate only that key.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from applytrack.cache import CacheKey, CacheKeys, DataCache, get_default_cache
from applytrack.documents import DocumentStore
from applytrack.errors import DocumentNotFoundError
from applytrack.models import UserProfile
from applytrack.services.base import to_store_data, utcnow

logger = logging.getLogger(__name__)


class ProfileService:
    collection = "users"

    def __init__(self, store: DocumentStore, cache: DataCache | None = None):
        self.store = store
        self.cache = cache or get_default_cache()

    def cache_key(self, owner_id: str) -> CacheKey:
        return CacheKeys.settings(owner_id)

    async def get(self, owner_id: str) -> UserProfile | None:
        return await self.cache.fetch_cached(
            self.cache_key(owner_id), lambda: self._load(owner_id)
        )

    async def _load(self, owner_id: str) -> UserProfile | None:
        doc = await self.store.get(self.collection, owner_id)
        return UserProfile.from_document(doc) if doc is not None else None

    async def save(self, owner_id: str, data: Mapping[str, Any]) -> UserProfile:
        """Create or replace the owner's profile."""
        profile = UserProfile.model_validate(
            {**data, "user_id": owner_id, "updated_at": utcnow()}
        )
        await self.store.set(self.collection, owner_id, profile.to_document_data())
        self.cache.invalidate(self.cache_key(owner_id))
        logger.info(f"Saved profile for {owner_id}")
        return profile

    async def update(self, owner_id: str, changes: Mapping[str, Any]) -> None:
        """Merge changes into an existing profile.

        Raises:
            DocumentNotFoundError: if the owner has no profile yet.
        """
        payload = to_store_data({**changes, "updated_at": utcnow()})
        payload.pop("user_id", None)
        if not await self.store.update(self.collection, owner_id, payload):
            raise DocumentNotFoundError(self.collection, owner_id)
        self.cache.invalidate(self.cache_key(owner_id))
        logger.info(f"Updated profile for {owner_id}")
