"""Cache-aware entity services.

Every service reads through the shared DataCache and invalidates the
affected keys after each successful write, before returning, so the next
read is a forced miss.

Read path:
    list(owner) -> fetch_cached(user_<owner>_<entity>) -> store.query
    get(owner, id) -> fetch_cached(user_<owner>_<entity>_doc_<id>) -> store.get

Write path:
    create/update/delete -> store mutation -> invalidate_entity(entity, owner)
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Generic, TypeVar

from applytrack.cache import CacheKey, CacheKeys, DataCache, EntityType, get_default_cache
from applytrack.documents import (
    Document,
    DocumentQuery,
    DocumentStore,
    FieldFilter,
    FilterOp,
    OrderBy,
)
from applytrack.errors import DocumentNotFoundError
from applytrack.models import EntityModel

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=EntityModel)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_store_data(data: Mapping[str, Any]) -> dict[str, Any]:
    """Plain field data for the store: enums are stored by value."""
    return {k: v.value if isinstance(v, Enum) else v for k, v in data.items()}


class OwnedCollectionService(Generic[M]):
    """Base service for a collection whose documents belong to one owner."""

    collection: ClassVar[str]
    entity: ClassVar[EntityType]
    model: ClassVar[type[EntityModel]]
    order_by: ClassVar[OrderBy | None] = None
    owner_field: ClassVar[str] = "user_id"
    # Entities derived from this collection, invalidated on every write
    related_entities: ClassVar[tuple[EntityType, ...]] = ()

    def __init__(self, store: DocumentStore, cache: DataCache | None = None):
        self.store = store
        self.cache = cache or get_default_cache()

    def cache_key(self, owner_id: str) -> CacheKey:
        return CacheKeys.for_entity(self.entity, owner_id)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def list(self, owner_id: str, force_refresh: bool = False) -> tuple[M, ...]:
        """All of the owner's documents in collection order.

        force_refresh drops the cached list first so the store is queried.
        """
        key = self.cache_key(owner_id)
        if force_refresh:
            self.cache.invalidate(key)
        return await self.cache.fetch_cached(key, lambda: self._load_all(owner_id))

    async def get(self, owner_id: str, doc_id: str) -> M | None:
        """One of the owner's documents, or None if missing or not owned."""
        key = CacheKeys.document(self.entity, owner_id, doc_id)
        return await self.cache.fetch_cached(key, lambda: self._load_one(owner_id, doc_id))

    def _owner_filter(self, owner_id: str) -> FieldFilter:
        return FieldFilter(self.owner_field, FilterOp.EQ, owner_id)

    async def _load_all(self, owner_id: str) -> tuple[M, ...]:
        result = await self.store.query(
            DocumentQuery(
                collection=self.collection,
                filters=(self._owner_filter(owner_id),),
                order_by=self.order_by,
            )
        )
        return tuple(self._convert(doc) for doc in result.items)

    async def _load_one(self, owner_id: str, doc_id: str) -> M | None:
        doc = await self.store.get(self.collection, doc_id)
        if doc is None or doc.get(self.owner_field) != owner_id:
            return None
        return self._convert(doc)

    def _convert(self, doc: Document) -> M:
        return self.model.from_document(doc)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def create(self, owner_id: str, data: Mapping[str, Any]) -> str:
        """Insert a document for the owner.

        Returns:
            The generated document id.
        """
        payload = to_store_data(self._prepare_create(dict(data)))
        payload[self.owner_field] = owner_id
        doc_id = await self.store.add(self.collection, payload)
        self.invalidate(owner_id)
        logger.info(f"Created {self.collection}/{doc_id} for {owner_id}")
        return doc_id

    async def update(self, owner_id: str, doc_id: str, changes: Mapping[str, Any]) -> None:
        """Merge changes into one of the owner's documents.

        Raises:
            DocumentNotFoundError: if the document is missing or not owned.
        """
        await self._require_owned(owner_id, doc_id)
        payload = to_store_data(self._prepare_update(dict(changes)))
        payload.pop(self.owner_field, None)
        if not await self.store.update(self.collection, doc_id, payload):
            raise DocumentNotFoundError(self.collection, doc_id)
        self.invalidate(owner_id)
        logger.info(f"Updated {self.collection}/{doc_id} for {owner_id}")

    async def delete(self, owner_id: str, doc_id: str) -> None:
        """Delete one of the owner's documents.

        Raises:
            DocumentNotFoundError: if the document is missing or not owned.
        """
        await self._require_owned(owner_id, doc_id)
        await self.store.delete(self.collection, doc_id)
        self.invalidate(owner_id)
        logger.info(f"Deleted {self.collection}/{doc_id} for {owner_id}")

    def _prepare_create(self, data: dict[str, Any]) -> dict[str, Any]:
        return data

    def _prepare_update(self, changes: dict[str, Any]) -> dict[str, Any]:
        return changes

    async def _require_owned(self, owner_id: str, doc_id: str) -> Document:
        # Reads the store directly; a cached copy may predate a delete
        doc = await self.store.get(self.collection, doc_id)
        if doc is None or doc.get(self.owner_field) != owner_id:
            raise DocumentNotFoundError(self.collection, doc_id)
        return doc

    # -------------------------------------------------------------------------
    # Invalidation
    # -------------------------------------------------------------------------

    def invalidate(self, owner_id: str) -> int:
        """Drop every cached key of this entity for the owner.

        Covers the list key, per-document keys and stream pages.
        """
        removed = self.cache.invalidate_entity(self.entity, owner_id)
        for entity in self.related_entities:
            removed += self.cache.invalidate_entity(entity, owner_id)
        return removed
