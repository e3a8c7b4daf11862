"""In-memory document store.

Suitable for tests and local development. Behaves like a cursor-based
document database:
- Filters on top-level fields
- Single-field ordering; documents lacking the order field are excluded,
  ties are broken by document id
- Continuation starts after the cursor position (order value, id), which
  need not be a document that still exists
- Stored data is copied on the way in and out
"""

from __future__ import annotations

import asyncio
import copy
from typing import Any
from uuid import uuid4

from applytrack.documents.base import (
    Document,
    DocumentQuery,
    DocumentStore,
    QueryResult,
    SortDirection,
    StartAfter,
)
from applytrack.errors import FetchError


def _sort_value(value: Any) -> tuple[int, Any]:
    # None sorts first; other values compare among themselves
    return (0, 0) if value is None else (1, value)


def _position(value: Any, doc_id: str) -> tuple[tuple[int, Any], str]:
    return (_sort_value(value), doc_id)


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed document store with simulated I/O latency."""

    def __init__(self, latency: float = 0.0) -> None:
        self.latency = latency
        self.queries: list[DocumentQuery] = []
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}

    @property
    def query_count(self) -> int:
        """Number of queries executed so far."""
        return len(self.queries)

    async def _io(self) -> None:
        # Every call is a suspension point, like a network round trip
        await asyncio.sleep(self.latency)

    def _collection(self, name: str) -> dict[str, dict[str, Any]]:
        return self._collections.setdefault(name, {})

    async def query(self, query: DocumentQuery) -> QueryResult:
        """Run a query and return one page of documents."""
        self.queries.append(query)
        await self._io()

        docs = [
            Document(id=doc_id, data=copy.deepcopy(data))
            for doc_id, data in self._collection(query.collection).items()
            if all(f.matches(data) for f in query.filters)
        ]

        order = query.order_by
        if order is not None:
            docs = [d for d in docs if order.field in d.data]

        def position(doc: Document) -> tuple[tuple[int, Any], str]:
            return _position(doc.data[order.field] if order is not None else None, doc.id)

        descending = order is not None and order.direction is SortDirection.DESC
        try:
            docs.sort(key=position, reverse=descending)
            if query.cursor is not None:
                boundary = _position(query.cursor.value, query.cursor.doc_id)
                if descending:
                    docs = [d for d in docs if position(d) < boundary]
                else:
                    docs = [d for d in docs if position(d) > boundary]
        except TypeError as e:
            field_name = order.field if order is not None else "id"
            raise FetchError(query.collection, f"cannot order by {field_name}: {e}") from e

        if query.limit is not None:
            docs = docs[: query.limit]

        last_cursor = StartAfter.of(docs[-1], order) if docs else None
        return QueryResult(items=docs, last_cursor=last_cursor)

    async def get(self, collection: str, doc_id: str) -> Document | None:
        """Read one document by id."""
        await self._io()
        data = self._collection(collection).get(doc_id)
        if data is None:
            return None
        return Document(id=doc_id, data=copy.deepcopy(data))

    async def add(self, collection: str, data: dict[str, Any]) -> str:
        """Insert a document and return its generated id."""
        await self._io()
        doc_id = uuid4().hex[:20]
        self._collection(collection)[doc_id] = copy.deepcopy(data)
        return doc_id

    async def set(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        """Create or replace a document under a known id."""
        await self._io()
        self._collection(collection)[doc_id] = copy.deepcopy(data)

    async def update(self, collection: str, doc_id: str, changes: dict[str, Any]) -> bool:
        """Merge changes into a document. Returns False if it does not exist."""
        await self._io()
        docs = self._collection(collection)
        if doc_id not in docs:
            return False
        docs[doc_id] = {**docs[doc_id], **copy.deepcopy(changes)}
        return True

    async def delete(self, collection: str, doc_id: str) -> bool:
        """Delete a document. Returns False if it did not exist."""
        await self._io()
        return self._collection(collection).pop(doc_id, None) is not None
