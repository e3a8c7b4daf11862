"""Tests for the in-memory document store."""

import pytest

from applytrack.documents import (
    DocumentQuery,
    FieldFilter,
    FilterOp,
    InMemoryDocumentStore,
    OrderBy,
    SortDirection,
    StartAfter,
)
from applytrack.errors import FetchError


class TestInMemoryDocumentStore:
    """Test queries and mutations."""

    @pytest.fixture
    async def store(self) -> InMemoryDocumentStore:
        """Create a store with three documents."""
        store = InMemoryDocumentStore()
        await store.set("apps", "a", {"user_id": "u1", "rank": 2, "status": "Applied"})
        await store.set("apps", "b", {"user_id": "u1", "rank": 1, "status": "Offer"})
        await store.set("apps", "c", {"user_id": "u2", "rank": 3, "status": "Applied"})
        return store

    async def test_filter(self, store: InMemoryDocumentStore) -> None:
        """Equality filters select matching documents."""
        result = await store.query(
            DocumentQuery("apps", filters=(FieldFilter("user_id", FilterOp.EQ, "u1"),))
        )
        assert [d.id for d in result.items] == ["a", "b"]
        assert result.size == 2
        assert result.last_cursor == StartAfter(None, "b")

    async def test_in_filter(self, store: InMemoryDocumentStore) -> None:
        """`in` filters match any listed value."""
        result = await store.query(
            DocumentQuery("apps", filters=(FieldFilter("status", FilterOp.IN, ["Offer"]),))
        )
        assert [d.id for d in result.items] == ["b"]

    async def test_order_desc(self, store: InMemoryDocumentStore) -> None:
        """Ordering by a field, descending."""
        result = await store.query(
            DocumentQuery("apps", order_by=OrderBy("rank", SortDirection.DESC))
        )
        assert [d.id for d in result.items] == ["c", "a", "b"]

    async def test_cursor_and_limit(self, store: InMemoryDocumentStore) -> None:
        """Cursor continues after the given document."""
        order = OrderBy("rank")
        first = await store.query(DocumentQuery("apps", order_by=order, limit=2))
        rest = await store.query(
            DocumentQuery("apps", order_by=order, limit=2, cursor=first.last_cursor)
        )
        assert [d.id for d in first.items] == ["b", "a"]
        assert [d.id for d in rest.items] == ["c"]

    async def test_cursor_after_deleted_document(self, store: InMemoryDocumentStore) -> None:
        """A cursor resumes by position even when its document is gone."""
        order = OrderBy("rank")
        first = await store.query(DocumentQuery("apps", order_by=order, limit=2))
        assert first.last_cursor == StartAfter(2, "a")

        await store.delete("apps", "a")
        rest = await store.query(DocumentQuery("apps", order_by=order, cursor=first.last_cursor))
        assert [d.id for d in rest.items] == ["c"]

    async def test_cursor_descending_with_ties(self, store: InMemoryDocumentStore) -> None:
        """Equal order values continue by document id."""
        await store.set("apps", "d", {"user_id": "u1", "rank": 2})
        order = OrderBy("rank", SortDirection.DESC)
        rest = await store.query(DocumentQuery("apps", order_by=order, cursor=StartAfter(2, "d")))
        assert [d.id for d in rest.items] == ["a", "b"]

    async def test_incomparable_cursor_value(self, store: InMemoryDocumentStore) -> None:
        """A cursor value that cannot be compared fails the query."""
        with pytest.raises(FetchError):
            await store.query(
                DocumentQuery("apps", order_by=OrderBy("rank"), cursor=StartAfter("x", "a"))
            )

    async def test_data_is_copied(self, store: InMemoryDocumentStore) -> None:
        """Mutating a returned document does not change the store."""
        doc = await store.get("apps", "a")
        doc.data["rank"] = 99
        assert (await store.get("apps", "a")).data["rank"] == 2

    async def test_add_update_delete(self, store: InMemoryDocumentStore) -> None:
        """Basic mutations."""
        doc_id = await store.add("apps", {"user_id": "u3"})
        assert await store.update("apps", doc_id, {"rank": 5}) is True
        assert (await store.get("apps", doc_id)).data == {"user_id": "u3", "rank": 5}
        assert await store.delete("apps", doc_id) is True
        assert await store.get("apps", doc_id) is None
        assert await store.update("apps", doc_id, {"rank": 6}) is False
        assert await store.delete("apps", doc_id) is False

    async def test_query_count(self, store: InMemoryDocumentStore) -> None:
        """Every query is recorded."""
        await store.query(DocumentQuery("apps"))
        await store.query(DocumentQuery("other"))
        assert store.query_count == 2
