"""Cursor-based streaming pagination for applytrack.

Pages are read from the document store in bounded batches using a
continuation cursor, never an offset. Every page is cached under its own
stream key, so re-reading a page inside the TTL costs no store query.

The cursor is an opaque base64url token wrapping the order-field value
and id of the last document together with the query shape it was issued
under:
- owner_id: owner scope of the stream
- collection / order_field / direction: the ordering of the query
- page_size: the page size the position is valid for

A cursor presented under any other shape is rejected with
InvalidCursorError instead of silently reading the wrong window.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Generic, TypeVar

import orjson

from applytrack.cache.keys import CacheKeys, EntityType
from applytrack.cache.runtime import DataCache
from applytrack.documents.base import (
    Document,
    DocumentQuery,
    DocumentStore,
    FieldFilter,
    FilterOp,
    OrderBy,
    SortDirection,
    StartAfter,
)
from applytrack.errors import InvalidCursorError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Default page size
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def _encode_value(value: Any) -> Any:
    # orjson renders dates as plain strings; tag them so decode restores the type
    if isinstance(value, datetime):
        return {"dt": value.isoformat()}
    if isinstance(value, date):
        return {"date": value.isoformat()}
    return value


def _decode_value(raw: Any) -> Any:
    if not isinstance(raw, dict):
        return raw
    if raw.keys() == {"dt"}:
        return datetime.fromisoformat(raw["dt"])
    if raw.keys() == {"date"}:
        return date.fromisoformat(raw["date"])
    raise ValueError("unsupported cursor value")


@dataclass(frozen=True, slots=True)
class StreamCursor:
    """Continuation position bound to the query shape that produced it.

    The position is the order-field value and id of the last document of
    the page, so a stream resumes correctly even if that document is
    deleted or moved by a write between pages.
    """

    owner_id: str
    collection: str
    order_field: str
    direction: SortDirection
    page_size: int
    position: str  # id of the last document of the page
    position_value: Any = None  # its order-field value

    def encode(self) -> str:
        """Encode as an opaque URL-safe token."""
        data = {
            "o": self.owner_id,
            "c": self.collection,
            "f": self.order_field,
            "d": self.direction.value,
            "n": self.page_size,
            "p": self.position,
            "v": _encode_value(self.position_value),
        }
        return base64.urlsafe_b64encode(orjson.dumps(data)).decode("ascii").rstrip("=")

    @classmethod
    def decode(cls, token: str) -> StreamCursor:
        """Decode a token produced by encode().

        Raises InvalidCursorError if the token is malformed.
        """
        try:
            # Restore padding
            padded = token + "=" * ((4 - len(token) % 4) % 4)
            data = orjson.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
            cursor = cls(
                owner_id=data["o"],
                collection=data["c"],
                order_field=data["f"],
                direction=SortDirection(data["d"]),
                page_size=data["n"],
                position=data["p"],
                position_value=_decode_value(data["v"]),
            )
        except (ValueError, TypeError, KeyError) as e:
            raise InvalidCursorError("malformed cursor token") from e

        if not isinstance(cursor.page_size, int) or not all(
            isinstance(v, str) and v
            for v in (cursor.owner_id, cursor.collection, cursor.order_field, cursor.position)
        ):
            raise InvalidCursorError("malformed cursor token")
        return cursor


@dataclass(frozen=True, slots=True)
class Page(Generic[T]):
    """One page of a stream. `cursor` is None on the last page."""

    items: tuple[T, ...]
    has_more: bool
    cursor: StreamCursor | None = None

    def __len__(self) -> int:
        return len(self.items)


class StreamState(str, Enum):
    """Lifecycle of a PageStream."""

    INITIAL = "initial"
    FETCHING = "fetching"
    YIELDED = "yielded"
    DONE = "done"
    CANCELLED = "cancelled"
    FAILED = "failed"


_TERMINAL_STATES = frozenset({StreamState.DONE, StreamState.CANCELLED, StreamState.FAILED})


class PaginatedStreamFetcher(Generic[T]):
    """Ordered, owner-scoped pages of one collection, cached per page.

    Example:
        fetcher = PaginatedStreamFetcher(
            store,
            cache,
            collection="applications",
            entity=EntityType.APPLICATIONS,
            order_by=OrderBy("last_updated", SortDirection.DESC),
            converter=JobApplication.from_document,
        )

        async for batch in fetcher.stream(uid, page_size=20):
            render(batch)
    """

    def __init__(
        self,
        store: DocumentStore,
        cache: DataCache,
        *,
        collection: str,
        entity: EntityType,
        order_by: OrderBy,
        owner_field: str = "user_id",
        converter: Callable[[Document], T] | None = None,
        page_ttl: float | None = None,
        default_page_size: int = DEFAULT_PAGE_SIZE,
        max_page_size: int = MAX_PAGE_SIZE,
    ) -> None:
        if not 1 <= default_page_size <= max_page_size:
            raise ValueError("default_page_size must be between 1 and max_page_size")
        self.store = store
        self.cache = cache
        self.collection = collection
        self.entity = entity
        self.order_by = order_by
        self.owner_field = owner_field
        self.converter: Callable[[Document], Any] = converter or (lambda doc: doc)
        self.page_ttl = page_ttl if page_ttl is not None else cache.policy.stream_ttl
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    def _page_size(self, page_size: int | None) -> int:
        size = self.default_page_size if page_size is None else page_size
        if not 1 <= size <= self.max_page_size:
            raise ValueError(f"page_size must be between 1 and {self.max_page_size}, got {size}")
        return size

    def _query(self, owner_id: str, page_size: int, after: StartAfter | None) -> DocumentQuery:
        # One extra document tells whether another page follows
        return DocumentQuery(
            collection=self.collection,
            filters=(FieldFilter(self.owner_field, FilterOp.EQ, owner_id),),
            order_by=self.order_by,
            limit=page_size + 1,
            cursor=after,
        )

    async def _load_page(
        self, owner_id: str, page_size: int, after: StartAfter | None
    ) -> Page[T]:
        result = await self.store.query(self._query(owner_id, page_size, after))
        docs = result.items[:page_size]
        has_more = result.size > page_size

        cursor = None
        if has_more:
            cursor = StreamCursor(
                owner_id=owner_id,
                collection=self.collection,
                order_field=self.order_by.field,
                direction=self.order_by.direction,
                page_size=page_size,
                position=docs[-1].id,
                position_value=docs[-1].get(self.order_by.field),
            )

        logger.debug(
            f"Loaded {self.collection} page for {owner_id}: "
            f"{len(docs)} items, has_more={has_more}"
        )
        return Page(
            items=tuple(self.converter(doc) for doc in docs),
            has_more=has_more,
            cursor=cursor,
        )

    def _check_cursor(self, cursor: StreamCursor, owner_id: str, page_size: int) -> None:
        if cursor.owner_id != owner_id:
            raise InvalidCursorError("cursor was issued for a different owner")
        if cursor.collection != self.collection:
            raise InvalidCursorError(f"cursor was issued for collection {cursor.collection}")
        if (
            cursor.order_field != self.order_by.field
            or cursor.direction is not self.order_by.direction
        ):
            raise InvalidCursorError("cursor was issued under a different ordering")
        if cursor.page_size != page_size:
            raise InvalidCursorError(
                f"cursor was issued for page size {cursor.page_size}, not {page_size}"
            )

    async def get_initial_page(self, owner_id: str, page_size: int | None = None) -> Page[T]:
        """First page of the owner's stream."""
        size = self._page_size(page_size)
        key = CacheKeys.stream_page(self.entity, owner_id, size)
        return await self.cache.fetch_cached(
            key, lambda: self._load_page(owner_id, size, None), self.page_ttl
        )

    async def get_next_page(
        self,
        owner_id: str,
        cursor: StreamCursor | str,
        page_size: int | None = None,
    ) -> Page[T]:
        """Page following `cursor`.

        Raises InvalidCursorError if the cursor was issued under another
        owner, collection, ordering or page size.
        """
        size = self._page_size(page_size)
        if isinstance(cursor, str):
            cursor = StreamCursor.decode(cursor)
        self._check_cursor(cursor, owner_id, size)

        after = StartAfter(cursor.position_value, cursor.position)
        key = CacheKeys.stream_page(self.entity, owner_id, size, cursor.position)
        return await self.cache.fetch_cached(
            key, lambda: self._load_page(owner_id, size, after), self.page_ttl
        )

    def stream(
        self,
        owner_id: str,
        page_size: int | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> PageStream[T]:
        """Lazy sequence of item batches, starting over from the first page."""
        return PageStream(self, owner_id, self._page_size(page_size), cancel_event)

    def invalidate(self, owner_id: str) -> int:
        """Drop every cached page of the owner's stream."""
        return self.cache.invalidate_pattern(CacheKeys.stream_pattern(self.entity, owner_id))


class PageStream(Generic[T]):
    """Async iterator over the item batches of one stream.

    Cancellation is cooperative: it is checked between pages. A page
    request already in flight completes but is not yielded.
    """

    def __init__(
        self,
        fetcher: PaginatedStreamFetcher[T],
        owner_id: str,
        page_size: int,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.owner_id = owner_id
        self.page_size = page_size
        self.state = StreamState.INITIAL
        self.pages = 0
        self.error: Exception | None = None
        self._cursor: StreamCursor | None = None
        self._last_page: Page[T] | None = None
        self._cancel_event = cancel_event or asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    @property
    def has_more(self) -> bool:
        """Whether the last yielded page reported more data."""
        return self._last_page is not None and self._last_page.has_more

    def cancel(self) -> None:
        """Stop the stream before its next page."""
        self._cancel_event.set()
        if self.state not in _TERMINAL_STATES:
            self._finish(StreamState.CANCELLED)

    def _finish(self, state: StreamState) -> None:
        self.state = state
        self._cursor = None

    def __aiter__(self) -> PageStream[T]:
        return self

    async def __anext__(self) -> tuple[T, ...]:
        if self.cancelled and self.state not in _TERMINAL_STATES:
            self._finish(StreamState.CANCELLED)
        if self.state in _TERMINAL_STATES:
            raise StopAsyncIteration
        if self.state is StreamState.YIELDED and self._cursor is None:
            self._finish(StreamState.DONE)
            raise StopAsyncIteration

        self.state = StreamState.FETCHING
        try:
            if self._cursor is None:
                page = await self.fetcher.get_initial_page(self.owner_id, self.page_size)
            else:
                page = await self.fetcher.get_next_page(
                    self.owner_id, self._cursor, self.page_size
                )
        except Exception as e:
            if self.state is not StreamState.CANCELLED:
                self.error = e
                self._finish(StreamState.FAILED)
            raise

        if self.cancelled:
            if self.state is not StreamState.CANCELLED:
                self._finish(StreamState.CANCELLED)
            logger.debug(f"Stream for {self.owner_id} cancelled after {self.pages} pages")
            raise StopAsyncIteration

        self._last_page = page
        self._cursor = page.cursor
        if not page.items and not page.has_more:
            self._finish(StreamState.DONE)
            raise StopAsyncIteration

        self.pages += 1
        self.state = StreamState.YIELDED
        return page.items

    async def aclose(self) -> None:
        self.cancel()
