"""Document store contract consumed by the cache layer.

query(DocumentQuery) -> QueryResult is the only read the cache and the
stream fetcher depend on. Continuation is cursor based, never offset
based: a StartAfter cursor holds the order-field value and id of the
last document read, and resumes the same query right after that
position. Resuming does not require the document to still exist or to
keep its value. `last_cursor` of a result is the StartAfter of its last
document. Implementations raise FetchError on failure.
"""

from __future__ import annotations

import operator
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class FilterOp(str, Enum):
    """Comparison operator of a field filter."""

    EQ = "=="
    NE = "!="
    LT = "<"
    LTE = "<="
    GT = ">"
    GTE = ">="
    IN = "in"


_COMPARATORS: dict[FilterOp, Callable[[Any, Any], bool]] = {
    FilterOp.EQ: operator.eq,
    FilterOp.NE: operator.ne,
    FilterOp.LT: operator.lt,
    FilterOp.LTE: operator.le,
    FilterOp.GT: operator.gt,
    FilterOp.GTE: operator.ge,
    FilterOp.IN: lambda value, options: value in options,
}


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True, slots=True)
class FieldFilter:
    """field <op> value"""

    field: str
    op: FilterOp
    value: Any

    def matches(self, data: dict[str, Any]) -> bool:
        """Evaluate the filter against a document's data.

        A missing field only matches != filters. Incomparable types never match.
        """
        if self.field not in data:
            return self.op is FilterOp.NE
        try:
            return bool(_COMPARATORS[self.op](data[self.field], self.value))
        except TypeError:
            return False


@dataclass(frozen=True, slots=True)
class OrderBy:
    field: str
    direction: SortDirection = SortDirection.ASC


@dataclass(frozen=True, slots=True)
class StartAfter:
    """Query position: the order-field value and id of the last document read."""

    value: Any
    doc_id: str

    @classmethod
    def of(cls, doc: Document, order_by: OrderBy | None) -> StartAfter:
        return cls(doc.get(order_by.field) if order_by is not None else None, doc.id)


@dataclass(frozen=True, slots=True)
class DocumentQuery:
    """A filtered, ordered, bounded read of one collection."""

    collection: str
    filters: tuple[FieldFilter, ...] = ()
    order_by: OrderBy | None = None
    limit: int | None = None
    cursor: StartAfter | None = None


@dataclass(frozen=True, slots=True)
class Document:
    """A stored document: id plus field data."""

    id: str
    data: dict[str, Any] = field(default_factory=dict)

    def get(self, name: str, default: Any = None) -> Any:
        return self.data.get(name, default)


@dataclass(frozen=True, slots=True)
class QueryResult:
    """Documents of one query page and the cursor to continue after it."""

    items: list[Document]
    last_cursor: StartAfter | None = None

    @property
    def size(self) -> int:
        return len(self.items)


class DocumentStore(ABC):
    """Abstract document store interface."""

    @abstractmethod
    async def query(self, query: DocumentQuery) -> QueryResult:
        """Run a query and return one page of documents."""
        pass

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Document | None:
        """Read one document by id."""
        pass

    @abstractmethod
    async def add(self, collection: str, data: dict[str, Any]) -> str:
        """Insert a document and return its generated id."""
        pass

    @abstractmethod
    async def set(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        """Create or replace a document under a known id."""
        pass

    @abstractmethod
    async def update(self, collection: str, doc_id: str, changes: dict[str, Any]) -> bool:
        """Merge changes into a document. Returns False if it does not exist."""
        pass

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> bool:
        """Delete a document. Returns False if it did not exist."""
        pass
