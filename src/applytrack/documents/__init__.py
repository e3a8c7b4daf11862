"""Document store abstraction and implementations."""

from applytrack.documents.base import (
    Document,
    DocumentQuery,
    DocumentStore,
    FieldFilter,
    FilterOp,
    OrderBy,
    QueryResult,
    SortDirection,
    StartAfter,
)
from applytrack.documents.memory import InMemoryDocumentStore

__all__ = [
    "Document",
    "DocumentQuery",
    "DocumentStore",
    "FieldFilter",
    "FilterOp",
    "OrderBy",
    "QueryResult",
    "SortDirection",
    "StartAfter",
    "InMemoryDocumentStore",
]
