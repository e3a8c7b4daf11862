"""Error taxonomy for the applytrack data layer.

Primary fetch failures propagate to the immediate caller. Failures of
background refreshes are logged as StaleRefreshError and never raised.
"""

from __future__ import annotations


class ApplytrackError(Exception):
    """Base class for all applytrack errors."""


class FetchError(ApplytrackError):
    """The underlying document store call failed."""

    def __init__(self, collection: str, text: str):
        self.collection = collection
        self.text = text
        super().__init__(f"{collection}: {text}")


class InvalidCursorError(ApplytrackError):
    """A pagination cursor does not match the query shape it is used with."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid cursor: {reason}")


# Short name used by pagination callers
InvalidCursor = InvalidCursorError


class StaleRefreshError(ApplytrackError):
    """A background stale-while-revalidate refresh failed."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Background refresh failed for {key}")


class DocumentNotFoundError(ApplytrackError):
    """A write targeted a document that is missing or owned by someone else."""

    def __init__(self, collection: str, doc_id: str):
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(f"{collection}/{doc_id} not found")
