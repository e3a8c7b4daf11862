"""In-flight request coalescing.

Concurrent callers asking for the same key share one underlying fetch:
the first caller starts it as an asyncio task, later callers receive the
same task object. The pending entry is released in the same synchronous
step that settles the task, so a call made after settlement always starts
a fresh fetch and a failed fetch is immediately eligible for retry.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

FetchFn = Callable[[], Awaitable[T]]
SuccessCallback = Callable[[T], None]


def _mark_retrieved(task: asyncio.Task[Any]) -> None:
    # Waiters that were cancelled never read the outcome; mark it retrieved
    # so a failure with no remaining waiter does not warn at garbage collection.
    if not task.cancelled():
        task.exception()


class RequestCoalescer:
    """Tracks keys with an outstanding fetch and de-duplicates callers."""

    def __init__(self) -> None:
        self._pending: dict[str, asyncio.Task[Any]] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, key: object) -> bool:
        return key in self._pending

    def get(self, key: str) -> asyncio.Task[Any] | None:
        """Return the in-flight task for a key, if any."""
        return self._pending.get(key)

    def dedupe(
        self,
        key: str,
        fn: FetchFn[T],
        on_success: SuccessCallback[T] | None = None,
    ) -> asyncio.Task[T]:
        """Return the in-flight task for `key`, starting `fn` if there is none.

        Args:
            key: Cache key identifying the request
            fn: Zero-argument coroutine function performing the fetch
            on_success: Called with the result before any waiter resumes,
                only if this task is still the registered one for `key`

        Returns:
            The shared task; every concurrent caller gets the same instance.
        """
        existing = self._pending.get(key)
        if existing is not None:
            logger.debug(f"Joined in-flight request: {key}")
            return existing

        task: asyncio.Task[T] = asyncio.create_task(self._run(key, fn, on_success))
        task.add_done_callback(_mark_retrieved)
        self._pending[key] = task
        return task

    async def _run(
        self,
        key: str,
        fn: FetchFn[T],
        on_success: SuccessCallback[T] | None,
    ) -> T:
        task = asyncio.current_task()
        try:
            result = await fn()
        except BaseException:
            self._release(key, task)
            raise

        if self._release(key, task) and on_success is not None:
            on_success(result)
        return result

    def _release(self, key: str, task: asyncio.Task[Any] | None) -> bool:
        """Drop the pending entry if it still belongs to `task`."""
        if task is not None and self._pending.get(key) is task:
            del self._pending[key]
            return True
        return False

    def forget(self, key: str) -> bool:
        """Detach the in-flight request for a key.

        The task keeps running and its waiters still receive its outcome,
        but its result is no longer written back and the next call starts
        a fresh fetch.
        """
        return self._pending.pop(key, None) is not None

    def forget_all(self) -> int:
        """Detach every in-flight request. Returns the number detached."""
        count = len(self._pending)
        self._pending.clear()
        return count

    def keys(self) -> list[str]:
        """Keys with an outstanding fetch."""
        return list(self._pending)
