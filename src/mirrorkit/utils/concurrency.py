"""Async concurrency primitives shared by class loading and resource resolution."""

from __future__ import annotations

import asyncio
import inspect
from contextlib import asynccontextmanager, contextmanager, nullcontext
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Hashable, Iterable, Iterator

T = TypeVar("T")


class CancellationToken:
    """Cooperative cancellation shared between a caller and the I/O it started.

    Futures bound with :meth:`bind` are cancelled as soon as :meth:`cancel`
    is called; a token cannot be reset.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._bound: set[asyncio.Future[Any]] = set()

    def cancel(self) -> None:
        self._cancelled = True
        for future in tuple(self._bound):
            future.cancel()

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise asyncio.CancelledError("operation cancelled")

    @contextmanager
    def bind(self, future: asyncio.Future[T]) -> Iterator[asyncio.Future[T]]:
        self._bound.add(future)
        try:
            yield future
        finally:
            self._bound.discard(future)


@dataclass(slots=True)
class _KeyedLockEntry:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    holders: int = 0


class KeyedLock:
    """Per-key async mutex whose entries live only while someone holds or awaits them.

    ``hold(key)`` serializes critical sections for the same key while leaving
    distinct keys independent. Each entry is reference counted and dropped as
    soon as the last waiter leaves, so the map never outgrows the set of keys
    currently in flight.
    """

    def __init__(self) -> None:
        self._entries: dict[Hashable, _KeyedLockEntry] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        entry = self._entries.get(key)
        if entry is None:
            entry = _KeyedLockEntry()
            self._entries[key] = entry
        entry.holders += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.holders -= 1
            if entry.holders == 0 and self._entries.get(key) is entry:
                del self._entries[key]

    def locked(self, key: Hashable) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.lock.locked()

    def waiters(self, key: Hashable) -> int:
        entry = self._entries.get(key)
        return 0 if entry is None else entry.holders

    def discard(self, key: Hashable) -> bool:
        """Drop the entry for ``key`` when nobody holds it; return whether it was dropped."""

        entry = self._entries.get(key)
        if entry is None or entry.holders > 0:
            return False
        del self._entries[key]
        return True

    def evict_idle(self) -> int:
        idle = [key for key, entry in self._entries.items() if entry.holders == 0]
        for key in idle:
            del self._entries[key]
        return len(idle)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


async def gather_bounded(awaitables: Iterable[Awaitable[T]], limit: int) -> list[T]:
    """Await every item with at most ``limit`` in flight; results keep input order.

    The first failure cancels the remaining work and is re-raised as is.
    """

    pending = list(awaitables)
    if limit <= 0:
        for awaitable in pending:
            _close_unscheduled_coroutine(awaitable)
        raise ValueError("limit must be > 0")
    semaphore = asyncio.Semaphore(limit)

    async def guarded(awaitable: Awaitable[T]) -> T:
        try:
            async with semaphore:
                return await awaitable
        finally:
            _close_unscheduled_coroutine(awaitable)

    tasks = [asyncio.ensure_future(guarded(awaitable)) for awaitable in pending]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


async def run_with_timeout(
    awaitable: Awaitable[T],
    timeout_seconds: float,
    cancel_token: CancellationToken | None = None,
) -> T:
    """Await ``awaitable`` under a deadline, giving up early when ``cancel_token`` fires.

    Raises ``TimeoutError`` when the deadline passes and ``asyncio.CancelledError``
    on cancellation; the underlying work is cancelled in both cases.
    """

    if timeout_seconds <= 0:
        _close_unscheduled_coroutine(awaitable)
        raise ValueError("timeout_seconds must be > 0")
    if cancel_token is not None and cancel_token.is_cancelled:
        _close_unscheduled_coroutine(awaitable)
        raise asyncio.CancelledError("operation cancelled")

    work = asyncio.ensure_future(awaitable)
    binding = cancel_token.bind(work) if cancel_token is not None else nullcontext(work)
    with binding:
        try:
            async with asyncio.timeout(timeout_seconds):
                return await work
        except TimeoutError:
            raise TimeoutError(f"operation timed out after {timeout_seconds} seconds") from None


def _close_unscheduled_coroutine(awaitable: Awaitable[object]) -> None:
    # Raw coroutine objects rejected before scheduling must be closed explicitly.
    if inspect.iscoroutine(awaitable):
        awaitable.close()


__all__ = [
    "CancellationToken",
    "KeyedLock",
    "gather_bounded",
    "run_with_timeout",
]
