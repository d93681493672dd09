"""Cooperative cancellation threaded through a single pipeline invocation."""

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from assessor.errors.exceptions import OperationCancelledError

T = TypeVar("T")


class CancellationSignal:
    """One-shot signal owned by whoever started the invocation.

    Every suspension point of a stage (extraction, LLM calls, store writes)
    either checks the signal or races against it via ``guard``.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str | None = None) -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError(self.reason or "Operation was cancelled")

    async def wait(self) -> None:
        await self._event.wait()

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` but abandon it as soon as the signal fires."""
        if self.cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            self.raise_if_cancelled()
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            waiter.cancel()
            raise
        if task.done():
            waiter.cancel()
            return task.result()
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        raise OperationCancelledError(self.reason or "Operation was cancelled")


def never_cancelled() -> CancellationSignal:
    """A signal nobody holds a reference to cancel."""
    return CancellationSignal()
