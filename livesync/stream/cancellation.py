"""Cancellation token threaded through every long-lived operation.

A token is cancelled either explicitly (`cancel()`) or by teardown of the
scope that owns it: leaving `async with CancellationToken() as token:` or
cancelling a parent token created with `child()`. Every suspension point in
the stream reader and the backoff loop races against the token, so
cancelling stops reads promptly and aborts pending waits without leaving
timers or connections behind.

Usage:
    from livesync.stream.cancellation import CancellationToken

    async with CancellationToken() as token:
        task = asyncio.create_task(stream_with_backoff(url, cancel=token, ...))
        ...
    # leaving the block cancels the token, the stream closes
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from typing import TypeVar

T = TypeVar("T")


class CancellationToken:
    """One-shot cancellation signal for cooperative asyncio code.

    Args:
        parent: Optional parent token; cancelling the parent cancels this one.
    """

    def __init__(self, parent: CancellationToken | None = None) -> None:
        self._event = asyncio.Event()
        self._callbacks: list[Callable[[], None]] = []
        self._detach: Callable[[], None] | None = None
        if parent is not None:
            self._detach = parent.add_callback(self.cancel)

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Signal cancellation. Idempotent."""
        if self._event.is_set():
            return
        self._event.set()
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def child(self) -> CancellationToken:
        """Create a token that is cancelled whenever this one is."""
        return CancellationToken(parent=self)

    def detach(self) -> None:
        """Stop following the parent token (if any)."""
        if self._detach is not None:
            self._detach()
            self._detach = None

    def add_callback(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Run `callback` on cancellation (immediately if already cancelled).

        Returns:
            A callable that removes the callback.
        """
        if self.cancelled:
            callback()
            return lambda: None
        self._callbacks.append(callback)

        def remove() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return remove

    async def wait(self) -> None:
        """Block until the token is cancelled."""
        await self._event.wait()

    async def sleep(self, seconds: float) -> bool:
        """Sleep for `seconds` unless cancelled first.

        Returns:
            True if the full delay elapsed, False if cancellation cut it short.
        """
        if self.cancelled:
            return False
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except TimeoutError:
            return True
        return False

    async def run(self, awaitable: Awaitable[T]) -> T | None:
        """Await `awaitable` unless the token is cancelled first.

        On cancellation the inner task is cancelled and awaited, so its
        cleanup (closing responses, releasing connections) runs before this
        returns None. Exceptions raised by the awaitable propagate.
        """
        task = asyncio.ensure_future(awaitable)
        if self.cancelled:
            await _cancel_and_wait(task)
            return None

        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            waiter.cancel()
            await _cancel_and_wait(task)
            raise
        waiter.cancel()

        if task.done():
            return task.result()
        await _cancel_and_wait(task)
        return None

    async def __aenter__(self) -> CancellationToken:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.cancel()
        self.detach()


async def _cancel_and_wait(task: asyncio.Future) -> None:
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task
