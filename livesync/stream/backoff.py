"""Backoff reconnector — keeps an event stream alive across failures.

Supervises repeated EventStreamReader.read() calls:

    1. read the stream; a successful open resets the attempt counter to 0
    2. when the read returns OR raises, increment the attempt counter
    3. delay = min(base_delay_ms * 2^(attempt-1), max_delay_ms)
    4. attempt > max_retries  -> on_give_up(), stop
    5. otherwise on_retry(RetryInfo), wait `delay` (cancellable), loop

A clean, server-initiated end of stream is treated exactly like an error:
the feed is expected to be always-on, so any termination starts a retry
cycle. Cancelling the token during a read or a wait ends the loop with no
further callbacks and no further connection attempts.

Usage:
    from livesync.stream.backoff import stream_with_backoff

    await stream_with_backoff(
        url,
        headers=auth_headers,
        cancel=token,
        on_data=handle_payload,
        on_retry=lambda info: print(f"retry {info.attempt} in {info.delay_ms}ms"),
    )
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict

from livesync.common.config import get_settings
from livesync.common.logging import get_logger
from livesync.common.metrics import (
    LIVESYNC_STREAM_CONNECTED,
    LIVESYNC_STREAM_GIVEUPS_TOTAL,
    LIVESYNC_STREAM_RETRIES_TOTAL,
)
from livesync.stream.cancellation import CancellationToken
from livesync.stream.reader import (
    DataCallback,
    EventStreamReader,
    HeadersOrFactory,
    OpenCallback,
    invoke_callback,
)

logger = get_logger("BACKOFF")


def compute_backoff_delay(attempt: int, base_delay_ms: int, max_delay_ms: int) -> int:
    """Delay before retry number `attempt` (1-based), capped at max_delay_ms.

    With base=1000, max=30000, attempts 1..6 give
    1000, 2000, 4000, 8000, 16000, 30000.
    """
    if attempt < 1:
        raise ValueError("attempt must be >= 1")
    # Cap the exponent so huge attempt counts don't build giant integers
    exponent = min(attempt - 1, 62)
    return min(base_delay_ms * 2**exponent, max_delay_ms)


class RetryInfo(BaseModel):
    """Details passed to on_retry for one scheduled reconnect."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    attempt: int
    delay_ms: int
    error: BaseException | None = None

    @property
    def delay_seconds(self) -> float:
        return self.delay_ms / 1000.0


@dataclass
class RetryState:
    """Mutable retry bookkeeping owned by one reconnector run."""

    attempt: int = 0
    delay_ms: int = 0
    last_error: BaseException | None = None

    def reset(self) -> None:
        self.attempt = 0
        self.delay_ms = 0
        self.last_error = None


RetryCallback = Callable[[RetryInfo], Awaitable[None] | None]
GiveUpCallback = Callable[[], Awaitable[None] | None]


class BackoffReconnector:
    """Runs an event stream forever (or until the retry budget is spent).

    Args:
        url: Stream URL.
        cancel: Token that ends the loop.
        on_data: Payload callback, forwarded to the reader.
        headers: Mapping or (async) factory, resolved before every connect.
        on_open: Called on every successful open.
        on_retry: Called with RetryInfo before each backoff wait.
        on_give_up: Called once when attempt exceeds max_retries.
        base_delay_ms / max_delay_ms / max_retries: Backoff policy; None
            falls back to settings (max_retries None = unbounded).
        reader: EventStreamReader to use; one is created (and closed) if omitted.
        name: Label used in logs and metrics.
    """

    def __init__(
        self,
        url: str,
        *,
        cancel: CancellationToken,
        on_data: DataCallback,
        headers: HeadersOrFactory = None,
        on_open: OpenCallback | None = None,
        on_retry: RetryCallback | None = None,
        on_give_up: GiveUpCallback | None = None,
        base_delay_ms: int | None = None,
        max_delay_ms: int | None = None,
        max_retries: int | None = None,
        reader: EventStreamReader | None = None,
        name: str = "stream",
    ) -> None:
        settings = get_settings()
        self.url = url
        self.cancel = cancel
        self.headers = headers
        self.on_data = on_data
        self.on_open = on_open
        self.on_retry = on_retry
        self.on_give_up = on_give_up
        self.base_delay_ms = (
            base_delay_ms if base_delay_ms is not None else settings.stream_base_delay_ms
        )
        self.max_delay_ms = max_delay_ms if max_delay_ms is not None else settings.stream_max_delay_ms
        self.max_retries = max_retries if max_retries is not None else settings.stream_max_retries
        self.name = name
        self._owns_reader = reader is None
        self.reader = reader or EventStreamReader(name=name)
        self.state = RetryState()

    async def run(self) -> None:
        """Supervise the stream until cancelled or out of retries."""
        try:
            while not self.cancel.cancelled:
                error: BaseException | None = None
                try:
                    await self.reader.read(
                        self.url,
                        headers=self.headers,
                        cancel=self.cancel,
                        on_open=self._handle_open,
                        on_data=self.on_data,
                    )
                except Exception as exc:
                    error = exc
                finally:
                    LIVESYNC_STREAM_CONNECTED.labels(stream=self.name).set(0)

                if self.cancel.cancelled:
                    return

                self.state.attempt += 1
                self.state.last_error = error
                delay_ms = compute_backoff_delay(
                    self.state.attempt, self.base_delay_ms, self.max_delay_ms
                )
                self.state.delay_ms = delay_ms

                if self.max_retries is not None and self.state.attempt > self.max_retries:
                    LIVESYNC_STREAM_GIVEUPS_TOTAL.labels(stream=self.name).inc()
                    logger.error(
                        "Stream retry budget exhausted, giving up",
                        extra={
                            "data": {
                                "stream": self.name,
                                "attempt": self.state.attempt,
                                "max_retries": self.max_retries,
                            }
                        },
                    )
                    await invoke_callback(self.on_give_up)
                    return

                LIVESYNC_STREAM_RETRIES_TOTAL.labels(stream=self.name).inc()
                logger.warning(
                    "Stream terminated, reconnecting",
                    extra={
                        "data": {
                            "stream": self.name,
                            "attempt": self.state.attempt,
                            "delay_ms": delay_ms,
                            "error": str(error) if error is not None else None,
                        }
                    },
                )
                await invoke_callback(
                    self.on_retry,
                    RetryInfo(attempt=self.state.attempt, delay_ms=delay_ms, error=error),
                )

                if not await self.cancel.sleep(delay_ms / 1000.0):
                    return
        finally:
            if self._owns_reader:
                await self.reader.aclose()

    async def _handle_open(self) -> None:
        self.state.reset()
        LIVESYNC_STREAM_CONNECTED.labels(stream=self.name).set(1)
        await invoke_callback(self.on_open)


async def stream_with_backoff(
    url: str,
    *,
    cancel: CancellationToken,
    on_data: DataCallback,
    headers: HeadersOrFactory = None,
    on_open: OpenCallback | None = None,
    on_retry: RetryCallback | None = None,
    on_give_up: GiveUpCallback | None = None,
    base_delay_ms: int | None = None,
    max_delay_ms: int | None = None,
    max_retries: int | None = None,
    reader: EventStreamReader | None = None,
    name: str = "stream",
) -> None:
    """Functional form of BackoffReconnector(...).run()."""
    reconnector = BackoffReconnector(
        url,
        cancel=cancel,
        on_data=on_data,
        headers=headers,
        on_open=on_open,
        on_retry=on_retry,
        on_give_up=on_give_up,
        base_delay_ms=base_delay_ms,
        max_delay_ms=max_delay_ms,
        max_retries=max_retries,
        reader=reader,
        name=name,
    )
    await reconnector.run()
