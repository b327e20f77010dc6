"""Event stream reader — one streaming connection, decoded payloads in order.

Opens a GET request with `Accept: text/event-stream`, frames the body with
SseFrameDecoder, and hands each payload to `on_data` strictly in arrival
order. Headers are resolved just before connecting, so a factory can read
the freshest access token from the session store.

Failure modes:
- Non-2xx status or a response with no streamable body (204) raises
  StreamConnectionError before `on_open` fires.
- A network failure while connecting or reading raises StreamConnectionError.
- A clean end of stream returns normally.
- Cancelling the token aborts the in-progress read, closes the response and
  returns without further `on_data` calls.

Usage:
    from livesync.stream.reader import EventStreamReader

    reader = EventStreamReader()
    await reader.read(
        "http://localhost:4000/v1/orders/stream",
        headers=lambda: {"Authorization": f"Bearer {token}"},
        cancel=token,
        on_open=lambda: print("open"),
        on_data=print,
    )
    await reader.aclose()
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Mapping

import httpx

from livesync.common.config import get_settings
from livesync.common.exceptions import StreamConnectionError
from livesync.common.logging import get_logger
from livesync.common.metrics import LIVESYNC_STREAM_EVENTS_TOTAL
from livesync.stream.cancellation import CancellationToken
from livesync.stream.framing import SseFrameDecoder

logger = get_logger("STREAM")

HeadersOrFactory = (
    Mapping[str, str]
    | Callable[[], Mapping[str, str] | Awaitable[Mapping[str, str]]]
    | None
)
OpenCallback = Callable[[], Awaitable[None] | None]
DataCallback = Callable[[str], Awaitable[None] | None]

STREAM_HEADERS = {
    "Accept": "text/event-stream",
    "Cache-Control": "no-cache",
}


async def resolve_headers(headers: HeadersOrFactory) -> dict[str, str]:
    """Resolve a mapping, sync factory or async factory into a plain dict."""
    if headers is None:
        return {}
    if callable(headers):
        produced = headers()
        if inspect.isawaitable(produced):
            produced = await produced
        return dict(produced or {})
    return dict(headers)


async def invoke_callback(
    callback: Callable[..., Awaitable[None] | None] | None,
    *args: object,
) -> None:
    """Call a sync or async callback; None is a no-op."""
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


def _default_stream_timeout() -> httpx.Timeout:
    settings = get_settings()
    # Streams are long-lived; only the connect phase is bounded.
    return httpx.Timeout(None, connect=settings.stream_connect_timeout_seconds)


class EventStreamReader:
    """Reads one event stream per `read()` call.

    Args:
        client: Optional httpx.AsyncClient to borrow. When omitted the reader
                owns a client and closes it in `aclose()`.
        name: Label used in logs and metrics (e.g., "balances").
    """

    def __init__(self, client: httpx.AsyncClient | None = None, name: str = "stream") -> None:
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=_default_stream_timeout())
        self.name = name

    async def read(
        self,
        url: str,
        *,
        headers: HeadersOrFactory = None,
        cancel: CancellationToken,
        on_data: DataCallback,
        on_open: OpenCallback | None = None,
    ) -> None:
        """Open the stream and deliver payloads until it ends or is cancelled.

        Raises:
            StreamConnectionError: Bad status, no body, or transport failure.
        """
        if cancel.cancelled:
            return
        await cancel.run(self._consume(url, headers, cancel, on_data, on_open))

    async def _consume(
        self,
        url: str,
        headers: HeadersOrFactory,
        cancel: CancellationToken,
        on_data: DataCallback,
        on_open: OpenCallback | None,
    ) -> None:
        request_headers = {**STREAM_HEADERS, **await resolve_headers(headers)}
        decoder = SseFrameDecoder()

        try:
            async with self.client.stream("GET", url, headers=request_headers) as response:
                if not response.is_success or response.status_code == 204:
                    raise StreamConnectionError(
                        f"Stream request failed ({response.status_code})",
                        context={"url": url, "status": response.status_code},
                    )

                logger.info(
                    "Stream opened",
                    extra={"data": {"stream": self.name, "url": url}},
                )
                await invoke_callback(on_open)

                async for chunk in response.aiter_bytes():
                    for payload in decoder.feed(chunk):
                        if cancel.cancelled:
                            return
                        LIVESYNC_STREAM_EVENTS_TOTAL.labels(stream=self.name).inc()
                        await invoke_callback(on_data, payload)

        except httpx.TransportError as exc:
            raise StreamConnectionError(
                f"Network error: {exc}",
                context={"url": url},
            ) from exc
        finally:
            decoder.close()

        logger.info("Stream ended by server", extra={"data": {"stream": self.name}})

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this reader owns it."""
        if self._owns_client:
            await self.client.aclose()


async def read_event_stream(
    url: str,
    *,
    headers: HeadersOrFactory = None,
    cancel: CancellationToken,
    on_data: DataCallback,
    on_open: OpenCallback | None = None,
    client: httpx.AsyncClient | None = None,
) -> None:
    """Functional form of EventStreamReader.read with a one-shot reader."""
    reader = EventStreamReader(client)
    try:
        await reader.read(url, headers=headers, cancel=cancel, on_data=on_data, on_open=on_open)
    finally:
        await reader.aclose()
