"""Live account feeds — balances and orders kept fresh over a stream with polling fallback.

Architecture:
    AccountApiClient (snapshot) ─┐
                                 ├→ AccountFeed state → on_change(feed)
    BackoffReconnector (stream) ─┘

Lifecycle of `run(cancel)`:
    1. Skip everything when the session has no access token
    2. Load one snapshot over the authenticated API
    3. Run the stream (reconnecting with backoff) and a polling loop side by side
    4. While the stream is down, the polling loop reloads the snapshot every
       poll_interval_ms, so data stays fresh even if the stream never recovers
    5. Cancelling the token stops both loops and resets connection state
    6. Losing the session (refresh failure, logout) stops both loops and
       shows the signed-out state instead of a reconnect notice

Stream headers are resolved from the session store on every connect, so a
reconnect after a token refresh uses the new access token.

Usage:
    from livesync.feeds.account import balances_feed

    feed = balances_feed(api, on_change=lambda f: print(f.snapshot))
    async with CancellationToken() as token:
        task = asyncio.create_task(feed.run(token))
        ...
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any
from urllib.parse import urlencode

from livesync.auth.client import AccountApiClient
from livesync.common.config import get_settings
from livesync.common.exceptions import LiveSyncError
from livesync.common.logging import get_logger
from livesync.feeds.events import parse_stream_event
from livesync.session.models import AuthSession
from livesync.session.store import SessionStore
from livesync.stream.backoff import RetryInfo, stream_with_backoff
from livesync.stream.cancellation import CancellationToken
from livesync.stream.reader import EventStreamReader, invoke_callback

logger = get_logger("FEED")

SIGNED_OUT_MESSAGE = "Sign in to load account data."

ChangeCallback = Callable[..., Awaitable[None] | None]


class AccountFeed:
    """One live account resource (snapshot endpoint + stream endpoint).

    Args:
        name: Feed label for logs and metrics (e.g., "balances").
        snapshot_path: REST path returning the full snapshot.
        stream_path: Stream path emitting `<event_prefix>.snapshot|error` events.
        event_prefix: Event type prefix (e.g., "user.balances").
        api: Authenticated account client.
        params: Filters sent to both the snapshot and the stream endpoint.
        on_change: Called (sync or async) with the feed after every state change.
        poll_interval_ms / stream_interval_ms: Defaults from settings.
        base_delay_ms / max_delay_ms / max_retries: Backoff policy overrides.
        reader: Optional EventStreamReader (e.g., sharing an httpx client).
    """

    def __init__(
        self,
        name: str,
        *,
        snapshot_path: str,
        stream_path: str,
        event_prefix: str,
        api: AccountApiClient,
        params: dict[str, Any] | None = None,
        on_change: ChangeCallback | None = None,
        poll_interval_ms: int | None = None,
        stream_interval_ms: int | None = None,
        base_delay_ms: int | None = None,
        max_delay_ms: int | None = None,
        max_retries: int | None = None,
        reader: EventStreamReader | None = None,
    ) -> None:
        settings = get_settings()
        self.name = name
        self.snapshot_path = snapshot_path
        self.stream_path = stream_path
        self.event_prefix = event_prefix
        self.api = api
        self.params = {k: v for k, v in (params or {}).items() if v not in (None, "")}
        self.on_change = on_change
        self.poll_interval_ms = poll_interval_ms or settings.poll_interval_ms
        self.stream_interval_ms = stream_interval_ms or settings.stream_interval_ms
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms
        self.max_retries = max_retries
        self.reader = reader

        # ─── Consumer-visible state ───
        self.snapshot: Any = None
        self.connected: bool = False
        self.retry_info: RetryInfo | None = None
        self.gave_up: bool = False
        self.message: str = SIGNED_OUT_MESSAGE
        self._scope: CancellationToken | None = None
        self._session_lost = False

    @property
    def store(self) -> SessionStore:
        return self.api.store

    @property
    def accepted_event_types(self) -> set[str]:
        return {f"{self.event_prefix}.snapshot", f"{self.event_prefix}.error"}

    def stream_url(self) -> str:
        query = {**self.params, "intervalMs": self.stream_interval_ms}
        return f"{self.api.coordinator.build_url(self.stream_path)}?{urlencode(query, doseq=True)}"

    # ─── Main loop ───

    async def run(self, cancel: CancellationToken) -> None:
        """Keep the feed fresh until `cancel` fires or the session goes away."""
        self._session_lost = False
        if not await self.store.is_authenticated():
            await self._show_signed_out()
            return

        await self.load_snapshot()
        if cancel.cancelled:
            return
        if not await self.store.is_authenticated():
            await self._show_signed_out()
            return

        scope = cancel.child()
        self._scope = scope
        unsubscribe = self.store.subscribe(self._handle_session_change)
        logger.info(
            "Feed started",
            extra={"data": {"feed": self.name, "poll_interval_ms": self.poll_interval_ms}},
        )
        tasks = [
            asyncio.create_task(self._stream_loop(scope)),
            asyncio.create_task(self._poll_loop(scope)),
        ]
        try:
            await asyncio.gather(*tasks)
        finally:
            unsubscribe()
            scope.cancel()
            scope.detach()
            self._scope = None
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

            if self._session_lost:
                logger.info("Session ended, feed stopped", extra={"data": {"feed": self.name}})
                await self._show_signed_out()
            else:
                await self._set_connection(connected=False, retry_info=None)
                logger.info("Feed stopped", extra={"data": {"feed": self.name}})

    async def load_snapshot(self) -> None:
        """Fetch the full snapshot once over the authenticated API."""
        try:
            data = await self.api.get_json(self.snapshot_path, params=self.params or None)
        except LiveSyncError as exc:
            logger.warning(
                "Snapshot load failed",
                extra={"data": {"feed": self.name, "error": str(exc)}},
            )
            self.message = f"Failed to load {self.name} from API"
            await self._changed()
            return

        self.snapshot = data
        self.message = "Connected to backend API"
        await self._changed()

    async def _stream_loop(self, cancel: CancellationToken) -> None:
        await stream_with_backoff(
            self.stream_url(),
            headers=self._stream_headers,
            cancel=cancel,
            on_open=self._handle_open,
            on_data=self._handle_payload,
            on_retry=self._handle_retry,
            on_give_up=self._handle_give_up,
            base_delay_ms=self.base_delay_ms,
            max_delay_ms=self.max_delay_ms,
            max_retries=self.max_retries,
            reader=self.reader,
            name=self.name,
        )

    async def _poll_loop(self, cancel: CancellationToken) -> None:
        while await cancel.sleep(self.poll_interval_ms / 1000.0):
            if self.connected:
                continue
            logger.debug("Polling snapshot while stream is down", extra={"data": {"feed": self.name}})
            await self.load_snapshot()
            if not await self.store.is_authenticated():
                self._stop_signed_out()
                return

    # ─── Stream callbacks ───

    async def _stream_headers(self) -> dict[str, str]:
        token = await self.store.get_access_token()
        return {"Authorization": f"Bearer {token}"} if token else {}

    async def _handle_open(self) -> None:
        self.gave_up = False
        await self._set_connection(connected=True, retry_info=None)

    async def _handle_retry(self, info: RetryInfo) -> None:
        if not await self.store.is_authenticated():
            # No credentials left to reconnect with
            self._stop_signed_out()
            return
        await self._set_connection(connected=False, retry_info=info)

    async def _handle_give_up(self) -> None:
        self.gave_up = True
        self.message = f"Live {self.name} stream unavailable, polling only"
        await self._set_connection(connected=False, retry_info=None)

    async def _handle_payload(self, raw: str) -> None:
        event = parse_stream_event(raw, self.accepted_event_types)
        if event is None:
            return

        if event.is_error:
            self.message = event.error_message or f"{self.name.capitalize()} stream error"
        else:
            self.snapshot = event.data
        await self._changed()

    # ─── Session tracking ───

    def _handle_session_change(self, session: AuthSession | None) -> None:
        if session is None or not session.is_authenticated:
            self._stop_signed_out()

    def _stop_signed_out(self) -> None:
        self._session_lost = True
        if self._scope is not None:
            self._scope.cancel()

    async def _show_signed_out(self) -> None:
        self.snapshot = None
        self.gave_up = False
        self.message = SIGNED_OUT_MESSAGE
        await self._set_connection(connected=False, retry_info=None)

    # ─── State helpers ───

    async def _set_connection(self, *, connected: bool, retry_info: RetryInfo | None) -> None:
        self.connected = connected
        self.retry_info = retry_info
        await self._changed()

    async def _changed(self) -> None:
        await invoke_callback(self.on_change, self)


def balances_feed(api: AccountApiClient, **kwargs: Any) -> AccountFeed:
    """Wallet balances: GET /wallet/balances + /wallet/stream/balances."""
    return AccountFeed(
        "balances",
        snapshot_path="/wallet/balances",
        stream_path="/wallet/stream/balances",
        event_prefix="user.balances",
        api=api,
        **kwargs,
    )


def orders_feed(
    api: AccountApiClient,
    filters: dict[str, Any] | None = None,
    **kwargs: Any,
) -> AccountFeed:
    """Orders: GET /orders + /orders/stream, both with the same filters."""
    return AccountFeed(
        "orders",
        snapshot_path="/orders",
        stream_path="/orders/stream",
        event_prefix="user.orders",
        api=api,
        params=filters,
        **kwargs,
    )

