"""Live account feeds built on the stream and auth layers.

Architecture:
    SessionStore -> CredentialRefreshCoordinator -> AccountApiClient (snapshots)
    SessionStore -> BackoffReconnector -> EventStreamReader (live events)
    both -> AccountFeed state -> consumer on_change callback

Public API:
    - AccountFeed, balances_feed, orders_feed
    - StreamEvent, parse_stream_event and the event type constants
    - format_reconnect_notice, stream_status_label
"""

from __future__ import annotations

from livesync.feeds.account import AccountFeed, balances_feed, orders_feed
from livesync.feeds.events import (
    BALANCES_ERROR,
    BALANCES_SNAPSHOT,
    ORDERS_ERROR,
    ORDERS_SNAPSHOT,
    StreamEvent,
    parse_stream_event,
)
from livesync.feeds.status import format_reconnect_notice, stream_status_label

__all__ = [
    "BALANCES_ERROR",
    "BALANCES_SNAPSHOT",
    "ORDERS_ERROR",
    "ORDERS_SNAPSHOT",
    "AccountFeed",
    "StreamEvent",
    "balances_feed",
    "format_reconnect_notice",
    "orders_feed",
    "parse_stream_event",
    "stream_status_label",
]
