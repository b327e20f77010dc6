"""livesync — authenticated live data for account clients.

Keeps a client's view of server-side account state (balances, orders) fresh
over a long-lived event stream, reconnecting with exponential backoff and
recovering expired access tokens with a single shared refresh.

Subpackages:
    - common: settings, structured logging, exceptions, metrics, encryption
    - session: persisted credentials and their storage backends
    - stream: framing, reader, cancellation, backoff reconnection
    - auth: bearer injection with single-flight refresh, account API client
    - feeds: balances/orders feeds with polling fallback
"""

from livesync.auth import AccountApiClient, CredentialRefreshCoordinator
from livesync.common.config import Settings, get_settings
from livesync.common.exceptions import (
    ApiConnectionError,
    ApiRequestError,
    AuthRefreshError,
    LiveSyncError,
    SessionStorageError,
    StreamConnectionError,
)
from livesync.feeds import AccountFeed, balances_feed, orders_feed
from livesync.session import (
    AuthSession,
    CredentialPair,
    FileSessionBackend,
    MemorySessionBackend,
    SecureFileSessionBackend,
    SessionStore,
)
from livesync.stream import (
    BackoffReconnector,
    CancellationToken,
    EventStreamReader,
    RetryInfo,
    compute_backoff_delay,
    read_event_stream,
    stream_with_backoff,
)

__version__ = "0.1.0"

__all__ = [
    "AccountApiClient",
    "AccountFeed",
    "ApiConnectionError",
    "ApiRequestError",
    "AuthRefreshError",
    "AuthSession",
    "BackoffReconnector",
    "CancellationToken",
    "CredentialPair",
    "CredentialRefreshCoordinator",
    "EventStreamReader",
    "FileSessionBackend",
    "LiveSyncError",
    "MemorySessionBackend",
    "RetryInfo",
    "SecureFileSessionBackend",
    "SessionStorageError",
    "SessionStore",
    "Settings",
    "StreamConnectionError",
    "balances_feed",
    "compute_backoff_delay",
    "get_settings",
    "orders_feed",
    "read_event_stream",
    "stream_with_backoff",
]
