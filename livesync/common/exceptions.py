"""livesync exceptions with structured context and automatic secret filtering.

All library errors are subclasses of LiveSyncError. Each exception carries
an optional context dict for debugging; keys that look like they might hold
credentials (tokens, keys, passwords) are redacted when the error is rendered.

Usage:
    from livesync.common.exceptions import StreamConnectionError

    raise StreamConnectionError(
        "Stream request failed",
        context={"url": "/v1/orders/stream", "status": 503},
    )
"""

from __future__ import annotations


class LiveSyncError(Exception):
    """Base exception for all livesync errors.

    Args:
        message: Human-readable error description.
        context: Optional dict of structured data for logging/debugging.
    """

    def __init__(self, message: str, context: dict | None = None) -> None:
        super().__init__(message)
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            safe_context = {
                k: "[REDACTED]" if _is_secret_key(k) else v for k, v in self.context.items()
            }
            return f"{super().__str__()} | context={safe_context}"
        return super().__str__()


class StreamConnectionError(LiveSyncError):
    """Stream could not be opened or was broken by the transport.

    Raised for non-2xx status, a response without a streamable body, or a
    network failure while opening or reading. Recoverable: triggers backoff.
    """


class AuthRefreshError(LiveSyncError):
    """Token refresh failed (unreachable, non-2xx, or no new access token)."""


class SessionStorageError(LiveSyncError):
    """A session backend could not persist the session."""


class ApiRequestError(LiveSyncError):
    """Non-2xx response from a typed API helper. Check context for status."""


class ApiConnectionError(LiveSyncError):
    """Network issue or timeout on an authenticated request."""


def _is_secret_key(key: str) -> bool:
    """Check if a dict key name suggests it contains secret data."""
    secret_words = {"key", "secret", "password", "token", "private", "credential", "authorization"}
    key_lower = key.lower()
    return any(word in key_lower for word in secret_words)
