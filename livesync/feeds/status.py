"""Human-readable stream status strings for consumers."""

from __future__ import annotations

import math

from livesync.stream.backoff import RetryInfo


def format_reconnect_notice(retry_info: RetryInfo | None) -> str | None:
    """Render the reconnect notice shown while a retry is pending, else None."""
    if retry_info is None:
        return None
    seconds = _whole_seconds(retry_info.delay_ms)
    return f"Stream reconnecting (attempt {retry_info.attempt}). Next retry in {seconds}s."


def stream_status_label(connected: bool, poll_interval_ms: int = 15000) -> str:
    if connected:
        return "Live stream"
    seconds = _whole_seconds(poll_interval_ms)
    return f"Polling fallback ({seconds}s)"


def _whole_seconds(ms: int) -> int:
    # Half-up rounding, at least one second
    return max(1, math.floor(ms / 1000 + 0.5))
