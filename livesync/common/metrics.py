"""Prometheus metrics definitions for livesync.

All metric objects are centralized here as module-level singletons.
Import what you need from anywhere in the codebase:

    from livesync.common.metrics import LIVESYNC_STREAM_RETRIES_TOTAL

Host applications expose them with prometheus_client (e.g. start_http_server
or make_asgi_app); this library only records.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge

# ─── Stream Metrics ───

LIVESYNC_STREAM_CONNECTED = Gauge(
    "livesync_stream_connected",
    "Whether the event stream is currently open (1) or not (0)",
    labelnames=["stream"],
)

LIVESYNC_STREAM_EVENTS_TOTAL = Counter(
    "livesync_stream_events_total",
    "Total event payloads delivered by stream readers",
    labelnames=["stream"],
)

LIVESYNC_STREAM_RETRIES_TOTAL = Counter(
    "livesync_stream_retries_total",
    "Total scheduled stream reconnect attempts",
    labelnames=["stream"],
)

LIVESYNC_STREAM_GIVEUPS_TOTAL = Counter(
    "livesync_stream_giveups_total",
    "Total streams abandoned after exhausting the retry budget",
    labelnames=["stream"],
)

# ─── Auth Metrics ───

LIVESYNC_AUTH_REFRESH_TOTAL = Counter(
    "livesync_auth_refresh_total",
    "Total token refresh operations by outcome",
    labelnames=["outcome"],
)

# ─── Session Metrics ───

LIVESYNC_SESSION_WRITES_TOTAL = Counter(
    "livesync_session_writes_total",
    "Total session store writes",
    labelnames=["operation"],
)
