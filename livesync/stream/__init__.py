"""Resilient event streaming: SSE-style framing, a single-connection reader,
and a backoff-driven reconnection supervisor.

Public API:
    - CancellationToken: cancellation signal raced at every suspension point
    - SseFrameDecoder: incremental byte -> payload framing
    - EventStreamReader / read_event_stream: one streaming connection
    - BackoffReconnector / stream_with_backoff: reconnect with exponential backoff
    - compute_backoff_delay, RetryInfo, RetryState
"""

from __future__ import annotations

from livesync.stream.backoff import (
    BackoffReconnector,
    RetryInfo,
    RetryState,
    compute_backoff_delay,
    stream_with_backoff,
)
from livesync.stream.cancellation import CancellationToken
from livesync.stream.framing import SseFrameDecoder, parse_event_block
from livesync.stream.reader import EventStreamReader, read_event_stream

__all__ = [
    "BackoffReconnector",
    "CancellationToken",
    "EventStreamReader",
    "RetryInfo",
    "RetryState",
    "SseFrameDecoder",
    "compute_backoff_delay",
    "parse_event_block",
    "read_event_stream",
    "stream_with_backoff",
]
