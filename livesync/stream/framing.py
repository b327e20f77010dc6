"""Incremental SSE-style framing.

Wire format: UTF-8 text, events separated by a blank line ("\\n\\n"). Inside
an event, lines starting with "data:" carry the payload; every other line
(comments, id:, retry:, event:) is ignored. Multi-line payloads are joined
with "\\n".

The decoder is fed raw bytes in whatever chunks the transport produces.
Chunk boundaries never matter: a multi-byte character split across reads is
held by the incremental UTF-8 decoder, and a partial event stays in the frame
buffer until its terminating blank line arrives.

Usage:
    decoder = SseFrameDecoder()
    for chunk in chunks:
        for payload in decoder.feed(chunk):
            handle(payload)
    decoder.close()
"""

from __future__ import annotations

import codecs

EVENT_BOUNDARY = "\n\n"
DATA_PREFIX = "data:"


def parse_event_block(block: str) -> str | None:
    """Extract the joined data payload from one boundary-delimited block.

    Returns:
        The payload, or None when the block has no data lines (keepalives,
        comments), which callers skip silently.
    """
    data_lines = [
        line[len(DATA_PREFIX) :].strip()
        for line in block.split("\n")
        if line.startswith(DATA_PREFIX)
    ]
    if not data_lines:
        return None
    return "\n".join(data_lines)


class SseFrameDecoder:
    """Turns a byte stream into an ordered sequence of event payloads."""

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    @property
    def pending(self) -> str:
        """Decoded text not yet terminated by a blank line."""
        return self._buffer

    def feed(self, chunk: bytes) -> list[str]:
        """Consume one chunk and return the payloads it completed, in order."""
        self._buffer += self._decoder.decode(chunk)
        if EVENT_BOUNDARY not in self._buffer:
            return []

        *blocks, self._buffer = self._buffer.split(EVENT_BOUNDARY)
        payloads = []
        for block in blocks:
            payload = parse_event_block(block)
            if payload is not None:
                payloads.append(payload)
        return payloads

    def close(self) -> None:
        """Discard any incomplete trailing event and reset the decoder."""
        self._buffer = ""
        self._decoder.reset()
