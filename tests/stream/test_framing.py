"""Tests for SSE-style framing: blank-line boundaries, data lines, chunk invariance."""

from __future__ import annotations

import pytest

from livesync.stream.framing import SseFrameDecoder, parse_event_block

BODY = 'data: {"a":1}\n\ndata: line1\ndata: line2\n\n'


def _decode_all(chunks: list[bytes]) -> list[str]:
    decoder = SseFrameDecoder()
    payloads: list[str] = []
    for chunk in chunks:
        payloads.extend(decoder.feed(chunk))
    return payloads


class TestParseEventBlock:
    """Single-block parsing."""

    def test_single_data_line(self) -> None:
        assert parse_event_block('data: {"a":1}') == '{"a":1}'

    def test_multi_line_joined_with_newline(self) -> None:
        assert parse_event_block("data: line1\ndata: line2") == "line1\nline2"

    def test_non_data_lines_ignored(self) -> None:
        block = "id: 7\nevent: snapshot\n: comment\ndata: payload\nretry: 1000"
        assert parse_event_block(block) == "payload"

    def test_values_are_trimmed(self) -> None:
        assert parse_event_block("data:   padded   ") == "padded"
        assert parse_event_block("data:nospace") == "nospace"

    def test_keepalive_block_has_no_payload(self) -> None:
        assert parse_event_block(": keepalive") is None
        assert parse_event_block("") is None


class TestSseFrameDecoder:
    """Incremental decoding."""

    def test_two_events_in_one_chunk(self) -> None:
        """The canonical example yields exactly two payloads in order."""
        assert _decode_all([BODY.encode()]) == ['{"a":1}', "line1\nline2"]

    def test_byte_at_a_time_matches_single_chunk(self) -> None:
        raw = BODY.encode()
        assert _decode_all([raw[i : i + 1] for i in range(len(raw))]) == [
            '{"a":1}',
            "line1\nline2",
        ]

    @pytest.mark.parametrize("split", [1, 5, 9, 12, 14, 20, 30])
    def test_any_split_point(self, split: int) -> None:
        raw = BODY.encode()
        assert _decode_all([raw[:split], raw[split:]]) == ['{"a":1}', "line1\nline2"]

    def test_multibyte_character_split_across_chunks(self) -> None:
        raw = 'data: {"city":"Zürich €"}\n\n'.encode()
        euro = raw.index("€".encode())
        chunks = [raw[: euro + 1], raw[euro + 1 : euro + 2], raw[euro + 2 :]]
        assert _decode_all(chunks) == ['{"city":"Zürich €"}']

    def test_keepalive_skipped(self) -> None:
        assert _decode_all([b": keepalive\n\ndata: x\n\n"]) == ["x"]

    def test_incomplete_event_held_until_boundary(self) -> None:
        decoder = SseFrameDecoder()
        assert decoder.feed(b"data: par") == []
        assert decoder.pending == "data: par"
        assert decoder.feed(b"tial\n") == []
        assert decoder.feed(b"\n") == ["partial"]
        assert decoder.pending == ""

    def test_close_discards_trailing_partial(self) -> None:
        decoder = SseFrameDecoder()
        decoder.feed(b"data: never finished")
        decoder.close()
        assert decoder.pending == ""
        assert decoder.feed(b"data: next\n\n") == ["next"]
