"""
Tests for the event-stream frame decoder.

Tests delimiter handling across chunk boundaries, data-line assembly,
the end sentinel, and end-of-stream flushing.
"""

from tripstream.plan.frames import DONE_SENTINEL, FrameDecoder, StreamFrame, parse_frame


# ============================================================================
# Test Fixtures
# ============================================================================


def _make_stream():
    """A short stream of three frames."""
    return (
        "event: jsonDelta\ndata: {\"replyText\":\"Hi\"\n\n"
        "event: jsonDelta\ndata: ,\"planDays\":[]}\n\n"
        "event: end\ndata: ok\n\n"
    )


def _collect(chunks):
    """Feed chunks to a fresh decoder and return the callback sequence."""
    seen = []
    decoder = FrameDecoder(on_frame=lambda event, data: seen.append((event, data)))
    for chunk in chunks:
        decoder.feed(chunk)
    decoder.flush()
    return seen


# ============================================================================
# TestParseFrame
# ============================================================================


class TestParseFrame:
    """Tests for single-block parsing."""

    def test_default_event_type(self):
        """A block without an event line should default to 'message'."""
        assert parse_frame("data: hello") == StreamFrame("message", "hello")

    def test_last_event_line_wins(self):
        """When several event lines are present the last one applies."""
        frame = parse_frame("event: a\nevent: b\ndata: x")
        assert frame.event_type == "b"

    def test_multiple_data_lines_joined_with_newline(self):
        """Repeated data lines should be rejoined with newlines."""
        frame = parse_frame("event: note\ndata: line one\ndata: line two")
        assert frame.payload == "line one\nline two"

    def test_only_one_leading_space_stripped(self):
        """Extra leading spaces are part of the payload."""
        assert parse_frame("data:   padded").payload == "  padded"
        assert parse_frame("data:tight").payload == "tight"

    def test_trailing_carriage_return_stripped(self):
        """A single trailing CR per line should be removed."""
        frame = parse_frame("event: jsonDelta\r\ndata: value\r")
        assert frame == StreamFrame("jsonDelta", "value")

    def test_comment_and_id_lines_ignored(self):
        """Non-event, non-data lines should not reach the payload."""
        frame = parse_frame(": keepalive\nid: 7\ndata: x")
        assert frame.payload == "x"


# ============================================================================
# TestFrameDecoder
# ============================================================================


class TestFrameDecoder:
    """Tests for incremental decoding."""

    def test_single_chunk(self):
        """A whole stream in one chunk yields every frame in order."""
        seen = _collect([_make_stream()])
        assert seen == [
            ("jsonDelta", "{\"replyText\":\"Hi\""),
            ("jsonDelta", ",\"planDays\":[]}"),
            ("end", "ok"),
        ]

    def test_split_at_every_position_matches_single_chunk(self):
        """Splitting the stream at any boundary should not change the frames."""
        stream = _make_stream()
        expected = _collect([stream])
        for cut in range(1, len(stream)):
            assert _collect([stream[:cut], stream[cut:]]) == expected

    def test_one_character_chunks(self):
        """Feeding one character at a time yields the same frames."""
        stream = _make_stream()
        assert _collect(list(stream)) == _collect([stream])

    def test_feed_returns_completed_frames(self):
        """feed() should return the frames it completed."""
        decoder = FrameDecoder()
        assert decoder.feed("event: a\ndata: 1") == []
        assert decoder.feed("\n\nevent: b\n") == [StreamFrame("a", "1")]
        assert decoder.pending == "event: b\n"

    def test_done_sentinel_suppressed(self):
        """The end marker should never be delivered as a frame."""
        seen = _collect([f"data: {DONE_SENTINEL}\n\ndata: after\n\n"])
        assert seen == [("message", "after")]

    def test_payload_whitespace_preserved(self):
        """Leading spaces inside a delta must survive byte-exact."""
        seen = _collect(["event: jsonDelta\ndata:  \"title\"\n\n"])
        assert seen == [("jsonDelta", " \"title\"")]


# ============================================================================
# TestFlush
# ============================================================================


class TestFlush:
    """Tests for end-of-stream handling."""

    def test_flush_drops_unterminated_frame(self):
        """A trailing block without a blank line is dropped and counted."""
        seen = []
        decoder = FrameDecoder(on_frame=lambda event, data: seen.append(event))
        decoder.feed("event: a\ndata: 1\n\nevent: b\ndata: 2\n")

        dropped = decoder.flush()

        assert seen == ["a"]
        assert dropped == len("event: b\ndata: 2\n")
        assert decoder.pending == ""

    def test_flush_clean_stream(self):
        """Flushing a fully delimited stream drops nothing."""
        decoder = FrameDecoder()
        decoder.feed("data: x\n\n")
        assert decoder.flush() == 0
