"""
Tests for event-stream encoding.
"""

from tripstream.plan.frames import FrameDecoder
from tripstream.server.sse import encode_sse, end_frame


class TestEncodeSse:
    """Tests for encode_sse."""

    def test_string_payload(self):
        """Strings are sent verbatim."""
        assert encode_sse("jsonDelta", '{"a"') == 'event: jsonDelta\ndata: {"a"\n\n'

    def test_object_payload(self):
        """Non-strings are JSON encoded."""
        assert encode_sse("ping", {"t": 1}) == 'event: ping\ndata: {"t": 1}\n\n'

    def test_multiline_payload_survives_decoding(self):
        """Newlines and leading spaces come back unchanged."""
        payload = "  first\n\nthird  "
        frames = FrameDecoder().feed(encode_sse("note", payload))
        assert [(f.event_type, f.payload) for f in frames] == [("note", payload)]

    def test_end_frame(self):
        """The closing frame is 'end' with 'ok'."""
        assert end_frame() == "event: end\ndata: ok\n\n"
