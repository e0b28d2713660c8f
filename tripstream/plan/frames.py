"""
Event-stream frame decoder.

Turns an arbitrarily-chunked text/event-stream body into discrete
(event type, payload) frames. Frames may be split across chunk
boundaries; the decoder keeps the incomplete tail between calls.

Payloads are preserved byte-exact: only one optional space after
"data:" and a single trailing carriage return per line are removed.
Multiple data lines are joined with "\\n".
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional


logger = logging.getLogger(__name__)

FRAME_DELIMITER = "\n\n"
DEFAULT_EVENT = "message"
DONE_SENTINEL = "[DONE]"

FrameCallback = Callable[[str, str], None]


@dataclass(frozen=True)
class StreamFrame:
    """A single decoded frame."""

    event_type: str
    payload: str


def _field_value(line: str, prefix: str) -> str:
    value = line[len(prefix):]
    if value.startswith(" "):
        value = value[1:]
    if value.endswith("\r"):
        value = value[:-1]
    return value


def parse_frame(block: str) -> StreamFrame:
    """
    Parse one blank-line-delimited block into a frame.

    The last "event:" line wins; "data:" lines are concatenated with
    newlines. Other lines (comments, ids, retry hints) are ignored.

    Args:
        block: Frame text without its trailing delimiter

    Returns:
        Decoded StreamFrame
    """
    event_type = DEFAULT_EVENT
    data_lines: List[str] = []

    for line in block.split("\n"):
        if line.startswith("event:"):
            event_type = _field_value(line, "event:")
        elif line.startswith("data:"):
            data_lines.append(_field_value(line, "data:"))

    return StreamFrame(event_type=event_type, payload="\n".join(data_lines))


class FrameDecoder:
    """
    Incremental decoder holding one residual buffer across feed() calls.

    Usage:
        decoder = FrameDecoder(on_frame=lambda event, data: ...)
        for chunk in body:
            decoder.feed(chunk)
        decoder.flush()
    """

    def __init__(self, on_frame: Optional[FrameCallback] = None):
        """
        Initialize the decoder.

        Args:
            on_frame: Optional callback invoked as on_frame(event_type, payload)
                for every delivered frame, in arrival order.
        """
        self._on_frame = on_frame
        self._buffer = ""

    @property
    def pending(self) -> str:
        """Text received but not yet terminated by a frame delimiter."""
        return self._buffer

    def feed(self, chunk: str) -> List[StreamFrame]:
        """
        Append a chunk and deliver every frame it completes.

        Args:
            chunk: Next slice of the decoded response body

        Returns:
            Frames delivered by this call (sentinel frames excluded)
        """
        self._buffer += chunk
        blocks = self._buffer.split(FRAME_DELIMITER)
        self._buffer = blocks.pop()

        delivered: List[StreamFrame] = []
        for block in blocks:
            frame = parse_frame(block)
            if frame.payload == DONE_SENTINEL:
                continue
            delivered.append(frame)
            if self._on_frame is not None:
                self._on_frame(frame.event_type, frame.payload)
        return delivered

    def flush(self) -> int:
        """
        Process end of stream.

        Runs one more empty feed, then drops whatever is still buffered:
        a trailing block without its blank-line terminator is not delivered.

        Returns:
            Number of characters dropped
        """
        self.feed("")
        dropped = len(self._buffer)
        if dropped:
            logger.warning(
                f"[decoder] Dropping unterminated frame at end of stream | chars={dropped}"
            )
        self._buffer = ""
        return dropped
