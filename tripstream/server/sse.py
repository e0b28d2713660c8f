"""Event-stream frame encoding, the inverse of FrameDecoder."""

import json
from typing import Any


def encode_sse(event: str, data: Any) -> str:
    """
    Encode one frame.

    Strings are sent as-is, anything else is JSON-encoded. A multi-line
    payload becomes one "data:" line per line so the decoder rejoins it
    unchanged.

    Args:
        event: Event type
        data: Payload

    Returns:
        Frame text, terminated by a blank line
    """
    payload = data if isinstance(data, str) else json.dumps(data, ensure_ascii=False)
    lines = [f"event: {event}"]
    lines.extend(f"data: {line}" for line in payload.split("\n"))
    return "\n".join(lines) + "\n\n"


def end_frame() -> str:
    return encode_sse("end", "ok")
