"""
Partial plan extraction.

Scans a growing, not-yet-valid JSON buffer and returns every plan item
that is already fully closed inside the "planDays" array.

The scan is a single left-to-right pass that tracks string literals,
escapes, square-bracket depth (1 = inside planDays, 2 = inside one
day) and curly-brace depth. Each call starts fresh from the planDays
marker, so calling it again on a longer buffer that starts with the
previous one re-finds the same items in the same order.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional

from tripstream.shared.contracts.plan_output import PlanItem


logger = logging.getLogger(__name__)

PLAN_DAYS_MARKER = re.compile(r'"planDays"\s*:\s*\[')

DayBucket = List[PlanItem]


@dataclass
class ExtractionCursor:
    """Transient scan state for one extraction pass."""

    offset: int
    in_string: bool = False
    escape: bool = False
    depth_square: int = 1
    depth_curly: int = 0
    current_day: Optional[List[PlanItem]] = None
    object_start: int = -1
    days: List[DayBucket] = field(default_factory=list)


def _close_object(buffer: str, cursor: ExtractionCursor) -> None:
    """Parse the object that ends at the cursor and keep it if valid."""
    fragment = buffer[cursor.object_start:cursor.offset + 1]
    cursor.object_start = -1
    try:
        raw = json.loads(fragment)
    except json.JSONDecodeError:
        return
    item = PlanItem.from_raw(raw)
    if item is not None and cursor.current_day is not None:
        cursor.current_day.append(item)


def _step(buffer: str, cursor: ExtractionCursor) -> None:
    ch = buffer[cursor.offset]

    if cursor.in_string:
        if cursor.escape:
            cursor.escape = False
        elif ch == "\\":
            cursor.escape = True
        elif ch == '"':
            cursor.in_string = False
        return

    if ch == '"':
        cursor.in_string = True
    elif ch == "[":
        cursor.depth_square += 1
        if cursor.depth_square == 2:
            cursor.current_day = []
    elif ch == "]":
        if cursor.depth_square == 2 and cursor.current_day is not None:
            if cursor.current_day:
                cursor.days.append(cursor.current_day)
            cursor.current_day = None
        cursor.depth_square -= 1
    elif ch == "{":
        cursor.depth_curly += 1
        if cursor.depth_square == 2 and cursor.depth_curly == 1:
            cursor.object_start = cursor.offset
    elif ch == "}":
        if (
            cursor.depth_square == 2
            and cursor.depth_curly == 1
            and cursor.object_start >= 0
        ):
            _close_object(buffer, cursor)
        cursor.depth_curly -= 1


def extract_completed_days(buffer: str) -> List[DayBucket]:
    """
    Extract every completed day found so far.

    A day is included only once its closing bracket has been read, and
    only objects whose closing brace has been read are included in it.
    Objects that fail to parse or validate are skipped silently. Days
    with no valid item are omitted.

    Args:
        buffer: Full raw text received so far for the current turn

    Returns:
        Days in document order; the buffer itself is not modified
    """
    match = PLAN_DAYS_MARKER.search(buffer)
    if match is None:
        return []

    cursor = ExtractionCursor(offset=match.end())
    while cursor.offset < len(buffer) and cursor.depth_square > 0:
        _step(buffer, cursor)
        cursor.offset += 1

    return cursor.days
