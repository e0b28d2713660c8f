"""
Response parser for complete plan documents.

Handles parsing of the generator's final JSON, including extraction
from various formats (raw JSON, markdown code blocks), and validates it
field by field into the strict plan types. Items failing validation are
dropped rather than coerced.
"""

import json
import logging
import re
from typing import Any, Dict, List

from tripstream.shared.contracts.plan_output import PlanItem, PlanResponse, Suggestion


logger = logging.getLogger(__name__)


class PlanParseError(Exception):
    """Raised when the final plan document cannot be parsed or fails the schema."""

    pass


def extract_json_from_response(raw_response: str) -> str:
    """
    Extract JSON content from a model response.

    Handles multiple formats:
    - Raw JSON
    - JSON in markdown code blocks (```json ... ```)
    - JSON with leading/trailing whitespace

    Args:
        raw_response: Raw response string

    Returns:
        Cleaned JSON string ready for parsing
    """
    content = raw_response.strip()

    # Try to extract from markdown code block
    code_block_pattern = r"```(?:json)?\s*([\s\S]*?)```"
    match = re.search(code_block_pattern, content)
    if match:
        content = match.group(1).strip()

    if content.startswith("{"):
        # Find the matching closing brace, ignoring braces inside strings
        depth = 0
        in_string = False
        escape = False
        for i, char in enumerate(content):
            if in_string:
                if escape:
                    escape = False
                elif char == "\\":
                    escape = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return content[: i + 1]

    # If we can't find clear boundaries, return as-is and let JSON parser handle it
    return content


def _parse_days(raw_days: Any) -> List[List[PlanItem]]:
    if not isinstance(raw_days, list):
        raise PlanParseError(f"planDays must be an array, got {type(raw_days).__name__}")

    days: List[List[PlanItem]] = []
    dropped = 0
    for raw_day in raw_days:
        if not isinstance(raw_day, list):
            raise PlanParseError("Each planDays entry must be an array of activities")
        day = []
        for raw_item in raw_day:
            item = PlanItem.from_raw(raw_item)
            if item is None:
                dropped += 1
                continue
            day.append(item)
        days.append(day)

    if dropped:
        logger.info(f"[parser] Dropped {dropped} invalid plan item(s)")
    return days


def _parse_suggestions(raw_suggestions: Any) -> List[Suggestion]:
    if not isinstance(raw_suggestions, list):
        return []
    suggestions = []
    for raw in raw_suggestions:
        if isinstance(raw, dict) and isinstance(raw.get("name"), str):
            try:
                suggestions.append(Suggestion.model_validate(raw))
            except ValueError:
                continue
    return suggestions


def parse_plan_document(data: Dict[str, Any]) -> PlanResponse:
    """
    Validate an already-decoded plan document.

    Args:
        data: Decoded JSON object

    Returns:
        PlanResponse with only valid items

    Raises:
        PlanParseError: If replyText or planDays have the wrong shape
    """
    if not isinstance(data, dict):
        raise PlanParseError(f"Plan document must be an object, got {type(data).__name__}")

    reply_text = data.get("replyText", "")
    if not isinstance(reply_text, str):
        raise PlanParseError("replyText must be a string")

    note = data.get("note")
    return PlanResponse(
        reply_text=reply_text,
        suggestions=_parse_suggestions(data.get("suggestions")),
        plan_days=_parse_days(data.get("planDays", [])),
        note=note if isinstance(note, str) else None,
    )


def parse_plan_response(raw_response: str) -> PlanResponse:
    """
    Parse a complete plan document from raw text.

    Args:
        raw_response: Raw response string (the final event payload or a
            full model completion)

    Returns:
        Validated PlanResponse

    Raises:
        PlanParseError: If JSON parsing fails or the schema is not met
    """
    json_str = extract_json_from_response(raw_response)

    try:
        data = json.loads(json_str)
    except json.JSONDecodeError as e:
        raise PlanParseError(f"Failed to parse plan JSON: {e}") from e

    return parse_plan_document(data)
