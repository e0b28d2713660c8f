"""
Prompt templates and the strict JSON schema for plan generation.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, List

from tripstream.plan.config import DEFAULT_CONFIG, PlanConfig
from tripstream.shared.contracts.plan_output import ChatRequest


# =============================================================================
# Schema
# =============================================================================

PLAN_ITEM_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "title": {"type": "string"},
        "short_description": {"type": "string"},
        # "free", "$N" or "$N–$M"
        "estimated_cost": {"type": "string"},
    },
    "required": ["title", "short_description"],
    "additionalProperties": False,
}

SUGGESTION_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "name": {"type": "string"},
        "category": {"type": "string"},
        "address": {"type": "string"},
        "distanceMeters": {"type": "number"},
        "why": {"type": "string"},
        "estSpend": {"type": "string"},
        "hours": {"type": "string"},
        "website": {"type": "string"},
        "mapHint": {"type": "string"},
        "tags": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["name", "category", "why"],
    "additionalProperties": True,
}


def build_plan_schema(config: PlanConfig = DEFAULT_CONFIG) -> Dict[str, Any]:
    """JSON schema for the complete plan document, sized to the config bounds."""
    bounds = f"{config.min_items}–{config.max_items}"
    return {
        "type": "object",
        "properties": {
            "replyText": {"type": "string"},
            "suggestions": {"type": "array", "items": SUGGESTION_SCHEMA},
            "planDays": {
                "description": (
                    f"Array of days; each inner array is a single day's plan with {bounds} "
                    "activities that are mutually feasible within that day (clustered, "
                    "walkable/short transit, ordered morning to evening)."
                ),
                "type": "array",
                "items": {
                    "type": "array",
                    "items": PLAN_ITEM_SCHEMA,
                    "minItems": config.min_items,
                    "maxItems": config.max_items,
                },
            },
        },
        "required": ["replyText", "suggestions", "planDays"],
        "additionalProperties": False,
    }


STRICT_SCHEMA = build_plan_schema()


# =============================================================================
# Prompts
# =============================================================================


def system_rules(config: PlanConfig = DEFAULT_CONFIG) -> str:
    bounds = f"{config.min_items}–{config.max_items}"
    return " ".join(
        [
            "You MUST answer in STRICT JSON only. No preface, no explanations.",
            "Return exactly these keys: replyText (string), suggestions (array), planDays (array of arrays).",
            "planDays details:",
            "- Each inner array is ONE DAY's plan, ordered morning to evening.",
            f"- Include {bounds} activities per day (NEVER more than {config.max_items}). "
            f"If you draft more candidates, PICK THE BEST {config.max_items} and STOP.",
            "- Absolutely NO duplicate or near-duplicate titles in the same day "
            "(e.g., 'Balboa Park' vs 'Visit Balboa Park' counts as a duplicate; keep only one).",
            "- Avoid repeating essentially the same venue under different names "
            "(e.g., 'Gaslamp Quarter Exploration' and 'Gaslamp Quarter').",
            "- Activities in the same day must be mutually feasible: clustered "
            "(walkable/short transit), reasonable durations (~60–120m typical), "
            "consider opening hours if relevant.",
            "- Each activity strictly has fields: { title, short_description, estimated_cost? }.",
            "- IMPORTANT: estimated_cost must be ONLY one of: 'free', '$N' (integer), "
            "or '$N–$M' (integer range with an en dash). No other formats.",
            "- DO NOT include day labels like 'Day 1' outside the JSON. JSON ONLY.",
        ]
    )


SYSTEM_RULES = system_rules()


def minimal_payload(request: ChatRequest, radius_meters: int) -> Dict[str, Any]:
    """The subset of the request the model sees."""
    return {
        "message": request.message,
        "destination": request.destination,
        "coords": request.coords.model_dump() if request.coords else None,
        "radiusMeters": radius_meters,
        "groupSize": request.preferences.get("groupSize"),
        "nights": request.nights,
        "nowIso": datetime.now(timezone.utc).isoformat(),
    }


def user_prompt(payload: Dict[str, Any], config: PlanConfig = DEFAULT_CONFIG) -> str:
    bounds = f"{config.min_items}–{config.max_items}"
    return " ".join(
        [
            "Return STRICT JSON with keys: replyText, suggestions, and planDays (strict).",
            f"Each day must contain {bounds} activities feasible within the same day "
            "(clustered, ordered morning to evening, reasonable duration).",
            "Within a day, DO NOT include duplicate or near-duplicate titles. "
            "If two names refer to the same place, keep only ONE.",
            "Each activity object must be exactly { title, short_description, (optional) estimated_cost }.",
            "For estimated_cost use ONLY: 'free', '$N', or '$N–$M' (en dash).",
            "Use 'nights' (default 1) to set the number of days.",
            f"Never output more than {config.max_items} items for any day.",
            "Input:\n" + json.dumps(payload),
        ]
    )


def build_messages(
    request: ChatRequest, radius_meters: int, config: PlanConfig = DEFAULT_CONFIG
) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": system_rules(config)},
        {"role": "user", "content": user_prompt(minimal_payload(request, radius_meters), config)},
    ]
