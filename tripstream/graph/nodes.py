"""
Node functions for the chat plan graph.

Each node reads the state, does one stage of work, and returns only
the keys it updates. Resources (the LLM call, the Places client) are
bound in by create_chat_plan_graph.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from tripstream.graph.state import ChatPlanState
from tripstream.plan.config import get_config
from tripstream.plan.fallback import suggestions_to_days
from tripstream.plan.reconciler import sanitize_days
from tripstream.plan.response_parser import PlanParseError, parse_plan_response
from tripstream.server.enrichment import dedupe_and_enrich_plan_days
from tripstream.server.places import PlacesClient
from tripstream.server.prompts import build_messages
from tripstream.shared.contracts.plan_output import ChatRequest, PlanItem, PlanResponse


logger = logging.getLogger(__name__)

GenerateFn = Callable[[List[Dict[str, str]]], str]
WireDays = List[List[Dict[str, Any]]]


def _prefix(state: ChatPlanState, node: str) -> str:
    request_id = state.get("request_id") or "unknown"
    return f"[rid={request_id}] [graph=chat_plan] [node={node}] "


def _to_wire(days: List[List[PlanItem]]) -> WireDays:
    return [[item.to_wire() for item in day] for day in days]


def _from_wire(days: Optional[WireDays]) -> List[List[PlanItem]]:
    return [[PlanItem.model_validate(item) for item in day] for day in days or []]


def _failure(step: str, message: str) -> Dict[str, Any]:
    return {
        "failed": True,
        "current_step": f"{step}_failed",
        "errors": [message],
        "messages": [{"role": "system", "agent": "chat_plan", "content": message}],
    }


def generate_node(state: ChatPlanState, generate: GenerateFn) -> Dict[str, Any]:
    """
    Produce the raw strict-JSON plan with one non-streaming completion.

    Args:
        state: Current graph state
        generate: Callable taking chat messages and returning content

    Returns:
        State updates with raw_response
    """
    _log = _prefix(state, "generate")
    request = ChatRequest.model_validate(state["request"])
    config = get_config(state.get("plan_mode"))
    messages = build_messages(request, state.get("radius_meters", request.radius_meters), config)

    logger.info(f"{_log}Requesting plan completion")
    try:
        raw = generate(messages)
    except Exception as e:
        logger.exception(f"{_log}Plan generation failed: {e}")
        return _failure("generate", f"Plan generation error: {e}")

    logger.info(f"{_log}Completion received | length={len(raw)}")
    return {"raw_response": raw, "current_step": "generated"}


def normalize_node(state: ChatPlanState) -> Dict[str, Any]:
    """
    Parse the raw document and pick the plan days.

    An empty planDays falls back to days built from the suggestions.
    The suggestion days are kept as the backfill pool for enforce.
    """
    _log = _prefix(state, "normalize")
    request = ChatRequest.model_validate(state["request"])
    config = get_config(state.get("plan_mode"))

    try:
        parsed = parse_plan_response(state.get("raw_response") or "")
    except PlanParseError as e:
        logger.warning(f"{_log}Invalid plan JSON: {e}")
        return _failure("normalize", "Invalid JSON returned by the model.")

    days = parsed.plan_days
    nights = request.nights if request.nights is not None else max(len(days), 1)
    fallback = suggestions_to_days(parsed.suggestions, nights, config)
    if not any(days):
        logger.info(f"{_log}No usable planDays, building days from {len(parsed.suggestions)} suggestions")
        days = fallback

    logger.info(f"{_log}Normalized | days={len(days)}, fallback_days={len(fallback)}")
    return {
        "parsed": parsed.to_wire(),
        "plan_days": _to_wire(days),
        "fallback_days": _to_wire(fallback),
        "current_step": "normalized",
    }


def enrich_node(state: ChatPlanState, places: Optional[PlacesClient]) -> Dict[str, Any]:
    """Canonicalize activities against Places; best-effort."""
    _log = _prefix(state, "enrich")
    if places is None:
        return {"enriched": True, "current_step": "enrich_skipped"}

    request = ChatRequest.model_validate(state["request"])
    config = get_config(state.get("plan_mode"))
    days = _from_wire(state.get("plan_days"))

    logger.info(f"{_log}Enriching {sum(len(d) for d in days)} activities")
    enriched = dedupe_and_enrich_plan_days(
        days,
        places,
        request.coords,
        state.get("radius_meters", request.radius_meters),
        config,
    )
    return {"plan_days": _to_wire(enriched), "enriched": True, "current_step": "enriched"}


def enforce_node(state: ChatPlanState) -> Dict[str, Any]:
    """Apply per-day dedup, truncation and backfill, then assemble the final document."""
    _log = _prefix(state, "enforce")
    config = get_config(state.get("plan_mode"))
    fallback = _from_wire(state.get("fallback_days"))

    result = sanitize_days(_from_wire(state.get("plan_days")), fallback or None, config)
    if result.underfilled_days:
        logger.info(f"{_log}Under-filled days: {result.underfilled_days}")

    parsed = PlanResponse.model_validate(state.get("parsed") or {"replyText": ""})
    final = parsed.model_copy(update={"plan_days": result.days})
    return {
        "plan_days": _to_wire(result.days),
        "underfilled_days": result.underfilled_days,
        "final_document": final.to_wire(),
        "finalized": True,
        "current_step": "enforced",
    }


def complete_node(state: ChatPlanState) -> Dict[str, Any]:
    """
    Final node that marks the pipeline as complete.

    Args:
        state: Current graph state

    Returns:
        Completion tracking message
    """
    _log = _prefix(state, "complete")
    finalized = bool(state.get("finalized"))
    num_errors = len(state.get("errors", []))

    logger.info(
        f"{_log}Pipeline complete | finalized={finalized}, "
        f"enriched={bool(state.get('enriched'))}, errors={num_errors} -> END"
    )
    return {
        "current_step": "complete",
        "messages": [
            {
                "role": "system",
                "agent": "chat_plan",
                "content": f"Pipeline complete. Finalized: {'yes' if finalized else 'no'}.",
            }
        ],
    }
