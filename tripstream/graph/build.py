"""
Chat plan graph construction.

Builds the graph that turns a raw model completion into the final,
sanitized plan document:

    generate -> normalize -> enrich -> enforce -> complete

The router re-enters after every node and skips stages whose output is
already present, so the streaming endpoint can start the graph with the
raw buffer in hand and go straight to normalize.
"""

import logging
from functools import partial
from typing import Any, Dict, List, Optional

from langgraph.graph import END, StateGraph

from tripstream.graph.nodes import (
    GenerateFn,
    complete_node,
    enforce_node,
    enrich_node,
    generate_node,
    normalize_node,
)
from tripstream.graph.router import route_next_step
from tripstream.graph.state import ChatPlanState
from tripstream.server.places import PlacesClient
from tripstream.shared.contracts.plan_output import ChatRequest


logger = logging.getLogger(__name__)

_ROUTES = {
    "generate": "generate",
    "normalize": "normalize",
    "enrich": "enrich",
    "enforce": "enforce",
    "complete": "complete",
}


def _unavailable_generate(messages: List[Dict[str, str]]) -> str:
    raise RuntimeError("No generator configured for this graph")


def create_chat_plan_graph(
    generate: Optional[GenerateFn] = None,
    places: Optional[PlacesClient] = None,
):
    """
    Create and compile the chat plan graph.

    Args:
        generate: Callable used by the generate node; only needed when
            the graph is started without a raw_response
        places: Places client for the enrich node; enrichment is skipped
            when None

    Returns:
        Compiled LangGraph application ready for execution.
    """
    graph = StateGraph(ChatPlanState)

    graph.add_node("generate", partial(generate_node, generate=generate or _unavailable_generate))
    graph.add_node("normalize", normalize_node)
    graph.add_node("enrich", partial(enrich_node, places=places))
    graph.add_node("enforce", enforce_node)
    graph.add_node("complete", complete_node)

    # Conditional entry point - start from wherever state requires
    graph.set_conditional_entry_point(route_next_step, _ROUTES)
    for node in ("generate", "normalize", "enrich", "enforce"):
        graph.add_conditional_edges(node, route_next_step, _ROUTES)

    graph.add_edge("complete", END)

    return graph.compile()


def build_initial_state(
    request: ChatRequest,
    radius_meters: int,
    plan_mode: str,
    enrich_enabled: bool,
    raw_response: Optional[str] = None,
    request_id: Optional[str] = None,
) -> ChatPlanState:
    return {
        "request": request.model_dump(by_alias=True),
        "radius_meters": radius_meters,
        "plan_mode": plan_mode,
        "enrich_enabled": enrich_enabled,
        "raw_response": raw_response,
        "parsed": None,
        "plan_days": None,
        "fallback_days": None,
        "enriched": False,
        "finalized": False,
        "failed": False,
        "underfilled_days": [],
        "final_document": None,
        "current_step": "start",
        "errors": [],
        "messages": [],
        "request_id": request_id,
    }


def run_chat_plan_graph(app: Any, state: ChatPlanState) -> Dict[str, Any]:
    """Invoke a compiled graph and return the final state."""
    request_id = state.get("request_id") or "unknown"
    logger.info(f"[rid={request_id}] [graph=chat_plan] Invoking graph | step={state.get('current_step')}")
    result = app.invoke(state)
    logger.info(
        f"[rid={request_id}] [graph=chat_plan] Graph finished | "
        f"finalized={result.get('finalized')}, errors={len(result.get('errors', []))}"
    )
    return result
