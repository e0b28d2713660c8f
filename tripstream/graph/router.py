"""
Routing logic for the chat plan graph.

Determines which stage to run next based on what data has been populated.
"""

import logging
from typing import Literal

from tripstream.graph.state import ChatPlanState


logger = logging.getLogger(__name__)

NextStep = Literal["generate", "normalize", "enrich", "enforce", "complete"]


def route_next_step(state: ChatPlanState) -> NextStep:
    """
    Determine the next stage to execute based on populated state.

    Routing logic:
    1. A failed stage -> complete
    2. If raw_response is missing -> generate
    3. If plan_days is missing -> normalize
    4. If enrichment is enabled and has not run -> enrich
    5. If the plan is not finalized -> enforce
    6. Otherwise -> complete

    Args:
        state: Current graph state

    Returns:
        Name of the next node to execute
    """
    request_id = state.get("request_id") or "unknown"
    _log = f"[rid={request_id}] [graph=chat_plan] [router=route_next_step] "

    if state.get("failed"):
        step: NextStep = "complete"
    elif state.get("raw_response") is None:
        step = "generate"
    elif state.get("plan_days") is None:
        step = "normalize"
    elif state.get("enrich_enabled") and not state.get("enriched"):
        step = "enrich"
    elif not state.get("finalized"):
        step = "enforce"
    else:
        step = "complete"

    logger.info(f"{_log}Routing to {step!r}")
    return step
