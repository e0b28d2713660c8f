"""
Finalization state schema.

Defines the state that flows through the chat plan graph, carrying the
request context and each stage's output.
"""

from typing import Annotated, Any, Dict, List, Optional, TypedDict
import operator


class ChatPlanState(TypedDict, total=False):
    """
    State schema for the chat plan graph.

    Plan days are carried in wire form (lists of item dicts) so the
    state stays JSON-serializable between nodes.
    """

    # Request context
    request: Dict[str, Any]
    radius_meters: int
    plan_mode: str
    enrich_enabled: bool

    # Stage outputs (populated as nodes complete)
    raw_response: Optional[str]
    parsed: Optional[Dict[str, Any]]
    plan_days: Optional[List[List[Dict[str, Any]]]]
    fallback_days: Optional[List[List[Dict[str, Any]]]]
    enriched: bool
    finalized: bool
    failed: bool
    underfilled_days: List[int]
    final_document: Optional[Dict[str, Any]]

    # Tracking
    current_step: str
    errors: Annotated[List[str], operator.add]
    messages: Annotated[List[dict], operator.add]

    request_id: Optional[str]
