"""
Chat plan finalization graph.

Composes the finalization stages into a routed pipeline:
    raw completion -> normalize -> enrich -> enforce -> done
"""

from tripstream.graph.build import build_initial_state, create_chat_plan_graph, run_chat_plan_graph

__all__ = ["create_chat_plan_graph", "build_initial_state", "run_chat_plan_graph"]
