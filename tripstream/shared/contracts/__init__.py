"""Wire contracts shared by the server and the client engine."""

from tripstream.shared.contracts.plan_output import (
    ChatRequest,
    Coords,
    PlanItem,
    PlanResponse,
    Suggestion,
)

__all__ = ["PlanItem", "Suggestion", "Coords", "ChatRequest", "PlanResponse"]
