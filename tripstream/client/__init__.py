"""Client engine: per-turn dispatcher and HTTP transport."""

from tripstream.client.session import PlanningSession
from tripstream.client.transport import PlanStreamClient, PlanTransportError

__all__ = ["PlanningSession", "PlanStreamClient", "PlanTransportError"]
