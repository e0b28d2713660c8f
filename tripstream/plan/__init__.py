"""
Plan streaming and reconciliation engine.

Modules:
- frames: event-stream frame decoder
- costs: cost normalization
- titles: dedup keys for activity titles
- extractor: partial planDays extraction from a growing JSON buffer
- reconciler: PlanDocument ownership, merge/finalize/move/patch
- reorder: pointer-driven drag engine
- fallback: backfill pools from suggestions
- response_parser: final document parsing
- config: per-day capacity bounds
"""

from tripstream.plan.config import LEGACY_CONFIG, STRICT_CONFIG, PlanConfig, get_config
from tripstream.plan.costs import normalize_cost
from tripstream.plan.frames import FrameDecoder, StreamFrame
from tripstream.plan.titles import dedup_key

__all__ = [
    "PlanConfig",
    "STRICT_CONFIG",
    "LEGACY_CONFIG",
    "get_config",
    "normalize_cost",
    "dedup_key",
    "FrameDecoder",
    "StreamFrame",
]
