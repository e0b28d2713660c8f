"""
Capacity configuration for the plan engine.

Centralizes the per-day item bounds so the reconciler, the fallback
pool and the server-side finalization all agree on them.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class PlanConfig:
    """
    Configuration for day capacity.

    Attributes:
        min_items: Minimum activities per finalized day (backfill target)
        max_items: Maximum activities per day (hard cap while streaming and on finalize)
        mode: "strict" (3-5 per day) or "legacy" (3-7 per day)
    """

    min_items: int = 3
    max_items: int = 5
    mode: str = "strict"

    def __post_init__(self) -> None:
        if self.min_items < 0:
            raise ValueError(f"min_items must be >= 0, got {self.min_items}")
        if self.max_items < self.min_items:
            raise ValueError(
                f"max_items ({self.max_items}) must be >= min_items ({self.min_items})"
            )


# Default configuration instances
STRICT_CONFIG = PlanConfig()
LEGACY_CONFIG = PlanConfig(min_items=3, max_items=7, mode="legacy")
DEFAULT_CONFIG = STRICT_CONFIG


def get_config(
    mode: Optional[str] = None,
    min_items: Optional[int] = None,
    max_items: Optional[int] = None,
) -> PlanConfig:
    """
    Create a configuration with optional overrides.

    Args:
        mode: "strict" or "legacy"; selects the base bounds
        min_items: Override for the per-day minimum
        max_items: Override for the per-day maximum

    Returns:
        PlanConfig with specified overrides applied

    Raises:
        ValueError: If the mode is unknown or the bounds are inconsistent
    """
    if mode is None or mode == "strict":
        base = STRICT_CONFIG
    elif mode == "legacy":
        base = LEGACY_CONFIG
    else:
        raise ValueError(f"Unknown plan mode: {mode!r}")

    return PlanConfig(
        min_items=min_items if min_items is not None else base.min_items,
        max_items=max_items if max_items is not None else base.max_items,
        mode=base.mode,
    )
