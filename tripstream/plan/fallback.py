"""
Backfill pool construction.

Turns the generator's suggestion list into day-indexed buckets. Used
both when the generator returns no planDays at all and as the
backfill pool for days left under the minimum after dedup.
"""

import math
from typing import List, Optional, Sequence

from tripstream.plan.config import DEFAULT_CONFIG, PlanConfig
from tripstream.plan.costs import normalize_cost
from tripstream.shared.contracts.plan_output import PlanItem, Suggestion


def suggestion_to_item(suggestion: Suggestion) -> Optional[PlanItem]:
    """Map one suggestion to a plan item; None if it has no usable text."""
    description = suggestion.why or suggestion.category
    if not suggestion.name.strip() or not description.strip():
        return None
    return PlanItem(
        title=suggestion.name,
        short_description=description,
        estimated_cost=normalize_cost(suggestion.est_spend),
    )


def suggestions_to_days(
    suggestions: Sequence[Suggestion],
    nights: Optional[int] = None,
    config: PlanConfig = DEFAULT_CONFIG,
) -> List[List[PlanItem]]:
    """
    Distribute suggestions over the trip's days.

    The per-day count is ceil(items / days) clamped to the configured
    bounds; when there are too few suggestions the list is cycled.

    Args:
        suggestions: Suggestions from the generator
        nights: Trip length in nights (defaults to one day)
        config: Capacity bounds

    Returns:
        Day buckets, or an empty list when no suggestion is usable
    """
    items = [item for item in map(suggestion_to_item, suggestions) if item is not None]
    if not items:
        return []

    day_count = max(1, nights or 1)
    per_day = math.ceil(len(items) / day_count)
    per_day = min(config.max_items, max(config.min_items, per_day))

    pool = [items[i % len(items)] for i in range(day_count * per_day)]
    return [pool[d * per_day:(d + 1) * per_day] for d in range(day_count)]
