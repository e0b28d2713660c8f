"""
Places-backed plan enrichment.

Maps each activity to a canonical place so the same venue cannot
appear twice across the whole plan under different names, and refills
days that lost items with nearby alternates. Every lookup is
best-effort: a failed search leaves the activity as written.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Iterator, List, Optional, Sequence, Set, Tuple

import httpx

from tripstream.plan.config import DEFAULT_CONFIG, PlanConfig
from tripstream.server.places import PlaceHit, PlacesClient, PlacesError
from tripstream.shared.contracts.plan_output import Coords, PlanItem


logger = logging.getLogger(__name__)

ALTERNATE_QUERY = "tourist attraction"
ALTERNATE_DESCRIPTION = "Notable nearby attraction."

_CATEGORY_KEYWORDS: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("museum", "gallery", "exhibit"), "museum"),
    (("park", "garden", "zoo", "aquarium"), "park"),
    (("shrine", "temple", "church", "cathedral"), "shrine"),
    (("market", "shopping", "mall", "boutique"), "shopping"),
    (("lookout", "tower", "observatory", "view"), "view"),
    (("nightlife", "bar", "club", "izakaya", "pub"), "bar"),
    (("cafe", "coffee", "tea"), "cafe"),
)


def guess_category_keywords(title: str, short_description: Optional[str] = None) -> str:
    """Coarse category query used when a title search finds nothing."""
    words = set(f"{title} {short_description or ''}".lower().split())
    for keywords, category in _CATEGORY_KEYWORDS:
        if words.intersection(keywords):
            return category
    return ALTERNATE_QUERY


def _safe_search(
    places: PlacesClient, query: str, center: Optional[Coords], radius: int, limit: int
) -> List[PlaceHit]:
    try:
        return places.text_search(query, center, radius, max_results=limit)
    except (PlacesError, httpx.HTTPError) as e:
        logger.info(f"[enrich] Search failed for {query!r}: {e}")
        return []


def dedupe_and_enrich_plan_days(
    days: Sequence[Sequence[PlanItem]],
    places: PlacesClient,
    center: Optional[Coords],
    radius_meters: int,
    config: PlanConfig = DEFAULT_CONFIG,
) -> List[List[PlanItem]]:
    """
    Canonicalize activities against Places and de-duplicate across days.

    For each activity the first hit whose place id and name are unused
    anywhere in the plan replaces the title. Without such a hit the
    activity is kept unless its lowercase title was already used.
    Days that drop below min_items are refilled from a generic
    attraction search.

    Args:
        days: Plan days after normalization
        places: Places client
        center: Bias center (request coords)
        radius_meters: Bias radius
        config: Capacity bounds

    Returns:
        New plan days, each truncated to max_items
    """
    seen_ids: Set[str] = set()
    seen_names: Set[str] = set()
    out: List[List[PlanItem]] = []

    def _unused(hits: List[PlaceHit]) -> Optional[PlaceHit]:
        for hit in hits:
            if hit.place_id not in seen_ids and hit.name_key and hit.name_key not in seen_names:
                return hit
        return None

    for day_index, day in enumerate(days):
        unique: List[PlanItem] = []
        for item in day:
            hits = _safe_search(places, item.title, center, radius_meters, 4)
            if not hits:
                category = guess_category_keywords(item.title, item.short_description)
                hits = _safe_search(places, category, center, radius_meters, 4)

            chosen = _unused(hits)
            if chosen is not None:
                seen_ids.add(chosen.place_id)
                seen_names.add(chosen.name_key)
                unique.append(item.model_copy(update={"title": chosen.name}))
                continue

            name_key = item.title.lower().strip()
            if name_key not in seen_names:
                seen_names.add(name_key)
                unique.append(item)

        want = min(config.max_items, max(config.min_items, len(unique)))
        while len(unique) < want:
            chosen = _unused(_safe_search(places, ALTERNATE_QUERY, center, radius_meters, 6))
            if chosen is None:
                break
            seen_ids.add(chosen.place_id)
            seen_names.add(chosen.name_key)
            unique.append(PlanItem(title=chosen.name, short_description=ALTERNATE_DESCRIPTION))

        if len(unique) != len(day):
            logger.debug(
                f"[enrich] Day {day_index} changed size | before={len(day)}, after={len(unique)}"
            )
        out.append(unique[: config.max_items])

    return out


# =============================================================================
# Photo lookups for planImage events
# =============================================================================

ImageResult = Tuple[int, int, str, Optional[str], Optional[str]]


def iter_plan_images(
    days: Sequence[Sequence[PlanItem]],
    lookup: Callable[[str], Optional[str]],
    max_workers: int = 4,
) -> Iterator[ImageResult]:
    """
    Look up a photo for every item concurrently, yielding as each completes.

    Args:
        days: Final plan days
        lookup: Returns a photo URL for a title, or None
        max_workers: Thread pool size

    Yields:
        (day index, item index, title, image url, error message); exactly
        one of image url and error message is set
    """
    jobs = [(d, i, item.title) for d, day in enumerate(days) for i, item in enumerate(day)]
    if not jobs:
        return

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {executor.submit(lookup, title): (d, i, title) for d, i, title in jobs}
        for future in as_completed(futures):
            d, i, title = futures[future]
            try:
                url = future.result()
            except (PlacesError, httpx.HTTPError) as e:
                yield d, i, title, None, str(e)
                continue
            if url:
                yield d, i, title, url, None
            else:
                yield d, i, title, None, "No photo found"
