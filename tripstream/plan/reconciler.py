"""
Plan reconciliation.

PlanReconciler owns the single in-memory PlanDocument for a planning
turn and is its only writer. It exposes a narrow mutation interface:

- merge_progress: idempotent merge of partially-streamed days
- finalize: authoritative replace with the sanitized final document
- apply_move: atomic remove+insert requested by the reorder engine
- apply_item_patch: late metadata (e.g. a photo) for a placed item

Every mutation builds the next state off to the side and swaps it in
with a single assignment, so no reader can observe a half-applied
change. None of these methods await or yield.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from tripstream.plan.config import DEFAULT_CONFIG, PlanConfig
from tripstream.plan.costs import normalize_cost
from tripstream.plan.titles import dedup_key
from tripstream.shared.contracts.plan_output import PlanItem
from tripstream.shared.logging.config import log_plan_event


logger = logging.getLogger(__name__)

DayBucket = List[PlanItem]
Observer = Callable[[str, "PlanDocument"], None]

# Fields a patch may touch; title is identity and is never patched
PATCHABLE_FIELDS = ("image_url", "estimated_cost")


# =============================================================================
# Pure day sanitation (shared with the server-side finalization)
# =============================================================================


def dedupe_within_day(day: Iterable[Any], max_items: Optional[int] = None) -> DayBucket:
    """
    Drop later items whose dedup key already appears earlier in the day.

    Args:
        day: Items in day order; non-PlanItem entries are skipped
        max_items: Optional cap applied while walking the day

    Returns:
        New list with first occurrences only
    """
    seen: Set[str] = set()
    out: DayBucket = []
    for item in day:
        if not isinstance(item, PlanItem):
            continue
        key = dedup_key(item.title)
        if key in seen:
            continue
        seen.add(key)
        out.append(item)
        if max_items is not None and len(out) >= max_items:
            break
    return out


@dataclass
class SanitizeResult:
    """Outcome of sanitize_days."""

    days: List[DayBucket]
    underfilled_days: List[int] = field(default_factory=list)
    backfilled_items: int = 0


def _backfill_pools(
    index: int,
    days: Sequence[Sequence[PlanItem]],
    fallback: Optional[Sequence[Sequence[PlanItem]]],
) -> List[Sequence[PlanItem]]:
    if fallback is None:
        return [[item for day in days for item in day]]
    pools: List[Sequence[PlanItem]] = []
    if index < len(fallback) and fallback[index]:
        pools.append(fallback[index])
    if fallback:
        pools.append([item for day in fallback for item in day])
    return pools


def sanitize_days(
    days: Sequence[Sequence[PlanItem]],
    fallback: Optional[Sequence[Sequence[PlanItem]]] = None,
    config: PlanConfig = DEFAULT_CONFIG,
) -> SanitizeResult:
    """
    Enforce per-day dedup and capacity on a complete document.

    Steps per day, in order: dedup by key, truncate to max_items, then
    backfill up to min_items from the fallback pool (that day's fallback
    bucket first, then the whole fallback pool) skipping keys already
    present. Without a fallback pool the document's own items are cycled.
    A day that cannot reach min_items is reported, not rejected.

    Args:
        days: Candidate days (at least one day is always produced)
        fallback: Optional day-indexed backfill pool
        config: Capacity bounds

    Returns:
        SanitizeResult with the new days and the under-filled day indices
    """
    result = SanitizeResult(days=[])
    day_count = max(len(days), 1)

    for index in range(day_count):
        source = days[index] if index < len(days) else []
        day = dedupe_within_day(source)[: config.max_items]
        keys = {dedup_key(item.title) for item in day}

        if len(day) < config.min_items:
            for pool in _backfill_pools(index, days, fallback):
                for candidate in pool:
                    key = dedup_key(candidate.title)
                    if key in keys:
                        continue
                    day.append(candidate)
                    keys.add(key)
                    result.backfilled_items += 1
                    if len(day) >= config.min_items:
                        break
                if len(day) >= config.min_items:
                    break

        day = day[: config.max_items]
        if len(day) < config.min_items:
            result.underfilled_days.append(index)
        result.days.append(day)

    return result


# =============================================================================
# Document
# =============================================================================


class PlanDocument:
    """
    Ordered day buckets; index is the day offset from trip start.

    Read-only to everyone but PlanReconciler.
    """

    def __init__(self, days: Optional[List[DayBucket]] = None):
        self._days: List[DayBucket] = days if days is not None else []

    def __len__(self) -> int:
        return len(self._days)

    def __getitem__(self, index: int) -> Tuple[PlanItem, ...]:
        return tuple(self._days[index])

    def day_length(self, index: int) -> int:
        """Number of items on a day, 0 for a missing day."""
        if 0 <= index < len(self._days):
            return len(self._days[index])
        return 0

    def snapshot(self) -> List[List[PlanItem]]:
        """Copy of the current days."""
        return [list(day) for day in self._days]

    def total_items(self) -> int:
        return sum(len(day) for day in self._days)

    def to_wire(self) -> List[List[Dict[str, str]]]:
        return [[item.to_wire() for item in day] for day in self._days]


# =============================================================================
# Reconciler
# =============================================================================


class PlanReconciler:
    """
    Owner of the canonical PlanDocument.

    A planning turn starts with begin_turn(), receives any number of
    merge_progress() calls, and ends with one finalize(). After finalize
    the merge path is latched off until the next begin_turn().
    """

    def __init__(self, config: Optional[PlanConfig] = None):
        self.config = config or DEFAULT_CONFIG
        self._document = PlanDocument()
        self._finalized = False
        self._turn = 0
        self._observers: List[Observer] = []
        # (day, key) pairs the user moved off a day during this turn
        self._relocated: Set[Tuple[int, str]] = set()

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def document(self) -> PlanDocument:
        return self._document

    @property
    def finalized(self) -> bool:
        return self._finalized

    @property
    def turn(self) -> int:
        return self._turn

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """
        Register an observer called as observer(event, document) after
        every applied mutation.

        Returns:
            Callable that removes the observer
        """
        self._observers.append(observer)

        def _unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return _unsubscribe

    def _commit(self, days: List[DayBucket], event: str, extra: Optional[Dict[str, Any]] = None) -> None:
        self._document = PlanDocument(days)
        log_plan_event(
            event,
            {
                "turn": self._turn,
                "days": len(self._document),
                "items": self._document.total_items(),
                "finalized": self._finalized,
            },
            extra=extra,
            logger=logger,
        )
        for observer in list(self._observers):
            observer(event, self._document)

    # ------------------------------------------------------------------
    # Turn lifecycle
    # ------------------------------------------------------------------

    def begin_turn(self) -> int:
        """
        Start a new planning turn: clear the document and reset the finalize latch.

        Returns:
            The new turn number
        """
        self._turn += 1
        self._finalized = False
        self._relocated = set()
        self._commit([], "reset")
        return self._turn

    # ------------------------------------------------------------------
    # Stream writes
    # ------------------------------------------------------------------

    def merge_progress(self, candidate: Sequence[Sequence[PlanItem]]) -> int:
        """
        Merge extraction results into the document.

        For each candidate day index, items whose dedup key is not yet
        on that day are appended until the day reaches max_items.
        Repeating a call with the same or a longer extraction adds only
        genuinely new items.
        Items the user has moved off a day are not re-added to that day.

        Args:
            candidate: Day-indexed items from the extractor

        Returns:
            Number of items added (0 when ignored after finalize)
        """
        if self._finalized:
            logger.debug(f"[turn={self._turn}] [reconciler] merge ignored after finalize")
            return 0

        max_items = self.config.max_items
        days = self._document.snapshot()
        added = 0
        grew = False

        for index, incoming in enumerate(candidate):
            while len(days) <= index:
                days.append([])
                grew = True
            existing = days[index]
            seen = {dedup_key(item.title) for item in existing}
            for item in incoming:
                if not isinstance(item, PlanItem):
                    continue
                if len(existing) >= max_items:
                    break
                key = dedup_key(item.title)
                if key in seen or (index, key) in self._relocated:
                    continue
                existing.append(item)
                seen.add(key)
                added += 1
            days[index] = dedupe_within_day(existing, max_items)

        if added or grew:
            self._commit(days, "merge", {"added": added})
        return added

    def finalize(
        self,
        days: Sequence[Sequence[PlanItem]],
        fallback: Optional[Sequence[Sequence[PlanItem]]] = None,
    ) -> SanitizeResult:
        """
        Replace the document with the sanitized final document.

        Discards any progressive state and latches the merge path off
        for the rest of the turn.

        Args:
            days: Days from the complete, validated final document
            fallback: Optional day-indexed backfill pool

        Returns:
            SanitizeResult describing under-filled days
        """
        result = sanitize_days(days, fallback, self.config)
        self._finalized = True
        if result.underfilled_days:
            logger.info(
                f"[turn={self._turn}] [reconciler] Under-filled days after backfill | "
                f"days={result.underfilled_days}, min={self.config.min_items}"
            )
        self._commit(
            result.days,
            "finalize",
            {
                "underfilled_days": result.underfilled_days,
                "backfilled_items": result.backfilled_items,
            },
        )
        return result

    # ------------------------------------------------------------------
    # Interactive writes
    # ------------------------------------------------------------------

    def _resolve_source(
        self, days: List[DayBucket], day: int, index: int, snapshot: Optional[PlanItem]
    ) -> Optional[int]:
        if not 0 <= day < len(days):
            return None
        bucket = days[day]
        if snapshot is None:
            return index if 0 <= index < len(bucket) else None
        key = dedup_key(snapshot.title)
        if 0 <= index < len(bucket) and dedup_key(bucket[index].title) == key:
            return index
        # The day changed under the drag; follow the item by identity
        for position, item in enumerate(bucket):
            if dedup_key(item.title) == key:
                return position
        return None

    def apply_move(
        self,
        source: Tuple[int, int],
        target: Tuple[int, int],
        snapshot: Optional[PlanItem] = None,
    ) -> bool:
        """
        Move one item within a day or across days as one atomic step.

        The target is clamped against the document as it is now. A
        cross-day move is refused when the target day already holds the
        same activity or is at max_items.

        Args:
            source: (day, index) where the item was picked up
            target: (day, insert index) where it was dropped
            snapshot: The item as captured at pick-up, used to follow it
                if the source day changed since

        Returns:
            True if the document changed
        """
        days = self._document.snapshot()
        if not days:
            return False

        from_day, from_index = source
        resolved = self._resolve_source(days, from_day, from_index, snapshot)
        if resolved is None:
            logger.info(
                f"[turn={self._turn}] [reconciler] Move ignored, source gone | source={source}"
            )
            return False

        to_day = max(0, min(target[0], len(days) - 1))
        src = days[from_day]

        if to_day == from_day:
            moved = src.pop(resolved)
            to_index = max(0, min(target[1], len(src)))
            src.insert(to_index, moved)
            if to_index == resolved:
                return False
        else:
            dst = days[to_day]
            moved_key = dedup_key(src[resolved].title)
            if any(dedup_key(item.title) == moved_key for item in dst):
                logger.info(
                    f"[turn={self._turn}] [reconciler] Move refused, duplicate on target day | "
                    f"title={src[resolved].title!r}, day={to_day}"
                )
                return False
            if len(dst) >= self.config.max_items:
                logger.info(
                    f"[turn={self._turn}] [reconciler] Move refused, target day full | day={to_day}"
                )
                return False
            moved = src.pop(resolved)
            to_index = max(0, min(target[1], len(dst)))
            dst.insert(to_index, moved)
            self._relocated.add((from_day, moved_key))
            self._relocated.discard((to_day, moved_key))

        self._commit(
            days,
            "move",
            {"source": [from_day, resolved], "target": [to_day, to_index]},
        )
        return True

    def apply_item_patch(
        self,
        day: int,
        index: int,
        fields: Mapping[str, Any],
        title: Optional[str] = None,
    ) -> bool:
        """
        Merge late metadata into an already-placed item.

        Ordering and identity are untouched: only PATCHABLE_FIELDS are
        applied and the item is replaced by an updated copy in place.

        Args:
            day: Day index of the item
            index: Item index within the day
            fields: Partial fields, e.g. {"image_url": "..."}
            title: Optional title the patch was computed for; when the
                item at (day, index) has a different identity the item
                is looked up by title instead

        Returns:
            True if an item was updated
        """
        update: Dict[str, Any] = {}
        for name, value in fields.items():
            if name not in PATCHABLE_FIELDS:
                logger.debug(f"[reconciler] Ignoring non-patchable field {name!r}")
                continue
            if name == "estimated_cost":
                value = normalize_cost(value) if isinstance(value, str) else None
            elif not isinstance(value, str) or not value:
                continue
            update[name] = value
        if not update:
            return False

        days = self._document.snapshot()
        position = self._locate(days, day, index, title)
        if position is None:
            return False

        d, i = position
        days[d][i] = days[d][i].model_copy(update=update)
        self._commit(days, "patch", {"day": d, "index": i, "fields": sorted(update)})
        return True

    @staticmethod
    def _locate(
        days: List[DayBucket], day: int, index: int, title: Optional[str]
    ) -> Optional[Tuple[int, int]]:
        in_range = 0 <= day < len(days) and 0 <= index < len(days[day])
        if title is None:
            return (day, index) if in_range else None

        key = dedup_key(title)
        if in_range and dedup_key(days[day][index].title) == key:
            return day, index
        for d, bucket in enumerate(days):
            for i, item in enumerate(bucket):
                if dedup_key(item.title) == key:
                    return d, i
        return None
