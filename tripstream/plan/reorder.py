"""
Drag-based reorder/move engine.

A two-state machine (idle -> dragging -> idle) driven by pointer
events. While dragging, the pointer position is scored against every
registered drop slot; on release the winning slot is clamped against
the document as it is at drop time and handed to the reconciler as a
single atomic move.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

from tripstream.plan.reconciler import PlanReconciler
from tripstream.shared.contracts.plan_output import PlanItem


logger = logging.getLogger(__name__)

# Added to a slot's score when the pointer is outside the slot's column
OFF_COLUMN_PENALTY = 40.0

SlotKey = Tuple[int, int]


class LayoutMode(str, Enum):
    """How the plan is being displayed. Dragging is only enabled in calendar layout."""

    MAP = "map"
    CALENDAR = "calendar"


class DragState(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"


@dataclass(frozen=True)
class SlotRect:
    """Screen rectangle of a drop slot or a rendered item."""

    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def center_y(self) -> float:
        return self.top + self.height / 2


@dataclass
class DragSession:
    """
    Transient state between pointer-down and pointer-up.

    Attributes:
        from_day: Day the item was picked up from
        from_index: Index of the item within that day
        item: Snapshot of the item at pick-up
        x: Live pointer x
        y: Live pointer y
        width: Rendered item width
        height: Rendered item height
        offset_x: Pointer offset from the item's left edge
        offset_y: Pointer offset from the item's top edge
        hovered: Current candidate (day, insert index), if any
    """

    from_day: int
    from_index: int
    item: PlanItem
    x: float
    y: float
    width: float
    height: float
    offset_x: float
    offset_y: float
    hovered: Optional[SlotKey] = None

    @property
    def ghost_position(self) -> Tuple[float, float]:
        """Top-left corner at which the dragged item should be drawn."""
        return self.x - self.offset_x, self.y - self.offset_y


class ReorderEngine:
    """
    Pointer-driven mover for plan items.

    Slots are registered by the view in definition order; on equal
    scores the earliest-registered slot wins.
    """

    def __init__(self, reconciler: PlanReconciler, layout: LayoutMode = LayoutMode.MAP):
        self._reconciler = reconciler
        self.layout = layout
        self._slots: Dict[SlotKey, SlotRect] = {}
        self._session: Optional[DragSession] = None

    # ------------------------------------------------------------------
    # Slots and state
    # ------------------------------------------------------------------

    @property
    def state(self) -> DragState:
        return DragState.DRAGGING if self._session is not None else DragState.IDLE

    @property
    def session(self) -> Optional[DragSession]:
        return self._session

    def register_slot(self, day: int, index: int, rect: SlotRect) -> None:
        """Register (or move) the drop slot for inserting at (day, index)."""
        self._slots[(day, index)] = rect

    def clear_slots(self) -> None:
        self._slots.clear()

    def set_layout(self, layout: LayoutMode) -> None:
        """Switch layout; leaving calendar layout abandons an active drag."""
        self.layout = layout
        if layout is not LayoutMode.CALENDAR and self._session is not None:
            self.cancel()

    def nearest_slot(self, x: float, y: float) -> Optional[SlotKey]:
        """
        Score every slot as vertical distance to its center plus a
        penalty when x falls outside its column; lowest score wins.
        """
        best: Optional[SlotKey] = None
        best_score = float("inf")
        for key, rect in self._slots.items():
            within_x = rect.left <= x <= rect.right
            score = abs(y - rect.center_y) + (0.0 if within_x else OFF_COLUMN_PENALTY)
            if score < best_score:
                best_score = score
                best = key
        return best

    # ------------------------------------------------------------------
    # Pointer events
    # ------------------------------------------------------------------

    def pointer_down(
        self, day: int, index: int, x: float, y: float, item_rect: SlotRect
    ) -> Optional[DragSession]:
        """
        Start dragging the item at (day, index).

        Args:
            day: Day of the pressed item
            index: Index of the pressed item
            x: Pointer x
            y: Pointer y
            item_rect: Rendered rectangle of the pressed item

        Returns:
            The new DragSession, or None outside calendar layout or when
            no item is displayed at (day, index)

        Raises:
            RuntimeError: If a drag is already in progress
        """
        if self._session is not None:
            raise RuntimeError("A drag is already in progress")
        if self.layout is not LayoutMode.CALENDAR:
            return None

        document = self._reconciler.document
        if not 0 <= day < len(document) or not 0 <= index < document.day_length(day):
            return None

        self._session = DragSession(
            from_day=day,
            from_index=index,
            item=document[day][index],
            x=x,
            y=y,
            width=item_rect.width,
            height=item_rect.height,
            offset_x=x - item_rect.left,
            offset_y=y - item_rect.top,
        )
        logger.debug(f"[reorder] Drag started | source=({day}, {index})")
        return self._session

    def pointer_move(self, x: float, y: float) -> Optional[SlotKey]:
        """Track the pointer and recompute the hovered slot."""
        session = self._session
        if session is None:
            return None
        session.x = x
        session.y = y
        best = self.nearest_slot(x, y)
        if best is not None:
            session.hovered = best
        return session.hovered

    def final_target(self, session: DragSession) -> SlotKey:
        """
        Clamp the hovered slot against the current document.

        Falls back to the source position if nothing was ever hovered.
        """
        if session.hovered is None:
            return session.from_day, session.from_index
        document = self._reconciler.document
        max_day = max(0, len(document) - 1)
        day = max(0, min(session.hovered[0], max_day))
        index = max(0, min(session.hovered[1], document.day_length(day)))
        return day, index

    def pointer_up(self) -> bool:
        """
        Drop the dragged item.

        Returns:
            True if the document changed
        """
        session = self._session
        if session is None:
            return False
        self._session = None

        target = self.final_target(session)
        moved = self._reconciler.apply_move(
            (session.from_day, session.from_index), target, snapshot=session.item
        )
        logger.debug(
            f"[reorder] Drop | source=({session.from_day}, {session.from_index}), "
            f"target={target}, moved={moved}"
        )
        return moved

    def cancel(self) -> None:
        """Abandon the active drag without touching the document."""
        self._session = None
