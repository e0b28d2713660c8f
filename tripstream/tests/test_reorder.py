"""
Tests for the drag-based reorder engine.
"""

import pytest

from tripstream.plan.reconciler import PlanReconciler
from tripstream.plan.reorder import DragState, LayoutMode, ReorderEngine, SlotRect
from tripstream.shared.contracts.plan_output import PlanItem


# ============================================================================
# Test Fixtures
# ============================================================================

COLUMN_WIDTH = 200.0
ROW_HEIGHT = 50.0


def _make_day(*titles):
    return [PlanItem(title=t, short_description="desc") for t in titles]


def _titles(document):
    return [[item.title for item in document[d]] for d in range(len(document))]


def _make_engine(*days, layout=LayoutMode.CALENDAR):
    """Engine over a document holding the given days, with a slot grid registered."""
    reconciler = PlanReconciler()
    reconciler.begin_turn()
    reconciler.merge_progress([_make_day(*titles) for titles in days])
    engine = ReorderEngine(reconciler, layout=layout)
    _register_grid(engine, reconciler)
    return engine, reconciler


def _register_grid(engine, reconciler):
    """One column per day, one slot per insert position."""
    engine.clear_slots()
    for day in range(len(reconciler.document)):
        for index in range(reconciler.document.day_length(day) + 1):
            engine.register_slot(day, index, _slot_rect(day, index))


def _slot_rect(day, index):
    return SlotRect(left=day * COLUMN_WIDTH, top=index * ROW_HEIGHT, width=COLUMN_WIDTH, height=ROW_HEIGHT)


def _center(day, index):
    rect = _slot_rect(day, index)
    return rect.left + rect.width / 2, rect.center_y


def _item_rect(day, index):
    return SlotRect(left=day * COLUMN_WIDTH + 10, top=index * ROW_HEIGHT + 5, width=180, height=40)


# ============================================================================
# TestNearestSlot
# ============================================================================


class TestNearestSlot:
    """Tests for drop-slot scoring."""

    def test_off_column_penalty(self):
        """An in-column slot 30px away beats an off-column slot 0px away."""
        engine, _ = _make_engine(["A"])
        engine.clear_slots()
        engine.register_slot(0, 0, SlotRect(left=0, top=0, width=100, height=20))  # center y 10
        engine.register_slot(1, 0, SlotRect(left=200, top=30, width=100, height=20))  # center y 40

        assert engine.nearest_slot(50, 40) == (0, 0)

    def test_penalty_can_be_outweighed(self):
        """Far enough vertically, the off-column slot wins."""
        engine, _ = _make_engine(["A"])
        engine.clear_slots()
        engine.register_slot(0, 0, SlotRect(left=0, top=0, width=100, height=20))
        engine.register_slot(1, 0, SlotRect(left=200, top=100, width=100, height=20))

        assert engine.nearest_slot(50, 110) == (1, 0)

    def test_tie_goes_to_earliest_registered(self):
        """Equal scores resolve to the slot registered first."""
        engine, _ = _make_engine(["A"])
        engine.clear_slots()
        engine.register_slot(1, 0, SlotRect(left=0, top=0, width=100, height=20))
        engine.register_slot(0, 0, SlotRect(left=0, top=0, width=100, height=20))

        assert engine.nearest_slot(50, 10) == (1, 0)

    def test_no_slots(self):
        """Without slots there is no candidate."""
        engine, _ = _make_engine(["A"])
        engine.clear_slots()
        assert engine.nearest_slot(0, 0) is None


# ============================================================================
# TestDragLifecycle
# ============================================================================


class TestDragLifecycle:
    """Tests for the idle/dragging state machine."""

    def test_drag_requires_calendar_layout(self):
        """Pointer-down outside calendar layout does not start a drag."""
        engine, _ = _make_engine(["A"], layout=LayoutMode.MAP)
        assert engine.pointer_down(0, 0, 20, 20, _item_rect(0, 0)) is None
        assert engine.state is DragState.IDLE

    def test_pointer_down_on_missing_item(self):
        """Pointer-down where no item is displayed does nothing."""
        engine, _ = _make_engine(["A"])
        assert engine.pointer_down(0, 3, 20, 20, _item_rect(0, 3)) is None

    def test_single_active_drag(self):
        """A second pointer-down during a drag is an error."""
        engine, _ = _make_engine(["A", "B"])
        engine.pointer_down(0, 0, 20, 20, _item_rect(0, 0))
        with pytest.raises(RuntimeError):
            engine.pointer_down(0, 1, 20, 70, _item_rect(0, 1))

    def test_session_snapshot_and_ghost(self):
        """The session captures the item and the pointer offset."""
        engine, _ = _make_engine(["A", "B"])
        session = engine.pointer_down(0, 1, 30, 60, _item_rect(0, 1))

        assert engine.state is DragState.DRAGGING
        assert session.item.title == "B"
        assert (session.offset_x, session.offset_y) == (20, 5)
        engine.pointer_move(100, 200)
        assert session.ghost_position == (80, 195)

    def test_leaving_calendar_cancels(self):
        """Switching to map layout abandons the drag."""
        engine, reconciler = _make_engine(["A", "B"])
        before = reconciler.document
        engine.pointer_down(0, 0, 20, 20, _item_rect(0, 0))

        engine.set_layout(LayoutMode.MAP)

        assert engine.state is DragState.IDLE
        assert not engine.pointer_up()
        assert reconciler.document is before

    def test_drop_without_hover_keeps_source(self):
        """A release with no hovered slot leaves the document unchanged."""
        engine, reconciler = _make_engine(["A", "B", "C"])
        engine.pointer_down(0, 1, 20, 70, _item_rect(0, 1))

        assert not engine.pointer_up()
        assert _titles(reconciler.document) == [["A", "B", "C"]]
        assert engine.state is DragState.IDLE


# ============================================================================
# TestDrop
# ============================================================================


class TestDrop:
    """Tests for moves produced by a drop."""

    def test_cross_day_drag(self):
        """(0, 2) dropped on slot (1, 0): day 0 loses it, day 1 gains it first."""
        engine, reconciler = _make_engine(["A", "B", "C"], ["D", "E", "F"])
        engine.pointer_down(0, 2, 20, 120, _item_rect(0, 2))
        assert engine.pointer_move(*_center(1, 0)) == (1, 0)

        assert engine.pointer_up()

        days = _titles(reconciler.document)
        assert days == [["A", "B"], ["C", "D", "E", "F"]]
        assert not set(days[0]) & set(days[1])

    def test_same_day_drag(self):
        """Dropping lower in the same column reorders within the day."""
        engine, reconciler = _make_engine(["A", "B", "C"])
        engine.pointer_down(0, 0, 20, 20, _item_rect(0, 0))
        engine.pointer_move(*_center(0, 3))

        assert engine.pointer_up()
        assert _titles(reconciler.document) == [["B", "C", "A"]]

    def test_clamp_uses_document_at_drop_time(self):
        """A hovered index past the end of a day that shrank is clamped at drop."""
        engine, reconciler = _make_engine(["A", "B"], ["C", "D", "E"])
        engine.pointer_down(0, 0, 20, 20, _item_rect(0, 0))
        engine.pointer_move(*_center(1, 3))

        # Day 1 shrinks while the pointer is still down
        reconciler.apply_move((1, 2), (0, 2))

        assert engine.final_target(engine.session) == (1, 2)
        assert engine.pointer_up()
        assert _titles(reconciler.document) == [["B", "E"], ["C", "D", "A"]]

    def test_merge_and_drop_in_same_tick(self):
        """A merge landing before the drop is applied first; the drop sees its result."""
        engine, reconciler = _make_engine(["A", "B"], ["C"])
        engine.pointer_down(0, 0, 20, 20, _item_rect(0, 0))
        engine.pointer_move(*_center(1, 1))

        reconciler.merge_progress([_make_day("A", "B"), _make_day("C", "D")])
        moved = engine.pointer_up()

        assert moved
        assert _titles(reconciler.document) == [["B"], ["C", "A", "D"]]

    def test_drop_before_merge_in_same_tick(self):
        """A drop landing before the merge keeps the moved item where it was dropped."""
        engine, reconciler = _make_engine(["A", "B"], ["C"])
        engine.pointer_down(0, 0, 20, 20, _item_rect(0, 0))
        engine.pointer_move(*_center(1, 1))

        engine.pointer_up()
        reconciler.merge_progress([_make_day("A", "B"), _make_day("C", "D")])

        assert _titles(reconciler.document) == [["B"], ["C", "A", "D"]]
