"""
Tests for building day buckets from suggestions.
"""

from tripstream.plan.config import get_config
from tripstream.plan.fallback import suggestion_to_item, suggestions_to_days
from tripstream.shared.contracts.plan_output import Suggestion


def _make_suggestion(name, why="Worth it", category="sight", est_spend=None):
    """Create a suggestion using the wire field names."""
    data = {"name": name, "why": why, "category": category}
    if est_spend is not None:
        data["estSpend"] = est_spend
    return Suggestion.model_validate(data)


class TestSuggestionToItem:
    """Tests for suggestion_to_item."""

    def test_maps_fields(self):
        """Name becomes title, why becomes description, spend is normalized."""
        item = suggestion_to_item(_make_suggestion("Zoo", est_spend="$$"))
        assert item.title == "Zoo"
        assert item.short_description == "Worth it"
        assert item.estimated_cost == "$10–$25"

    def test_category_when_no_reason(self):
        """The category stands in for a missing reason."""
        item = suggestion_to_item(_make_suggestion("Zoo", why="", category="park"))
        assert item.short_description == "park"

    def test_no_text_is_skipped(self):
        """A suggestion with neither reason nor category is unusable."""
        assert suggestion_to_item(_make_suggestion("Zoo", why="", category="")) is None


class TestSuggestionsToDays:
    """Tests for suggestions_to_days."""

    def test_empty(self):
        """No suggestions, no days."""
        assert suggestions_to_days([], nights=3) == []

    def test_single_day_by_default(self):
        """Without nights everything goes to one day, up to the cap."""
        suggestions = [_make_suggestion(f"S{i}") for i in range(7)]
        days = suggestions_to_days(suggestions)
        assert [[i.title for i in d] for d in days] == [["S0", "S1", "S2", "S3", "S4"]]

    def test_per_day_clamped_up_and_cycled(self):
        """Too few suggestions are cycled to reach the minimum per day."""
        days = suggestions_to_days([_make_suggestion("A"), _make_suggestion("B")], nights=2)
        assert [[i.title for i in d] for d in days] == [["A", "B", "A"], ["B", "A", "B"]]

    def test_even_split(self):
        """Eight suggestions over two nights make four per day."""
        suggestions = [_make_suggestion(f"S{i}") for i in range(8)]
        days = suggestions_to_days(suggestions, nights=2)
        assert [len(d) for d in days] == [4, 4]
        assert days[1][0].title == "S4"

    def test_respects_config(self):
        """Bounds come from the config."""
        suggestions = [_make_suggestion(f"S{i}") for i in range(10)]
        days = suggestions_to_days(suggestions, nights=1, config=get_config("legacy"))
        assert len(days[0]) == 7
