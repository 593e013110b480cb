"""
Tests for field_resolver.py - deterministic deep field lookup.
"""
from gtm_intel.services.field_resolver import (
    NOT_FOUND,
    resolve_field,
    resolve_with_aliases,
)


class TestResolveField:
    """Precedence and traversal order of resolve_field."""

    def test_non_composite_values_are_not_found(self):
        for value in ("text", 3, 1.5, None, True):
            assert resolve_field(value, "x") is NOT_FOUND

    def test_direct_key_wins(self):
        assert resolve_field({"x": 1}, "x") == 1

    def test_shallow_value_beats_nested_value(self):
        assert resolve_field({"x": 1, "a": {"x": 2}}, "x") == 1

    def test_shallow_value_wins_even_when_declared_after_nested(self):
        assert resolve_field({"a": {"x": 2}, "x": 1}, "x") == 1

    def test_first_sibling_subtree_wins(self):
        assert resolve_field({"a": {"x": 1}, "b": {"x": 2}}, "x") == 1

    def test_earlier_deep_match_beats_later_shallow_sibling(self):
        value = {"a": {"deep": {"deeper": {"x": "deep"}}}, "b": {"x": "shallow"}}
        assert resolve_field(value, "x") == "deep"

    def test_none_value_is_skipped_for_nested_match(self):
        assert resolve_field({"x": None, "a": {"x": 2}}, "x") == 2

    def test_list_items_are_searched_in_index_order(self):
        value = [{"y": 0}, {"x": "first"}, {"x": "second"}]
        assert resolve_field(value, "x") == "first"

    def test_dicts_inside_lists_inside_dicts(self):
        value = {"cards": [{"title": "a"}, {"meta": {"x": [1, 2]}}]}
        assert resolve_field(value, "x") == [1, 2]

    def test_falsy_non_none_values_are_returned(self):
        assert resolve_field({"x": ""}, "x") == ""
        assert resolve_field({"x": []}, "x") == []
        assert resolve_field({"x": 0}, "x") == 0

    def test_missing_field(self):
        assert resolve_field({"a": {"b": [1, 2, {"c": 3}]}}, "x") is NOT_FOUND

    def test_is_deterministic(self):
        value = {"a": [{"x": 1}], "b": {"x": 2}, "x": None}
        results = {repr(resolve_field(value, "x")) for _ in range(20)}
        assert results == {"1"}

    def test_not_found_is_a_falsy_singleton(self):
        assert not NOT_FOUND
        assert repr(NOT_FOUND) == "NOT_FOUND"
        assert type(NOT_FOUND)() is NOT_FOUND


class TestResolveWithAliases:
    """Alias fallback order."""

    def test_canonical_name_beats_alias(self):
        value = {"companyName": "Alias Co", "nested": {"company_name": "Canonical Co"}}
        assert resolve_with_aliases(value, "company_name", ["companyName"]) == "Canonical Co"

    def test_aliases_tried_in_declared_order(self):
        value = {"competitors": ["b"], "directCompetitors": ["a"]}
        found = resolve_with_aliases(
            value, "direct_competitors", ["directCompetitors", "competitors"]
        )
        assert found == ["a"]

    def test_all_names_missing(self):
        assert resolve_with_aliases({"y": 1}, "x", ["z"]) is NOT_FOUND
