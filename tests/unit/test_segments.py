"""
Tests for the segment filter evaluator.
"""

from __future__ import annotations

import pytest

from footprint.components.analytics import (
    AnalyticsQueryError,
    And,
    Leaf,
    Or,
    apply_segment,
    evaluate,
    parse_filter_tree,
)


def leaf(field: str, operator: str, value: str) -> dict[str, str]:
    return {"field": field, "operator": operator, "value": value}


class TestParse:
    def test_leaf(self) -> None:
        assert parse_filter_tree(leaf("country", "equals", "DE")) == Leaf(
            "country", "equals", "DE"
        )

    def test_event_type_field_maps_to_attribute(self) -> None:
        node = parse_filter_tree(leaf("eventType", "equals", "custom"))
        assert node == Leaf("event_type", "equals", "custom")

    def test_nested_groups(self) -> None:
        tree = parse_filter_tree(
            {
                "and": [
                    leaf("country", "equals", "DE"),
                    {"or": [leaf("browser", "equals", "Firefox"), leaf("os", "equals", "Linux")]},
                ]
            }
        )
        assert tree == And(
            (
                Leaf("country", "equals", "DE"),
                Or((Leaf("browser", "equals", "Firefox"), Leaf("os", "equals", "Linux"))),
            )
        )

    def test_flat_list_folds_left_to_right(self) -> None:
        tree = parse_filter_tree(
            [
                {**leaf("country", "equals", "DE"), "logic": "AND"},
                {**leaf("browser", "equals", "Firefox"), "logic": "OR"},
                leaf("device", "equals", "Mobile"),
            ]
        )
        assert tree == Or(
            (
                And((Leaf("country", "equals", "DE"), Leaf("browser", "equals", "Firefox"))),
                Leaf("device", "equals", "Mobile"),
            )
        )

    def test_flat_list_single_entry(self) -> None:
        assert parse_filter_tree([leaf("path", "starts_with", "/blog")]) == Leaf(
            "path", "starts_with", "/blog"
        )

    @pytest.mark.parametrize(
        "raw",
        [
            leaf("ip_address", "equals", "1.2.3.4"),
            leaf("country", "matches", "D.*"),
            {"and": []},
            {"or": "country"},
            {"and": [leaf("country", "equals", "DE")], "or": [leaf("os", "equals", "iOS")]},
            {"value": "DE"},
            {"field": "country", "operator": "equals"},
            [],
            [{**leaf("country", "equals", "DE"), "logic": "XOR"}, leaf("os", "equals", "iOS")],
            "country = DE",
        ],
    )
    def test_malformed_trees_rejected(self, raw) -> None:
        with pytest.raises(AnalyticsQueryError) as exc:
            parse_filter_tree(raw)
        assert exc.value.code == "INVALID_SEGMENT"


class TestEvaluate:
    def test_equals_is_case_sensitive(self, make_event) -> None:
        node = Leaf("country", "equals", "DE")
        assert evaluate(node, make_event(country="DE"))
        assert not evaluate(node, make_event(country="de"))

    def test_contains_and_starts_with(self, make_event) -> None:
        event = make_event("/blog/post-1")
        assert evaluate(Leaf("path", "contains", "post"), event)
        assert evaluate(Leaf("path", "starts_with", "/blog"), event)
        assert not evaluate(Leaf("path", "starts_with", "blog"), event)

    @pytest.mark.parametrize("operator", ["equals", "contains", "starts_with"])
    def test_null_field_fails_positive_operators(self, make_event, operator: str) -> None:
        assert not evaluate(Leaf("city", operator, "Berlin"), make_event(city=None))

    def test_null_field_satisfies_not_equals(self, make_event) -> None:
        assert evaluate(Leaf("city", "not_equals", "Berlin"), make_event(city=None))

    def test_and_or(self, make_event) -> None:
        event = make_event(country="DE", browser="Chrome")
        de = Leaf("country", "equals", "DE")
        firefox = Leaf("browser", "equals", "Firefox")

        assert not evaluate(And((de, firefox)), event)
        assert evaluate(Or((de, firefox)), event)

    def test_equals_and_not_equals_partition(self, make_event) -> None:
        events = [
            make_event(country="DE"),
            make_event(country="FR"),
            make_event(country=None),
            make_event(country="DE"),
            make_event(country="de"),
        ]
        eq = apply_segment(events, Leaf("country", "equals", "DE"))
        ne = apply_segment(events, Leaf("country", "not_equals", "DE"))

        assert len(eq) + len(ne) == len(events)
        assert not any(e in ne for e in eq)

    def test_apply_segment_keeps_order(self, make_event) -> None:
        events = [make_event(f"/{i}", device="Mobile" if i % 2 else "Desktop") for i in range(6)]
        matched = apply_segment(events, Leaf("device", "equals", "Mobile"))
        assert [e.path for e in matched] == ["/1", "/3", "/5"]
